"""
Paywall config: typed wrapper over paygate.core.config for the registry bootstrap.
"""
from __future__ import annotations

from paygate.core.config import settings


def get_admin_account() -> str:
    return settings.admin_account


def get_custody_account() -> str:
    return settings.custody_account


def get_initial_batch() -> tuple[list[str], list[int], list[int]]:
    """(tokens, month_prices, year_prices) as configured; alignment is checked by the registry."""
    return (
        settings.initial_tokens_list,
        settings.initial_month_prices_list,
        settings.initial_year_prices_list,
    )
