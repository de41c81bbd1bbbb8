"""
Single-owner access control for privileged registry operations.
Not synchronized on its own: the registry calls it under the registry lock.
"""
from __future__ import annotations

import logging
from typing import Callable

from paygate.paywall.errors import Unauthorized, ZeroAddress
from paygate.paywall.models import ZERO_ADDRESS, OwnershipTransferred

logger = logging.getLogger(__name__)


class AccessControl:
    """
    Holds the administrator identity. The owner changes only through
    transfer_ownership / renounce_ownership, both of which are owner-only.
    """

    def __init__(self, owner: str, on_transfer: Callable[[OwnershipTransferred], None] | None = None):
        if not owner or owner == ZERO_ADDRESS:
            raise ZeroAddress("owner")
        self._owner = owner
        self._on_transfer = on_transfer

    @property
    def owner(self) -> str:
        return self._owner

    def is_administrator(self, caller: str) -> bool:
        # After renounce the owner is the sentinel, which no caller may claim.
        return caller == self._owner and caller != ZERO_ADDRESS

    def require_administrator(self, caller: str) -> None:
        if not self.is_administrator(caller):
            logger.warning("paywall_unauthorized", extra={"caller": caller})
            raise Unauthorized(caller)

    def transfer_ownership(self, caller: str, new_owner: str) -> OwnershipTransferred:
        self.require_administrator(caller)
        if not new_owner or new_owner == ZERO_ADDRESS:
            raise ZeroAddress("new_owner")
        return self._set_owner(new_owner)

    def renounce_ownership(self, caller: str) -> OwnershipTransferred:
        """Leave the registry without an administrator. Irreversible."""
        self.require_administrator(caller)
        return self._set_owner(ZERO_ADDRESS)

    def _set_owner(self, new_owner: str) -> OwnershipTransferred:
        event = OwnershipTransferred(previous_owner=self._owner, new_owner=new_owner)
        self._owner = new_owner
        if self._on_transfer is not None:
            self._on_transfer(event)
        return event
