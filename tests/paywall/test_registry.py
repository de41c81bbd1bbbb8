"""
Unit tests for PaywallRegistry against the in-memory ledger.
"""
import threading
import unittest

from paygate.paywall.errors import (
    InsufficientBalance,
    LengthMismatch,
    TokenNotSupported,
    TransferFailed,
    Unauthorized,
    ZeroAddress,
)
from paygate.paywall.models import (
    MONTH_SECONDS,
    YEAR_SECONDS,
    ZERO_ADDRESS,
    NewPaidUser,
    PricesUpdated,
    PurchaseDuration,
    TokenAdded,
    TokenRemoved,
    Withdraw,
)
from paygate.paywall.registry import PaywallRegistry
from paygate.services.transfer.base import TransferServiceUnavailable
from paygate.services.transfer.memory import InMemoryTokenLedger

ADMIN = "admin"
CUSTODY = "custody"
USER = "user-1"
A = "0xAAA"
B = "0xBBB"
C = "0xCCC"
NOW = 1_700_000_000


class FlakyLedger(InMemoryTokenLedger):
    """Fails every transfer of the tokens listed in `failing`."""

    def __init__(self, operator: str, failing: set[str]):
        super().__init__(operator)
        self.failing = failing

    def transfer_from(self, payer, payee, token, amount):
        if token in self.failing:
            raise TransferServiceUnavailable("down", token=token)
        super().transfer_from(payer, payee, token, amount)


class RegistryTestCase(unittest.TestCase):
    def setUp(self):
        self.ledger = InMemoryTokenLedger(operator=CUSTODY)
        self.events = []
        self.registry = self.make_registry([A, B], [2, 4], [20, 40])
        self.events.clear()

    def make_registry(self, tokens, month, year, ledger=None):
        return PaywallRegistry(
            tokens,
            month,
            year,
            owner=ADMIN,
            custody_account=CUSTODY,
            transfer_service=ledger or self.ledger,
            sinks=[self.events.append],
            clock=lambda: NOW,
        )

    def fund(self, account, token, amount, approve=None):
        self.ledger.mint(account, token, amount)
        self.ledger.approve(account, CUSTODY, token, amount if approve is None else approve)


class TestConstruction(RegistryTestCase):
    def test_scenario_initial_batch(self):
        self.assertEqual(self.registry.get_supported_tokens(), [A, B])
        self.assertEqual(self.registry.get_price(A), (2, 20))
        self.assertEqual(self.registry.get_price(B), (4, 40))
        self.assertEqual(self.registry.owner, ADMIN)

    def test_construction_emits_token_added_in_order(self):
        events = []
        PaywallRegistry(
            [A, B], [2, 4], [20, 40],
            owner=ADMIN, custody_account=CUSTODY, transfer_service=self.ledger,
            sinks=[events.append],
        )
        self.assertEqual(
            events,
            [TokenAdded(token=A, month_price=2, year_price=20), TokenAdded(token=B, month_price=4, year_price=40)],
        )

    def test_tokens_vs_month_prices_mismatch(self):
        with self.assertRaises(LengthMismatch) as ctx:
            self.make_registry([A, B], [2], [20, 40])
        self.assertEqual((ctx.exception.left, ctx.exception.right), ("tokens", "month_prices"))
        self.assertEqual(self.events, [])

    def test_month_vs_year_prices_mismatch(self):
        with self.assertRaises(LengthMismatch) as ctx:
            self.make_registry([A, B], [2, 4], [20])
        self.assertEqual((ctx.exception.left, ctx.exception.right), ("month_prices", "year_prices"))

    def test_zero_address_in_batch_fails_without_events(self):
        with self.assertRaises(ZeroAddress):
            self.make_registry([A, ZERO_ADDRESS], [2, 4], [20, 40])
        self.assertEqual(self.events, [])

    def test_zero_address_owner_rejected(self):
        with self.assertRaises(ZeroAddress):
            PaywallRegistry([], [], [], owner=ZERO_ADDRESS, custody_account=CUSTODY, transfer_service=self.ledger)

    def test_empty_batch(self):
        registry = self.make_registry([], [], [])
        self.assertEqual(registry.get_supported_tokens(), [])

    def test_duplicate_in_batch_keeps_both_slots_and_last_prices(self):
        registry = self.make_registry([A, A], [1, 3], [10, 30])
        self.assertEqual(registry.get_supported_tokens(), [A, A])
        self.assertEqual(registry.get_price(A), (3, 30))


class TestQueries(RegistryTestCase):
    def test_unknown_token_price(self):
        with self.assertRaises(TokenNotSupported) as ctx:
            self.registry.get_price(C)
        self.assertEqual(ctx.exception.token, C)

    def test_supported_tokens_is_a_snapshot(self):
        tokens = self.registry.get_supported_tokens()
        tokens.append(C)
        self.assertEqual(self.registry.get_supported_tokens(), [A, B])

    def test_token_entry(self):
        entry = self.registry.get_token_entry(B)
        self.assertTrue(entry.active)
        self.assertEqual((entry.month_price, entry.year_price), (4, 40))
        self.assertTrue(self.registry.is_supported(B))
        self.assertFalse(self.registry.is_supported(C))


class TestPurchase(RegistryTestCase):
    def test_scenario_month_purchase(self):
        self.fund(USER, A, 10)
        event = self.registry.purchase(USER, A, PurchaseDuration.MONTH)

        self.assertEqual(self.ledger.balance_of(USER, A), 8)
        self.assertEqual(self.registry.custody_balance(A), 2)
        expected = NewPaidUser(user=USER, token=A, is_yearly=False, expiry_ts=NOW + MONTH_SECONDS)
        self.assertEqual(event, expected)
        self.assertEqual(self.events, [expected])

    def test_year_purchase_charges_year_price(self):
        self.fund(USER, B, 100)
        event = self.registry.purchase(USER, B, "year")
        self.assertTrue(event.is_yearly)
        self.assertEqual(event.expiry_ts, NOW + YEAR_SECONDS)
        self.assertEqual(self.ledger.balance_of(USER, B), 60)
        self.assertEqual(self.registry.custody_balance(B), 40)

    def test_purchase_touches_no_other_balance(self):
        self.fund(USER, A, 10)
        self.fund("other", A, 5)
        self.registry.purchase(USER, A, PurchaseDuration.MONTH)
        self.assertEqual(self.ledger.balance_of("other", A), 5)
        self.assertEqual(self.ledger.balance_of(ADMIN, A), 0)
        self.assertEqual(self.ledger.balance_of(USER, B), 0)

    def test_unsupported_token(self):
        self.fund(USER, C, 10)
        with self.assertRaises(TokenNotSupported):
            self.registry.purchase(USER, C, PurchaseDuration.MONTH)
        self.assertEqual(self.ledger.balance_of(USER, C), 10)
        self.assertEqual(self.events, [])

    def test_invalid_duration_is_a_plain_value_error(self):
        self.fund(USER, A, 10)
        with self.assertRaises(ValueError) as ctx:
            self.registry.purchase(USER, A, "week")
        self.assertNotIsInstance(ctx.exception, TokenNotSupported)
        self.assertEqual(self.ledger.balance_of(USER, A), 10)
        self.assertEqual(self.events, [])

    def test_insufficient_balance_fails_atomically(self):
        self.fund(USER, A, 1, approve=10)
        with self.assertRaises(TransferFailed) as ctx:
            self.registry.purchase(USER, A, PurchaseDuration.MONTH)
        self.assertEqual(ctx.exception.reason, "insufficient_balance")
        self.assertEqual(self.ledger.balance_of(USER, A), 1)
        self.assertEqual(self.registry.custody_balance(A), 0)
        self.assertEqual(self.events, [])

    def test_insufficient_allowance_fails_atomically(self):
        self.fund(USER, A, 10, approve=1)
        with self.assertRaises(TransferFailed) as ctx:
            self.registry.purchase(USER, A, PurchaseDuration.MONTH)
        self.assertEqual(ctx.exception.reason, "insufficient_allowance")
        self.assertEqual(self.ledger.balance_of(USER, A), 10)
        self.assertEqual(self.ledger.allowance(USER, CUSTODY, A), 1)
        self.assertEqual(self.events, [])

    def test_zero_price_purchase_succeeds(self):
        registry = self.make_registry([C], [0], [0])
        self.events.clear()
        event = registry.purchase(USER, C, PurchaseDuration.MONTH)
        self.assertEqual(event.user, USER)
        self.assertEqual(len(self.events), 1)


class TestAdminMutations(RegistryTestCase):
    def test_add_round_trip(self):
        event = self.registry.add_supported_token(ADMIN, C, 5, 50)
        self.assertEqual(event, TokenAdded(token=C, month_price=5, year_price=50))
        self.assertEqual(self.registry.get_price(C), (5, 50))
        self.assertIn(C, self.registry.get_supported_tokens())
        self.assertEqual(self.events, [event])

    def test_add_zero_prices_allowed(self):
        self.registry.add_supported_token(ADMIN, C, 0, 0)
        self.assertEqual(self.registry.get_price(C), (0, 0))

    def test_add_negative_price_rejected(self):
        with self.assertRaises(ValueError):
            self.registry.add_supported_token(ADMIN, C, -1, 10)
        self.assertFalse(self.registry.is_supported(C))

    def test_add_zero_address(self):
        with self.assertRaises(ZeroAddress):
            self.registry.add_supported_token(ADMIN, ZERO_ADDRESS, 1, 1)
        self.assertEqual(self.events, [])

    def test_add_existing_token_appends_duplicate_slot(self):
        self.registry.add_supported_token(ADMIN, A, 7, 70)
        self.assertEqual(self.registry.get_supported_tokens(), [A, B, A])
        self.assertEqual(self.registry.get_price(A), (7, 70))

    def test_remove_round_trip(self):
        event = self.registry.remove_supported_token(ADMIN, A)
        self.assertEqual(event, TokenRemoved(token=A))
        self.assertNotIn(A, self.registry.get_supported_tokens())
        self.assertEqual(len(self.registry.get_supported_tokens()), 1)
        with self.assertRaises(TokenNotSupported) as ctx:
            self.registry.get_price(A)
        self.assertEqual(ctx.exception.token, A)

    def test_remove_is_swap_with_last(self):
        self.registry.add_supported_token(ADMIN, C, 1, 10)
        self.registry.remove_supported_token(ADMIN, A)
        self.assertEqual(self.registry.get_supported_tokens(), [C, B])

    def test_remove_last_element(self):
        self.registry.remove_supported_token(ADMIN, B)
        self.assertEqual(self.registry.get_supported_tokens(), [A])

    def test_remove_unsupported(self):
        with self.assertRaises(TokenNotSupported):
            self.registry.remove_supported_token(ADMIN, C)
        self.assertEqual(self.registry.get_supported_tokens(), [A, B])
        self.assertEqual(self.events, [])

    def test_remove_duplicate_leaves_second_slot(self):
        self.registry.add_supported_token(ADMIN, A, 7, 70)
        self.registry.remove_supported_token(ADMIN, A)
        self.assertEqual(self.registry.get_supported_tokens(), [A, B])
        self.assertFalse(self.registry.is_supported(A))

    def test_update_prices(self):
        event = self.registry.update_prices(ADMIN, A, 3, 30)
        self.assertEqual(event, PricesUpdated(token=A, month_price=3, year_price=30))
        self.assertEqual(self.registry.get_price(A), (3, 30))
        self.assertEqual(self.registry.get_supported_tokens(), [A, B])

    def test_update_prices_unsupported(self):
        with self.assertRaises(TokenNotSupported):
            self.registry.update_prices(ADMIN, C, 3, 30)
        self.assertEqual(self.events, [])


class TestWithdraw(RegistryTestCase):
    def setUp(self):
        super().setUp()
        self.fund(USER, A, 100)
        self.fund(USER, B, 100)
        self.registry.purchase(USER, A, PurchaseDuration.MONTH)   # custody A = 2
        self.registry.purchase(USER, B, PurchaseDuration.YEAR)    # custody B = 40
        self.events.clear()

    def test_withdraw_conservation(self):
        event = self.registry.withdraw_token(ADMIN, B, 15)
        self.assertEqual(event, Withdraw(amount=15, token=B))
        self.assertEqual(self.registry.custody_balance(B), 25)
        self.assertEqual(self.ledger.balance_of(ADMIN, B), 15)
        self.assertEqual(self.events, [event])

    def test_scenario_withdraw_more_than_custody(self):
        with self.assertRaises(InsufficientBalance) as ctx:
            self.registry.withdraw_token(ADMIN, A, 100)
        self.assertEqual(ctx.exception.token, A)
        self.assertEqual(self.registry.custody_balance(A), 2)
        self.assertEqual(self.ledger.balance_of(ADMIN, A), 0)
        self.assertEqual(self.events, [])

    def test_withdraw_unsupported_token_allowed(self):
        self.ledger.mint(CUSTODY, C, 9)
        self.registry.withdraw_token(ADMIN, C, 9)
        self.assertEqual(self.ledger.balance_of(ADMIN, C), 9)

    def test_withdraw_zero_address(self):
        with self.assertRaises(ZeroAddress):
            self.registry.withdraw_token(ADMIN, ZERO_ADDRESS, 1)

    def test_withdraw_all(self):
        self.ledger.mint(CUSTODY, C, 5)  # not listed, must stay put
        events = self.registry.withdraw_all(ADMIN)
        self.assertEqual(events, [Withdraw(amount=2, token=A), Withdraw(amount=40, token=B)])
        self.assertEqual(self.registry.custody_balance(A), 0)
        self.assertEqual(self.registry.custody_balance(B), 0)
        self.assertEqual(self.ledger.balance_of(CUSTODY, C), 5)
        self.assertEqual(self.ledger.balance_of(ADMIN, A), 2)
        self.assertEqual(self.ledger.balance_of(ADMIN, B), 40)

    def test_withdraw_all_skips_zero_balances(self):
        self.registry.withdraw_token(ADMIN, A, 2)
        self.events.clear()
        events = self.registry.withdraw_all(ADMIN)
        self.assertEqual(events, [Withdraw(amount=40, token=B)])
        self.assertEqual(self.events, events)

    def test_withdraw_all_partial_failure_keeps_earlier_transfers(self):
        ledger = FlakyLedger(CUSTODY, failing={B})
        registry = self.make_registry([A, B], [2, 4], [20, 40], ledger=ledger)
        ledger.mint(CUSTODY, A, 3)
        ledger.mint(CUSTODY, B, 4)
        self.events.clear()
        with self.assertRaises(TransferFailed) as ctx:
            registry.withdraw_all(ADMIN)
        self.assertEqual(ctx.exception.reason, "unavailable")
        self.assertEqual(ledger.balance_of(ADMIN, A), 3)
        self.assertEqual(ledger.balance_of(CUSTODY, B), 4)
        self.assertEqual(self.events, [Withdraw(amount=3, token=A)])


class TestAuthorization(RegistryTestCase):
    def test_non_admin_is_rejected_everywhere(self):
        self.ledger.mint(CUSTODY, A, 5)
        calls = [
            lambda: self.registry.add_supported_token(USER, C, 1, 1),
            lambda: self.registry.remove_supported_token(USER, A),
            lambda: self.registry.update_prices(USER, A, 9, 9),
            lambda: self.registry.withdraw_token(USER, A, 1),
            lambda: self.registry.withdraw_all(USER),
            lambda: self.registry.transfer_ownership(USER, USER),
            lambda: self.registry.renounce_ownership(USER),
        ]
        for call in calls:
            with self.assertRaises(Unauthorized):
                call()
        self.assertEqual(self.registry.get_supported_tokens(), [A, B])
        self.assertEqual(self.registry.get_price(A), (2, 20))
        self.assertEqual(self.registry.custody_balance(A), 5)
        self.assertEqual(self.registry.owner, ADMIN)
        self.assertEqual(self.events, [])

    def test_transfer_ownership_moves_admin_rights(self):
        event = self.registry.transfer_ownership(ADMIN, "new-admin")
        self.assertEqual((event.previous_owner, event.new_owner), (ADMIN, "new-admin"))
        self.assertEqual(self.events, [event])
        with self.assertRaises(Unauthorized):
            self.registry.add_supported_token(ADMIN, C, 1, 1)
        self.registry.add_supported_token("new-admin", C, 1, 1)
        self.assertTrue(self.registry.is_supported(C))

    def test_withdraw_goes_to_current_owner(self):
        self.ledger.mint(CUSTODY, A, 5)
        self.registry.transfer_ownership(ADMIN, "new-admin")
        self.registry.withdraw_token("new-admin", A, 5)
        self.assertEqual(self.ledger.balance_of("new-admin", A), 5)

    def test_renounce_disables_admin_operations(self):
        self.registry.renounce_ownership(ADMIN)
        self.assertEqual(self.registry.owner, ZERO_ADDRESS)
        for caller in (ADMIN, ZERO_ADDRESS):
            with self.assertRaises(Unauthorized):
                self.registry.add_supported_token(caller, C, 1, 1)


class TestEventSinks(RegistryTestCase):
    def test_failing_sink_does_not_undo_operation(self):
        def broken(event):
            raise RuntimeError("sink down")

        seen = []
        registry = PaywallRegistry(
            [], [], [],
            owner=ADMIN, custody_account=CUSTODY, transfer_service=self.ledger,
            sinks=[broken, seen.append],
        )
        event = registry.add_supported_token(ADMIN, C, 1, 10)
        self.assertTrue(registry.is_supported(C))
        self.assertEqual(seen, [event])


class DownLedger(InMemoryTokenLedger):
    """Balance reads fail as if the backend were unreachable."""

    def balance_of(self, account, token):
        raise TransferServiceUnavailable("down", account=account, token=token)


class TestTransferServiceOutage(RegistryTestCase):
    def setUp(self):
        super().setUp()
        self.registry = self.make_registry([A, B], [2, 4], [20, 40], ledger=DownLedger(CUSTODY))
        self.events.clear()

    def test_withdraw_reports_unavailable(self):
        with self.assertRaises(TransferFailed) as ctx:
            self.registry.withdraw_token(ADMIN, A, 1)
        self.assertEqual(ctx.exception.reason, "unavailable")
        self.assertEqual(ctx.exception.token, A)

    def test_withdraw_all_reports_unavailable(self):
        with self.assertRaises(TransferFailed) as ctx:
            self.registry.withdraw_all(ADMIN)
        self.assertEqual(ctx.exception.reason, "unavailable")
        self.assertEqual(self.events, [])

    def test_custody_balance_reports_unavailable(self):
        with self.assertRaises(TransferFailed):
            self.registry.custody_balance(A)


class TestConcurrency(RegistryTestCase):
    def test_parallel_purchases_and_withdrawals_conserve_value(self):
        users = [f"user-{i}" for i in range(8)]
        rounds = 25
        funded = 2 * rounds
        for user in users:
            self.fund(user, A, funded)

        errors = []
        stop = threading.Event()

        def buyer(user):
            try:
                for _ in range(rounds):
                    self.registry.purchase(user, A, PurchaseDuration.MONTH)
            except Exception as e:
                errors.append(e)

        def sweeper():
            while not stop.is_set():
                self.registry.withdraw_all(ADMIN)

        sweep = threading.Thread(target=sweeper)
        sweep.start()
        buyers = [threading.Thread(target=buyer, args=(u,)) for u in users]
        for t in buyers:
            t.start()
        for t in buyers:
            t.join()
        stop.set()
        sweep.join()

        self.assertEqual(errors, [])
        for user in users:
            self.assertEqual(self.ledger.balance_of(user, A), 0)
        admin = self.ledger.balance_of(ADMIN, A)
        custody = self.registry.custody_balance(A)
        self.assertEqual(admin + custody, funded * len(users))

        purchases = [e for e in self.events if isinstance(e, NewPaidUser)]
        withdrawals = [e for e in self.events if isinstance(e, Withdraw)]
        self.assertEqual(len(purchases), rounds * len(users))
        self.assertEqual(sum(w.amount for w in withdrawals), admin)
        self.assertTrue(all(w.amount > 0 for w in withdrawals))
