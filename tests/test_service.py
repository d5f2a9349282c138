"""Tests for LedgerService, record sources and settings."""

import json

import pytest

from groupledger.config import Settings, load_settings
from groupledger.exceptions import (
    ConfigurationError,
    InvalidAmountError,
    RecordSourceError,
)
from groupledger.models import (
    Balance,
    ExpenseRecord,
    LedgerSnapshot,
    SettlementRecord,
    SplitRecord,
    Transaction,
)
from groupledger.money import Money
from groupledger.service import LedgerService, compute_plan_id
from groupledger.source import InMemoryRecordSource, JsonFileRecordSource

SETTINGS_ENV = [
    "DEFAULT_CURRENCY",
    "MIN_AMOUNT",
    "MAX_AMOUNT",
    "BALANCE_TOLERANCE_CENTS",
    "MAX_SPLITS",
    "LEDGER_PATH",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Run without settings from the environment or a local .env file."""
    for name in SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def settings(clean_env):
    """Create default settings."""
    return Settings()


@pytest.fixture
def snapshot():
    """A group with a trip, two currencies, personal spending and a second group."""
    return LedgerSnapshot(
        expenses=[
            ExpenseRecord(id="e1", payer_id="ann", amount="90.00", group_id="g1"),
            ExpenseRecord(
                id="e2", payer_id="bob", amount="40.00", currency="EUR", group_id="g1"
            ),
            ExpenseRecord(
                id="e3", payer_id="cat", amount="30.00", group_id="g1", trip_id="t1"
            ),
            ExpenseRecord(
                id="e4",
                payer_id="ann",
                amount="500.00",
                group_id="g1",
                deleted=True,
            ),
            ExpenseRecord(id="e5", payer_id="zed", amount="8.00", group_id="g2"),
            ExpenseRecord(
                id="p1", payer_id="ann", amount="12.00", is_personal=True
            ),
        ],
        splits=[
            SplitRecord(expense_id="e1", user_id="ann", amount="30.00"),
            SplitRecord(expense_id="e1", user_id="bob", amount="30.00"),
            SplitRecord(expense_id="e1", user_id="cat", amount="30.00"),
            SplitRecord(expense_id="e2", user_id="ann", amount="40.00"),
            SplitRecord(expense_id="e3", user_id="ann", amount="15.00"),
            SplitRecord(expense_id="e3", user_id="cat", amount="15.00"),
            SplitRecord(expense_id="e4", user_id="bob", amount="500.00"),
            SplitRecord(expense_id="e5", user_id="ann", amount="8.00"),
        ],
        settlements=[
            SettlementRecord(
                from_user_id="bob", to_user_id="ann", amount="10.00", group_id="g1"
            ),
            SettlementRecord(
                from_user_id="ann", to_user_id="zed", amount="8.00", group_id="g2"
            ),
        ],
    )


@pytest.fixture
def service(settings, snapshot):
    """Create a LedgerService over an in-memory snapshot."""
    return LedgerService(settings, InMemoryRecordSource(snapshot))


def balance(user: str, currency: str, amount: str) -> Balance:
    return Balance(user_id=user, currency=currency, amount=amount)


class TestBalances:
    """Balances come from one group and one scope only."""

    def test_group_balances(self, service):
        result = service.balances("g1")

        assert result == [
            balance("ann", "EUR", "-40.00"),
            balance("bob", "EUR", "40.00"),
            balance("ann", "USD", "50.00"),
            balance("bob", "USD", "-20.00"),
            balance("cat", "USD", "-30.00"),
        ]

    def test_trip_balances(self, service):
        assert service.balances("g1", "t1") == [
            balance("ann", "USD", "-15.00"),
            balance("cat", "USD", "15.00"),
        ]

    def test_other_group(self, service):
        assert service.balances("g2") == []

    def test_unknown_group(self, service):
        assert service.balances("nope") == []


class TestSettlementPlan:
    def test_plan_per_currency(self, service):
        plan = service.settlement_plan("g1")

        assert list(plan) == ["EUR", "USD"]
        assert [
            (txn.from_user_id, txn.to_user_id, txn.amount) for txn in plan["EUR"]
        ] == [("ann", "bob", Money.of("40.00"))]
        assert [
            (txn.from_user_id, txn.to_user_id, txn.amount) for txn in plan["USD"]
        ] == [
            ("cat", "ann", Money.of("30.00")),
            ("bob", "ann", Money.of("20.00")),
        ]

    def test_confirming_plan_settles_group(self, snapshot, settings):
        service = LedgerService(settings, InMemoryRecordSource(snapshot))
        plan = service.settlement_plan("g1")

        confirmed = [
            service.confirm_transaction(txn, "g1")
            for transactions in plan.values()
            for txn in transactions
        ]
        settled = snapshot.model_copy(
            update={"settlements": snapshot.settlements + confirmed}
        )
        service = LedgerService(settings, InMemoryRecordSource(settled))

        assert service.balances("g1") == []
        assert service.settlement_plan("g1") == {}

    def test_plan_for_divided_splits(self, settings):
        """Splits stored as amount / 3 each leave one cent of rounding."""
        snapshot = LedgerSnapshot(
            expenses=[ExpenseRecord(id="e1", payer_id="ann", amount="10.00")],
            splits=[
                SplitRecord(
                    expense_id="e1", user_id=user_id, amount=Money.of(10).divide(3)
                )
                for user_id in ["ann", "bob", "cat"]
            ],
        )
        service = LedgerService(settings, InMemoryRecordSource(snapshot))

        plan = service.settlement_plan(None)

        assert [
            (txn.from_user_id, txn.to_user_id, txn.amount) for txn in plan["USD"]
        ] == [
            ("bob", "ann", Money.of("3.33")),
            ("cat", "ann", Money.of("3.33")),
        ]


class TestNetBetween:
    def test_default_currency(self, service):
        assert service.net_between("g1", "ann", "bob") == Money.of("20.00")

    def test_other_currency(self, service):
        assert service.net_between("g1", "ann", "bob", "eur") == Money.of("-40.00")

    def test_includes_trips(self, service):
        """Pairwise nets span every trip of the group."""
        assert service.net_between("g1", "ann", "cat") == Money.of("15.00")


class TestPersonalTotals:
    def test_personal_totals(self, service):
        assert service.personal_totals("ann") == [balance("ann", "USD", "12.00")]

    def test_no_personal_expenses(self, service):
        assert service.personal_totals("bob") == []


class TestConfirmTransaction:
    def make_txn(self, amount: str) -> Transaction:
        return Transaction(
            from_user_id="bob", to_user_id="ann", amount=amount, currency="USD"
        )

    def test_builds_settlement_record(self, service):
        settlement = service.confirm_transaction(self.make_txn("20.00"), "g1", "t1")

        assert settlement == SettlementRecord(
            from_user_id="bob",
            to_user_id="ann",
            amount="20.00",
            currency="USD",
            group_id="g1",
            trip_id="t1",
        )

    @pytest.mark.parametrize("amount", ["0.00", "-5.00", "1000000.00"])
    def test_amount_out_of_range(self, service, amount):
        with pytest.raises(InvalidAmountError, match="outside allowed range"):
            service.confirm_transaction(self.make_txn(amount), "g1")


class TestComputePlanId:
    """Plan ids are deterministic SHA256 digests."""

    def make_plan(self, amount: str = "20.00") -> dict[str, list[Transaction]]:
        return {
            "USD": [
                Transaction(
                    from_user_id="bob", to_user_id="ann", amount=amount, currency="USD"
                )
            ]
        }

    def test_deterministic(self):
        assert compute_plan_id("g1", None, self.make_plan()) == compute_plan_id(
            "g1", None, self.make_plan()
        )

    def test_is_sha256_hex(self):
        plan_id = compute_plan_id("g1", None, self.make_plan())

        assert len(plan_id) == 64
        assert all(c in "0123456789abcdef" for c in plan_id)

    def test_changes_with_amount(self):
        assert compute_plan_id("g1", None, self.make_plan()) != compute_plan_id(
            "g1", None, self.make_plan("20.01")
        )

    def test_changes_with_scope(self):
        plan = self.make_plan()

        assert compute_plan_id("g1", None, plan) != compute_plan_id("g1", "t1", plan)
        assert compute_plan_id("g1", None, plan) != compute_plan_id("g2", None, plan)


class TestJsonFileRecordSource:
    def test_round_trip(self, tmp_path, snapshot):
        path = tmp_path / "ledger.json"
        path.write_text(snapshot.model_dump_json())

        source = JsonFileRecordSource(path)

        assert source.read_snapshot() == snapshot
        loaded = source.load("g1")
        assert {expense.id for expense in loaded.expenses} == {"e1", "e2", "e3"}
        assert all(split.expense_id != "e4" for split in loaded.splits)
        assert len(loaded.settlements) == 1
        assert [e.id for e in source.load_personal("ann")] == ["p1"]

    def test_amounts_stored_as_strings(self, tmp_path, snapshot):
        path = tmp_path / "ledger.json"
        path.write_text(snapshot.model_dump_json())

        raw = json.loads(path.read_text())

        assert raw["expenses"][0]["amount"] == "90.00"

    def test_numeric_amounts_accepted(self, tmp_path):
        path = tmp_path / "ledger.json"
        path.write_text(
            json.dumps(
                {
                    "expenses": [
                        {"id": 1, "payer_id": 7, "amount": 10.5, "group_id": "g1"}
                    ],
                    "splits": [{"expense_id": 1, "user_id": 8, "amount": 10.5}],
                }
            )
        )

        snapshot = JsonFileRecordSource(path).load("g1")

        assert snapshot.expenses[0].id == "1"
        assert snapshot.splits[0].amount == Money.of("10.50")

    def test_missing_file(self, tmp_path):
        with pytest.raises(RecordSourceError, match="Cannot read ledger file"):
            JsonFileRecordSource(tmp_path / "missing.json").load("g1")

    def test_invalid_file(self, tmp_path):
        path = tmp_path / "ledger.json"
        path.write_text('{"expenses": [{"id": "e1"}]}')

        with pytest.raises(RecordSourceError, match="Invalid ledger file"):
            JsonFileRecordSource(path).load("g1")


class TestSettings:
    def test_defaults(self, settings):
        assert settings.default_currency == "USD"
        assert settings.min_amount == Money.of("0.01")
        assert settings.max_amount == Money.of("999999.99")
        assert settings.balance_tolerance_cents == 0
        assert settings.max_splits == 50
        assert settings.ledger_path is None

    def test_from_environment(self, clean_env, monkeypatch, tmp_path):
        monkeypatch.setenv("DEFAULT_CURRENCY", "eur")
        monkeypatch.setenv("BALANCE_TOLERANCE_CENTS", "2")
        monkeypatch.setenv("LEDGER_PATH", str(tmp_path / "ledger.json"))

        settings = load_settings()

        assert settings.default_currency == "EUR"
        assert settings.balance_tolerance_cents == 2
        assert settings.ledger_path == tmp_path / "ledger.json"

    def test_from_env_file(self, clean_env, tmp_path):
        (tmp_path / ".env").write_text("DEFAULT_CURRENCY=GBP\n")

        assert load_settings().default_currency == "GBP"

    @pytest.mark.parametrize(
        "name, value",
        [("DEFAULT_CURRENCY", "euro"), ("BALANCE_TOLERANCE_CENTS", "-1")],
    )
    def test_invalid_environment(self, clean_env, monkeypatch, name, value):
        monkeypatch.setenv(name, value)

        with pytest.raises(ConfigurationError, match="Failed to load settings"):
            load_settings()

    def test_service_uses_default_currency(self, clean_env, monkeypatch):
        monkeypatch.setenv("DEFAULT_CURRENCY", "SGD")
        snapshot = LedgerSnapshot(
            expenses=[ExpenseRecord(id="e1", payer_id="a", amount="5.00")],
            splits=[SplitRecord(expense_id="e1", user_id="b", amount="5.00")],
        )

        service = LedgerService(load_settings(), InMemoryRecordSource(snapshot))

        assert {b.currency for b in service.balances(None)} == {"SGD"}
        assert service.net_between(None, "a", "b") == Money.of("5.00")
