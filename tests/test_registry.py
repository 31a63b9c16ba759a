"""
Test suite for the loan registry

Tests loan creation and validation, sequential ids, guarded deletion, the
excluded client, and restoring loans from storage.
"""

import pytest
from decimal import Decimal
from datetime import date

from lending.delinquency import DelinquencyEnforcer
from lending.installments import InstallmentState
from lending.ledger import PaymentLedger
from lending.loans import Loan
from lending.registry import LOAN_COLUMNS, LoanRegistry, parse_loan_number
from lending.result import ErrorType
from lending.storage import InMemoryRecordStore


def loan_row(loan_id, client_id="12345678", amount="1000", terms="3",
             loan_type="personal", start="2024-01-15"):
    return {
        "ID_Prestamo": loan_id,
        "ID_Cliente": client_id,
        "Monto": amount,
        "Cuotas": terms,
        "Tipo": loan_type,
        "Fecha_Inicio": start,
    }


class TestLoanCreation:
    """Test creating loans"""

    def setup_method(self):
        self.store = InMemoryRecordStore()
        self.ledger = PaymentLedger(self.store)
        self.enforcer = DelinquencyEnforcer(today=lambda: date(2024, 1, 20))
        self.registry = LoanRegistry(self.ledger, self.enforcer, store=self.store)

    def test_create_loan(self):
        result = self.registry.create("12345678", Decimal('1000'), 12, False, date(2024, 1, 15))

        assert result.success
        loan = result.value
        assert loan.loan_id == "0001"
        assert loan.client_id == "12345678"
        assert len(loan.installments) == 12

    def test_sequential_ids(self):
        ids = [
            self.registry.create("1", Decimal('100'), 1, False, date(2024, 1, 15)).value.loan_id
            for _ in range(3)
        ]
        assert ids == ["0001", "0002", "0003"]
        assert self.registry.next_id == "0004"

    def test_create_persists_loan(self):
        self.registry.create("12345678", "2500.75", 6, True, date(2024, 1, 15))

        assert self.store.load_rows("prestamos") == [
            loan_row("0001", amount="2500.75", terms="6", loan_type="hipotecario")
        ]

    @pytest.mark.parametrize("client_id,principal,terms,start,field", [
        ("", Decimal('1000'), 12, date(2024, 1, 15), "client_id"),
        ("   ", Decimal('1000'), 12, date(2024, 1, 15), "client_id"),
        ("1", Decimal('0'), 12, date(2024, 1, 15), "principal"),
        ("1", Decimal('-100'), 12, date(2024, 1, 15), "principal"),
        ("1", "abc", 12, date(2024, 1, 15), "principal"),
        ("1", Decimal('1000'), 0, date(2024, 1, 15), "term_count"),
        ("1", Decimal('1000'), -3, date(2024, 1, 15), "term_count"),
        ("1", Decimal('1000'), True, date(2024, 1, 15), "term_count"),
        ("1", Decimal('1000'), 100000, date(2024, 1, 15), "term_count"),
        ("1", Decimal('1000'), 12, "2024-01-15", "start_date"),
    ])
    def test_invalid_input(self, client_id, principal, terms, start, field):
        """Test invalid input names the field and allocates no id"""
        result = self.registry.create(client_id, principal, terms, False, start)

        assert result.error_type == ErrorType.VALIDATION
        assert result.field_name == field
        assert self.registry.get_all() == ()
        assert self.registry.next_id == "0001"

    def test_excluded_client_not_persisted(self):
        """Test loans of the sentinel client stay in memory only"""
        self.registry.create("00000000", Decimal('1000'), 3, False, date(2024, 1, 15))
        self.registry.create("12345678", Decimal('1000'), 3, False, date(2024, 1, 15))

        assert len(self.registry.get_all()) == 2
        rows = self.store.load_rows("prestamos")
        assert [row["ID_Cliente"] for row in rows] == ["12345678"]

    def test_exclusion_can_be_disabled(self):
        registry = LoanRegistry(
            self.ledger, self.enforcer, store=self.store, excluded_client_id=""
        )
        registry.create("00000000", Decimal('1000'), 3, False, date(2024, 1, 15))

        assert len(self.store.load_rows("prestamos")) == 1

    def test_custom_id_width(self):
        registry = LoanRegistry(self.ledger, self.enforcer, id_width=6)
        loan = registry.create("1", Decimal('100'), 1, False, date(2024, 1, 15)).value
        assert loan.loan_id == "000001"


class TestLoanLookup:
    """Test finding loans with delinquency evaluated"""

    def setup_method(self):
        self.ledger = PaymentLedger()
        self.enforcer = DelinquencyEnforcer(today=lambda: date(2024, 3, 20))
        self.registry = LoanRegistry(self.ledger, self.enforcer)
        self.registry.create("111", Decimal('1000'), 3, False, date(2024, 1, 15))
        self.registry.create("222", Decimal('2000'), 3, True, date(2024, 1, 15))
        self.registry.create("111", Decimal('500'), 2, False, date(2024, 3, 1))

    def test_find_by_id_sweeps(self):
        """Test a loan handed out reflects overdue installments"""
        loan = self.registry.find_by_id("0001")

        assert loan.installment(1).state == InstallmentState.OVERDUE
        assert loan.installment(2).state == InstallmentState.OVERDUE
        assert loan.installment(3).state == InstallmentState.PENDING

    def test_get_does_not_sweep(self):
        loan = self.registry.get("0001")
        assert loan.installment(1).state == InstallmentState.PENDING

    def test_find_unknown(self):
        assert self.registry.find_by_id("0099") is None
        assert self.registry.get("0099") is None

    def test_find_by_client(self):
        loans = self.registry.find_by_client("111")

        assert [loan.loan_id for loan in loans] == ["0001", "0003"]
        assert self.registry.find_by_client("999") == []
        assert loans[0].late_installments()

    def test_list_loans(self):
        loans = self.registry.list_loans()

        assert [loan.loan_id for loan in loans] == ["0001", "0002", "0003"]
        assert all(loan.late_installments() for loan in loans[:2])


class TestLoanDeletion:
    """Test the deletion guard"""

    def setup_method(self):
        self.store = InMemoryRecordStore()
        self.ledger = PaymentLedger(self.store)
        self.enforcer = DelinquencyEnforcer(today=lambda: date(2024, 1, 20))
        self.registry = LoanRegistry(self.ledger, self.enforcer, store=self.store)
        self.loan = self.registry.create(
            "12345678", Decimal('1000'), 2, False, date(2024, 1, 15)
        ).value

    def pay_off(self):
        for installment in self.loan.installments:
            paid = installment.outstanding_balance()
            self.loan.apply_payment_to_installment(installment.number, paid)
            self.ledger.record(self.loan.loan_id, installment.number, paid, date(2024, 1, 20))

    def test_delete_unknown(self):
        result = self.registry.delete("0099")
        assert result.error_type == ErrorType.NOT_FOUND

    def test_delete_with_balance_rejected(self):
        """Test a loan with an outstanding balance is left untouched"""
        self.loan.apply_payment_to_installment(1, Decimal('10'))
        result = self.registry.delete("0001")

        assert result.error_type == ErrorType.CONFLICT
        assert self.registry.get("0001") is self.loan
        assert len(self.store.load_rows("prestamos")) == 1

    def test_delete_paid_loan(self):
        """Test deleting a settled loan also removes its payment events"""
        self.pay_off()
        other = self.registry.create("999", Decimal('10'), 1, False, date(2024, 1, 15)).value
        self.ledger.record(other.loan_id, 1, Decimal('1'), date(2024, 1, 20))

        result = self.registry.delete("0001")

        assert result.success
        assert result.value is self.loan
        assert self.registry.get("0001") is None
        assert [e.loan_id for e in self.ledger.events()] == ["0002"]
        assert [row["ID_Prestamo"] for row in self.store.load_rows("prestamos")] == ["0002"]
        assert [row["ID_Prestamo"] for row in self.store.load_rows("pagos")] == ["0002"]

    def test_deleted_id_not_reused(self):
        self.pay_off()
        self.registry.delete("0001")

        loan = self.registry.create("1", Decimal('10'), 1, False, date(2024, 1, 15)).value
        assert loan.loan_id == "0002"


class TestLoanLoading:
    """Test restoring loans from storage"""

    def setup_method(self):
        self.store = InMemoryRecordStore()
        self.ledger = PaymentLedger(self.store)
        self.enforcer = DelinquencyEnforcer(today=lambda: date(2024, 1, 20))

    def make_registry(self):
        return LoanRegistry(self.ledger, self.enforcer, store=self.store)

    def test_id_counter_seeded_from_maximum(self):
        """Test new ids continue after the highest stored id, gaps included"""
        self.store.replace_rows("prestamos", LOAN_COLUMNS, [
            loan_row("0001"), loan_row("0007"), loan_row("0003")
        ])
        registry = self.make_registry()

        assert registry.load().value == 3
        assert registry.next_id == "0008"
        loan = registry.create("1", Decimal('100'), 1, False, date(2024, 1, 15)).value
        assert loan.loan_id == "0008"

    def test_installments_regenerated(self):
        self.store.replace_rows("prestamos", LOAN_COLUMNS, [
            loan_row("0004", amount="50000", terms="24", loan_type="hipotecario")
        ])
        registry = self.make_registry()
        registry.load()

        loan = registry.get("0004")
        assert loan.is_mortgage
        assert loan.principal == Decimal('50000')
        assert len(loan.installments) == 24
        assert all(i.state == InstallmentState.PENDING for i in loan.installments)

    def test_prefixed_ids_seed_counter(self):
        self.store.replace_rows("prestamos", LOAN_COLUMNS, [loan_row("P-0012")])
        registry = self.make_registry()
        registry.load()

        assert registry.next_id == "0013"

    def test_malformed_records_skipped(self):
        self.store.replace_rows("prestamos", LOAN_COLUMNS, [
            loan_row("0001"),
            loan_row("0002", amount="abc"),
            loan_row("0003", terms="0"),
            loan_row("0004", loan_type="auto"),
            loan_row("0005", start="15/01/2024"),
            loan_row(""),
            loan_row("0006", loan_type="Hipotecario"),
        ])
        registry = self.make_registry()

        assert registry.load().value == 2
        assert [loan.loan_id for loan in registry.get_all()] == ["0001", "0006"]
        assert registry.get("0006").is_mortgage
        assert registry.next_id == "0007"

    def test_non_numeric_ids_do_not_seed_counter(self):
        self.store.replace_rows("prestamos", LOAN_COLUMNS, [
            loan_row("0002"), loan_row("ABC")
        ])
        registry = self.make_registry()
        registry.load()

        assert registry.get("ABC") is not None
        assert registry.next_id == "0003"

    def test_duplicate_ids_ignored(self):
        registry = self.make_registry()
        first = Loan("0001", "1", Decimal('100'), 1, False, date(2024, 1, 15))
        duplicate = Loan("0001", "2", Decimal('200'), 2, False, date(2024, 1, 15))
        registry.restore([first, duplicate])

        assert registry.get_all() == (first,)

    def test_payment_event_ids_reserved(self):
        """Test ids referenced only by payment events are not handed out again"""
        self.store.replace_rows("prestamos", LOAN_COLUMNS, [loan_row("0002")])
        self.ledger.record("0009", 1, Decimal('10'), date(2024, 2, 1))
        registry = self.make_registry()
        registry.load()

        assert registry.next_id == "0010"

    def test_load_without_store(self):
        registry = LoanRegistry(self.ledger, self.enforcer)
        assert registry.load().value == 0


class TestParseLoanNumber:
    """Test numeric id extraction"""

    @pytest.mark.parametrize("loan_id,expected", [
        ("0007", 7), ("P-0007", 7), (" 12 ", 12), ("ABC", None), ("", None), ("P-", None)
    ])
    def test_parse(self, loan_id, expected):
        assert parse_loan_number(loan_id) == expected
