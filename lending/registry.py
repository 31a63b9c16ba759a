"""
Loan Registry Module

Owns the collection of loans: sequential id allocation, lookups, guarded
deletion, and conversion of loans to and from persisted records. Delinquency
is evaluated before any loan is handed out so callers always see current
installment state.
"""

from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from .amortization import add_months
from .delinquency import DelinquencyEnforcer
from .ledger import PaymentLedger
from .loans import Loan, MORTGAGE_TYPE, PERSONAL_TYPE
from .logging_config import get_logger, log_action
from .money import ZERO, AmountLike, decimal_from_string, format_amount, to_decimal
from .result import ErrorType, Result
from .storage import PersistenceError, RecordStore


LOAN_COLUMNS = ("ID_Prestamo", "ID_Cliente", "Monto", "Cuotas", "Tipo", "Fecha_Inicio")


def parse_loan_number(loan_id: str) -> Optional[int]:
    """Numeric part of a loan id ("0007" -> 7, "P-0007" -> 7), None if not numeric"""
    digits = loan_id.strip()
    if digits.startswith("P-"):
        digits = digits[2:]
    if not digits.isdigit():
        return None
    return int(digits)


class LoanRegistry:
    """
    Manages loans from creation through deletion
    """

    def __init__(
        self,
        ledger: PaymentLedger,
        enforcer: DelinquencyEnforcer,
        store: Optional[RecordStore] = None,
        table: str = "prestamos",
        excluded_client_id: Optional[str] = "00000000",
        id_width: int = 4
    ):
        self.ledger = ledger
        self.enforcer = enforcer
        self.store = store
        self.table = table
        self.excluded_client_id = excluded_client_id or None
        self.id_width = id_width
        self.logger = get_logger("lending.registry")

        self._loans: List[Loan] = []
        self._last_id = 0

    @property
    def next_id(self) -> str:
        """Id the next created loan will receive"""
        return self._format_id(self._last_id + 1)

    def create(
        self,
        client_id: str,
        principal: AmountLike,
        term_count: int,
        is_mortgage: bool,
        start_date: date
    ) -> Result[Loan]:
        """
        Create a loan and generate its installments

        Args:
            client_id: Borrower client id
            principal: Amount lent, must be positive
            term_count: Number of monthly installments, must be positive
            is_mortgage: Selects the mortgage rate instead of the personal rate
            start_date: Date the loan is granted

        Returns:
            Result with the new Loan
        """
        if not isinstance(client_id, str) or not client_id.strip():
            return Result.invalid("client_id", "Client id is required")

        try:
            principal = to_decimal(principal)
        except ValueError as e:
            return Result.invalid("principal", str(e))
        if principal <= ZERO:
            return Result.invalid("principal", "Principal must be positive")

        if isinstance(term_count, bool) or not isinstance(term_count, int) or term_count <= 0:
            return Result.invalid("term_count", "Number of installments must be a positive integer")

        if not isinstance(start_date, date):
            return Result.invalid("start_date", "Start date must be a calendar date")

        try:
            add_months(start_date, term_count)
        except (ValueError, OverflowError):
            return Result.invalid(
                "term_count", "Installment schedule runs past the last supported date"
            )

        loan = Loan(
            loan_id=self._format_id(self._last_id + 1),
            client_id=client_id.strip(),
            principal=principal,
            term_count=term_count,
            is_mortgage=bool(is_mortgage),
            start_date=start_date
        )
        self._last_id += 1
        self._loans.append(loan)

        log_action(
            self.logger, "info", f"Loan {loan.loan_id} created",
            action="loan_created",
            loan_id=loan.loan_id,
            extra={
                "client_id": loan.client_id,
                "principal": str(principal),
                "term_count": term_count,
                "loan_type": loan.loan_type,
                "monthly_payment": format_amount(loan.monthly_payment),
            }
        )
        return Result.ok(loan, warnings=self._persist())

    def delete(self, loan_id: str) -> Result[Loan]:
        """
        Delete a fully paid loan together with its payment events

        A loan with an outstanding balance cannot be deleted.
        """
        loan = self.get(loan_id)
        if loan is None:
            return Result.fail(f"Loan {loan_id} not found", ErrorType.NOT_FOUND)

        balance = loan.outstanding_balance()
        if balance > ZERO:
            return Result.fail(
                f"Loan {loan_id} cannot be deleted: outstanding balance of {format_amount(balance)}",
                ErrorType.CONFLICT
            )

        purged = self.ledger.purge(loan_id)
        self._loans.remove(loan)

        log_action(
            self.logger, "info", f"Loan {loan_id} and its payment events deleted",
            action="loan_deleted", loan_id=loan_id
        )
        return Result.ok(loan, warnings=purged.warnings + self._persist())

    def find_by_id(self, loan_id: str) -> Optional[Loan]:
        """Get loan by ID"""
        loan = self.get(loan_id)
        if loan is not None:
            self.enforcer.sweep([loan])
        return loan

    def find_by_client(self, client_id: str) -> List[Loan]:
        """Get all loans for a client, in creation order"""
        loans = [loan for loan in self._loans if loan.client_id == client_id]
        self.enforcer.sweep(loans)
        return loans

    def list_loans(self) -> Tuple[Loan, ...]:
        """All loans, in creation order"""
        self.enforcer.sweep(self._loans)
        return tuple(self._loans)

    def restore(self, loans: Iterable[Loan]) -> None:
        """
        Add previously persisted loans and seed the id counter

        The counter continues after the highest numeric id seen, so new ids
        never collide with restored ones even if loans were deleted.
        """
        for loan in loans:
            if self.get(loan.loan_id) is not None:
                self.logger.warning(f"Duplicate loan id {loan.loan_id} ignored while restoring")
                continue
            self._loans.append(loan)

            if parse_loan_number(loan.loan_id) is None:
                self.logger.warning(
                    f"Loan id {loan.loan_id} is not numeric and is ignored for id allocation"
                )
            self.reserve_id(loan.loan_id)

    def reserve_id(self, loan_id: str) -> None:
        """Keep the id counter at or above the numeric part of `loan_id`"""
        number = parse_loan_number(loan_id)
        if number is not None and number > self._last_id:
            self._last_id = number

    def load(self) -> Result[int]:
        """
        Restore loans from storage, regenerating their installments

        Records that cannot be parsed are logged and skipped.
        """
        if self.store is None:
            return Result.ok(0)

        try:
            rows = self.store.load_rows(self.table)
        except PersistenceError as e:
            self.logger.error(f"Could not load loans: {e}")
            return Result.fail(str(e), ErrorType.PERSISTENCE)

        loans = []
        for row in rows:
            try:
                loans.append(self._loan_from_dict(row))
            except (KeyError, ValueError, OverflowError) as e:
                self.logger.warning(f"Skipping malformed loan record {row}: {e}")

        before = len(self._loans)
        self.restore(loans)
        # Ids referenced by stored payment events are never handed out again,
        # including those of excluded or unreadable loan records
        for event in self.ledger.events():
            self.reserve_id(event.loan_id)
        return Result.ok(len(self._loans) - before)

    def get(self, loan_id: str) -> Optional[Loan]:
        """Get loan by ID without evaluating delinquency"""
        for loan in self._loans:
            if loan.loan_id == loan_id:
                return loan
        return None

    def get_all(self) -> Tuple[Loan, ...]:
        """All loans without evaluating delinquency"""
        return tuple(self._loans)

    def _format_id(self, number: int) -> str:
        return f"{number:0{self.id_width}d}"

    def _persist(self) -> List[str]:
        """Rewrite the loans table, returning warnings on failure"""
        if self.store is None:
            return []
        rows = [
            self._loan_to_dict(loan) for loan in self._loans
            if loan.client_id != self.excluded_client_id
        ]
        try:
            self.store.replace_rows(self.table, LOAN_COLUMNS, rows)
        except PersistenceError as e:
            log_action(
                self.logger, "error", f"Failed to save loans: {e}",
                action="persistence_failed", extra={"table": self.table}
            )
            return [f"Loans could not be saved: {e}"]
        return []

    def _loan_to_dict(self, loan: Loan) -> Dict[str, str]:
        return {
            "ID_Prestamo": loan.loan_id,
            "ID_Cliente": loan.client_id,
            "Monto": str(loan.principal),
            "Cuotas": str(loan.term_count),
            "Tipo": loan.loan_type,
            "Fecha_Inicio": loan.start_date.isoformat(),
        }

    def _loan_from_dict(self, data: Dict[str, str]) -> Loan:
        loan_id = data["ID_Prestamo"].strip()
        if not loan_id:
            raise ValueError("empty loan id")

        principal = decimal_from_string(data["Monto"])
        term_count = int(data["Cuotas"])
        if principal <= ZERO or term_count <= 0:
            raise ValueError("principal and installment count must be positive")

        loan_type = data["Tipo"].strip().lower()
        if loan_type not in (MORTGAGE_TYPE, PERSONAL_TYPE):
            raise ValueError(f"unknown loan type {data['Tipo']!r}")

        return Loan(
            loan_id=loan_id,
            client_id=data["ID_Cliente"].strip(),
            principal=principal,
            term_count=term_count,
            is_mortgage=loan_type == MORTGAGE_TYPE,
            start_date=date.fromisoformat(data["Fecha_Inicio"].strip())
        )
