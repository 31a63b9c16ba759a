"""
Loan Module

The Loan aggregate: fixed terms, a schedule of installments generated once at
construction, and balance/delinquency queries over that schedule.
"""

from decimal import Decimal
from datetime import date
from typing import Dict, List, Optional, Tuple, Any

from .amortization import (
    AmortizationEntry, add_months, build_amortization_table, compute_periodic_payment
)
from .installments import Installment, InstallmentState
from .money import ZERO, format_amount
from .result import Result


MORTGAGE_RATE = Decimal('8.0')    # Flat per-period percent for mortgages
PERSONAL_RATE = Decimal('15.5')   # Flat per-period percent for personal loans

MORTGAGE_TYPE = "hipotecario"
PERSONAL_TYPE = "personal"


class Loan:
    """
    Installment loan with an annuity repayment plan

    Principal, term, rate and start date are fixed at construction; the
    installments are generated once and never regenerated or reordered.
    """

    def __init__(
        self,
        loan_id: str,
        client_id: str,
        principal: Decimal,
        term_count: int,
        is_mortgage: bool,
        start_date: date
    ):
        self._loan_id = loan_id
        self._client_id = client_id
        self._principal = principal
        self._term_count = term_count
        self._is_mortgage = is_mortgage
        self._start_date = start_date
        self._installments: List[Installment] = self._generate_installments()

    @property
    def loan_id(self) -> str:
        return self._loan_id

    @property
    def client_id(self) -> str:
        return self._client_id

    @property
    def principal(self) -> Decimal:
        return self._principal

    @property
    def term_count(self) -> int:
        return self._term_count

    @property
    def is_mortgage(self) -> bool:
        return self._is_mortgage

    @property
    def start_date(self) -> date:
        return self._start_date

    @property
    def interest_rate(self) -> Decimal:
        """Flat per-period rate in percent, selected by loan type"""
        return MORTGAGE_RATE if self._is_mortgage else PERSONAL_RATE

    @property
    def loan_type(self) -> str:
        return MORTGAGE_TYPE if self._is_mortgage else PERSONAL_TYPE

    @property
    def monthly_payment(self) -> Decimal:
        """Scheduled payment shared by every installment"""
        return compute_periodic_payment(self._principal, self._term_count, self.interest_rate)

    @property
    def installments(self) -> Tuple[Installment, ...]:
        return tuple(self._installments)

    def installment(self, number: int) -> Optional[Installment]:
        """Get installment by its 1-based number"""
        if number < 1 or number > len(self._installments):
            return None
        return self._installments[number - 1]

    def outstanding_balance(self) -> Decimal:
        """Total still owed across unpaid installments, penalties included"""
        return sum(
            (i.outstanding_balance() for i in self._installments if i.state != InstallmentState.PAID),
            ZERO
        )

    def late_installments(self) -> List[Installment]:
        return [i for i in self._installments if i.state == InstallmentState.OVERDUE]

    def total_accrued_penalty(self) -> Decimal:
        return sum((i.accrued_penalty for i in self._installments), ZERO)

    def evaluate_delinquency(self, reference_date: date) -> List[int]:
        """
        Evaluate every installment against the reference date

        Returns:
            Numbers of the installments that became overdue on this call
        """
        return [
            i.number for i in self._installments
            if i.evaluate_delinquency(reference_date)
        ]

    def apply_payment_to_installment(self, number: int, amount: Decimal) -> Result[Decimal]:
        """Apply a payment to one installment, bounds-checking its number"""
        installment = self.installment(number)
        if installment is None:
            return Result.invalid(
                "installment_number",
                f"Installment number {number} out of range for loan {self._loan_id} "
                f"(1 to {self._term_count})"
            )
        return installment.apply_payment(amount)

    def amortization_table(self) -> List[AmortizationEntry]:
        """Interest/principal breakdown of the scheduled payments"""
        return build_amortization_table(self._principal, self._term_count, self.interest_rate)

    def summary(self) -> Dict[str, Any]:
        """Display-oriented snapshot of the loan status"""
        return {
            "loan_id": self._loan_id,
            "client_id": self._client_id,
            "loan_type": self.loan_type,
            "principal": format_amount(self._principal),
            "term_count": self._term_count,
            "interest_rate": str(self.interest_rate),
            "start_date": self._start_date.isoformat(),
            "monthly_payment": format_amount(self.monthly_payment),
            "outstanding_balance": format_amount(self.outstanding_balance()),
            "overdue_installments": len(self.late_installments()),
            "accrued_penalties": format_amount(self.total_accrued_penalty()),
        }

    def _generate_installments(self) -> List[Installment]:
        """Build the repayment plan, first due date one month after start"""
        payment = self.monthly_payment
        return [
            Installment(
                loan_id=self._loan_id,
                number=number,
                original_amount=payment,
                due_date=add_months(self._start_date, number)
            )
            for number in range(1, self._term_count + 1)
        ]

    def __repr__(self) -> str:
        return (
            f"Loan(loan_id={self._loan_id!r}, client_id={self._client_id!r}, "
            f"principal={self._principal}, term_count={self._term_count}, "
            f"type={self.loan_type!r}, start_date={self._start_date.isoformat()})"
        )
