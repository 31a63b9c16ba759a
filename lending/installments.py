"""
Installment Module

A single scheduled obligation of a loan and its state machine:

    PENDING -> PARTIALLY_PAID -> PAID
    any non-PAID state -> OVERDUE (once the due date has passed)
    OVERDUE -> PAID (full settlement only; partial payments keep it OVERDUE)

A late installment is charged a flat penalty of 5% of its original amount,
once per delinquency event. Settling the installment in full forgives the
penalty.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass
from enum import Enum

from .money import ZERO, AmountLike, format_amount, to_decimal
from .result import ErrorType, Result


PENALTY_RATE = Decimal('0.05')


class InstallmentState(Enum):
    """Installment lifecycle states"""
    PENDING = "pending"                # Not yet due, nothing paid
    PARTIALLY_PAID = "partially_paid"  # Some payment applied, balance remains
    OVERDUE = "overdue"                # Due date passed while unpaid (mora)
    PAID = "paid"                      # Balance settled in full


@dataclass
class Installment:
    """One scheduled payment obligation within a loan"""
    loan_id: str
    number: int
    original_amount: Decimal
    due_date: date
    amount_paid: Decimal = ZERO
    state: InstallmentState = InstallmentState.PENDING
    accrued_penalty: Decimal = ZERO

    @property
    def is_paid(self) -> bool:
        return self.state == InstallmentState.PAID

    @property
    def is_overdue(self) -> bool:
        return self.state == InstallmentState.OVERDUE

    def outstanding_balance(self) -> Decimal:
        """Amount still owed, penalties included"""
        return max(ZERO, self.original_amount + self.accrued_penalty - self.amount_paid)

    def apply_payment(self, amount: AmountLike) -> Result[Decimal]:
        """
        Apply a payment to this installment

        An amount at or above the outstanding balance settles the installment;
        only the balance is absorbed, so callers must redirect any surplus.

        Returns:
            Result whose value is the amount actually applied
        """
        if self.state == InstallmentState.PAID:
            return Result.fail(
                f"Installment #{self.number} of loan {self.loan_id} is already paid",
                ErrorType.CONFLICT
            )

        try:
            amount = to_decimal(amount)
        except ValueError as e:
            return Result.invalid("amount", str(e))
        if amount <= ZERO:
            return Result.invalid("amount", "Payment amount must be positive")

        before = self.outstanding_balance()
        if amount >= before:
            self.amount_paid += before
            self.state = InstallmentState.PAID
            self.accrued_penalty = ZERO
            return Result.ok(before)

        self.amount_paid += amount
        # A late installment stays OVERDUE until fully settled
        if self.state != InstallmentState.OVERDUE:
            self.state = InstallmentState.PARTIALLY_PAID
        return Result.ok(amount)

    def evaluate_delinquency(self, reference_date: date) -> bool:
        """
        Move the installment to OVERDUE if its due date has passed

        The penalty is charged only on the transition, so repeated
        evaluations never compound it.

        Returns:
            True if the installment became OVERDUE on this call
        """
        if self.state == InstallmentState.PAID or self.due_date >= reference_date:
            return False
        if self.state == InstallmentState.OVERDUE:
            return False

        self.state = InstallmentState.OVERDUE
        self.accrued_penalty += self.original_amount * PENALTY_RATE
        return True

    def __str__(self) -> str:
        text = (
            f"Installment #{self.number} | Original: {format_amount(self.original_amount)}"
            f" | Paid: {format_amount(self.amount_paid)}"
            f" | Outstanding: {format_amount(self.outstanding_balance())}"
        )
        if self.accrued_penalty > ZERO:
            text += f" | Penalty: {format_amount(self.accrued_penalty)}"
        return f"{text} | Due: {self.due_date.isoformat()} | State: {self.state.value}"
