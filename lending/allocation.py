"""
Payment Allocation Module

Applies a tendered amount to a loan starting at a chosen installment. Any
amount beyond that installment's balance spills over into the following
unpaid installments in ascending order, oldest obligations first. Each
applied step is reported to the payment ledger.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass, field
from typing import Callable, List

from .installments import InstallmentState
from .ledger import PaymentLedger
from .loans import Loan
from .logging_config import get_logger, log_action
from .money import ZERO, AmountLike, format_amount, to_decimal
from .result import ErrorType, Result


@dataclass(frozen=True)
class AllocationStep:
    """Amount applied to one installment and the state it was left in"""
    installment_number: int
    applied_amount: Decimal
    resulting_state: InstallmentState


@dataclass
class AllocationOutcome:
    """Ordered allocation steps plus whatever could not be applied"""
    loan_id: str
    tendered_amount: Decimal
    steps: List[AllocationStep] = field(default_factory=list)
    residual: Decimal = ZERO

    @property
    def applied_amount(self) -> Decimal:
        return sum((s.applied_amount for s in self.steps), ZERO)

    @property
    def has_residual(self) -> bool:
        return self.residual > ZERO


class PaymentAllocator:
    """
    Allocates payments across a loan's installments with overpayment spillover
    """

    def __init__(
        self,
        ledger: PaymentLedger,
        today: Callable[[], date] = date.today
    ):
        self.ledger = ledger
        self.today = today
        self.logger = get_logger("lending.allocation")

    def allocate(
        self,
        loan: Loan,
        starting_number: int,
        tendered_amount: AmountLike,
        allow_residual: bool = True
    ) -> Result[AllocationOutcome]:
        """
        Allocate a payment starting at one installment

        Args:
            loan: Loan receiving the payment
            starting_number: Installment the payment is meant for
            tendered_amount: Amount handed in by the client
            allow_residual: If False, reject a payment larger than everything
                owed from the starting installment onwards

        Returns:
            Result with the AllocationOutcome on success
        """
        try:
            tendered = to_decimal(tendered_amount)
        except ValueError as e:
            return Result.invalid("amount", str(e))
        if tendered <= ZERO:
            return Result.invalid("amount", "Payment amount must be positive")

        target = loan.installment(starting_number)
        if target is None:
            return Result.invalid(
                "installment_number",
                f"Installment number {starting_number} out of range for loan {loan.loan_id} "
                f"(1 to {loan.term_count})"
            )
        if target.state == InstallmentState.PAID:
            return Result.fail(
                f"Installment #{starting_number} of loan {loan.loan_id} is already paid",
                ErrorType.CONFLICT
            )

        if not allow_residual:
            capacity = sum(
                (i.outstanding_balance() for i in loan.installments[starting_number - 1:]
                 if i.state != InstallmentState.PAID),
                ZERO
            )
            if tendered > capacity:
                return Result.fail(
                    f"Payment of {format_amount(tendered)} exceeds the {format_amount(capacity)} "
                    f"owed from installment #{starting_number} onwards",
                    ErrorType.CONFLICT
                )

        payment_date = self.today()
        outcome = AllocationOutcome(loan_id=loan.loan_id, tendered_amount=tendered)
        warnings: List[str] = []

        remainder = tendered
        for installment in loan.installments[starting_number - 1:]:
            if remainder <= ZERO:
                break
            if installment.state == InstallmentState.PAID:
                continue

            need = installment.outstanding_balance()
            portion = need if remainder >= need else remainder
            applied = loan.apply_payment_to_installment(installment.number, portion)
            if not applied:
                # Unreachable for unpaid installments with positive balance
                self.logger.warning(
                    f"Could not apply {portion} to installment #{installment.number} "
                    f"of loan {loan.loan_id}: {applied.error}"
                )
                break

            remainder -= applied.value
            outcome.steps.append(AllocationStep(
                installment_number=installment.number,
                applied_amount=applied.value,
                resulting_state=installment.state
            ))
            recorded = self.ledger.record(
                loan.loan_id, installment.number, applied.value, payment_date
            )
            warnings.extend(recorded.warnings)

        outcome.residual = remainder

        log_action(
            self.logger, "info",
            f"Allocated {format_amount(outcome.applied_amount)} of {format_amount(tendered)} "
            f"to loan {loan.loan_id} across {len(outcome.steps)} installments",
            action="payment_allocated",
            loan_id=loan.loan_id,
            installment=starting_number,
            extra={
                "tendered": str(tendered),
                "residual": str(outcome.residual),
                "installments": [s.installment_number for s in outcome.steps],
            }
        )
        if outcome.has_residual:
            self.logger.warning(
                f"Residual of {format_amount(outcome.residual)} could not be applied "
                f"to any installment of loan {loan.loan_id}"
            )

        return Result.ok(outcome, warnings=warnings)
