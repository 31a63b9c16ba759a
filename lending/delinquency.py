"""
Delinquency Module

Sweeps loans against a reference date so that every installment past its due
date is marked overdue and charged its penalty exactly once.
"""

from datetime import date
from typing import Callable, Iterable, Optional

from .loans import Loan
from .logging_config import get_logger, log_action


class DelinquencyEnforcer:
    """Stateless delinquency sweep over a collection of loans"""

    def __init__(self, today: Callable[[], date] = date.today):
        self.today = today
        self.logger = get_logger("lending.delinquency")

    def sweep(self, loans: Iterable[Loan], reference_date: Optional[date] = None) -> int:
        """
        Evaluate every loan against the reference date (defaults to today)

        Returns:
            Number of installments that became overdue during this sweep
        """
        if reference_date is None:
            reference_date = self.today()

        transitioned = 0
        for loan in loans:
            numbers = loan.evaluate_delinquency(reference_date)
            if numbers:
                transitioned += len(numbers)
                log_action(
                    self.logger, "info",
                    f"Loan {loan.loan_id}: installments {numbers} became overdue",
                    action="installments_overdue",
                    loan_id=loan.loan_id,
                    extra={
                        "installments": numbers,
                        "reference_date": reference_date.isoformat(),
                        "accrued_penalty": str(loan.total_accrued_penalty()),
                    }
                )
        return transitioned
