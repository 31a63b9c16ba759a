"""
Pydantic schemas for API requests and responses
"""

from decimal import Decimal
from datetime import date
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from .allocation import AllocationOutcome
from .installments import Installment
from .ledger import PaymentEvent
from .loans import Loan
from .money import format_amount


class AmountModel(BaseModel):
    amount: str = Field(..., description="Decimal amount as string, full precision")
    display: str = Field(..., description="Amount rounded and formatted for display")

    @classmethod
    def from_decimal(cls, amount: Decimal) -> 'AmountModel':
        return cls(amount=str(amount), display=format_amount(amount))


class CreateLoanRequest(BaseModel):
    client_id: str
    principal: str = Field(..., description="Decimal amount as string")
    term_count: int = Field(..., description="Number of monthly installments")
    is_mortgage: bool = False
    start_date: Optional[date] = None  # Defaults to today


class PaymentRequest(BaseModel):
    installment_number: int = Field(..., description="Installment the payment is meant for")
    amount: str = Field(..., description="Decimal amount as string")
    allow_residual: bool = Field(
        True, description="Accept payments larger than everything owed from the installment onwards"
    )


class SweepRequest(BaseModel):
    reference_date: Optional[date] = None  # Defaults to today


def installment_to_dict(installment: Installment) -> Dict[str, Any]:
    return {
        "number": installment.number,
        "due_date": installment.due_date.isoformat(),
        "state": installment.state.value,
        "original_amount": AmountModel.from_decimal(installment.original_amount).model_dump(),
        "amount_paid": AmountModel.from_decimal(installment.amount_paid).model_dump(),
        "accrued_penalty": AmountModel.from_decimal(installment.accrued_penalty).model_dump(),
        "outstanding_balance": AmountModel.from_decimal(installment.outstanding_balance()).model_dump(),
    }


def loan_to_dict(loan: Loan, include_installments: bool = False) -> Dict[str, Any]:
    result = {
        "loan_id": loan.loan_id,
        "client_id": loan.client_id,
        "loan_type": loan.loan_type,
        "principal": AmountModel.from_decimal(loan.principal).model_dump(),
        "term_count": loan.term_count,
        "interest_rate": str(loan.interest_rate),
        "start_date": loan.start_date.isoformat(),
        "monthly_payment": AmountModel.from_decimal(loan.monthly_payment).model_dump(),
        "outstanding_balance": AmountModel.from_decimal(loan.outstanding_balance()).model_dump(),
        "overdue_installments": [i.number for i in loan.late_installments()],
        "accrued_penalties": AmountModel.from_decimal(loan.total_accrued_penalty()).model_dump(),
    }
    if include_installments:
        result["installments"] = [installment_to_dict(i) for i in loan.installments]
    return result


def outcome_to_dict(outcome: AllocationOutcome) -> Dict[str, Any]:
    return {
        "loan_id": outcome.loan_id,
        "tendered": AmountModel.from_decimal(outcome.tendered_amount).model_dump(),
        "applied": AmountModel.from_decimal(outcome.applied_amount).model_dump(),
        "residual": AmountModel.from_decimal(outcome.residual).model_dump(),
        "steps": [
            {
                "installment_number": step.installment_number,
                "applied": AmountModel.from_decimal(step.applied_amount).model_dump(),
                "state": step.resulting_state.value,
            }
            for step in outcome.steps
        ],
    }


def events_to_list(events: List[PaymentEvent]) -> List[Dict[str, Any]]:
    return [
        {
            "installment_number": event.installment_number,
            "amount": AmountModel.from_decimal(event.amount).model_dump(),
            "payment_date": event.payment_date.isoformat(),
        }
        for event in events
    ]
