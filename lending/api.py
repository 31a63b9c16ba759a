"""
FastAPI REST API Module

Exposes the lending engine: create, look up, list and delete loans, register
payments with spillover, and run the delinquency sweep.
"""

from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
import uvicorn

from . import __version__
from .config import LendingConfig, get_config
from .logging_config import setup_logging
from .result import ErrorType, Result
from .schemas import (
    CreateLoanRequest, PaymentRequest, SweepRequest,
    events_to_list, loan_to_dict, outcome_to_dict
)
from .system import LendingSystem


ERROR_STATUS = {
    ErrorType.VALIDATION: 422,
    ErrorType.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorType.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorType.PERSISTENCE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def get_system(request: Request) -> LendingSystem:
    """Lending system attached to the running application"""
    return request.app.state.system


def raise_for_result(result: Result) -> None:
    """Translate a failed Result into an HTTP error"""
    if result.success:
        return
    detail = {"error": result.error, "error_type": result.error_type}
    if result.field_name:
        detail["field"] = result.field_name
    raise HTTPException(
        status_code=ERROR_STATUS.get(result.error_type, status.HTTP_400_BAD_REQUEST),
        detail=detail
    )


loans_router = APIRouter()


@loans_router.post("", status_code=status.HTTP_201_CREATED)
async def create_loan(
    request: CreateLoanRequest,
    system: LendingSystem = Depends(get_system)
):
    """Create a loan and its installment schedule"""
    result = system.create_loan(
        client_id=request.client_id,
        principal=request.principal,
        term_count=request.term_count,
        is_mortgage=request.is_mortgage,
        start_date=request.start_date
    )
    raise_for_result(result)
    return {
        "loan": loan_to_dict(result.value, include_installments=True),
        "warnings": result.warnings,
        "message": "Loan created successfully"
    }


@loans_router.get("")
async def list_loans(system: LendingSystem = Depends(get_system)):
    """List all loans"""
    return {"loans": [loan_to_dict(loan) for loan in system.list_loans()]}


@loans_router.get("/{loan_id}")
async def get_loan(loan_id: str, system: LendingSystem = Depends(get_system)):
    """Get loan details with its installments"""
    result = system.get_loan(loan_id)
    raise_for_result(result)
    return loan_to_dict(result.value, include_installments=True)


@loans_router.get("/{loan_id}/schedule")
async def get_loan_schedule(loan_id: str, system: LendingSystem = Depends(get_system)):
    """Interest/principal breakdown of the scheduled payments"""
    result = system.get_loan(loan_id)
    raise_for_result(result)

    schedule = []
    for entry in result.value.amortization_table():
        schedule.append({
            "number": entry.number,
            "payment": str(entry.payment),
            "interest": str(entry.interest),
            "principal": str(entry.principal),
            "remaining_balance": str(entry.remaining_balance)
        })
    return {"loan_id": loan_id, "schedule": schedule}


@loans_router.delete("/{loan_id}")
async def delete_loan(loan_id: str, system: LendingSystem = Depends(get_system)):
    """Delete a fully paid loan and its payment history"""
    result = system.delete_loan(loan_id)
    raise_for_result(result)
    return {
        "loan_id": loan_id,
        "warnings": result.warnings,
        "message": "Loan deleted successfully"
    }


@loans_router.post("/{loan_id}/payments")
async def register_payment(
    loan_id: str,
    request: PaymentRequest,
    system: LendingSystem = Depends(get_system)
):
    """Register a payment; any excess is applied to the following installments"""
    result = system.register_payment(
        loan_id,
        request.installment_number,
        request.amount,
        allow_residual=request.allow_residual
    )
    raise_for_result(result)
    return {
        "allocation": outcome_to_dict(result.value),
        "warnings": result.warnings,
        "message": "Payment registered successfully"
    }


@loans_router.get("/{loan_id}/payments")
async def get_payment_history(loan_id: str, system: LendingSystem = Depends(get_system)):
    """Payment events recorded for a loan"""
    result = system.payment_history(loan_id)
    raise_for_result(result)
    return {"loan_id": loan_id, "payments": events_to_list(result.value)}


clients_router = APIRouter()


@clients_router.get("/{client_id}/loans")
async def get_client_loans(client_id: str, system: LendingSystem = Depends(get_system)):
    """All loans of a client"""
    loans = system.loans_for_client(client_id)
    return {"client_id": client_id, "loans": [loan_to_dict(loan) for loan in loans]}


delinquency_router = APIRouter()


@delinquency_router.post("/sweep")
async def run_sweep(
    request: Optional[SweepRequest] = None,
    system: LendingSystem = Depends(get_system)
):
    """Mark overdue installments and charge their penalties"""
    reference_date = request.reference_date if request else None
    overdue = system.run_delinquency_sweep(reference_date)
    return {"installments_overdue": overdue}


def create_app(system: LendingSystem) -> FastAPI:
    """Create and configure the FastAPI application around a bootstrapped system"""
    app = FastAPI(
        title="Installment Lending API",
        description="Loan amortization, installment tracking and payment allocation",
        version=__version__
    )
    app.state.system = system

    app.include_router(loans_router, prefix="/loans", tags=["Loans"])
    app.include_router(clients_router, prefix="/clients", tags=["Clients"])
    app.include_router(delinquency_router, prefix="/delinquency", tags=["Delinquency"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "lending_api",
            "version": __version__
        }

    return app


def run_server(config: Optional[LendingConfig] = None):
    """Bootstrap the lending system from storage and serve the API"""
    config = config or get_config()
    setup_logging(config.log_level, config.log_format, log_file=config.log_file)

    system = LendingSystem(config)
    system.bootstrap()
    app = create_app(system)
    uvicorn.run(app, host=config.api_host, port=config.api_port)
