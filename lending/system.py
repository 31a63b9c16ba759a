"""
Lending System Module

Wires the registry, payment ledger, allocator and delinquency enforcer around
one storage backend, and performs the start-up reconciliation:

    load payment events -> load loans (installments regenerated)
    -> replay events in chronological order -> delinquency sweep

Installment state is never stored; it is always rebuilt from the ledger.
All public operations are serialized through one lock so the system can be
shared by a multi-threaded server.
"""

from datetime import date
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Tuple
import threading

from .allocation import AllocationOutcome, PaymentAllocator
from .config import LendingConfig, get_config
from .delinquency import DelinquencyEnforcer
from .ledger import PaymentEvent, PaymentLedger
from .loans import Loan
from .logging_config import get_logger, log_action
from .money import AmountLike
from .registry import LoanRegistry
from .result import ErrorType, Result
from .storage import CsvRecordStore, InMemoryRecordStore, RecordStore


@dataclass
class BootstrapReport:
    """Counters collected during start-up reconciliation"""
    loans_loaded: int = 0
    events_loaded: int = 0
    events_replayed: int = 0
    events_skipped: int = 0
    installments_overdue: int = 0
    warnings: List[str] = field(default_factory=list)


def create_store(config: LendingConfig) -> RecordStore:
    """Build the storage backend selected by configuration"""
    if config.storage_backend == "memory":
        return InMemoryRecordStore()
    if config.storage_backend == "csv":
        return CsvRecordStore(config.data_dir)
    raise ValueError(f"Unsupported storage backend: {config.storage_backend}")


class LendingSystem:
    """Lending engine with all components initialized"""

    def __init__(
        self,
        config: Optional[LendingConfig] = None,
        store: Optional[RecordStore] = None,
        today: Callable[[], date] = date.today
    ):
        self.config = config or get_config()
        self.store = store if store is not None else create_store(self.config)
        self.today = today
        self.logger = get_logger("lending.system")
        self.lock = threading.RLock()

        self.ledger = PaymentLedger(self.store, self.config.payments_table)
        self.enforcer = DelinquencyEnforcer(today)
        self.registry = LoanRegistry(
            self.ledger,
            self.enforcer,
            store=self.store,
            table=self.config.loans_table,
            excluded_client_id=self.config.excluded_client_id,
            id_width=self.config.loan_id_width
        )
        self.allocator = PaymentAllocator(self.ledger, today)

    def bootstrap(self) -> BootstrapReport:
        """Restore persisted state and bring installment state up to date"""
        with self.lock:
            report = BootstrapReport()

            events = self.ledger.load()
            if events:
                report.events_loaded = events.value
            else:
                report.warnings.append(events.error)

            loans = self.registry.load()
            if loans:
                report.loans_loaded = loans.value
            else:
                report.warnings.append(loans.error)

            report.events_replayed, report.events_skipped = self.replay_payments(
                self.ledger.chronological()
            )
            report.installments_overdue = self.enforcer.sweep(self.registry.get_all())

            log_action(
                self.logger, "info", "Lending state restored",
                action="bootstrap",
                extra={
                    "loans": report.loans_loaded,
                    "payment_events": report.events_loaded,
                    "replayed": report.events_replayed,
                    "skipped": report.events_skipped,
                    "overdue": report.installments_overdue,
                }
            )
            return report

    def replay_payments(self, events: Iterable[PaymentEvent]) -> Tuple[int, int]:
        """
        Re-apply historical payment events to freshly generated installments

        Each loan is evaluated for delinquency at the event's date before the
        event is applied, reproducing penalties that were due when the payment
        was taken.

        Returns:
            (events applied, events skipped)
        """
        applied = skipped = 0
        for event in events:
            loan = self.registry.get(event.loan_id)
            if loan is None:
                self.logger.warning(
                    f"Payment event for unknown loan {event.loan_id} skipped during replay"
                )
                skipped += 1
                continue

            loan.evaluate_delinquency(event.payment_date)
            result = loan.apply_payment_to_installment(event.installment_number, event.amount)
            if not result:
                self.logger.warning(
                    f"Payment event {event} could not be replayed: {result.error}"
                )
                skipped += 1
                continue
            applied += 1
        return applied, skipped

    def create_loan(
        self,
        client_id: str,
        principal: AmountLike,
        term_count: int,
        is_mortgage: bool,
        start_date: Optional[date] = None
    ) -> Result[Loan]:
        """Create a loan, starting today unless a start date is given"""
        with self.lock:
            return self.registry.create(
                client_id, principal, term_count, is_mortgage,
                start_date if start_date is not None else self.today()
            )

    def get_loan(self, loan_id: str) -> Result[Loan]:
        with self.lock:
            loan = self.registry.find_by_id(loan_id)
            if loan is None:
                return Result.fail(f"Loan {loan_id} not found", ErrorType.NOT_FOUND)
            return Result.ok(loan)

    def list_loans(self) -> Tuple[Loan, ...]:
        with self.lock:
            return self.registry.list_loans()

    def loans_for_client(self, client_id: str) -> List[Loan]:
        with self.lock:
            return self.registry.find_by_client(client_id)

    def delete_loan(self, loan_id: str) -> Result[Loan]:
        with self.lock:
            return self.registry.delete(loan_id)

    def register_payment(
        self,
        loan_id: str,
        installment_number: int,
        amount: AmountLike,
        allow_residual: bool = True
    ) -> Result[AllocationOutcome]:
        """Allocate a payment to a loan, spilling any excess into later installments"""
        with self.lock:
            loan = self.registry.find_by_id(loan_id)
            if loan is None:
                return Result.fail(f"Loan {loan_id} not found", ErrorType.NOT_FOUND)
            return self.allocator.allocate(
                loan, installment_number, amount, allow_residual=allow_residual
            )

    def payment_history(self, loan_id: str) -> Result[List[PaymentEvent]]:
        with self.lock:
            if self.registry.get(loan_id) is None:
                return Result.fail(f"Loan {loan_id} not found", ErrorType.NOT_FOUND)
            return Result.ok(self.ledger.events_for(loan_id))

    def run_delinquency_sweep(self, reference_date: Optional[date] = None) -> int:
        """Evaluate every loan; returns the number of installments that became overdue"""
        with self.lock:
            return self.enforcer.sweep(self.registry.get_all(), reference_date)

    def close(self) -> None:
        self.store.close()
