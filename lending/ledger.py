"""
Payment Ledger Module

Append-only record of payment events. Each event is the exact amount applied
to one installment on one date; one tendered payment may produce several
events when it spills over into later installments. The ledger is used for
audit and to rebuild installment state on restart, never to compute balances.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .logging_config import get_logger, log_action
from .money import decimal_from_string
from .result import ErrorType, Result
from .storage import PersistenceError, RecordStore


PAYMENT_COLUMNS = ("ID_Prestamo", "Numero_Cuota", "Monto_Pagado", "Fecha_Pago")


@dataclass(frozen=True)
class PaymentEvent:
    """Immutable record of an amount applied to one installment"""
    loan_id: str
    installment_number: int
    amount: Decimal
    payment_date: date


class PaymentLedger:
    """
    Holds payment events in insertion order and rewrites the payments table
    after every mutation
    """

    def __init__(self, store: Optional[RecordStore] = None, table: str = "pagos"):
        self.store = store
        self.table = table
        self.logger = get_logger("lending.ledger")
        self._events: List[PaymentEvent] = []

    def record(
        self,
        loan_id: str,
        installment_number: int,
        amount: Decimal,
        payment_date: date
    ) -> Result[PaymentEvent]:
        """Append a payment event and persist the ledger"""
        event = PaymentEvent(
            loan_id=loan_id,
            installment_number=installment_number,
            amount=amount,
            payment_date=payment_date
        )
        self._events.append(event)
        return Result.ok(event, warnings=self._persist())

    def events(self) -> Tuple[PaymentEvent, ...]:
        """All events in insertion order"""
        return tuple(self._events)

    def events_for(self, loan_id: str) -> List[PaymentEvent]:
        return [e for e in self._events if e.loan_id == loan_id]

    def chronological(self) -> List[PaymentEvent]:
        """Events sorted by payment date; same-day events keep insertion order"""
        return sorted(self._events, key=lambda e: e.payment_date)

    def purge(self, loan_id: str) -> Result[int]:
        """Remove every event of a loan"""
        remaining = [e for e in self._events if e.loan_id != loan_id]
        removed = len(self._events) - len(remaining)
        if not removed:
            return Result.ok(0)

        self._events = remaining
        log_action(
            self.logger, "info", f"Purged {removed} payment events of loan {loan_id}",
            action="payments_purged", loan_id=loan_id, extra={"count": removed}
        )
        return Result.ok(removed, warnings=self._persist())

    def load(self) -> Result[int]:
        """
        Replace in-memory events with the persisted ones

        Rows that cannot be parsed are logged and skipped.
        """
        if self.store is None:
            return Result.ok(0)

        try:
            rows = self.store.load_rows(self.table)
        except PersistenceError as e:
            self.logger.error(f"Could not load payment events: {e}")
            return Result.fail(str(e), ErrorType.PERSISTENCE)

        events = []
        for row in rows:
            try:
                events.append(self._event_from_dict(row))
            except (KeyError, ValueError) as e:
                self.logger.warning(f"Skipping malformed payment record {row}: {e}")

        self._events = events
        return Result.ok(len(events))

    def _persist(self) -> List[str]:
        """Rewrite the payments table, returning warnings on failure"""
        if self.store is None:
            return []
        try:
            self.store.replace_rows(
                self.table, PAYMENT_COLUMNS, [self._event_to_dict(e) for e in self._events]
            )
        except PersistenceError as e:
            log_action(
                self.logger, "error", f"Failed to save payment events: {e}",
                action="persistence_failed", extra={"table": self.table}
            )
            return [f"Payment events could not be saved: {e}"]
        return []

    def _event_to_dict(self, event: PaymentEvent) -> Dict[str, str]:
        return {
            "ID_Prestamo": event.loan_id,
            "Numero_Cuota": str(event.installment_number),
            "Monto_Pagado": str(event.amount),
            "Fecha_Pago": event.payment_date.isoformat(),
        }

    def _event_from_dict(self, data: Dict[str, str]) -> PaymentEvent:
        amount = decimal_from_string(data["Monto_Pagado"])
        if amount <= 0:
            raise ValueError("payment amount must be positive")
        return PaymentEvent(
            loan_id=data["ID_Prestamo"].strip(),
            installment_number=int(data["Numero_Cuota"]),
            amount=amount,
            payment_date=date.fromisoformat(data["Fecha_Pago"].strip())
        )
