"""
Records read from the RecurringPayments contract and the summary of one sweep.

Contract: PaymentRecord is decoded from getRecord(id); the ledger owns it.
SweepResult is built fresh every tick and never persisted.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class EligibilityPolicy(str, Enum):
    """How a sweep decides whether a record gets a payInstallment report."""

    SETTLED = "settled"  # times_remaining == 0 and active
    DUE = "due"  # installments_paid < total_installments and active
    CONTRACT = "contract"  # no local check; the contract rejects what is not due


class PaymentRecord(BaseModel):
    """One recurring-payment agreement as stored on the ledger."""

    id: int = Field(..., gt=0, description="Agreement id on the contract")
    sender: str = Field(..., description="Payer address (0x)")
    receiver: str = Field(..., description="Payee address (0x)")
    amount_per_installment: int = Field(..., ge=0, description="Smallest currency unit")
    interval_seconds: int = Field(..., ge=0)
    next_payment_timestamp: int = Field(..., ge=0, description="Unix time of next allowed charge")
    installments_paid: int = Field(..., ge=0)
    total_installments: int = Field(..., ge=0)
    is_active: bool

    @property
    def times_remaining(self) -> int:
        # paid <= total is the ledger's invariant; a negative value is passed through.
        return self.total_installments - self.installments_paid


class RecordOutcome(BaseModel):
    """What happened to one record during a sweep."""

    id: int
    executed: bool
    reason: Optional[str] = Field(None, description="Why the record was skipped or failed")
    tx_hash: Optional[str] = Field(None, description="Hash of the submitted report transaction")


class SweepResult(BaseModel):
    """Summary returned to the host after each tick."""

    processed_records: int = 0
    executed_payments: int = 0
    records: List[RecordOutcome] = Field(default_factory=list)

    def add(self, outcome: RecordOutcome) -> None:
        self.records.append(outcome)
        self.processed_records += 1
        if outcome.executed:
            self.executed_payments += 1

    def to_summary(self) -> Dict[str, Any]:
        """Payload in the shape the workflow host expects."""
        return {
            "processedRecords": self.processed_records,
            "executedPayments": self.executed_payments,
            "recordsProcessed": [{"id": r.id, "executed": r.executed} for r in self.records],
        }
