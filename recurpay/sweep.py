"""
Payment sweep: one pass over every recurring-payment record on the contract.

Flow per tick: resolve chain -> getAllRecordIds() -> for each id:
getRecord(id) -> eligibility -> payInstallment(id) calldata -> signed report
-> write to ledger -> outcome. Records are processed one at a time in ledger
order; nothing is cached between ticks.

Failure isolation:
  - unknown chain / no evms: ConfigurationError, nothing is read.
  - id list unreadable: ReadError, nothing is written.
  - one record unreadable, unsignable or rejected: that record is marked
    executed=False and the sweep moves on. A ConfigurationError raised by the
    signer or ledger mid-loop is treated the same way.

No retries. A failed record is picked up again on the next tick, and the
contract's own guards stop a second charge within the same period.
"""

import os
from typing import Callable, List, Optional, Tuple

from recurpay import abi
from recurpay.config import EvmConfig, WorkflowConfig, load_config
from recurpay.errors import ReadError, SubmissionError
from recurpay.ledger import LedgerClient, ReadCall, Web3Ledger, WriteReceipt, WriteRequest
from recurpay.networks import Network, get_network
from recurpay.schema import EligibilityPolicy, PaymentRecord, RecordOutcome, SweepResult
from recurpay.signer import EcdsaReportSigner, ReportSigner

LogFn = Callable[[str], None]


def debug_enabled() -> bool:
    return os.getenv("RECURPAY_DEBUG", "").lower() in ("1", "true", "yes")


def print_log(message: str) -> None:
    print(f"[SWEEP] {message}", flush=True)


def is_eligible(record: PaymentRecord, policy: EligibilityPolicy) -> Tuple[bool, Optional[str]]:
    """
    Decide whether a record gets a payInstallment report.

    Returns (eligible, skip_reason). Inactive records are never eligible under
    a local policy.
    """
    if policy == EligibilityPolicy.CONTRACT:
        return True, None
    if policy == EligibilityPolicy.SETTLED and record.times_remaining > 0:
        return False, f"{record.times_remaining} installments remaining"
    if policy == EligibilityPolicy.DUE and record.installments_paid >= record.total_installments:
        return False, "No installments remaining"
    if not record.is_active:
        return False, "Record is not active"
    return True, None


class PaymentSweepWorkflow:
    """
    Scans the RecurringPayments contract and submits signed payInstallment reports.

    config, ledger and signer are injected; run_sweep() takes no arguments so a
    scheduler can call it directly.
    """

    def __init__(
        self,
        config: WorkflowConfig,
        ledger: LedgerClient,
        signer: ReportSigner,
        log: Optional[LogFn] = None,
    ):
        self.config = config
        self.ledger = ledger
        self.signer = signer
        self.log = log or print_log

    def run_sweep(self) -> SweepResult:
        self.log("Workflow triggered - Processing all recurring payment records")
        evm = self.config.primary_evm()
        network = get_network(evm.chain_name, is_testnet=self.config.is_testnet, rpc_url=evm.rpc_url)
        address = evm.recurring_payments_address
        policy = self.config.eligibility

        self.log(f"Step 1: Fetching all record IDs from {address} on {network.name}")
        record_ids = self._read_record_ids(address)
        self.log(f"Found {len(record_ids)} records to process")

        result = SweepResult()
        for record_id in record_ids:
            self.log(f"--- Processing Record ID: {record_id} ---")
            result.add(self._process(record_id, evm, policy, network))

        self.log("=== Summary ===")
        self.log(f"Total Records Processed: {result.processed_records}")
        self.log(f"Payments Executed: {result.executed_payments}")
        return result

    def _process(
        self,
        record_id: int,
        evm: EvmConfig,
        policy: EligibilityPolicy,
        network: Network,
    ) -> RecordOutcome:
        address = evm.recurring_payments_address
        if policy != EligibilityPolicy.CONTRACT:
            try:
                record = self._read_record(address, record_id)
            except ReadError as e:
                self.log(f"  ❌ Skipping - Could not read record: {e}")
                return RecordOutcome(id=record_id, executed=False, reason=f"read failed: {e}")
            self._log_record(record)
            eligible, reason = is_eligible(record, policy)
            if not eligible:
                self.log(f"  ❌ Skipping - {reason}")
                return RecordOutcome(id=record_id, executed=False, reason=reason)

        self.log(f"  ✅ Executing payment for record {record_id}")
        try:
            receipt = self._execute(record_id, evm)
        except SubmissionError as e:
            self.log(f"  ❌ Submission failed for record {record_id}: {e}")
            return RecordOutcome(id=record_id, executed=False, reason=f"submission failed: {e}")
        self.log(f"  Transaction: {receipt.tx_hash}")
        url = network.tx_url(receipt.tx_hash)
        if url:
            self.log(f"  View transaction at {url}")
        return RecordOutcome(id=record_id, executed=True, tx_hash=receipt.tx_hash)

    def _execute(self, record_id: int, evm: EvmConfig) -> WriteReceipt:
        """
        Encode payInstallment(id), sign it and submit the report. Raises SubmissionError.

        Any other failure here, ConfigurationError included, is wrapped so it
        stays with this record.
        """
        payload = abi.encode_pay_installment(record_id)
        if debug_enabled():
            self.log(f"  Calldata: 0x{payload.hex()}")
        try:
            report = self.signer.sign(payload)
        except SubmissionError:
            raise
        except Exception as e:
            raise SubmissionError(f"Report signing failed: {e}") from e
        self.log(f"  Report generated with signature (signer {report.signer})")
        if debug_enabled():
            self.log(f"  Report digest: 0x{report.digest.hex()}")
        request = WriteRequest(
            receiver=evm.recurring_payments_address,
            report=report,
            gas_limit=evm.gas_limit,
            forwarder=evm.forwarder_address,
        )
        if request.forwarder:
            self.log(f"  Submitting signed report via forwarder {request.forwarder}")
        else:
            self.log(f"  Submitting payInstallment calldata directly to {request.receiver}")
        try:
            receipt = self.ledger.write(request)
        except SubmissionError:
            raise
        except Exception as e:
            raise SubmissionError(f"Report write failed: {e}") from e
        if not receipt.ok:
            raise SubmissionError(f"Transaction {receipt.tx_hash} reverted (status {receipt.status})")
        return receipt

    def _read(self, call: ReadCall) -> bytes:
        try:
            return self.ledger.read(call)
        except ReadError:
            raise
        except Exception as e:
            raise ReadError(f"Read call to {call.to} failed: {e}") from e

    def fetch_record_ids(self) -> List[int]:
        """Read-only: every record id on the configured contract."""
        return self._read_record_ids(self.config.primary_evm().recurring_payments_address)

    def fetch_record(self, record_id: int) -> PaymentRecord:
        """Read-only: one record from the configured contract. Raises ReadError."""
        return self._read_record(self.config.primary_evm().recurring_payments_address, record_id)

    def _read_record_ids(self, address: str) -> List[int]:
        data = self._read(ReadCall(to=address, data=abi.encode_get_all_record_ids(), block_tag=self.config.block_tag))
        return abi.decode_record_ids(data)

    def _read_record(self, address: str, record_id: int) -> PaymentRecord:
        data = self._read(ReadCall(to=address, data=abi.encode_get_record(record_id), block_tag=self.config.block_tag))
        return abi.decode_record(record_id, data)

    def _log_record(self, record: PaymentRecord) -> None:
        self.log(f"  Sender: {record.sender}")
        self.log(f"  Receiver: {record.receiver}")
        self.log(f"  Amount: {record.amount_per_installment}")
        self.log(f"  Installments Paid: {record.installments_paid}")
        self.log(f"  Total Installments: {record.total_installments}")
        self.log(f"  Times Remaining: {record.times_remaining}")
        self.log(f"  Is Active: {record.is_active}")


def build_workflow(
    config: Optional[WorkflowConfig] = None,
    ledger: Optional[LedgerClient] = None,
    signer: Optional[ReportSigner] = None,
    log: Optional[LogFn] = None,
) -> PaymentSweepWorkflow:
    """
    Wire a workflow from config.json + env. Anything passed in is used as-is.

    Signer and ledger sender share RECURPAY_PRIVATE_KEY by default.
    """
    config = config or load_config()
    if signer is None:
        signer = EcdsaReportSigner()
    if ledger is None:
        account = signer.account if isinstance(signer, EcdsaReportSigner) else None
        ledger = Web3Ledger.from_config(config, account=account)
    return PaymentSweepWorkflow(config, ledger, signer, log=log)


def run_sweep(config: Optional[WorkflowConfig] = None) -> SweepResult:
    """One tick with the default wiring (Web3 ledger, env key)."""
    return build_workflow(config).run_sweep()
