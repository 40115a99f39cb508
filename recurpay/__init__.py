"""
recurpay: keeper for on-chain recurring payments.

On a cron schedule, reads every agreement from a RecurringPayments contract,
decides which ones are due, and submits a signed payInstallment report for
each. The contract does the actual debiting and guards against double charges.

    from recurpay import build_workflow
    result = build_workflow().run_sweep()   # config.json + RECURPAY_PRIVATE_KEY
    print(result.to_summary())
"""

__version__ = "0.1.0"

from recurpay.errors import SweepError, ConfigurationError, ReadError, SubmissionError
from recurpay.schema import EligibilityPolicy, PaymentRecord, RecordOutcome, SweepResult
from recurpay.config import EvmConfig, WorkflowConfig, load_config, parse_config
from recurpay.networks import Network, get_network
from recurpay.signer import EcdsaReportSigner, Report, ReportSigner
from recurpay.ledger import LedgerClient, ReadCall, Web3Ledger, WriteReceipt, WriteRequest
from recurpay.sweep import PaymentSweepWorkflow, build_workflow, is_eligible, run_sweep
from recurpay.schedule import CronSchedule, run_on_schedule

__all__ = [
    "__version__",
    "SweepError",
    "ConfigurationError",
    "ReadError",
    "SubmissionError",
    "EligibilityPolicy",
    "PaymentRecord",
    "RecordOutcome",
    "SweepResult",
    "EvmConfig",
    "WorkflowConfig",
    "load_config",
    "parse_config",
    "Network",
    "get_network",
    "EcdsaReportSigner",
    "Report",
    "ReportSigner",
    "LedgerClient",
    "ReadCall",
    "Web3Ledger",
    "WriteReceipt",
    "WriteRequest",
    "PaymentSweepWorkflow",
    "build_workflow",
    "is_eligible",
    "run_sweep",
    "CronSchedule",
    "run_on_schedule",
]
