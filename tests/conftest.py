"""
Shared fixtures: an in-memory RecurringPayments ledger and a test signer.

FakeLedger answers getAllRecordIds()/getRecord(id) with real ABI-encoded
return data, so the sweep exercises the same decode path as on chain.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Set

import pytest
from eth_abi import decode, encode

from recurpay import abi
from recurpay.config import EvmConfig, WorkflowConfig
from recurpay.errors import SubmissionError
from recurpay.ledger import ReadCall, WriteReceipt, WriteRequest
from recurpay.schema import EligibilityPolicy
from recurpay.signer import EcdsaReportSigner

CONTRACT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
SENDER = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
RECEIVER = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"
# Well-known dev key (Anvil/Hardhat account #0); never holds real funds.
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
FORWARDER = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"


def record_tuple(paid: int, total: int, active: bool, amount: int = 1_000_000) -> tuple:
    return (SENDER, RECEIVER, amount, 86_400, 1_700_000_000, paid, total, active)


class FakeLedger:
    """LedgerClient backed by a dict of record tuples."""

    def __init__(self, records: Optional[Dict[int, tuple]] = None, ids: Optional[List[int]] = None):
        self.records = dict(records or {})
        self.ids = list(ids) if ids is not None else list(self.records)
        self.reads: List[ReadCall] = []
        self.writes: List[WriteRequest] = []
        self.fail_ids_read = False
        self.fail_ids_malformed = False
        self.fail_record_reads: Set[int] = set()
        self.fail_writes: Set[int] = set()
        self.revert_writes: Set[int] = set()

    def read(self, call: ReadCall) -> bytes:
        self.reads.append(call)
        selector, args = call.data[:4], call.data[4:]
        if selector == abi.GET_ALL_RECORD_IDS_SELECTOR:
            if self.fail_ids_read:
                raise ConnectionError("rpc unavailable")
            if self.fail_ids_malformed:
                return b"\x01\x02\x03"
            return encode(["uint256[]"], [self.ids])
        if selector == abi.GET_RECORD_SELECTOR:
            (record_id,) = decode(["uint256"], args)
            if record_id in self.fail_record_reads:
                raise ConnectionError(f"rpc timeout reading {record_id}")
            return encode(abi.RECORD_OUTPUT_TYPES, list(self.records[record_id]))
        raise AssertionError(f"unexpected read selector {selector.hex()}")

    def write(self, request: WriteRequest) -> WriteReceipt:
        record_id = self.written_id(request)
        if record_id in self.fail_writes:
            raise SubmissionError(f"forwarder rejected report for {record_id}")
        self.writes.append(request)
        status = 0 if record_id in self.revert_writes else 1
        return WriteReceipt(tx_hash="0x" + f"{record_id:064x}", status=status, block_number=100)

    @staticmethod
    def written_id(request: WriteRequest) -> int:
        payload = request.report.payload
        assert payload[:4] == abi.PAY_INSTALLMENT_SELECTOR
        (record_id,) = decode(["uint256"], payload[4:])
        return record_id

    @property
    def written_ids(self) -> List[int]:
        return [self.written_id(w) for w in self.writes]


def make_config(
    policy: EligibilityPolicy = EligibilityPolicy.SETTLED,
    chain_name: str = "ethereum-testnet-sepolia",
    forwarder: Optional[str] = None,
) -> WorkflowConfig:
    evm = EvmConfig(
        recurring_payments_address=CONTRACT, chain_name=chain_name, gas_limit=500_000, forwarder_address=forwarder
    )
    return WorkflowConfig(
        evms=[evm],
        eligibility=policy,
    )


@pytest.fixture
def signer() -> EcdsaReportSigner:
    return EcdsaReportSigner.from_key(TEST_PRIVATE_KEY)


@pytest.fixture
def config() -> WorkflowConfig:
    return make_config()


@pytest.fixture
def logs() -> List[str]:
    return []


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Keep tests away from a developer's real .env and key."""
    monkeypatch.chdir(tmp_path)
    for name in ("RECURPAY_CONFIG", "RECURPAY_PRIVATE_KEY", "RECURPAY_RPC_URL", "RECURPAY_DEBUG"):
        monkeypatch.delenv(name, raising=False)
