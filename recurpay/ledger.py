"""
Ledger access: read-only contract calls and the signed-report write path.

LedgerClient is the seam the sweep talks to (read(call) -> bytes,
write(request) -> receipt). Web3Ledger implements it over JSON-RPC; tests
use in-memory fakes.

A WriteRequest with a forwarder is sent as forwarder.report(...) carrying the
payload, its digest and the report signature. Without one the payload goes
straight to the receiver as calldata.
"""

from dataclasses import dataclass
from typing import Optional, Protocol, Union

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3

from recurpay import abi
from recurpay.config import WorkflowConfig, private_key_from_env
from recurpay.errors import ReadError, SubmissionError
from recurpay.networks import Network, get_network
from recurpay.signer import Report

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
BlockTag = Union[str, int]


@dataclass(frozen=True)
class ReadCall:
    """eth_call message. Reads default to the last finalized block."""
    to: str
    data: bytes
    from_: str = ZERO_ADDRESS
    block_tag: BlockTag = "finalized"


@dataclass(frozen=True)
class WriteRequest:
    """A signed report addressed to a receiver contract, optionally via a forwarder."""
    receiver: str
    report: Report
    gas_limit: int
    forwarder: Optional[str] = None

    def transaction_target(self) -> str:
        return self.forwarder or self.receiver

    def calldata(self) -> bytes:
        if self.forwarder:
            return abi.encode_forwarder_report(self.receiver, self.report)
        return self.report.payload


@dataclass(frozen=True)
class WriteReceipt:
    tx_hash: str
    status: int
    block_number: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status == 1


class LedgerClient(Protocol):
    def read(self, call: ReadCall) -> bytes: ...

    def write(self, request: WriteRequest) -> WriteReceipt: ...


class Web3Ledger:
    """
    LedgerClient over a web3 HTTP provider.

    Writes: a transaction to request.transaction_target() carrying
    request.calldata() with gas = request.gas_limit, signed and paid for by
    the operator account (resolved from RECURPAY_PRIVATE_KEY when not given,
    so a missing key fails at construction). Waits for the receipt; a reverted
    tx is still returned (status 0) so the caller decides what a failure means.
    """

    def __init__(
        self,
        network: Network,
        account: Optional[LocalAccount] = None,
        w3: Optional[Web3] = None,
        receipt_timeout: int = 120,
        request_timeout: int = 30,
    ):
        self.network = network
        self.account = account or Account.from_key(private_key_from_env())
        self.receipt_timeout = receipt_timeout
        self.w3 = w3 or Web3(Web3.HTTPProvider(network.rpc_url, request_kwargs={"timeout": request_timeout}))

    @classmethod
    def from_config(cls, config: WorkflowConfig, account: Optional[LocalAccount] = None) -> "Web3Ledger":
        evm = config.primary_evm()
        network = get_network(evm.chain_name, is_testnet=config.is_testnet, rpc_url=evm.rpc_url)
        return cls(network, account=account, receipt_timeout=config.receipt_timeout)

    def read(self, call: ReadCall) -> bytes:
        try:
            result = self.w3.eth.call(
                {
                    "from": Web3.to_checksum_address(call.from_),
                    "to": Web3.to_checksum_address(call.to),
                    "data": call.data,
                },
                block_identifier=call.block_tag,
            )
        except Exception as e:
            raise ReadError(f"eth_call to {call.to} on {self.network.name} failed: {e}") from e
        return bytes(result)

    def write(self, request: WriteRequest) -> WriteReceipt:
        sender = self.account.address
        try:
            tx = {
                "from": sender,
                "to": Web3.to_checksum_address(request.transaction_target()),
                "data": request.calldata(),
                "value": 0,
                "gas": request.gas_limit,
                "gasPrice": self.w3.eth.gas_price,
                "nonce": self.w3.eth.get_transaction_count(sender, "pending"),
                "chainId": self.network.chain_id,
            }
            signed = self.account.sign_transaction(tx)
            tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as e:
            raise SubmissionError(f"Could not send report to {request.transaction_target()}: {e}") from e
        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        except Exception as e:
            raise SubmissionError(f"No receipt for {_hex(tx_hash)} after {self.receipt_timeout}s: {e}") from e
        return WriteReceipt(
            tx_hash=_hex(tx_hash),
            status=int(receipt.get("status", 0)),
            block_number=receipt.get("blockNumber"),
        )


def _hex(tx_hash) -> str:
    h = tx_hash.hex() if hasattr(tx_hash, "hex") else str(tx_hash)
    return h if h.startswith("0x") else "0x" + h
