"""
Report signing: ECDSA (secp256k1) over the Keccak-256 digest of a call payload.

A Report carries the payload it authorizes, so the ledger write path can
submit it as-is. Key is loaded from RECURPAY_PRIVATE_KEY (env or .env).
"""

from dataclasses import dataclass
from typing import Optional, Protocol

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_utils import keccak

from recurpay.config import private_key_from_env
from recurpay.errors import SubmissionError


@dataclass(frozen=True)
class Report:
    """A signed payload authorizing one ledger state change."""
    payload: bytes
    digest: bytes
    signature: bytes
    signer: str
    encoder_name: str = "evm"
    signing_algo: str = "ecdsa"
    hashing_algo: str = "keccak256"


class ReportSigner(Protocol):
    def sign(self, payload: bytes) -> Report: ...


class EcdsaReportSigner:
    """Signs report payloads with a local keypair."""

    def __init__(self, account: Optional[LocalAccount] = None):
        if account is None:
            account = Account.from_key(private_key_from_env())
        self._account = account

    @property
    def address(self) -> str:
        return self._account.address

    @property
    def account(self) -> LocalAccount:
        return self._account

    def sign(self, payload: bytes) -> Report:
        """Sign keccak256(payload). Raises SubmissionError if signing fails."""
        if not payload:
            raise SubmissionError("Refusing to sign an empty report payload")
        digest = keccak(payload)
        try:
            signed = self._account.unsafe_sign_hash(digest)
        except Exception as e:
            raise SubmissionError(f"Report signing failed: {e}") from e
        return Report(
            payload=bytes(payload),
            digest=digest,
            signature=bytes(signed.signature),
            signer=self._account.address,
        )

    @classmethod
    def from_key(cls, private_key: str) -> "EcdsaReportSigner":
        """Create signer from raw private key (hex string, with or without 0x)."""
        if not private_key.startswith("0x"):
            private_key = "0x" + private_key
        return cls(account=Account.from_key(private_key))
