"""
RecurringPayments contract ABI and the three calls a sweep makes.

Read:  getAllRecordIds() -> uint256[]
       getRecord(uint256) -> (address, address, uint256 x5, bool)
Write: payInstallment(uint256)   (the signed report payload)
       report(address,bytes,bytes,bytes[]) on a forwarder, carrying payload and signature
"""

from typing import List

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector, to_checksum_address
from pydantic import ValidationError

from recurpay.errors import ReadError
from recurpay.schema import PaymentRecord
from recurpay.signer import Report

RECURRING_PAYMENTS_ABI = [
    {
        "inputs": [{"internalType": "uint256", "name": "id", "type": "uint256"}],
        "name": "payInstallment",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [{"internalType": "uint256", "name": "id", "type": "uint256"}],
        "name": "getRecord",
        "outputs": [
            {"internalType": "address", "name": "sender", "type": "address"},
            {"internalType": "address", "name": "receiver", "type": "address"},
            {"internalType": "uint256", "name": "amount", "type": "uint256"},
            {"internalType": "uint256", "name": "interval", "type": "uint256"},
            {"internalType": "uint256", "name": "nextPayment", "type": "uint256"},
            {"internalType": "uint256", "name": "installmentsPaid", "type": "uint256"},
            {"internalType": "uint256", "name": "totalInstallments", "type": "uint256"},
            {"internalType": "bool", "name": "isActive", "type": "bool"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "getAllRecordIds",
        "outputs": [{"internalType": "uint256[]", "name": "", "type": "uint256[]"}],
        "stateMutability": "view",
        "type": "function",
    },
]

GET_ALL_RECORD_IDS_SELECTOR = function_signature_to_4byte_selector("getAllRecordIds()")
GET_RECORD_SELECTOR = function_signature_to_4byte_selector("getRecord(uint256)")
PAY_INSTALLMENT_SELECTOR = function_signature_to_4byte_selector("payInstallment(uint256)")

FORWARDER_ABI = [
    {
        "inputs": [
            {"internalType": "address", "name": "receiver", "type": "address"},
            {"internalType": "bytes", "name": "rawReport", "type": "bytes"},
            {"internalType": "bytes", "name": "reportContext", "type": "bytes"},
            {"internalType": "bytes[]", "name": "signatures", "type": "bytes[]"},
        ],
        "name": "report",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

FORWARDER_REPORT_SELECTOR = function_signature_to_4byte_selector("report(address,bytes,bytes,bytes[])")
FORWARDER_REPORT_TYPES = ["address", "bytes", "bytes", "bytes[]"]

RECORD_OUTPUT_TYPES = ["address", "address", "uint256", "uint256", "uint256", "uint256", "uint256", "bool"]


def encode_get_all_record_ids() -> bytes:
    return GET_ALL_RECORD_IDS_SELECTOR


def encode_get_record(record_id: int) -> bytes:
    return GET_RECORD_SELECTOR + encode(["uint256"], [record_id])


def encode_pay_installment(record_id: int) -> bytes:
    """Calldata for payInstallment(id); this is the report payload."""
    return PAY_INSTALLMENT_SELECTOR + encode(["uint256"], [record_id])


def encode_forwarder_report(receiver: str, report: Report) -> bytes:
    """
    Calldata for forwarder.report(receiver, rawReport, reportContext, signatures).

    rawReport is the payInstallment payload, reportContext its keccak256 digest.
    The forwarder checks the signature before calling the receiver.
    """
    return FORWARDER_REPORT_SELECTOR + encode(
        FORWARDER_REPORT_TYPES,
        [to_checksum_address(receiver), report.payload, report.digest, [report.signature]],
    )


def decode_record_ids(data: bytes) -> List[int]:
    """Decode getAllRecordIds() return data. Raises ReadError on malformed data."""
    if not data:
        raise ReadError("getAllRecordIds returned no data (wrong address or chain?)")
    try:
        (ids,) = decode(["uint256[]"], bytes(data))
    except (DecodingError, ValueError, TypeError) as e:
        raise ReadError(f"Malformed getAllRecordIds result: {e}") from e
    return [int(i) for i in ids]


def decode_record(record_id: int, data: bytes) -> PaymentRecord:
    """Decode getRecord(id) return data into a PaymentRecord. Raises ReadError on malformed data."""
    if not data:
        raise ReadError(f"getRecord({record_id}) returned no data")
    try:
        sender, receiver, amount, interval, next_payment, paid, total, active = decode(
            RECORD_OUTPUT_TYPES, bytes(data)
        )
    except (DecodingError, ValueError, TypeError) as e:
        raise ReadError(f"Malformed getRecord({record_id}) result: {e}") from e
    try:
        return PaymentRecord(
            id=record_id,
            sender=to_checksum_address(sender),
            receiver=to_checksum_address(receiver),
            amount_per_installment=amount,
            interval_seconds=interval,
            next_payment_timestamp=next_payment,
            installments_paid=paid,
            total_installments=total,
            is_active=active,
        )
    except ValidationError as e:
        raise ReadError(f"Invalid record {record_id}: {e}") from e
