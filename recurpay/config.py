"""
Workflow configuration: which contract, on which chain, how much gas.

Loaded from a JSON file with the same shape as the workflow's config.json:

    {
      "schedule": "*/30 * * * * *",
      "evms": [
        {
          "recurringPaymentsAddress": "0x...",
          "chainName": "ethereum-testnet-sepolia",
          "gasLimit": "500000",
          "forwarderAddress": "0x..."
        }
      ]
    }

Secrets (RECURPAY_PRIVATE_KEY) and RPC overrides come from the environment or
a .env file; never from the JSON file.

forwarderAddress is optional. When set, each report goes to the forwarder as
report(receiver, payload, digest, [signature]); otherwise the payInstallment
calldata is sent straight to the RecurringPayments contract.
"""

import json
import os
from pathlib import Path
from typing import List, Optional, Union

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from recurpay.errors import ConfigurationError
from recurpay.schema import EligibilityPolicy

ENV_CONFIG_PATH = "RECURPAY_CONFIG"
ENV_PRIVATE_KEY = "RECURPAY_PRIVATE_KEY"
ENV_RPC_URL = "RECURPAY_RPC_URL"

DEFAULT_CONFIG_PATH = "config.json"
DEFAULT_SCHEDULE = "*/30 * * * * *"  # every 30 seconds (minimum interval)


def load_env() -> None:
    """Load .env from cwd (or parent dirs) without overriding the real environment."""
    load_dotenv(find_dotenv(usecwd=True), override=False)


class EvmConfig(BaseModel):
    """Configuration for a single EVM chain."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    recurring_payments_address: str = Field(..., alias="recurringPaymentsAddress")
    chain_name: str = Field(..., alias="chainName")
    gas_limit: int = Field(..., alias="gasLimit", gt=0)
    rpc_url: Optional[str] = Field(None, alias="rpcUrl")
    forwarder_address: Optional[str] = Field(
        None, alias="forwarderAddress", description="Report forwarder; unset sends payInstallment calldata directly"
    )

    @field_validator("recurring_payments_address", "forwarder_address")
    @classmethod
    def _check_address(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v.startswith("0x") or len(v) != 42:
            raise ValueError(f"not a 0x address: {v!r}")
        int(v, 16)
        return v


class WorkflowConfig(BaseModel):
    """Whole workflow config. Only evms[0] is used by a sweep."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    schedule: str = DEFAULT_SCHEDULE
    evms: List[EvmConfig] = Field(default_factory=list)
    eligibility: EligibilityPolicy = EligibilityPolicy.SETTLED
    block_tag: Union[str, int] = Field("finalized", alias="blockTag")
    receipt_timeout: int = Field(120, alias="receiptTimeout", gt=0)
    is_testnet: Optional[bool] = Field(True, alias="isTestnet")

    def primary_evm(self) -> EvmConfig:
        if not self.evms:
            raise ConfigurationError("Config has no evms entries")
        return self.evms[0]


def parse_config(data: dict) -> WorkflowConfig:
    """Validate a config dict. Raises ConfigurationError on bad input."""
    try:
        return WorkflowConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid workflow config: {e}") from e


def load_config(path: Optional[Union[str, Path]] = None) -> WorkflowConfig:
    """
    Load and validate the workflow config.

    Path: argument, else RECURPAY_CONFIG, else ./config.json.
    RECURPAY_RPC_URL (if set) overrides rpcUrl of the first evm entry.
    """
    load_env()
    path = Path(path or os.getenv(ENV_CONFIG_PATH) or DEFAULT_CONFIG_PATH)
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Could not read config {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config {path} must be a JSON object")
    config = parse_config(data)
    rpc_override = (os.getenv(ENV_RPC_URL) or "").strip()
    if rpc_override and config.evms:
        config.evms[0] = config.evms[0].model_copy(update={"rpc_url": rpc_override})
    return config


def private_key_from_env() -> str:
    """Operator key from RECURPAY_PRIVATE_KEY (env or .env). Raises ConfigurationError if unset."""
    load_env()
    pk = (os.getenv(ENV_PRIVATE_KEY) or "").strip()
    if not pk:
        raise ConfigurationError(
            f"Set {ENV_PRIVATE_KEY} in the environment (never commit it). "
            "Generate one: python -c \"from eth_account import Account; print(Account.create().key.hex())\""
        )
    return pk if pk.startswith("0x") else "0x" + pk
