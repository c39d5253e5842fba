from __future__ import annotations

import os
from typing import Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field, computed_field, field_validator
from solders.pubkey import Pubkey

from .program.constants import COMMITMENT_BUFFER_MONTHS, DEFAULT_MINT_DECIMALS

DEFAULT_API_BASE_URL = "https://api.eventop.xyz"


def _validate_pubkey(v: str, label: str) -> str:
    if not v:
        raise ValueError(f"{label} cannot be empty")
    try:
        Pubkey.from_string(v)
    except ValueError as e:
        raise ValueError(f"{label} is not a valid base58 public key: {e}") from e
    return v


def _validate_url(v: str, label: str) -> str:
    if not v:
        raise ValueError(f"{label} cannot be empty")
    parsed = urlparse(v)
    if parsed.scheme not in {"http", "https"}:
        raise ValueError(f"{label} must start with http:// or https://")
    if not parsed.netloc:
        raise ValueError(f"{label} must include a host")
    return v


class Settings(BaseModel):
    """Typed protocol client settings built from environment variables."""

    environment: str = "development"
    program_id: str
    usdc_mint: str
    rpc_url: str
    api_base_url: str = DEFAULT_API_BASE_URL

    mint_decimals: int = Field(DEFAULT_MINT_DECIMALS, ge=0, le=18)
    commitment_buffer_months: int = Field(COMMITMENT_BUFFER_MONTHS, ge=0)

    # Transport settings
    commitment: str = "confirmed"
    rpc_timeout: float = Field(10.0, gt=0)
    api_timeout: float = Field(10.0, gt=0)
    confirm_timeout: float = Field(30.0, gt=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def cluster(self) -> str:
        return "devnet" if self.environment == "development" else "mainnet-beta"

    @property
    def program_pubkey(self) -> Pubkey:
        return Pubkey.from_string(self.program_id)

    @property
    def mint_pubkey(self) -> Pubkey:
        return Pubkey.from_string(self.usdc_mint)

    @field_validator("program_id")
    @classmethod
    def validate_program_id(cls, v: str) -> str:
        return _validate_pubkey(v, "Program id")

    @field_validator("usdc_mint")
    @classmethod
    def validate_usdc_mint(cls, v: str) -> str:
        return _validate_pubkey(v, "USDC mint")

    @field_validator("rpc_url")
    @classmethod
    def validate_rpc_url(cls, v: str) -> str:
        return _validate_url(v, "RPC URL")

    @field_validator("api_base_url")
    @classmethod
    def validate_api_base_url(cls, v: str) -> str:
        return _validate_url(v, "API base URL")

    @field_validator("commitment")
    @classmethod
    def validate_commitment(cls, v: str) -> str:
        if v not in {"processed", "confirmed", "finalized"}:
            raise ValueError("Commitment must be processed, confirmed or finalized")
        return v


def _cluster_var(name: str, environment: str) -> Optional[str]:
    suffix = "DEVNET" if environment == "development" else "MAINNET"
    return os.environ.get(f"{name}_{suffix}")


def get_settings() -> Settings:
    """Return typed settings sourced from env vars.

    Cluster-specific values are read from ``<NAME>_DEVNET`` in development
    and ``<NAME>_MAINNET`` otherwise.
    """
    environment = os.environ.get("EVENTOP_ENV", "development")
    program_id = _cluster_var("PROGRAM_ID", environment)
    usdc_mint = _cluster_var("USDC_MINT", environment)
    rpc_url = _cluster_var("RPC_URL", environment)
    if not (program_id and usdc_mint and rpc_url):
        suffix = "DEVNET" if environment == "development" else "MAINNET"
        raise ValueError(
            f"PROGRAM_ID_{suffix}, USDC_MINT_{suffix}, and RPC_URL_{suffix} are required"
        )
    return Settings(
        environment=environment,
        program_id=program_id,
        usdc_mint=usdc_mint,
        rpc_url=rpc_url,
        api_base_url=os.environ.get("API_BASE_URL", DEFAULT_API_BASE_URL),
        mint_decimals=int(os.environ.get("MINT_DECIMALS", str(DEFAULT_MINT_DECIMALS))),
        commitment_buffer_months=int(
            os.environ.get("COMMITMENT_BUFFER_MONTHS", str(COMMITMENT_BUFFER_MONTHS))
        ),
        commitment=os.environ.get("RPC_COMMITMENT", "confirmed"),
        rpc_timeout=float(os.environ.get("RPC_TIMEOUT", "10.0")),
        api_timeout=float(os.environ.get("API_TIMEOUT", "10.0")),
        confirm_timeout=float(os.environ.get("CONFIRM_TIMEOUT", "30.0")),
    )
