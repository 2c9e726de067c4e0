from __future__ import annotations

import re
from functools import lru_cache

from pydantic import SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from zkmarket.core.errors import ConfigurationError

ZERO_ADDRESS = "0x" + "0" * 40
ARBITRUM_SEPOLIA_CHAIN_ID = 421614

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_HEX32_RE = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")
_HEX4_RE = re.compile(r"^(0x)?[0-9a-fA-F]{8}$")


class Settings(BaseSettings):
    environment: str = "dev"
    rpc_url: str = "http://127.0.0.1:8545"
    chain_id: int = ARBITRUM_SEPOLIA_CHAIN_ID
    requester_private_key: SecretStr | None = None
    provider_private_key: SecretStr | None = None
    credit_token_address: str = ZERO_ADDRESS
    job_registry_address: str = ZERO_ADDRESS
    stake_registry_address: str = ZERO_ADDRESS
    required_stake: int = 5
    method_id: str = "0x" + "0" * 64
    gas_margin_percent: int = 20
    accept_fallback_gas: int = 300_000
    submit_fallback_gas: int = 3_000_000
    receipt_timeout_seconds: float = 120.0
    finality_max_wait_seconds: float = 30.0
    finality_initial_interval_seconds: float = 1.0
    finality_backoff: float = 2.0
    finality_max_interval_seconds: float = 8.0
    prover_bin: str = "zkmarket-host"
    prover_timeout_seconds: float = 1800.0
    verifier_selector: str | None = None
    provider_agent_url: str = "http://localhost:3001/receive-job"
    watch_poll_interval_seconds: float = 5.0
    otel_enabled: bool = True
    otel_service_name: str = "zkmarket-coordinator"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0
    otel_log_correlation: bool = True

    model_config = SettingsConfigDict(env_prefix="ZKM_", extra="ignore")

    @field_validator("credit_token_address", "job_registry_address", "stake_registry_address")
    @classmethod
    def _check_address(cls, value: str) -> str:
        value = value.strip()
        if not _ADDRESS_RE.match(value):
            raise ValueError(f"not a 20-byte hex address: {value!r}")
        return value

    @field_validator("method_id")
    @classmethod
    def _check_method_id(cls, value: str) -> str:
        value = value.strip()
        if not _HEX32_RE.match(value):
            raise ValueError("method_id must be 32 bytes of hex")
        return value if value.startswith("0x") else f"0x{value}"

    @field_validator("verifier_selector")
    @classmethod
    def _check_selector(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        value = value.strip()
        if not _HEX4_RE.match(value):
            raise ValueError("verifier_selector must be 4 bytes of hex")
        return value if value.startswith("0x") else f"0x{value}"

    @field_validator("gas_margin_percent", "accept_fallback_gas", "submit_fallback_gas")
    @classmethod
    def _check_non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must not be negative")
        return value

    @property
    def staking_enabled(self) -> bool:
        return int(self.stake_registry_address, 16) != 0

    @property
    def method_id_bytes(self) -> bytes:
        return bytes.fromhex(self.method_id[2:])

    @property
    def verifier_selector_bytes(self) -> bytes:
        if self.verifier_selector is None:
            return b""
        return bytes.fromhex(self.verifier_selector[2:])


@lru_cache
def get_settings() -> Settings:
    return Settings()


def load_settings(*, require_requester: bool = True, require_provider: bool = True) -> Settings:
    """Load and validate settings for a protocol run.

    Raises ConfigurationError for malformed values, missing signing
    credentials or an unset job registry / credit token address.
    """
    try:
        settings = get_settings()
    except ValidationError as exc:
        raise ConfigurationError(f"invalid environment configuration: {exc}") from exc

    missing: list[str] = []
    if require_requester and settings.requester_private_key is None:
        missing.append("ZKM_REQUESTER_PRIVATE_KEY")
    if require_provider and settings.provider_private_key is None:
        missing.append("ZKM_PROVIDER_PRIVATE_KEY")
    if int(settings.credit_token_address, 16) == 0:
        missing.append("ZKM_CREDIT_TOKEN_ADDRESS")
    if int(settings.job_registry_address, 16) == 0:
        missing.append("ZKM_JOB_REGISTRY_ADDRESS")
    if missing:
        raise ConfigurationError(f"missing environment values: {', '.join(missing)}")
    return settings
