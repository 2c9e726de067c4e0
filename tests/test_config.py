from __future__ import annotations

import pytest

from zkmarket.core.config import ARBITRUM_SEPOLIA_CHAIN_ID, Settings, get_settings, load_settings
from zkmarket.core.errors import ConfigurationError

TOKEN = "0x00000000000000000000000000000000000000c1"
REGISTRY = "0x00000000000000000000000000000000000000a1"


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults_target_arbitrum_sepolia_with_staking_disabled() -> None:
    settings = Settings()
    assert settings.chain_id == ARBITRUM_SEPOLIA_CHAIN_ID
    assert settings.staking_enabled is False
    assert settings.gas_margin_percent == 20


def test_method_id_and_selector_are_normalised() -> None:
    settings = Settings(method_id="ab" * 32, verifier_selector="c101b42b")
    assert settings.method_id == "0x" + "ab" * 32
    assert settings.method_id_bytes == bytes.fromhex("ab" * 32)
    assert settings.verifier_selector_bytes == bytes.fromhex("c101b42b")


def test_load_settings_requires_signing_credentials(monkeypatch) -> None:
    monkeypatch.setenv("ZKM_CREDIT_TOKEN_ADDRESS", TOKEN)
    monkeypatch.setenv("ZKM_JOB_REGISTRY_ADDRESS", REGISTRY)
    monkeypatch.delenv("ZKM_REQUESTER_PRIVATE_KEY", raising=False)
    monkeypatch.delenv("ZKM_PROVIDER_PRIVATE_KEY", raising=False)

    with pytest.raises(ConfigurationError) as excinfo:
        load_settings()
    assert "ZKM_REQUESTER_PRIVATE_KEY" in str(excinfo.value)
    assert "ZKM_PROVIDER_PRIVATE_KEY" in str(excinfo.value)


def test_load_settings_rejects_malformed_address(monkeypatch) -> None:
    monkeypatch.setenv("ZKM_JOB_REGISTRY_ADDRESS", "not-an-address")
    with pytest.raises(ConfigurationError):
        load_settings()


def test_load_settings_enables_staking_with_registry_address(monkeypatch) -> None:
    monkeypatch.setenv("ZKM_CREDIT_TOKEN_ADDRESS", TOKEN)
    monkeypatch.setenv("ZKM_JOB_REGISTRY_ADDRESS", REGISTRY)
    monkeypatch.setenv("ZKM_STAKE_REGISTRY_ADDRESS", "0x00000000000000000000000000000000000000b1")
    monkeypatch.setenv("ZKM_REQUESTER_PRIVATE_KEY", "0x" + "11" * 32)
    monkeypatch.setenv("ZKM_PROVIDER_PRIVATE_KEY", "0x" + "22" * 32)

    settings = load_settings()
    assert settings.staking_enabled is True
    assert settings.provider_private_key is not None
    assert settings.provider_private_key.get_secret_value() == "0x" + "22" * 32
