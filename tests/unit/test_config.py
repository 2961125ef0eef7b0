"""
Unit tests for obelysk_privacy.config — network table and environment overrides.
"""

import pytest

from obelysk_privacy.config import (
    DEFAULT_COORDINATOR_TIMEOUT,
    DEFAULT_EVENT_CHUNK_SIZE,
    NETWORK_CONFIG,
    load_network_config,
)
from obelysk_privacy.core.errors import ValidationError

ENV_VARS = (
    "OBELYSK_NETWORK",
    "STARKNET_RPC_URL",
    "PRIVACY_POOLS_ADDRESS",
    "COORDINATOR_URL",
    "COORDINATOR_TIMEOUT",
    "EVENT_CHUNK_SIZE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults_to_sepolia():
    config = load_network_config()
    assert config == NETWORK_CONFIG["sepolia"]
    assert config.coordinator_timeout == DEFAULT_COORDINATOR_TIMEOUT
    assert config.event_chunk_size == DEFAULT_EVENT_CHUNK_SIZE
    assert config.is_deployed


def test_explicit_network_wins_over_env(monkeypatch):
    monkeypatch.setenv("OBELYSK_NETWORK", "mainnet")
    assert load_network_config("devnet").name == "devnet"


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("OBELYSK_NETWORK", "devnet")
    monkeypatch.setenv("STARKNET_RPC_URL", "http://node:6060")
    monkeypatch.setenv("PRIVACY_POOLS_ADDRESS", "0xabc")
    monkeypatch.setenv("COORDINATOR_URL", "http://coord:8080/")
    monkeypatch.setenv("COORDINATOR_TIMEOUT", "2.5")
    monkeypatch.setenv("EVENT_CHUNK_SIZE", "50")
    config = load_network_config()
    assert config.name == "devnet"
    assert config.rpc_url == "http://node:6060"
    assert config.require_privacy_pools() == "0xabc"
    assert config.coordinator_url == "http://coord:8080"
    assert config.coordinator_timeout == 2.5
    assert config.event_chunk_size == 50


def test_unknown_network():
    with pytest.raises(ValidationError, match="Unknown network"):
        load_network_config("goerli")


def test_bad_numeric_override(monkeypatch):
    monkeypatch.setenv("EVENT_CHUNK_SIZE", "lots")
    with pytest.raises(ValidationError):
        load_network_config()


def test_undeployed_contract():
    config = load_network_config("mainnet")
    assert not config.is_deployed
    with pytest.raises(ValidationError, match="not deployed on mainnet"):
        config.require_privacy_pools()
