"""Tests for signer auto-detection and config resolution."""

from __future__ import annotations

import json

import pytest

from x402_requests import config
from x402_requests.budget import BudgetPolicy
from x402_requests.exceptions import NoSignerError
from x402_requests.signers import auto_detect_signer
from x402_requests.signers.local import LocalSigner
from x402_requests.signers.remote import RemoteSigner

TEST_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
REMOTE_ADDRESS = "0x857b06519E91e3A54538791bDbb0E22373e36b66"

ENV_VARS = ["X402_PRIVATE_KEY", "X402_SIGNER_URL", "X402_SIGNER_ADDRESS", "X402_SIGNER_TOKEN"]


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    monkeypatch.setattr(config, "CONFIG_PATH", path)
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    return path


class TestAutoDetectSigner:
    def test_nothing_configured(self, config_path):
        with pytest.raises(NoSignerError):
            auto_detect_signer()

    def test_private_key_env(self, config_path, monkeypatch):
        monkeypatch.setenv("X402_PRIVATE_KEY", TEST_KEY)
        signer = auto_detect_signer()
        assert isinstance(signer, LocalSigner)
        assert signer.address == TEST_ADDRESS

    def test_remote_env(self, config_path, monkeypatch):
        monkeypatch.setenv("X402_SIGNER_URL", "https://signer.internal")
        monkeypatch.setenv("X402_SIGNER_ADDRESS", REMOTE_ADDRESS)
        monkeypatch.setenv("X402_SIGNER_TOKEN", "secret")
        signer = auto_detect_signer()
        assert isinstance(signer, RemoteSigner)
        assert signer.address == REMOTE_ADDRESS
        assert signer._api_token == "secret"

    def test_remote_needs_address(self, config_path, monkeypatch):
        monkeypatch.setenv("X402_SIGNER_URL", "https://signer.internal")
        with pytest.raises(NoSignerError):
            auto_detect_signer()

    def test_local_key_takes_priority(self, config_path, monkeypatch):
        monkeypatch.setenv("X402_PRIVATE_KEY", TEST_KEY)
        monkeypatch.setenv("X402_SIGNER_URL", "https://signer.internal")
        monkeypatch.setenv("X402_SIGNER_ADDRESS", REMOTE_ADDRESS)
        assert isinstance(auto_detect_signer(), LocalSigner)

    def test_placeholder_env_ignored(self, config_path, monkeypatch):
        monkeypatch.setenv("X402_PRIVATE_KEY", "${X402_PRIVATE_KEY}")
        with pytest.raises(NoSignerError):
            auto_detect_signer()

    def test_config_file(self, config_path):
        config_path.write_text(json.dumps({"signer": {"privateKey": TEST_KEY}}))
        assert auto_detect_signer().address == TEST_ADDRESS

    def test_config_type_preference(self, config_path, monkeypatch):
        monkeypatch.setenv("X402_PRIVATE_KEY", TEST_KEY)
        config_path.write_text(
            json.dumps(
                {
                    "signer": {
                        "type": "remote",
                        "url": "https://signer.internal",
                        "address": REMOTE_ADDRESS,
                    }
                }
            )
        )
        assert isinstance(auto_detect_signer(), RemoteSigner)

    def test_env_overrides_config(self, config_path, monkeypatch):
        monkeypatch.setenv("X402_SIGNER_URL", "https://env.signer")
        config_path.write_text(
            json.dumps({"signer": {"url": "https://file.signer", "address": REMOTE_ADDRESS}})
        )
        signer = auto_detect_signer()
        assert signer._base_url == "https://env.signer"


class TestConfig:
    def test_missing_file_is_empty(self, config_path):
        assert config.load_config() == {}

    def test_invalid_json_is_empty(self, config_path):
        config_path.write_text("{not json")
        assert config.load_config() == {}

    def test_non_object_is_empty(self, config_path):
        config_path.write_text("[1, 2]")
        assert config.load_config() == {}

    def test_budget_section(self, config_path):
        config_path.write_text(json.dumps({"budget": {"maxPerRequest": 5, "dailyBudget": 8}}))
        policy = BudgetPolicy.from_config(config.load_config().get("budget", {}))
        assert policy.max_per_request == 5
        assert policy.daily_budget == 8

    def test_resolve_setting_skips_placeholders(self, monkeypatch):
        monkeypatch.setenv("X402_TEST_SETTING", "${X402_TEST_SETTING}")
        assert config.resolve_setting("X402_TEST_SETTING", "k", {"k": "from-file"}) == "from-file"
        assert config.resolve_setting("X402_TEST_SETTING", "k", {"k": "${K}"}) == ""
