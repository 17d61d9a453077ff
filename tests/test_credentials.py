"""
Tests for token providers and token security helpers.

Tests cover:
- extract_access_token() - Claude Code credentials document
- ClaudeCodeTokenProvider - credentials file lookup
- ManualTokenProvider - save/get/delete, file permissions
- ChainedTokenProvider / token_source() - priority order
"""

import os
import stat
from unittest.mock import patch

import pytest

from quota_watch.config.credentials import (
    ChainedTokenProvider,
    ClaudeCodeTokenProvider,
    ManualTokenProvider,
    TokenSource,
    extract_access_token,
    token_source,
)
from quota_watch.config.security import ensure_private, mask_token, validate_oauth_token
from quota_watch.errors import TokenNotFoundError

VALID_TOKEN = "sk-ant-REDACTED"


@pytest.fixture(autouse=True)
def linux_platform():
    with patch("quota_watch.config.credentials.platform.system", return_value="Linux"):
        yield


@pytest.fixture
def manual(tmp_path):
    return ManualTokenProvider(tmp_path / "token")


class MissingProvider:
    def get_token(self):
        raise TokenNotFoundError()


class StaticProvider:
    def __init__(self, token):
        self.token = token

    def get_token(self):
        return self.token


# ═══════════════════════════════════════════════════════════════════════════════
# Claude Code Credentials
# ═══════════════════════════════════════════════════════════════════════════════


class TestExtractAccessToken:
    def test_valid(self, credentials_valid):
        assert extract_access_token(credentials_valid) == VALID_TOKEN

    def test_missing_token(self, credentials_missing_token):
        assert extract_access_token(credentials_missing_token) is None

    @pytest.mark.parametrize(
        "document",
        [{}, {"claudeAiOauth": None}, {"claudeAiOauth": "x"}, {"claudeAiOauth": {"accessToken": ""}}, []],
    )
    def test_malformed(self, document):
        assert extract_access_token(document) is None


class TestClaudeCodeTokenProvider:
    def test_reads_credentials_file(self, tmp_credentials_file):
        provider = ClaudeCodeTokenProvider(credentials_path=tmp_credentials_file)
        assert provider.get_token() == VALID_TOKEN

    def test_missing_file(self, tmp_path):
        provider = ClaudeCodeTokenProvider(credentials_path=tmp_path / "missing.json")
        with pytest.raises(TokenNotFoundError):
            provider.get_token()

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / ".credentials.json"
        path.write_text("{broken")
        with pytest.raises(TokenNotFoundError):
            ClaudeCodeTokenProvider(credentials_path=path).get_token()

    def test_macos_prefers_keychain(self, tmp_credentials_file, credentials_valid):
        keychain = {"claudeAiOauth": {"accessToken": "keychain-token-0123456789abcdef"}}
        with patch("quota_watch.config.credentials.platform.system", return_value="Darwin"):
            with patch(
                "quota_watch.config.credentials.get_macos_keychain_credentials",
                return_value=keychain,
            ):
                token = ClaudeCodeTokenProvider(credentials_path=tmp_credentials_file).get_token()

        assert token == "keychain-token-0123456789abcdef"

    def test_macos_falls_back_to_file(self, tmp_credentials_file):
        with patch("quota_watch.config.credentials.platform.system", return_value="Darwin"):
            with patch(
                "quota_watch.config.credentials.get_macos_keychain_credentials",
                return_value=None,
            ):
                token = ClaudeCodeTokenProvider(credentials_path=tmp_credentials_file).get_token()

        assert token == VALID_TOKEN


# ═══════════════════════════════════════════════════════════════════════════════
# Manual Token
# ═══════════════════════════════════════════════════════════════════════════════


class TestManualTokenProvider:
    """Tests for ManualTokenProvider."""

    def test_no_token(self, manual):
        assert not manual.has_token()
        with pytest.raises(TokenNotFoundError):
            manual.get_token()

    def test_save_and_get(self, manual):
        manual.save_token(f"  {VALID_TOKEN}\n")

        assert manual.get_token() == VALID_TOKEN
        assert manual.has_token()

    def test_saved_file_is_private(self, manual):
        manual.save_token(VALID_TOKEN)
        mode = manual.token_file.stat().st_mode
        assert not mode & (stat.S_IRWXG | stat.S_IRWXO)

    @pytest.mark.parametrize("token", ["", "short", "has spaces in the middle of it!"])
    def test_save_rejects_invalid(self, manual, token):
        with pytest.raises(ValueError):
            manual.save_token(token)
        assert not manual.token_file.exists()

    def test_insecure_permissions_fixed_on_read(self, manual):
        manual.token_file.write_text(VALID_TOKEN)
        os.chmod(manual.token_file, 0o644)

        assert manual.get_token() == VALID_TOKEN
        assert not manual.token_file.stat().st_mode & stat.S_IRWXO

    def test_empty_file(self, manual):
        manual.token_file.write_text("\n")
        with pytest.raises(TokenNotFoundError):
            manual.get_token()

    def test_delete(self, manual):
        manual.save_token(VALID_TOKEN)
        manual.delete_token()
        assert not manual.has_token()
        manual.delete_token()


# ═══════════════════════════════════════════════════════════════════════════════
# Provider Chain
# ═══════════════════════════════════════════════════════════════════════════════


class TestChainedTokenProvider:
    def test_first_provider_wins(self):
        chain = ChainedTokenProvider([StaticProvider("first"), StaticProvider("second")])
        assert chain.get_token() == "first"

    def test_falls_through(self):
        chain = ChainedTokenProvider([MissingProvider(), StaticProvider("second")])
        assert chain.get_token() == "second"

    def test_all_missing(self):
        chain = ChainedTokenProvider([MissingProvider(), MissingProvider()])
        with pytest.raises(TokenNotFoundError):
            chain.get_token()

    def test_claude_code_before_manual(self, tmp_credentials_file, manual):
        manual.save_token("manual-token-0123456789abcdefghij")
        chain = ChainedTokenProvider(
            [ClaudeCodeTokenProvider(credentials_path=tmp_credentials_file), manual]
        )
        assert chain.get_token() == VALID_TOKEN


class TestTokenSource:
    def test_claude_code(self):
        assert token_source(StaticProvider("a"), StaticProvider("b")) is TokenSource.CLAUDE_CODE

    def test_manual(self):
        assert token_source(MissingProvider(), StaticProvider("b")) is TokenSource.MANUAL

    def test_none(self):
        assert token_source(MissingProvider(), MissingProvider()) is TokenSource.NONE


# ═══════════════════════════════════════════════════════════════════════════════
# Security Helpers
# ═══════════════════════════════════════════════════════════════════════════════


class TestSecurity:
    def test_validate_token(self):
        assert validate_oauth_token(VALID_TOKEN) == (True, None)
        assert not validate_oauth_token("")[0]
        assert not validate_oauth_token("a" * 19)[0]
        assert not validate_oauth_token("a" * 20 + "!")[0]

    def test_mask_token(self):
        assert mask_token(VALID_TOKEN) == "sk-ant-o...6789"
        assert mask_token("short") == "*****"
        assert mask_token("") == "<empty>"

    def test_ensure_private(self, tmp_path):
        path = tmp_path / "secret"
        path.write_text("x")
        os.chmod(path, 0o644)

        assert ensure_private(path) is not None
        assert not path.stat().st_mode & (stat.S_IRWXG | stat.S_IRWXO)
        assert ensure_private(path) is None

    def test_ensure_private_missing_file(self, tmp_path):
        assert ensure_private(tmp_path / "missing") is None
