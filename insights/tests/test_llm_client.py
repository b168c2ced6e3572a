"""Tests for LLMClient provider abstraction."""

import logging
from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest

from insights.common.config import LLMConfig
from insights.common.llm_client import LLMClient, create_llm_client


class TestLLMClientInit:
    @pytest.mark.parametrize("provider", ["anthropic", "openai", "google"])
    def test_missing_key_logs_info(self, provider, caplog):
        with caplog.at_level(logging.INFO, logger="insights.common.llm_client"):
            client = LLMClient(provider=provider)
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_unsupported_provider_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="insights.common.llm_client"):
            client = LLMClient(provider="unsupported_xyz", api_key="k")
        assert not client.is_available
        assert "Unsupported" in caplog.text

    def test_missing_sdk_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="insights.common.llm_client"), \
             patch.object(LLMClient, "_connect", side_effect=ImportError("no module")):
            client = LLMClient(provider="anthropic", api_key="k")
        assert not client.is_available
        assert "SDK package not installed" in caplog.text

    def test_connect_failure_leaves_client_unavailable(self):
        with patch.object(LLMClient, "_connect", side_effect=RuntimeError("bad key")):
            client = LLMClient(provider="openai", api_key="k")
        assert not client.is_available


class TestLLMClientGenerate:
    def test_generate_raises_when_unavailable(self):
        client = LLMClient(provider="anthropic")
        with pytest.raises(RuntimeError, match="not available"):
            client.generate("test")

    def test_anthropic_dispatch(self):
        sdk = Mock()
        sdk.messages.create.return_value = SimpleNamespace(content=[SimpleNamespace(text="  hello \n")])
        with patch.object(LLMClient, "_connect", return_value=sdk):
            client = LLMClient(provider="anthropic", model="claude-sonnet-4-5", api_key="k")

        assert client.generate("prompt", system="be terse", max_tokens=42) == "hello"
        kwargs = sdk.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-sonnet-4-5"
        assert kwargs["max_tokens"] == 42
        assert kwargs["system"] == "be terse"
        assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]

    def test_openai_dispatch_adds_system_message(self):
        sdk = Mock()
        message = SimpleNamespace(content="answer")
        sdk.chat.completions.create.return_value = SimpleNamespace(choices=[SimpleNamespace(message=message)])
        with patch.object(LLMClient, "_connect", return_value=sdk):
            client = LLMClient(provider="openai", model="gpt-4o-mini", api_key="k")

        assert client.generate("prompt", system="sys") == "answer"
        messages = sdk.chat.completions.create.call_args.kwargs["messages"]
        assert messages[0] == {"role": "system", "content": "sys"}
        assert messages[1] == {"role": "user", "content": "prompt"}

    def test_provider_error_propagates(self):
        sdk = Mock()
        sdk.messages.create.side_effect = TimeoutError("slow")
        with patch.object(LLMClient, "_connect", return_value=sdk):
            client = LLMClient(provider="anthropic", api_key="k")
        with pytest.raises(TimeoutError):
            client.generate("prompt")


class TestCreateLLMClient:
    def test_uses_selected_provider_key(self):
        cfg = LLMConfig(provider="openai", openai_api_key="sk-o", openai_model="gpt-4o")
        with patch.object(LLMClient, "_connect", return_value=Mock()) as connect:
            client = create_llm_client(cfg)
        connect.assert_called_once_with("sk-o")
        assert client.provider == "openai"
        assert client.model == "gpt-4o"
        assert client.is_available

    def test_no_key_for_selected_provider(self):
        cfg = LLMConfig(provider="google", anthropic_api_key="sk-a")
        client = create_llm_client(cfg)
        assert not client.is_available
