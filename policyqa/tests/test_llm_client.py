"""Tests for LLMClient provider abstraction."""

import pytest
from unittest.mock import Mock, MagicMock

from policyqa.common.llm_client import LLMClient, split_system


class TestSplitSystem:
    def test_separates_system_messages(self):
        system, turns = split_system([
            {"role": "system", "content": "rules"},
            {"role": "user", "content": "q1"},
            {"role": "assistant", "content": "a1"},
            {"role": "user", "content": "q2"},
        ])
        assert system == "rules"
        assert [t["role"] for t in turns] == ["user", "assistant", "user"]

    def test_no_system_message(self):
        system, turns = split_system([{"role": "user", "content": "q"}])
        assert system is None
        assert len(turns) == 1


class TestLLMClientInit:
    def test_missing_openai_key_logs_info(self, caplog):
        import logging
        with caplog.at_level(logging.INFO, logger="policyqa.common.llm_client"):
            client = LLMClient(provider="openai")
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_missing_anthropic_key_logs_info(self, caplog):
        import logging
        with caplog.at_level(logging.INFO, logger="policyqa.common.llm_client"):
            client = LLMClient(provider="anthropic")
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_missing_google_key_logs_info(self, caplog):
        import logging
        with caplog.at_level(logging.INFO, logger="policyqa.common.llm_client"):
            client = LLMClient(provider="google")
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_unsupported_provider_logs_warning(self, caplog):
        import logging
        with caplog.at_level(logging.WARNING, logger="policyqa.common.llm_client"):
            client = LLMClient(provider="unsupported_xyz")
        assert not client.is_available
        assert "Unsupported" in caplog.text

    def test_from_config_uses_active_model(self):
        from policyqa.common.config import LLMConfig
        client = LLMClient.from_config(LLMConfig(provider="openai"))
        assert client.provider == "openai"
        assert client.model == "gpt-4o-mini"


class TestLLMClientChat:
    def test_chat_raises_when_unavailable(self):
        client = LLMClient(provider="openai")
        with pytest.raises(RuntimeError, match="not available"):
            client.chat([{"role": "user", "content": "hi"}])

    def test_openai_chat_passes_messages(self):
        client = LLMClient(provider="openai", model="gpt-4o-mini")
        client._client = MagicMock()
        response = MagicMock()
        response.choices[0].message.content = "  The answer.  "
        client._client.chat.completions.create.return_value = response

        messages = [
            {"role": "system", "content": "ctx"},
            {"role": "user", "content": "q"},
        ]
        result = client.chat(messages, temperature=0.1, timeout=5.0)

        assert result == "The answer."
        kwargs = client._client.chat.completions.create.call_args.kwargs
        assert kwargs["messages"] == messages
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["temperature"] == 0.1
        assert kwargs["timeout"] == 5.0

    def test_openai_none_content_becomes_empty(self):
        client = LLMClient(provider="openai", model="gpt-4o-mini")
        client._client = MagicMock()
        response = MagicMock()
        response.choices[0].message.content = None
        client._client.chat.completions.create.return_value = response

        assert client.chat([{"role": "user", "content": "q"}]) == ""

    def test_anthropic_chat_moves_system_to_kwarg(self):
        client = LLMClient(provider="anthropic", model="claude-test")
        client._client = Mock()
        block = Mock()
        block.text = "answer"
        client._client.messages.create.return_value = Mock(content=[block])

        client.chat([
            {"role": "system", "content": "ctx"},
            {"role": "user", "content": "q"},
        ])

        kwargs = client._client.messages.create.call_args.kwargs
        assert kwargs["system"] == "ctx"
        assert kwargs["messages"] == [{"role": "user", "content": "q"}]

    def test_anthropic_without_system(self):
        client = LLMClient(provider="anthropic", model="claude-test")
        client._client = Mock()
        block = Mock()
        block.text = "answer"
        client._client.messages.create.return_value = Mock(content=[block])

        client.generate("q")

        kwargs = client._client.messages.create.call_args.kwargs
        assert "system" not in kwargs

    def test_google_chat_maps_roles(self):
        client = LLMClient(provider="google", model="gemini-test")
        client._client = Mock()
        client._google_models = {}
        model = Mock()
        model.generate_content.return_value = Mock(text="answer ")
        client._client.GenerativeModel.return_value = model

        result = client.chat([
            {"role": "system", "content": "ctx"},
            {"role": "user", "content": "q1"},
            {"role": "assistant", "content": "a1"},
            {"role": "user", "content": "q2"},
        ])

        assert result == "answer"
        client._client.GenerativeModel.assert_called_once_with(
            model_name="gemini-test", system_instruction="ctx"
        )
        contents = model.generate_content.call_args.args[0]
        assert [c["role"] for c in contents] == ["user", "model", "user"]

    def test_google_model_cached_per_system_prompt(self):
        client = LLMClient(provider="google", model="gemini-test")
        client._client = Mock()
        client._google_models = {}
        model = Mock()
        model.generate_content.return_value = Mock(text="ok")
        client._client.GenerativeModel.return_value = model

        client.generate("q1", system="same")
        client.generate("q2", system="same")

        assert client._client.GenerativeModel.call_count == 1
