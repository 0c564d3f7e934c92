# =============================================================================
# Unit Tests — LLM Provider and Embedder Factories
# =============================================================================

from __future__ import annotations

from unittest.mock import patch

import pytest

from agromark.services import embedder, llm
from tests.conftest import make_llm, run


class TestLLMProviderFactory:
    """Tests for the LLM provider factory function."""

    def test_factory_raises_without_api_key(self):
        """Factory should raise ValueError when no API key is set."""
        # Reset the singleton
        original = llm._provider
        llm._provider = None

        try:
            with patch.object(
                llm.settings, "llm_provider", "anthropic"
            ), patch.object(
                llm.settings, "llm_api_key", None
            ), patch.object(
                llm.settings, "anthropic_api_key", ""
            ):
                with pytest.raises(ValueError, match="API key"):
                    llm.get_llm_provider()
        finally:
            # Restore singleton
            llm._provider = original

    def test_openai_compatible_raises_without_api_key(self):
        original = llm._provider
        llm._provider = None

        try:
            with patch.object(
                llm.settings, "llm_provider", "openai_compatible"
            ), patch.object(
                llm.settings, "llm_api_key", None
            ), patch.object(
                llm.settings, "openai_api_key", ""
            ):
                with pytest.raises(ValueError, match="API key"):
                    llm.get_llm_provider()
        finally:
            llm._provider = original


class TestAskLLM:

    def test_sends_single_user_message(self):
        provider = make_llm("  [SQL]\n")

        reply = run(llm.ask_llm(provider, "Quantos fornecedores existem?"))

        assert reply == "[SQL]"
        messages = provider.complete.call_args.kwargs["messages"]
        assert messages == [
            {"role": "user", "content": "Quantos fornecedores existem?"},
        ]

    def test_forwards_generation_options(self):
        provider = make_llm("ok")

        run(llm.ask_llm(
            provider, "Oi", system="Você é o Mark.", temperature=0.0, max_tokens=64,
        ))

        kwargs = provider.complete.call_args.kwargs
        assert kwargs["system"] == "Você é o Mark."
        assert kwargs["temperature"] == 0.0
        assert kwargs["max_tokens"] == 64


class TestEmbedderFactory:

    def test_raises_without_api_key(self):
        with patch.object(
            embedder.settings, "openai_api_key", ""
        ), patch.object(
            embedder.settings, "llm_api_key", None
        ):
            with pytest.raises(ValueError, match="API key"):
                embedder.OpenAIEmbedder()

    def test_empty_batch_makes_no_call(self):
        instance = embedder.OpenAIEmbedder(api_key="sk-test")
        assert instance.embed_batch([]) == []
