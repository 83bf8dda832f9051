"""
Provider-agnostic LLM client for Policy QA.

Supports Anthropic, OpenAI, and Google Gemini with a shared chat interface.
Messages use the OpenAI shape: {"role": "system"|"user"|"assistant", "content": str}.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger("policyqa.common.llm_client")

ChatMessage = Dict[str, str]


def split_system(messages: List[ChatMessage]) -> Tuple[Optional[str], List[ChatMessage]]:
    """Separate system messages from the conversational turns.

    Anthropic and Gemini take the system instruction as a separate argument.
    Multiple system messages are joined with blank lines.
    """
    system_parts = [m["content"] for m in messages if m.get("role") == "system"]
    turns = [m for m in messages if m.get("role") != "system"]
    system = "\n\n".join(system_parts) if system_parts else None
    return system, turns


class LLMClient:
    """Unified chat completion client across LLM providers."""

    def __init__(
        self,
        provider: str = "openai",
        model: str = "",
        anthropic_api_key: Optional[str] = None,
        openai_api_key: Optional[str] = None,
        google_api_key: Optional[str] = None,
    ) -> None:
        self.provider = (provider or "openai").lower()
        self.model = model
        self._client = None
        self._google_models: Dict[str, object] = {}

        api_keys = {
            "anthropic": anthropic_api_key,
            "openai": openai_api_key,
            "google": google_api_key,
        }
        if self.provider not in api_keys:
            logger.warning("Unsupported LLM provider: %s", self.provider)
            return

        api_key = api_keys[self.provider]
        if not api_key:
            logger.info("%s API key not provided, LLM client unavailable", self.provider)
            return

        try:
            self._client = self._connect(api_key)
        except ImportError as e:
            logger.warning("%s SDK not installed: %s", self.provider, e)
        except Exception as e:
            logger.warning("Failed to initialize %s client: %s", self.provider, e)

    def _connect(self, api_key: str):
        """Create the SDK handle for the selected provider."""
        if self.provider == "anthropic":
            import anthropic

            return anthropic.Anthropic(api_key=api_key)

        if self.provider == "openai":
            from openai import OpenAI

            return OpenAI(api_key=api_key)

        import google.generativeai as genai

        genai.configure(api_key=api_key)
        return genai  # module handle; models are built per system prompt

    @classmethod
    def from_config(cls, llm_config) -> "LLMClient":
        """Build a client for the provider selected in an LLMConfig."""
        return cls(
            provider=llm_config.provider,
            model=llm_config.model,
            anthropic_api_key=llm_config.anthropic_api_key or None,
            openai_api_key=llm_config.openai_api_key or None,
            google_api_key=llm_config.google_api_key or None,
        )

    @property
    def is_available(self) -> bool:
        return self._client is not None

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        max_tokens: int = 512,
        temperature: float = 0.1,
        timeout: float = 30.0,
    ) -> str:
        """Single-turn convenience wrapper around chat()."""
        messages: List[ChatMessage] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return self.chat(
            messages,
            max_tokens=max_tokens,
            temperature=temperature,
            timeout=timeout,
        )

    def chat(
        self,
        messages: List[ChatMessage],
        *,
        max_tokens: int = 1024,
        temperature: float = 0.1,
        timeout: float = 60.0,
    ) -> str:
        """Run a chat completion and return the top completion's text."""
        if not self.is_available:
            raise RuntimeError("LLM client is not available")

        handlers = {
            "anthropic": self._chat_anthropic,
            "openai": self._chat_openai,
            "google": self._chat_google,
        }
        handler = handlers.get(self.provider)
        if handler is None:
            raise RuntimeError(f"Unsupported LLM provider: {self.provider}")
        return handler(messages, max_tokens, temperature, timeout).strip()

    def _chat_anthropic(self, messages, max_tokens, temperature, timeout) -> str:
        system, turns = split_system(messages)
        params = dict(
            model=self.model,
            messages=turns,
            max_tokens=max_tokens,
            temperature=temperature,
            timeout=timeout,
        )
        if system:
            params["system"] = system
        reply = self._client.messages.create(**params)
        return reply.content[0].text

    def _chat_openai(self, messages, max_tokens, temperature, timeout) -> str:
        reply = self._client.chat.completions.create(
            model=self.model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
            timeout=timeout,
        )
        return reply.choices[0].message.content or ""

    def _gemini_model(self, system: Optional[str]):
        # Gemini binds the system instruction at model construction
        digest = hashlib.md5((system or "").encode()).hexdigest()
        model = self._google_models.get(digest)
        if model is None:
            options = {"model_name": self.model}
            if system:
                options["system_instruction"] = system
            model = self._client.GenerativeModel(**options)
            self._google_models[digest] = model
        return model

    def _chat_google(self, messages, max_tokens, temperature, timeout) -> str:
        system, turns = split_system(messages)
        contents = []
        for turn in turns:
            role = "model" if turn["role"] == "assistant" else "user"
            contents.append({"role": role, "parts": [turn["content"]]})
        reply = self._gemini_model(system).generate_content(
            contents,
            generation_config={"max_output_tokens": max_tokens, "temperature": temperature},
            request_options={"timeout": timeout},
        )
        return reply.text
