"""
Provider-agnostic LLM client for the insights engine.

Criteria generation, topic expansion and interview synthesis all go through
this one text-generation interface. A client without credentials is simply
unavailable; callers switch to their deterministic fallback.
"""

import logging
from typing import Any, Dict, List, Optional

from .config import LLMConfig

logger = logging.getLogger("insights.common.llm_client")

SUPPORTED_PROVIDERS = ("anthropic", "openai", "google")


class LLMClient:
    """
    One synchronous generate() call over Anthropic, OpenAI or Gemini.

    Usage:
        client = LLMClient(provider="openai", model="gpt-4o-mini", api_key=key)
        if client.is_available:
            text = client.generate("Summarize ...", max_tokens=300)
    """

    def __init__(self, provider: str = "anthropic", model: str = "", api_key: Optional[str] = None):
        self.provider = (provider or "anthropic").lower()
        self.model = model
        self._sdk: Any = None
        self._gemini_models: Dict[str, Any] = {}

        if self.provider not in SUPPORTED_PROVIDERS:
            logger.warning("Unsupported LLM provider: %s", self.provider)
            return
        if not api_key:
            logger.info("%s API key not provided, LLM client unavailable", self.provider)
            return

        try:
            self._sdk = self._connect(api_key)
        except ImportError:
            logger.warning("%s SDK package not installed", self.provider)
        except Exception as e:
            logger.warning("Could not set up %s client: %s", self.provider, e)

    def _connect(self, api_key: str) -> Any:
        """Import the provider SDK lazily and return its client handle."""
        if self.provider == "openai":
            from openai import OpenAI
            return OpenAI(api_key=api_key)
        if self.provider == "google":
            import google.generativeai as genai
            genai.configure(api_key=api_key)
            return genai
        import anthropic
        return anthropic.Anthropic(api_key=api_key)

    @property
    def is_available(self) -> bool:
        return self._sdk is not None

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        max_tokens: int = 512,
        timeout: float = 30.0,
    ) -> str:
        """
        Return the model's text reply, whitespace-stripped.

        Raises:
            RuntimeError: client unavailable
            Exception: provider and network errors propagate unchanged
        """
        if not self.is_available:
            raise RuntimeError("LLM client is not available")
        call = {
            "anthropic": self._anthropic,
            "openai": self._openai,
            "google": self._gemini,
        }[self.provider]
        return (call(prompt, system, max_tokens, timeout) or "").strip()

    # ---------- provider calls ---------- #

    def _anthropic(self, prompt: str, system: Optional[str], max_tokens: int, timeout: float) -> str:
        extra = {"system": system} if system else {}
        reply = self._sdk.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            messages=[{"role": "user", "content": prompt}],
            timeout=timeout,
            **extra,
        )
        return reply.content[0].text

    def _openai(self, prompt: str, system: Optional[str], max_tokens: int, timeout: float) -> str:
        chat: List[Dict[str, str]] = [{"role": "system", "content": system}] if system else []
        chat.append({"role": "user", "content": prompt})
        reply = self._sdk.chat.completions.create(
            model=self.model,
            max_tokens=max_tokens,
            messages=chat,
            timeout=timeout,
        )
        return reply.choices[0].message.content

    def _gemini(self, prompt: str, system: Optional[str], max_tokens: int, timeout: float) -> str:
        # GenerativeModel binds the system instruction, so keep one per instruction
        key = system or ""
        model = self._gemini_models.get(key)
        if model is None:
            options = {"model_name": self.model}
            if system:
                options["system_instruction"] = system
            model = self._gemini_models[key] = self._sdk.GenerativeModel(**options)
        reply = model.generate_content(
            prompt,
            generation_config={"max_output_tokens": max_tokens},
            request_options={"timeout": timeout},
        )
        return reply.text


def create_llm_client(config: LLMConfig) -> LLMClient:
    """Build the client for the configured provider."""
    provider = (config.provider or "").lower()
    keys = {
        "anthropic": config.anthropic_api_key,
        "openai": config.openai_api_key,
        "google": config.google_api_key,
    }
    return LLMClient(provider=config.provider, model=config.model, api_key=keys.get(provider))
