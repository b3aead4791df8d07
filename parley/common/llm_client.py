"""
Provider-agnostic LLM client for the Parley oracles.

Both oracles (speech act classification and batch summarization) talk to
the model through ``LLMClient.generate``. Anthropic, OpenAI and Google
Gemini are supported; SDKs are imported lazily so only the selected
provider's package needs to be installed.

A client without credentials is not an error: it reports
``is_available == False`` and the oracles degrade around it.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Any, Dict, Optional

from .config import LLMConfig

logger = logging.getLogger("parley.common.llm_client")

SUPPORTED_PROVIDERS = ("anthropic", "openai", "google")


class LLMClient:
    """Text generation across LLM providers."""

    def __init__(
        self,
        provider: str = "anthropic",
        model: str = "",
        anthropic_api_key: Optional[str] = None,
        openai_api_key: Optional[str] = None,
        google_api_key: Optional[str] = None,
    ) -> None:
        self.provider = (provider or "anthropic").lower()
        self.model = model
        self._client: Any = None
        self._google_models: Dict[str, Any] = {}

        if self.provider not in SUPPORTED_PROVIDERS:
            logger.warning("Unsupported LLM provider: %s", self.provider)
            return

        api_key = {
            "anthropic": anthropic_api_key,
            "openai": openai_api_key,
            "google": google_api_key,
        }[self.provider]
        if not api_key:
            logger.info("%s API key not provided, LLM client unavailable", self.provider)
            return

        connect = getattr(self, f"_connect_{self.provider}")
        try:
            self._client = connect(api_key)
        except ImportError:
            logger.warning("SDK for %s is not installed", self.provider)
        except Exception as e:
            logger.warning("Failed to initialize %s client: %s", self.provider, e)

    @classmethod
    def from_config(cls, config: LLMConfig) -> "LLMClient":
        """Create a client for the provider selected in ``config``."""
        return cls(
            provider=config.provider,
            model=config.model,
            anthropic_api_key=config.anthropic_api_key or None,
            openai_api_key=config.openai_api_key or None,
            google_api_key=config.google_api_key or None,
        )

    @property
    def is_available(self) -> bool:
        return self._client is not None

    # ------------------------------------------------------------------
    # Provider setup
    # ------------------------------------------------------------------

    @staticmethod
    def _connect_anthropic(api_key: str) -> Any:
        import anthropic

        return anthropic.Anthropic(api_key=api_key)

    @staticmethod
    def _connect_openai(api_key: str) -> Any:
        from openai import OpenAI

        return OpenAI(api_key=api_key)

    @staticmethod
    def _connect_google(api_key: str) -> Any:
        import google.generativeai as genai

        genai.configure(api_key=api_key)
        return genai  # module; models are built per system prompt

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        max_tokens: int = 1024,
        temperature: Optional[float] = None,
        timeout: float = 30.0,
    ) -> str:
        """
        Generate a completion for a single user prompt.

        Args:
            prompt: User message
            system: Optional system instruction
            max_tokens: Response token limit
            temperature: Sampling temperature (provider default when None)
            timeout: Request timeout in seconds

        Returns:
            Response text, stripped

        Raises:
            RuntimeError: if the client is not available
        """
        if not self.is_available:
            raise RuntimeError("LLM client is not available")

        generate = getattr(self, f"_generate_{self.provider}")
        return generate(prompt, system, max_tokens, temperature, timeout).strip()

    def _generate_anthropic(self, prompt, system, max_tokens, temperature, timeout) -> str:
        options: Dict[str, Any] = {}
        if system:
            options["system"] = system
        if temperature is not None:
            options["temperature"] = temperature
        response = self._client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            messages=[{"role": "user", "content": prompt}],
            timeout=timeout,
            **options,
        )
        return response.content[0].text

    def _generate_openai(self, prompt, system, max_tokens, temperature, timeout) -> str:
        messages = [{"role": "system", "content": system}] if system else []
        messages.append({"role": "user", "content": prompt})
        options: Dict[str, Any] = {}
        if temperature is not None:
            options["temperature"] = temperature
        response = self._client.chat.completions.create(
            model=self.model,
            max_tokens=max_tokens,
            messages=messages,
            timeout=timeout,
            **options,
        )
        return response.choices[0].message.content or ""

    def _generate_google(self, prompt, system, max_tokens, temperature, timeout) -> str:
        generation_config: Dict[str, Any] = {"max_output_tokens": max_tokens}
        if temperature is not None:
            generation_config["temperature"] = temperature
        response = self._google_model(system).generate_content(
            prompt,
            generation_config=generation_config,
            request_options={"timeout": timeout},
        )
        return response.text

    def _google_model(self, system: Optional[str]) -> Any:
        """Gemini takes the system instruction at model construction; cache per instruction"""
        key = hashlib.md5((system or "").encode()).hexdigest()
        if key not in self._google_models:
            options = {"model_name": self.model}
            if system:
                options["system_instruction"] = system
            self._google_models[key] = self._client.GenerativeModel(**options)
        return self._google_models[key]
