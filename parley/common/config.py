"""
Configuration Management for Parley

Loads configuration from ~/.parley/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import List

logger = logging.getLogger("parley.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".parley"
CONFIG_PATH = CONFIG_DIR / "config.json"


@dataclass
class LLMConfig:
    """Shared LLM provider configuration for the classification and summarization oracles"""
    provider: str = "anthropic"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    google_api_key: str = ""
    google_model: str = "gemini-2.0-flash-exp"
    max_tokens: int = 1024
    timeout: float = 30.0

    @property
    def api_key(self) -> str:
        """API key for the selected provider"""
        return {
            "anthropic": self.anthropic_api_key,
            "openai": self.openai_api_key,
            "google": self.google_api_key,
        }.get(self.provider, "")

    @property
    def model(self) -> str:
        """Model name for the selected provider"""
        return {
            "anthropic": self.anthropic_model,
            "openai": self.openai_model,
            "google": self.google_model,
        }.get(self.provider, "")


@dataclass
class MemoryConfig:
    """Hybrid context assembly configuration"""
    recent_window_size: int = 10
    summary_batch_size: int = 5
    max_tokens: int = 46000
    skill_keywords: List[str] = field(default_factory=list)

    def to_assembler_config(self):
        """Build the immutable per-instance assembler settings"""
        from ..memory.assembler import AssemblerConfig

        return AssemblerConfig(
            recent_window_size=self.recent_window_size,
            summary_batch_size=self.summary_batch_size,
            max_tokens=self.max_tokens,
            skill_keywords=tuple(self.skill_keywords),
        )


@dataclass
class PrivacyConfig:
    """Speech act retrieval settings used when preparing context"""
    min_speech_act_confidence: float = 0.0


@dataclass
class ParleyConfig:
    """Main Parley configuration"""
    llm: LLMConfig = field(default_factory=LLMConfig)
    memory: MemoryConfig = field(default_factory=MemoryConfig)
    privacy: PrivacyConfig = field(default_factory=PrivacyConfig)
    assistant_email: str = ""  # ignored when checking who may see what
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    llm_data = data.get("llm", {})
    return LLMConfig(
        provider=llm_data.get("provider", "anthropic"),
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        anthropic_model=llm_data.get("anthropic_model", "claude-sonnet-4-20250514"),
        openai_api_key=llm_data.get("openai_api_key", ""),
        openai_model=llm_data.get("openai_model", "gpt-4o-mini"),
        google_api_key=llm_data.get("google_api_key", ""),
        google_model=llm_data.get("google_model", "gemini-2.0-flash-exp"),
        max_tokens=llm_data.get("max_tokens", 1024),
        timeout=llm_data.get("timeout", 30.0),
    )


def _parse_memory_config(data: dict) -> MemoryConfig:
    """Parse memory section from config dict"""
    memory_data = data.get("memory", {})
    return MemoryConfig(
        recent_window_size=memory_data.get("recent_window_size", 10),
        summary_batch_size=memory_data.get("summary_batch_size", 5),
        max_tokens=memory_data.get("max_tokens", 46000),
        skill_keywords=list(memory_data.get("skill_keywords", [])),
    )


def _parse_privacy_config(data: dict) -> PrivacyConfig:
    """Parse privacy section from config dict"""
    privacy_data = data.get("privacy", {})
    return PrivacyConfig(
        min_speech_act_confidence=privacy_data.get("min_speech_act_confidence", 0.0),
    )


def load_config() -> ParleyConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.parley/config.json)
    3. Default values
    """
    config = ParleyConfig()

    # Load from config file if exists
    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.llm = _parse_llm_config(data)
            config.memory = _parse_memory_config(data)
            config.privacy = _parse_privacy_config(data)
            config.assistant_email = data.get("assistant_email", "")
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file: %s", e)

    # Memory overrides
    if os.getenv("PARLEY_RECENT_WINDOW"):
        config.memory.recent_window_size = int(os.getenv("PARLEY_RECENT_WINDOW"))
    if os.getenv("PARLEY_SUMMARY_BATCH"):
        config.memory.summary_batch_size = int(os.getenv("PARLEY_SUMMARY_BATCH"))
    if os.getenv("PARLEY_MAX_TOKENS"):
        config.memory.max_tokens = int(os.getenv("PARLEY_MAX_TOKENS"))
    if os.getenv("PARLEY_SKILL_KEYWORDS"):
        config.memory.skill_keywords = [
            kw.strip() for kw in os.getenv("PARLEY_SKILL_KEYWORDS").split(",") if kw.strip()
        ]
    if os.getenv("PARLEY_ASSISTANT_EMAIL"):
        config.assistant_email = os.getenv("PARLEY_ASSISTANT_EMAIL")

    # LLM env var overrides (track env-sourced keys)
    _env_llm_map = {
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "ANTHROPIC_MODEL": "anthropic_model",
        "OPENAI_API_KEY": "openai_api_key",
        "OPENAI_MODEL": "openai_model",
        "GOOGLE_API_KEY": "google_api_key",
        "GEMINI_API_KEY": "google_api_key",
        "GOOGLE_MODEL": "google_model",
        "PARLEY_LLM_PROVIDER": "provider",
    }
    for env_var, attr in _env_llm_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.llm, attr, val)
            config._env_sourced_keys.add(attr)

    return config


def save_config(config: ParleyConfig) -> None:
    """Save configuration to file.

    API key fields that were sourced from environment variables are written
    as empty strings so that secrets are not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    _llm_api_key_fields = {
        "anthropic_api_key", "openai_api_key", "google_api_key",
    }
    llm_section = {
        "provider": config.llm.provider,
        "anthropic_api_key": config.llm.anthropic_api_key,
        "anthropic_model": config.llm.anthropic_model,
        "openai_api_key": config.llm.openai_api_key,
        "openai_model": config.llm.openai_model,
        "google_api_key": config.llm.google_api_key,
        "google_model": config.llm.google_model,
        "max_tokens": config.llm.max_tokens,
        "timeout": config.llm.timeout,
    }
    for key in _llm_api_key_fields:
        if key in env_sourced:
            llm_section[key] = ""

    data = {
        "llm": llm_section,
        "memory": {
            "recent_window_size": config.memory.recent_window_size,
            "summary_batch_size": config.memory.summary_batch_size,
            "max_tokens": config.memory.max_tokens,
            "skill_keywords": list(config.memory.skill_keywords),
        },
        "privacy": {
            "min_speech_act_confidence": config.privacy.min_speech_act_confidence,
        },
        "assistant_email": config.assistant_email,
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)
