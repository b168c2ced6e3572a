"""
Configuration Management for Expert Insights

Loads configuration from ~/.expert-insights/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import asdict, dataclass, field, fields

logger = logging.getLogger("insights.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".expert-insights"
CONFIG_PATH = CONFIG_DIR / "config.json"

VARIANT_POLICIES = ("primary", "first_nonempty")
COMPANY_VARIANT_POLICIES = ("keep", "collapse")


@dataclass
class StoreConfig:
    """Supabase connection settings for the two record stores"""
    interviews_url: str = ""
    interviews_key: str = ""
    experts_url: str = ""
    experts_key: str = ""
    timeout: float = 30.0

    @property
    def interviews_configured(self) -> bool:
        return bool(self.interviews_url and self.interviews_key)

    @property
    def experts_configured(self) -> bool:
        return bool(self.experts_url and self.experts_key)


@dataclass
class LLMConfig:
    """LLM provider configuration shared by extractor, expander and synthesizer"""
    provider: str = "anthropic"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-5"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    google_api_key: str = ""
    google_model: str = "gemini-2.0-flash"

    @property
    def model(self) -> str:
        return {
            "anthropic": self.anthropic_model,
            "openai": self.openai_model,
            "google": self.google_model,
        }.get((self.provider or "").strip().lower(), "")


@dataclass
class RetrieverConfig:
    """Retrieval and ranking policy"""
    variant_policy: str = "primary"  # "primary" or "first_nonempty"
    company_variant_policy: str = "keep"  # "keep" or "collapse"
    include_profile_text: bool = False
    expert_limit: int = 10
    interview_limit: int = 20
    synthesis_max_records: int = 20
    ai_topic_expansion: bool = False


@dataclass
class InsightsConfig:
    """Main configuration"""
    stores: StoreConfig = field(default_factory=StoreConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    retriever: RetrieverConfig = field(default_factory=RetrieverConfig)
    _env_sourced_keys: set = field(default_factory=set, repr=False)


SECTIONS = {
    "stores": StoreConfig,
    "llm": LLMConfig,
    "retriever": RetrieverConfig,
}

# Never persisted when they came from the environment
SECRET_FIELDS = {
    "stores.interviews_key",
    "stores.experts_key",
    "llm.anthropic_api_key",
    "llm.openai_api_key",
    "llm.google_api_key",
}

# env var -> (section, field); later entries win when both are set
ENV_OVERRIDES = {
    "SUPABASE_INTERVIEWS_URL": ("stores", "interviews_url"),
    "SUPABASE_INTERVIEWS_SERVICE_ROLE_KEY": ("stores", "interviews_key"),
    "SUPABASE_EXPERTS_URL": ("stores", "experts_url"),
    "SUPABASE_EXPERTS_SERVICE_ROLE_KEY": ("stores", "experts_key"),
    "INSIGHTS_STORE_TIMEOUT": ("stores", "timeout"),
    "INSIGHTS_LLM_PROVIDER": ("llm", "provider"),
    "ANTHROPIC_API_KEY": ("llm", "anthropic_api_key"),
    "ANTHROPIC_MODEL": ("llm", "anthropic_model"),
    "OPENAI_API_KEY": ("llm", "openai_api_key"),
    "OPENAI_MODEL": ("llm", "openai_model"),
    "GOOGLE_API_KEY": ("llm", "google_api_key"),
    "GEMINI_API_KEY": ("llm", "google_api_key"),
    "GOOGLE_MODEL": ("llm", "google_model"),
    "INSIGHTS_VARIANT_POLICY": ("retriever", "variant_policy"),
    "INSIGHTS_COMPANY_VARIANT_POLICY": ("retriever", "company_variant_policy"),
    "INSIGHTS_TOPIC_EXPANSION": ("retriever", "ai_topic_expansion"),
}


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes", "on")


def _coerce(value, target: type):
    """Convert a file or env value to the dataclass field's type."""
    if target is bool:
        return _parse_bool(value)
    if target in (int, float):
        return target(value)
    return str(value)


def _field_types(section_cls) -> dict:
    return {f.name: f.type for f in fields(section_cls)}


def _parse_section(data: dict, name: str):
    """Build one config section from its dict, skipping unknown or malformed keys."""
    section_cls = SECTIONS[name]
    types = _field_types(section_cls)
    values = {}
    for key, raw in (data.get(name) or {}).items():
        if key not in types:
            logger.warning("Ignoring unknown config key %s.%s", name, key)
            continue
        try:
            values[key] = _coerce(raw, types[key])
        except (TypeError, ValueError):
            logger.warning("Invalid value for %s.%s: %r", name, key, raw)
    return section_cls(**values)


def _check_policies(retriever: RetrieverConfig) -> None:
    """
    Unknown policy names are replaced by the defaults so a typo never
    changes retrieval semantics silently.
    """
    if retriever.variant_policy not in VARIANT_POLICIES:
        logger.warning("Unknown variant_policy %r, using 'primary'", retriever.variant_policy)
        retriever.variant_policy = "primary"
    if retriever.company_variant_policy not in COMPANY_VARIANT_POLICIES:
        logger.warning("Unknown company_variant_policy %r, using 'keep'", retriever.company_variant_policy)
        retriever.company_variant_policy = "keep"


def load_config() -> InsightsConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.expert-insights/config.json)
    3. Default values
    """
    config = InsightsConfig()

    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)
            for name in SECTIONS:
                setattr(config, name, _parse_section(data, name))
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file: %s", e)

    for env_var, (name, attr) in ENV_OVERRIDES.items():
        val = os.getenv(env_var)
        if not val:
            continue
        section = getattr(config, name)
        try:
            setattr(section, attr, _coerce(val, _field_types(type(section))[attr]))
        except ValueError:
            logger.warning("Ignoring invalid %s=%r", env_var, val)
            continue
        config._env_sourced_keys.add(f"{name}.{attr}")

    config.llm.provider = (config.llm.provider or "anthropic").strip().lower()
    _check_policies(config.retriever)
    return config


def save_config(config: InsightsConfig) -> Path:
    """Save configuration to file and return its path.

    Secret fields that were sourced from environment variables are written
    as empty strings so that secrets are not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())
    data = {}
    for name in SECTIONS:
        section = asdict(getattr(config, name))
        for key in section:
            qualified = f"{name}.{key}"
            if qualified in SECRET_FIELDS and qualified in env_sourced:
                section[key] = ""
        data[name] = section

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Owner read/write only
    CONFIG_PATH.chmod(0o600)
    return CONFIG_PATH
