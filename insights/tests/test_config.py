"""Tests for config loading, env overrides and saving."""

import json
import logging
import os
from unittest.mock import patch


class TestDefaults:
    def test_llm_config_defaults(self):
        from insights.common.config import LLMConfig
        cfg = LLMConfig()
        assert cfg.provider == "anthropic"
        assert cfg.anthropic_api_key == ""
        assert cfg.model == "claude-sonnet-4-5"

    def test_retriever_defaults(self):
        from insights.common.config import RetrieverConfig
        cfg = RetrieverConfig()
        assert cfg.variant_policy == "primary"
        assert cfg.company_variant_policy == "keep"
        assert cfg.include_profile_text is False
        assert cfg.synthesis_max_records == 20

    def test_store_configured_flags(self):
        from insights.common.config import StoreConfig
        cfg = StoreConfig(interviews_url="https://a.supabase.co")
        assert not cfg.interviews_configured
        cfg.interviews_key = "key"
        assert cfg.interviews_configured
        assert not cfg.experts_configured


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        from insights.common.config import load_config
        with patch("insights.common.config.CONFIG_PATH", tmp_path / "missing.json"):
            cfg = load_config()
        assert cfg.stores.interviews_url == ""
        assert cfg.retriever.variant_policy == "primary"

    def test_load_sections(self, tmp_path):
        from insights.common.config import load_config
        config_data = {
            "stores": {"experts_url": "https://experts.supabase.co", "experts_key": "ek", "timeout": 10},
            "llm": {"provider": "openai", "openai_api_key": "sk-test", "openai_model": "gpt-4o"},
            "retriever": {
                "variant_policy": "first_nonempty",
                "company_variant_policy": "collapse",
                "include_profile_text": True,
                "ai_topic_expansion": "true",
            },
        }
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps(config_data))

        with patch("insights.common.config.CONFIG_PATH", config_file):
            cfg = load_config()

        assert cfg.stores.experts_configured
        assert cfg.stores.timeout == 10.0
        assert cfg.llm.provider == "openai"
        assert cfg.llm.model == "gpt-4o"
        assert cfg.retriever.variant_policy == "first_nonempty"
        assert cfg.retriever.company_variant_policy == "collapse"
        assert cfg.retriever.include_profile_text is True
        assert cfg.retriever.ai_topic_expansion is True

    def test_unknown_policy_falls_back_with_warning(self, tmp_path, caplog):
        from insights.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"retriever": {"variant_policy": "best_of_five"}}))

        with caplog.at_level(logging.WARNING, logger="insights.common.config"), \
             patch("insights.common.config.CONFIG_PATH", config_file):
            cfg = load_config()

        assert cfg.retriever.variant_policy == "primary"
        assert "best_of_five" in caplog.text

    def test_broken_file_is_ignored(self, tmp_path, caplog):
        from insights.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text("{not json")

        with caplog.at_level(logging.WARNING, logger="insights.common.config"), \
             patch("insights.common.config.CONFIG_PATH", config_file):
            cfg = load_config()

        assert cfg.llm.provider == "anthropic"
        assert "Failed to load config file" in caplog.text

    def test_env_var_overrides(self, tmp_path):
        from insights.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"stores": {"interviews_url": "https://file.supabase.co"}}))

        env = {
            "SUPABASE_INTERVIEWS_URL": "https://env.supabase.co",
            "SUPABASE_INTERVIEWS_SERVICE_ROLE_KEY": "ik-env",
            "GEMINI_API_KEY": "g-env",
            "INSIGHTS_LLM_PROVIDER": "google",
            "INSIGHTS_VARIANT_POLICY": "first_nonempty",
            "INSIGHTS_COMPANY_VARIANT_POLICY": "collapse",
            "INSIGHTS_TOPIC_EXPANSION": "1",
            "INSIGHTS_STORE_TIMEOUT": "5",
        }
        with patch("insights.common.config.CONFIG_PATH", config_file), \
             patch.dict(os.environ, env, clear=False):
            cfg = load_config()

        assert cfg.stores.interviews_url == "https://env.supabase.co"
        assert cfg.stores.interviews_configured
        assert cfg.stores.timeout == 5.0
        assert cfg.llm.provider == "google"
        assert cfg.llm.google_api_key == "g-env"
        assert cfg.retriever.variant_policy == "first_nonempty"
        assert cfg.retriever.company_variant_policy == "collapse"
        assert cfg.retriever.ai_topic_expansion is True

    def test_invalid_env_policy_is_ignored(self, tmp_path):
        from insights.common.config import load_config
        with patch("insights.common.config.CONFIG_PATH", tmp_path / "missing.json"), \
             patch.dict(os.environ, {"INSIGHTS_VARIANT_POLICY": "all"}, clear=False):
            cfg = load_config()
        assert cfg.retriever.variant_policy == "primary"

    def test_provider_name_is_case_insensitive(self, tmp_path):
        from insights.common.config import load_config
        with patch("insights.common.config.CONFIG_PATH", tmp_path / "missing.json"), \
             patch.dict(os.environ, {"INSIGHTS_LLM_PROVIDER": " OpenAI "}, clear=False):
            cfg = load_config()
        assert cfg.llm.provider == "openai"
        assert cfg.llm.model == "gpt-4o-mini"

    def test_model_lookup_ignores_provider_case(self):
        from insights.common.config import LLMConfig
        assert LLMConfig(provider="Google").model == "gemini-2.0-flash"


class TestSaveConfig:
    def test_save_config_omits_env_keys(self, tmp_path):
        from insights.common.config import load_config, save_config
        config_file = tmp_path / "config.json"
        config_file.write_text("{}")

        env = {"ANTHROPIC_API_KEY": "sk-from-env", "SUPABASE_EXPERTS_SERVICE_ROLE_KEY": "ek-env"}
        with patch("insights.common.config.CONFIG_PATH", config_file), \
             patch("insights.common.config.CONFIG_DIR", tmp_path), \
             patch.dict(os.environ, env, clear=False):
            cfg = load_config()
            save_config(cfg)

        saved = json.loads(config_file.read_text())
        assert saved["llm"]["anthropic_api_key"] == ""
        assert saved["stores"]["experts_key"] == ""

    def test_save_config_round_trips_file_values(self, tmp_path):
        from insights.common.config import load_config, save_config
        config_data = {
            "llm": {"provider": "openai", "openai_api_key": "sk-file"},
            "retriever": {"company_variant_policy": "collapse", "expert_limit": 25},
        }
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps(config_data))

        with patch("insights.common.config.CONFIG_PATH", config_file), \
             patch("insights.common.config.CONFIG_DIR", tmp_path):
            cfg = load_config()
            save_config(cfg)

        saved = json.loads(config_file.read_text())
        assert saved["llm"]["openai_api_key"] == "sk-file"
        assert saved["retriever"]["company_variant_policy"] == "collapse"
        assert saved["retriever"]["expert_limit"] == 25
        assert oct(config_file.stat().st_mode & 0o777) == oct(0o600)
