import logging
import os
from unittest.mock import patch

import pytest

from app.config import MB, ManualJConfig, load_config, setup_logging
from core.environment import (
    get_database_url,
    get_env_bool,
    get_env_list,
    load_environment,
    validate_required_env_vars,
)
from services.error_types import ConfigurationError


class TestManualJConfig:

    def test_defaults(self):
        config = ManualJConfig()

        assert config.max_retries == 2
        assert config.max_file_size == 25 * MB
        assert config.min_response_chars == 2
        assert not config.is_production

    def test_require_api_key_fails_fast(self):
        with pytest.raises(ConfigurationError) as exc_info:
            ManualJConfig().require_api_key()

        assert exc_info.value.details == {"missing": ["OPENAI_API_KEY"]}

    def test_require_api_key_returns_key(self):
        assert ManualJConfig(openai_api_key="sk-test").require_api_key() == "sk-test"

    def test_upload_messages_follow_limits(self):
        upload = ManualJConfig(max_file_size=10 * MB, min_file_size=2048).file_upload_config()

        assert upload.allowed_types == ["application/pdf"]
        assert upload.size_limit_exceeded_message == "File size must be less than 10 MB"
        assert upload.size_too_small_message == "File size must be at least 2 KB"


class TestLoadConfig:

    def test_reads_environment(self):
        env = {
            "OPENAI_API_KEY": "sk-env",
            "OPENAI_REASONING_MODEL": "gpt-4.1",
            "MANUAL_J_MAX_RETRIES": "4",
            "MANUAL_J_RETRY_DELAY": "0.25",
            "ALLOWED_ORIGINS": "https://app.example.com, http://localhost:3000",
            "ENV": "Production",
        }
        with patch.dict(os.environ, env, clear=True):
            config = load_config()

        assert config.openai_api_key == "sk-env"
        assert config.reasoning_model == "gpt-4.1"
        assert config.vision_model == "gpt-4o"
        assert config.max_retries == 4
        assert config.retry_base_delay_seconds == 0.25
        assert config.allowed_origins == ["https://app.example.com", "http://localhost:3000"]
        assert config.is_production

    def test_blank_api_key_is_treated_as_missing(self):
        with patch.dict(os.environ, {"OPENAI_API_KEY": "   "}, clear=True):
            assert load_config().openai_api_key is None

    def test_overrides_win(self):
        with patch.dict(os.environ, {"MANUAL_J_MAX_RETRIES": "4"}, clear=True):
            assert load_config(max_retries=0).max_retries == 0

    @pytest.mark.parametrize("env", [
        {"MAX_FILE_SIZE": str(200 * MB)},
        {"MAX_FILE_SIZE": "1024"},
        {"MANUAL_J_MAX_RETRIES": "9"},
        {"ENV": "staging"},
        {"MIN_FILE_SIZE": str(30 * MB)},
    ])
    def test_invalid_values_raise_configuration_error(self, env):
        with patch.dict(os.environ, env, clear=True):
            with pytest.raises(ConfigurationError) as exc_info:
                load_config()

        assert exc_info.value.message == "Environment validation failed"
        assert exc_info.value.details["problems"]


class TestEnvironment:

    def test_postgres_scheme_is_rewritten(self):
        with patch.dict(os.environ, {"DATABASE_URL": "postgres://u:p@db/app"}, clear=True):
            assert get_database_url() == "postgresql://u:p@db/app"

    def test_sqlite_default(self):
        with patch.dict(os.environ, {}, clear=True):
            assert get_database_url().startswith("sqlite:///")

    @pytest.mark.parametrize("value,expected", [("true", True), ("0", False), ("maybe", False)])
    def test_get_env_bool(self, value, expected):
        with patch.dict(os.environ, {"FLAG": value}, clear=True):
            assert get_env_bool("FLAG") is expected

    def test_get_env_list_default(self):
        with patch.dict(os.environ, {}, clear=True):
            assert get_env_list("ALLOWED_ORIGINS", default=["a"]) == ["a"]

    def test_placeholder_keys_count_as_missing(self):
        with patch.dict(os.environ, {"OPENAI_API_KEY": "your-api-key-here"}, clear=True):
            assert validate_required_env_vars(["OPENAI_API_KEY", "DATABASE_URL"]) == [
                "OPENAI_API_KEY", "DATABASE_URL"
            ]

    def test_env_local_overrides_env(self, tmp_path):
        (tmp_path / ".env").write_text("MANUAL_J_MAX_RETRIES=1\nOPENAI_VISION_MODEL=gpt-4o-mini\n")
        (tmp_path / ".env.local").write_text("MANUAL_J_MAX_RETRIES=3\n")

        with patch.dict(os.environ, {}, clear=True):
            loaded = load_environment(tmp_path)
            config = load_config()

        assert loaded == [".env", ".env.local"]
        assert config.max_retries == 3
        assert config.vision_model == "gpt-4o-mini"


def test_setup_logging_quiets_http_clients():
    setup_logging(debug=False)

    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("openai").level == logging.WARNING
