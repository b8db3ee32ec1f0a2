"""Tests for environment-driven supervisor configuration."""

import pytest
from pydantic import ValidationError

from task_supervisor.config.supervisor_config import SupervisorConfig
from task_supervisor.models.supervisor_models import MaxComplexity


ENV_KEYS = [
    "ORACLE_MODEL",
    "MAX_NESTING_LEVEL",
    "MAX_SUBTASKS_PER_TASK",
    "MAX_COMPLEXITY",
    "MAX_REFINEMENTS_PER_RUN",
    "CONTEXT_STORE_BACKEND",
    "CONTEXT_TTL_SECONDS",
    "CONTEXT_CLEANUP_INTERVAL",
    "KEEP_ALIVE_INTERVAL",
    "PROGRESS_REPLAY_LIMIT",
    "PROGRESS_REPLAY_SESSIONS",
    "OPENAI_BASE_URL",
]


@pytest.fixture
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    config = SupervisorConfig()

    assert config.oracle_model == "gpt-4o-mini"
    assert config.max_nesting_level == 5
    assert config.max_subtasks_per_task == 10
    assert config.max_complexity == MaxComplexity.HIERARCHICAL
    assert config.max_refinements_per_run == 3
    assert config.context_store_backend == "memory"
    assert config.context_ttl_seconds == 1800
    assert config.context_cleanup_interval == 300
    assert config.keep_alive_interval == 30.0
    assert config.progress_replay_limit == 200
    assert config.progress_replay_sessions == 500
    assert config.openai_base_url is None


def test_environment_overrides(clean_env):
    clean_env.setenv("ORACLE_MODEL", "gpt-4o")
    clean_env.setenv("MAX_NESTING_LEVEL", "3")
    clean_env.setenv("MAX_COMPLEXITY", "flat")
    clean_env.setenv("CONTEXT_STORE_BACKEND", "redis")
    clean_env.setenv("KEEP_ALIVE_INTERVAL", "5")

    config = SupervisorConfig()

    assert config.oracle_model == "gpt-4o"
    assert config.max_nesting_level == 3
    assert config.max_complexity == MaxComplexity.FLAT
    assert config.context_store_backend == "redis"
    assert config.keep_alive_interval == 5.0


def test_explicit_values_win_over_environment(clean_env):
    clean_env.setenv("MAX_NESTING_LEVEL", "3")

    assert SupervisorConfig(max_nesting_level=7).max_nesting_level == 7


def test_invalid_backend_is_rejected(clean_env):
    with pytest.raises(ValidationError):
        SupervisorConfig(context_store_backend="sqlite")


def test_model_config_follows_oracle_settings(clean_env):
    config = SupervisorConfig(
        oracle_model="local-model",
        openai_base_url="http://localhost:8080/v1",
        oracle_max_tokens=512,
        oracle_temperature=0.0,
    )

    model_config = config.get_model_config()

    assert model_config.model_name == "local-model"
    assert model_config.api_endpoint == "http://localhost:8080/v1"
    assert model_config.max_tokens == 512
    assert model_config.temperature == 0.0
