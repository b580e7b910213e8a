import json

import pytest
from pydantic import ValidationError

from nodeflow.cache import LRUCache, fingerprint
from nodeflow.config import NodeflowSettings


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("NODEFLOW_CONFIG_FILE", raising=False)
    for name in ("NODEFLOW_INTER_STEP_DELAY_SECONDS", "NODEFLOW_LOG_LEVEL", "NODEFLOW_CONTINUE_ON_FAILURE_TYPES"):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = NodeflowSettings()

    assert settings.legacy_types == ["text-input", "tts", "output", "download"]
    assert settings.inter_step_delay_seconds == 0.2
    assert settings.continue_on_failure_types == ["download", "output"]
    assert settings.strict_validation is False
    assert settings.log_level == "INFO"
    assert settings.config_path is None


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("NODEFLOW_INTER_STEP_DELAY_SECONDS", "1.5")
    monkeypatch.setenv("NODEFLOW_CONTINUE_ON_FAILURE_TYPES", '["output"]')
    monkeypatch.setenv("NODEFLOW_LOG_LEVEL", "debug")

    settings = NodeflowSettings()

    assert settings.inter_step_delay_seconds == 1.5
    assert settings.continue_on_failure_types == ["output"]
    assert settings.log_level == "DEBUG"


def test_yaml_file_from_environment(monkeypatch, tmp_path):
    path = tmp_path / "custom.yaml"
    path.write_text(
        "strict_validation: true\n"
        "external_config:\n"
        "  ttsApiUrl: http://tts.local\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("NODEFLOW_CONFIG_FILE", str(path))

    settings = NodeflowSettings()

    assert settings.strict_validation is True
    assert settings.external_config == {"ttsApiUrl": "http://tts.local"}
    assert settings.config_path == path


def test_default_json_location(tmp_path):
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "nodeflow.json").write_text(json.dumps({"default_handler_retry": 2}), encoding="utf-8")

    assert NodeflowSettings().default_handler_retry == 2


def test_non_mapping_file_is_rejected(monkeypatch, tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    monkeypatch.setenv("NODEFLOW_CONFIG_FILE", str(path))

    with pytest.raises(ValueError):
        NodeflowSettings()


def test_invalid_values_fail_validation():
    with pytest.raises(ValidationError):
        NodeflowSettings(inter_step_delay_seconds=-1)
    with pytest.raises(ValidationError):
        NodeflowSettings(log_level="verbose")


# Cache


def test_lru_cache_evicts_least_recently_used():
    cache = LRUCache(max_entries=2)
    cache.set("a", 1)
    cache.set("b", 2)
    assert cache.get("a") == 1
    cache.set("c", 3)

    assert "b" not in cache
    assert cache.get("a") == 1
    assert cache.get("b") is None
    assert cache.stats() == {"size": 2, "hits": 2, "misses": 1, "maxEntries": 2}


def test_disabled_cache_stores_nothing():
    cache = LRUCache(enabled=False)
    cache.set("a", 1)
    assert cache.get("a") is None
    assert len(cache) == 0

    with pytest.raises(ValueError):
        LRUCache(max_entries=0)


def test_fingerprint_ignores_key_order():
    assert fingerprint({"a": 1, "b": [1, 2]}) == fingerprint({"b": [1, 2], "a": 1})
    assert fingerprint({"a": 1}) != fingerprint({"a": 2})
