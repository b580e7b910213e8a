import pytest

from nodeflow.cache import LRUCache
from nodeflow.errors import ConfigurationError
from nodeflow.resolver import ConfigurationResolver, coerce_field_value
from nodeflow.validation import check_rule, validate_config


def _make_dynamic_node(config=None, fields=None, **data) -> dict:
    node_config = {
        "type": "prompt-node",
        "label": "Prompt",
        "fields": fields
        if fields is not None
        else [
            {"name": "a", "defaultValue": "default"},
            {"name": "b", "defaultValue": "default"},
            {"name": "c", "defaultValue": "default"},
        ],
        "execution": {"type": "local", "handler": "executeGenericProcessor"},
    }
    return {
        "id": "prompt-1",
        "type": "prompt-node",
        "data": {"nodeConfig": node_config, "config": dict(config or {}), **data},
    }


def test_later_layers_win():
    resolver = ConfigurationResolver(external_config={"a": "ext", "b": "ext", "c": "ext", "d": "ext"})
    node = _make_dynamic_node(config={"b": "current", "c": "current"})

    resolved = resolver.resolve(node, user_config={"c": "user"})

    assert resolved.config["a"] == "default"
    assert resolved.config["b"] == "current"
    assert resolved.config["c"] == "user"
    assert resolved.config["d"] == "ext"
    assert resolved.source_type == "dynamic"


def test_legacy_defaults_fill_missing_fields():
    resolver = ConfigurationResolver()
    node = {"id": "tts-1", "type": "tts", "data": {"nodeType": "tts", "mode": "custom", "label": "TTS"}}

    resolved = resolver.resolve(node)

    assert resolved.config["mode"] == "custom"
    assert resolved.config["username"] == "workflow_user"
    assert resolved.config["hideTestButton"] is True
    assert "label" not in resolved.config
    assert resolved.metadata["parseStats"]["configFieldCount"] == len(resolved.config)


def test_required_field_semantics():
    rules = {"required": ["a", "b", "c"]}
    errors = validate_config({"a": "", "b": False, "c": 0}, rules)
    assert errors == ['Required field "a" must not be empty']

    assert validate_config({"a": ""}, {"required": ["a"]}, has_default=lambda field: field == "a") == []


def test_rules_are_collected_not_short_circuited():
    rules = {
        "rules": {
            "mode": {"enum": ["character", "custom"]},
            "size": {"type": "number", "min": 100},
            "name": {"pattern": r"^[a-z]+$"},
            "missing": {"type": "string"},
        }
    }
    errors = validate_config({"mode": "robot", "size": 5, "name": "A1"}, rules)
    assert len(errors) == 3


def test_conditional_required_by_mode():
    rules = {"conditionalRequired": {"custom": ["username", "voice_id"]}}
    errors = validate_config({"mode": "custom", "username": "u"}, rules)
    assert errors == ['Field "voice_id" is required in "custom" mode']


def test_check_rule_type_precedence():
    assert check_rule("n", "12", {"type": "number", "min": 100}) == 'Field "n" must be a number'
    assert check_rule("n", 12, {"type": "number", "min": 100}) == 'Field "n" must be >= 100'
    assert check_rule("n", 120, {"type": "number", "min": 100}) is None


def test_strict_validation_raises():
    resolver = ConfigurationResolver()
    node = _make_dynamic_node(fields=[{"name": "prompt", "required": True}])

    with pytest.raises(ConfigurationError) as excinfo:
        resolver.resolve(node, strict_validation=True)
    assert excinfo.value.errors == ['Required field "prompt" must not be empty']


def test_lenient_validation_reports_warnings():
    resolver = ConfigurationResolver()
    node = _make_dynamic_node(fields=[{"name": "prompt", "required": True}])

    resolved = resolver.resolve(node)

    assert resolved.warnings == ['Required field "prompt" must not be empty']
    assert resolved.validation["valid"] is False
    assert resolver.get_stats()["validationErrors"] == 1


def test_field_default_satisfies_required():
    resolver = ConfigurationResolver()
    node = _make_dynamic_node(fields=[{"name": "prompt", "required": True, "defaultValue": ""}])
    assert resolver.resolve(node, strict_validation=True).warnings == []


def test_unresolvable_node_returns_fallback():
    resolver = ConfigurationResolver()

    resolved = resolver.resolve({"id": "x-1", "data": {"text": "keep me", "secret": "drop"}})

    assert resolved.is_fallback
    assert resolved.config["_fallback"] is True
    assert resolved.config["text"] == "keep me"
    assert "secret" not in resolved.config
    assert resolved.metadata["isSafe"] is True
    assert resolver.get_stats()["resolverErrors"] == 1

    assert resolver.resolve("garbage").is_fallback


def test_unknown_typed_node_resolves_as_legacy():
    resolver = ConfigurationResolver()
    resolved = resolver.resolve({"id": "m-1", "type": "mystery", "data": {"flag": True}})
    assert resolved.source_type == "legacy"
    assert resolved.config["flag"] is True


def test_field_types_are_normalized():
    resolver = ConfigurationResolver()
    node = _make_dynamic_node(
        config={"count": "42", "ratio": "0.5", "enabled": "false", "tags": '["a"]'},
        fields=[
            {"name": "count", "type": "number"},
            {"name": "ratio", "type": "number"},
            {"name": "enabled", "type": "checkbox"},
            {"name": "tags", "type": "array"},
        ],
    )

    config = resolver.resolve(node).config

    assert config["count"] == 42
    assert config["ratio"] == 0.5
    assert config["enabled"] is False
    assert config["tags"] == ["a"]
    assert config["_isDynamic"] is True


def test_coerce_field_value_leaves_bad_numbers():
    assert coerce_field_value("abc", "number") == "abc"
    assert coerce_field_value(3, "number") == 3
    assert coerce_field_value("TRUE", "boolean") is True


def test_resolution_is_cached_until_data_changes():
    cache = LRUCache()
    resolver = ConfigurationResolver(cache=cache)
    node = _make_dynamic_node(config={"a": "one"})

    first = resolver.resolve(node)
    first.config["a"] = "mutated"
    second = resolver.resolve(node)

    assert second.config["a"] == "one"
    assert resolver.get_stats()["cacheHits"] == 1

    changed = _make_dynamic_node(config={"a": "two"})
    assert resolver.resolve(changed).config["a"] == "two"
    assert resolver.get_stats()["cacheHits"] == 1

    # execution artifacts do not invalidate the entry
    resolver.resolve(_make_dynamic_node(config={"a": "one"}, result={"success": True}))
    assert resolver.get_stats()["cacheHits"] == 2


def test_isolated_caches_do_not_share_entries():
    node = _make_dynamic_node()
    first = ConfigurationResolver(cache=LRUCache())
    second = ConfigurationResolver(cache=LRUCache())

    first.resolve(node)
    second.resolve(node)

    assert first.get_stats()["cacheHits"] == 0
    assert second.get_stats()["cacheHits"] == 0
    assert len(first.cache) == 1


def test_disabled_cache_never_hits():
    resolver = ConfigurationResolver(cache=LRUCache(enabled=False))
    node = _make_dynamic_node()
    resolver.resolve(node)
    resolver.resolve(node)
    assert resolver.get_stats()["cacheHits"] == 0


def test_clear_cache():
    resolver = ConfigurationResolver()
    resolver.resolve(_make_dynamic_node())
    resolver.clear_cache()
    assert resolver.get_stats()["cacheSize"] == 0


def test_configured_dynamic_types_resolve_through_template():
    template = {
        "type": "my-dyn",
        "fields": [{"name": "tone", "defaultValue": "calm"}],
        "execution": {"type": "local", "handler": "executeGenericProcessor"},
    }
    resolver = ConfigurationResolver(dynamic_types=["my-dyn"], dynamic_lookup={"my-dyn": template}.get)

    resolved = resolver.resolve({"id": "m-1", "type": "my-dyn", "data": {}})

    assert resolved.source_type == "dynamic"
    assert resolved.config["tone"] == "calm"
    assert ConfigurationResolver().resolve({"id": "m-1", "type": "my-dyn", "data": {}}).source_type == "legacy"
