import pytest

from nodeflow.config import NodeflowSettings
from nodeflow.datamodel import create_text, detect_format
from nodeflow.dispatcher import CONFIDENCE_EXPLICIT, CONFIDENCE_FALLBACK, CONFIDENCE_RULE, UnifiedDispatcher
from nodeflow.errors import ConfigurationError, RegistrationError, RoutingError
from nodeflow.models import DataFormat


def _make_template(fields=None, handler="executeGenericProcessor") -> dict:
    return {
        "label": "Echo",
        "category": "processor",
        "fields": [] if fields is None else fields,
        "execution": {"type": "local", "handler": handler},
    }


def test_unregistered_type_falls_back_to_legacy(dispatcher):
    decision = dispatcher.route("totally-unknown")

    assert decision.family == "legacy"
    assert decision.confidence == CONFIDENCE_FALLBACK
    assert decision.is_fallback
    assert decision.to_dict()["warning"] == "No matching routing rule found"
    assert dispatcher.get_stats()["fallbackRoutes"] == 1


def test_explicit_routes_for_registered_types(dispatcher):
    dispatcher.register_dynamic_template("echo-node", _make_template())

    assert dispatcher.route("tts").family == "legacy"
    assert dispatcher.route("tts").confidence == CONFIDENCE_EXPLICIT
    decision = dispatcher.route("echo-node")
    assert decision.family == "dynamic"
    assert decision.source == "explicit"


def test_routing_decisions_are_cached(dispatcher):
    first = dispatcher.route("totally-unknown", "create")
    assert dispatcher.route("totally-unknown", "create") is first
    assert dispatcher.get_stats()["routingCacheHits"] == 1
    assert dispatcher.route("totally-unknown", "validate") is not first


def test_refresh_picks_up_new_types(dispatcher):
    assert dispatcher.route("echo-node").is_fallback
    dispatcher.dynamic_registry.register_full_node_config("echo-node", _make_template())

    # stale until refreshed
    assert dispatcher.route("echo-node").is_fallback
    dispatcher.refresh_routing()
    assert dispatcher.route("echo-node").family == "dynamic"


def test_custom_routing_rule(dispatcher):
    dispatcher.register_dynamic_template("echo-node", _make_template())
    dispatcher.register_routing_rule("vendor", lambda node_type: node_type.startswith("vendor."), family="dynamic", priority=0)

    decision = dispatcher.route("vendor.thing")
    assert decision.family == "dynamic"
    assert decision.rule == "vendor"
    assert decision.confidence == CONFIDENCE_RULE

    assert dispatcher.unregister_routing_rule("vendor") is True
    assert dispatcher.route("vendor.thing").is_fallback


def test_routing_rule_with_unknown_family(dispatcher):
    with pytest.raises(RoutingError):
        dispatcher.register_routing_rule("bad", lambda node_type: True, family="quantum")


def test_failing_rule_is_skipped(dispatcher):
    def explode(node_type):
        raise RuntimeError("rule bug")

    dispatcher.register_routing_rule("explode", explode, family="dynamic", priority=0)
    assert dispatcher.route("anything").is_fallback


def test_create_legacy_node_is_standardized(dispatcher):
    node = dispatcher.create("tts", node_id="tts-1", custom_data={"mode": "character"})

    assert node["id"] == "tts-1"
    assert detect_format(node) is DataFormat.STANDARD
    assert node["data"]["_metadata"]["sourceType"] == "legacy"
    assert node["data"]["config"]["mode"] == "character"
    assert node["data"]["_status"]["status"] == "waiting"
    assert node["data"]["_status"]["details"]["missingFields"] == ["selectedCharacter"]


def test_create_dynamic_node_without_fields_is_configured(dispatcher):
    dispatcher.register_dynamic_template("echo-node", _make_template())

    node = dispatcher.create("echo-node")

    assert node["data"]["_metadata"]["sourceType"] == "dynamic"
    assert node["data"]["_status"]["status"] == "configured"
    assert node["data"]["_status"]["canExecute"] is True


def test_create_dynamic_node_with_fields_waits_for_save(dispatcher):
    dispatcher.register_dynamic_template("echo-node", _make_template(fields=[{"name": "tone", "defaultValue": "calm"}]))

    node = dispatcher.create("echo-node")
    assert node["data"]["config"]["tone"] == "calm"
    assert node["data"]["_status"]["status"] == "waiting"

    saved = dispatcher.update(node, config_updates={"_userSaved": True})
    assert saved["data"]["_status"]["status"] == "configured"
    assert saved["data"]["_updatedBy"] == "UnifiedDispatcher"


def test_create_unknown_type_raises(dispatcher):
    with pytest.raises(RegistrationError):
        dispatcher.create("totally-unknown")


def test_update_legacy_syncs_flat_fields_and_config(dispatcher):
    node = dispatcher.create("text-input", node_id="text-1")

    updated = dispatcher.update(node, {"text": "hello"})
    assert updated["data"]["text"] == "hello"
    assert updated["data"]["config"]["text"] == "hello"
    assert updated["data"]["_status"]["status"] == "configured"

    again = dispatcher.update(updated, config_updates={"text": "bye"})
    assert again["data"]["text"] == "bye"
    # the original record is untouched
    assert node["data"]["text"] == ""


def test_validate_reports_errors_and_routing(dispatcher):
    node = dispatcher.create("text-input", node_id="text-1")

    result = dispatcher.validate(node)

    assert result["valid"] is False
    assert result["source"] == "legacy"
    assert result["routingInfo"]["confidence"] == CONFIDENCE_EXPLICIT
    assert any("text" in error for error in result["errors"])

    ready = dispatcher.validate(dispatcher.update(node, {"text": "hello"}))
    assert ready["valid"] is True
    assert ready["canExecute"] is True


def test_get_status_adds_routing_details(dispatcher):
    node = dispatcher.create("output", node_id="out-1")
    status = dispatcher.get_status(node)
    assert status.status == "configured"
    assert status.details["managedBy"] == "legacy"
    assert status.details["routingInfo"]["nodeType"] == "output"


def test_resolve_config_user_overrides_win(dispatcher):
    node = dispatcher.create("output", node_id="out-1")
    resolved = dispatcher.resolve_config(node, user_config={"displayMode": "full"})
    assert resolved.config["displayMode"] == "full"
    assert resolved.metadata["managedBy"] == "legacy"


def test_strict_resolve_config_raises(settings):
    settings.strict_validation = True
    dispatcher = UnifiedDispatcher(settings=settings)
    node = dispatcher.create("output", node_id="out-1")
    with pytest.raises(ConfigurationError):
        dispatcher.resolve_config(node, user_config={"displayMode": "gigantic"})


def test_get_all_node_types_prefers_dynamic(dispatcher):
    dispatcher.register_dynamic_template("echo-node", _make_template())
    types = dispatcher.get_all_node_types()
    assert {"text-input", "tts", "output", "download", "echo-node"} <= set(types)
    assert dispatcher.get_node_type_config("echo-node").label == "Echo"
    assert dispatcher.get_node_type_config("totally-unknown") is None


def test_register_descriptors_refreshes_routing(dispatcher):
    document = {
        "meta": {"nodeId": "echo-node", "displayName": "Echo", "configVersion": "1.0"},
        "node": {
            "type": "echo-node",
            "label": "Echo",
            "icon": "🔁",
            "description": "Echo input",
            "category": "processor",
            "theme": "gray",
        },
        "components": {"panel": "DynamicConfigPanel"},
        "data": {"defaultData": {}, "validation": {}},
    }
    summary = dispatcher.register_descriptors([document])
    assert summary["success"] == 1
    assert dispatcher.route("echo-node").family == "dynamic"


@pytest.mark.asyncio
async def test_execute_text_input(dispatcher):
    node = dispatcher.update(dispatcher.create("text-input", node_id="text-1"), {"text": "hello"})

    outcome = await dispatcher.execute(node)

    assert outcome.success
    assert outcome.data.text == "hello"
    assert outcome.metadata["routingInfo"]["manager"] == "legacy"


@pytest.mark.asyncio
async def test_execute_rejects_non_executable_node(dispatcher):
    node = dispatcher.create("download", node_id="dl-1", custom_data={"customFileName": "a/b"})

    outcome = await dispatcher.execute(node, create_text("x"))

    assert not outcome.success
    assert "invalid" in outcome.error
    assert outcome.metadata["status"]["status"] == "invalid"


@pytest.mark.asyncio
async def test_execute_allows_rerun_after_failure(dispatcher):
    node = dispatcher.update(dispatcher.create("text-input", node_id="text-1"), {"text": "hello"})
    node["data"]["result"] = {"success": False, "error": "previous failure"}

    outcome = await dispatcher.execute(node)

    assert outcome.success


@pytest.mark.asyncio
async def test_execute_never_raises(dispatcher):
    outcome = await dispatcher.execute("not a node")
    assert not outcome.success
    assert outcome.source == "UnifiedDispatcher"

    unknown = await dispatcher.execute({"id": "u-1", "type": "totally-unknown", "data": {"label": "?"}})
    assert not unknown.success
    assert dispatcher.health_status()["overall"] in {"degraded", "healthy"}


@pytest.mark.asyncio
async def test_execute_dynamic_node(dispatcher):
    dispatcher.register_dynamic_template("echo-node", _make_template())
    node = dispatcher.create("echo-node", node_id="echo-1")
    envelope = create_text("hello")

    outcome = await dispatcher.execute(node, envelope)

    assert outcome.success
    assert outcome.data is envelope
    assert outcome.source == "dynamic"


def test_isolated_dispatchers_do_not_share_caches(settings):
    first = UnifiedDispatcher(settings=settings)
    second = UnifiedDispatcher(settings=settings)
    first.route("totally-unknown")
    assert second.get_stats()["routingCacheSize"] == 0
    first.clear_cache()
    assert first.get_stats()["routingCacheSize"] == 0


def test_stats_and_health(dispatcher):
    dispatcher.create("output")
    stats = dispatcher.get_stats()
    assert stats["totalOperations"] == 1
    assert stats["legacyOperations"] == 1
    assert stats["legacyRatio"] == 1.0
    assert dispatcher.health_status()["overall"] == "healthy"


def test_configured_type_sets_drive_format_detection():
    settings = NodeflowSettings(
        known_dynamic_types=["my-dyn"],
        legacy_types=["text-input", "tts", "output", "download", "my-legacy"],
        inter_step_delay_seconds=0,
    )
    dispatcher = UnifiedDispatcher(settings=settings)
    node = {"id": "m-1", "type": "my-dyn", "data": {"label": "Mine"}}

    assert detect_format(node) is DataFormat.UNKNOWN
    assert dispatcher.detect_format(node) is DataFormat.DYNAMIC
    assert dispatcher.detect_format({"id": "l-1", "type": "my-legacy", "data": {}}) is DataFormat.LEGACY

    dispatcher.register_dynamic_template("my-dyn", _make_template(fields=[{"name": "tone", "defaultValue": "calm"}]))
    resolved = dispatcher.resolve_config(node)
    assert resolved.source_type == "dynamic"
    assert resolved.config["tone"] == "calm"
