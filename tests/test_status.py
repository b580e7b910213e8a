import itertools

import pytest

from nodeflow.status import (
    STATUS_PRIORITY,
    NodeStatus,
    StatusCalculator,
    can_execute,
    compare_priority,
    get_priority,
    highest_priority,
    is_terminal,
)


def _make_text_node(text="hello", **data) -> dict:
    return {"id": "text-1", "type": "text-input", "data": {"nodeType": "text-input", "text": text, **data}}


def _make_dynamic_node(fields, config=None, **data) -> dict:
    return {
        "id": "dyn-1",
        "type": "prompt-node",
        "data": {
            "nodeConfig": {
                "type": "prompt-node",
                "label": "Prompt",
                "fields": fields,
                "execution": {"type": "local", "handler": "executeGenericProcessor"},
            },
            "config": dict(config or {}),
            **data,
        },
    }


def test_priority_table_order():
    ordered = sorted(STATUS_PRIORITY, key=STATUS_PRIORITY.get, reverse=True)
    assert [status.value for status in ordered] == [
        "error",
        "invalid",
        "processing",
        "cancelled",
        "disabled",
        "success",
        "configured",
        "pending",
        "skipped",
        "waiting",
        "unknown",
    ]


@pytest.mark.parametrize("left, right", list(itertools.combinations(list(NodeStatus), 2)))
def test_highest_priority_for_every_pair(left, right):
    expected = left if STATUS_PRIORITY[left] > STATUS_PRIORITY[right] else right
    assert highest_priority([left, right]) is expected
    assert highest_priority([right, left]) is expected


def test_state_helpers():
    assert get_priority("error") == 10
    assert get_priority("bogus") == 0
    assert is_terminal(NodeStatus.INVALID)
    assert not is_terminal("configured")
    assert can_execute("waiting")
    assert not can_execute("processing")
    assert compare_priority("invalid", "success") > 0
    assert highest_priority([]) is None


def test_busy_flag_wins_over_error_result():
    calculator = StatusCalculator()
    node = _make_text_node(isProcessing=True, result={"error": "boom"})
    assert calculator.calculate_status(node).status == "processing"


def test_error_result():
    calculator = StatusCalculator()
    result = calculator.calculate_status(_make_text_node(result={"error": "boom"}))
    assert result.status == "error"
    assert result.is_terminal
    assert not result.can_execute
    assert result.details["error"] == "boom"


def test_invalid_config_beats_success_result():
    calculator = StatusCalculator()
    node = {
        "id": "dl-1",
        "type": "download",
        "data": {"nodeType": "download", "customFileName": "bad:name", "result": {"success": True}},
    }
    result = calculator.calculate_status(node)
    assert result.status == "invalid"
    assert result.details["invalidField"] == "customFileName"


def test_disabled_outranks_success():
    calculator = StatusCalculator()
    node = _make_text_node(disabled=True, result={"success": True, "data": {"type": "text"}})
    assert calculator.calculate_status(node).status == "disabled"


def test_cancelled_outranks_disabled():
    calculator = StatusCalculator()
    node = _make_text_node(disabled=True, cancelled=True)
    assert calculator.calculate_status(node).status == "cancelled"


def test_success_result():
    calculator = StatusCalculator()
    result = calculator.calculate_status(_make_text_node(result={"success": True}))
    assert result.status == "success"
    assert result.can_execute


def test_text_input_completeness():
    calculator = StatusCalculator()
    assert calculator.calculate_status(_make_text_node()).status == "configured"
    waiting = calculator.calculate_status(_make_text_node(text="  "))
    assert waiting.status == "waiting"
    assert waiting.details["missingFields"] == ["text"]
    assert waiting.can_execute


def test_tts_character_mode_requires_selected_character():
    calculator = StatusCalculator()
    node = {"id": "tts-1", "type": "tts", "data": {"nodeType": "tts", "mode": "character"}}

    result = calculator.calculate_status(node)

    assert result.status == "waiting"
    assert result.details["missingFields"] == ["selectedCharacter"]


def test_tts_custom_mode_requires_voice_pair():
    calculator = StatusCalculator()
    node = {"id": "tts-2", "type": "tts", "data": {"nodeType": "tts", "mode": "custom", "username": ""}}
    result = calculator.calculate_status(node)
    assert result.details["missingFields"] == ["username", "voice_id"]

    node["data"].update(username="alice", voice_id="v1")
    assert calculator.calculate_status(node).status == "configured"


def test_dynamic_without_fields_is_configured():
    calculator = StatusCalculator()
    result = calculator.calculate_status(_make_dynamic_node(fields=[]))
    assert result.status == "configured"
    assert result.can_execute


def test_dynamic_missing_field_list_is_invalid():
    calculator = StatusCalculator()
    node = _make_dynamic_node(fields=[])
    del node["data"]["nodeConfig"]["fields"]
    assert calculator.calculate_status(node).status == "invalid"


def test_unsaved_dynamic_node_waits_even_with_defaults():
    calculator = StatusCalculator()
    node = _make_dynamic_node(fields=[{"name": "lang", "defaultValue": "en"}])
    result = calculator.calculate_status(node)
    assert result.status == "waiting"
    assert result.details["reason"] == "Parameters require user save action"


def test_saved_dynamic_node_with_missing_required_waits():
    calculator = StatusCalculator()
    node = _make_dynamic_node(fields=[{"name": "prompt", "required": True}], config={"_userSaved": True})
    result = calculator.calculate_status(node)
    assert result.status == "waiting"
    assert result.details["missingFields"] == ["prompt"]

    node["data"]["config"]["prompt"] = "describe"
    assert calculator.calculate_status(node).status == "configured"


def test_dynamic_blank_api_endpoint_waits():
    calculator = StatusCalculator()
    node = _make_dynamic_node(fields=[{"name": "q"}], config={"_userSaved": True, "q": "x"})
    node["data"]["nodeConfig"]["api"] = {"endpoint": ""}
    assert calculator.calculate_status(node).details["missingFields"] == ["endpoint"]


def test_result_details_are_stamped():
    calculator = StatusCalculator()
    details = calculator.calculate_status(_make_text_node()).details
    assert details["nodeId"] == "text-1"
    assert details["nodeType"] == "text-input"
    assert details["calculator"] == "StatusCalculator"
    assert details["configSummary"]["sourceType"] == "legacy"
    assert "calculatedAt" in details


def test_results_are_cached_per_instance():
    calculator = StatusCalculator()
    node = _make_text_node()
    first = calculator.calculate_status(node)
    assert calculator.calculate_status(node) is first
    assert calculator.get_stats()["cacheHits"] == 1

    calculator.clear_cache()
    assert calculator.calculate_status(node) is not first


def test_listeners_fire_on_change_only():
    calculator = StatusCalculator()
    seen = []
    listener = lambda result, previous: seen.append((previous, result.status))  # noqa: E731
    calculator.add_listener("text-1", listener)

    calculator.calculate_status(_make_text_node(text=""))
    calculator.calculate_status(_make_text_node(text="", label="same status"))
    calculator.calculate_status(_make_text_node(text="ready"))

    assert seen == [(None, "waiting"), ("waiting", "configured")]

    calculator.remove_listener("text-1", listener)
    calculator.calculate_status(_make_text_node(result={"error": "x"}))
    assert len(seen) == 2


def test_broken_listener_does_not_break_calculation():
    calculator = StatusCalculator()

    def broken(result, previous):
        raise RuntimeError("listener failed")

    calculator.add_listener("text-1", broken)
    assert calculator.calculate_status(_make_text_node()).status == "configured"


def test_batch_status():
    calculator = StatusCalculator()
    other = {"id": "tts-1", "type": "tts", "data": {"nodeType": "tts", "mode": "character", "selectedCharacter": "amy"}}
    statuses = calculator.calculate_batch_status([_make_text_node(), other])
    assert {node_id: result.status for node_id, result in statuses.items()} == {
        "text-1": "configured",
        "tts-1": "configured",
    }


def test_detect_calculation_type():
    assert StatusCalculator.detect_calculation_type(_make_text_node()) == "legacy"
    assert StatusCalculator.detect_calculation_type(_make_dynamic_node(fields=[])) == "dynamic"
    assert StatusCalculator.detect_calculation_type({"id": "x"}) == "unknown"


def test_error_status_on_failure():
    calculator = StatusCalculator()
    result = calculator.create_error_status({"id": "n", "type": "t"}, "bad")
    assert result.status == "error"
    assert result.details["error"] == "bad"
    assert result.details["nodeId"] == "n"
