import copy

import pytest

from nodeflow.datamodel import (
    auto_convert,
    clone,
    create_audio,
    create_text,
    detect_format,
    from_dynamic_node,
    from_standard,
    get_preview,
    is_workflow_data,
    normalize_output,
    prepare_input,
    to_standard,
    validate_workflow_data,
)
from nodeflow.datamodel.envelope import format_size
from nodeflow.models import DataFormat, WorkflowData


def _legacy_tts_node() -> dict:
    return {
        "id": "tts-1",
        "type": "tts",
        "position": {"x": 400, "y": 100},
        "data": {
            "label": "Speech Synthesis",
            "nodeType": "tts",
            "mode": "custom",
            "username": "alice",
            "voice_id": "v-7",
            "config": {"ttsApiUrl": "http://tts.local"},
        },
    }


def _dynamic_node_config() -> dict:
    return {
        "type": "asr-node",
        "label": "ASR",
        "defaultData": {"language": "zh", "model": "base", "beam": 5},
        "fields": [{"name": "language", "type": "select"}],
        "execution": {"type": "local", "handler": "executeGenericProcessor"},
    }


def test_detect_format_is_stable():
    node = _legacy_tts_node()
    first = detect_format(node)
    assert first is DataFormat.LEGACY
    assert detect_format(node) is first


def test_detect_format_variants():
    assert detect_format({"type": "asr-node", "data": {}}) is DataFormat.DYNAMIC
    assert detect_format({"type": "custom", "data": {"nodeConfig": {"fields": []}}}) is DataFormat.DYNAMIC
    assert detect_format({"type": "tts", "data": {"_metadata": {"sourceType": "legacy"}}}) is DataFormat.STANDARD
    assert detect_format({"type": "mystery", "data": {}}) is DataFormat.UNKNOWN
    assert detect_format("not a node") is DataFormat.UNKNOWN


def test_type_with_dash_is_not_assumed_dynamic():
    assert detect_format({"type": "some-node", "data": {}}) is DataFormat.UNKNOWN


def test_legacy_round_trip_restores_flat_fields():
    node = _legacy_tts_node()

    standard = to_standard(node)
    assert detect_format(standard) is DataFormat.STANDARD
    assert standard["data"]["config"]["mode"] == "custom"
    assert standard["data"]["config"]["ttsApiUrl"] == "http://tts.local"
    # flat fields stay where legacy readers expect them
    assert standard["data"]["mode"] == "custom"

    restored = from_standard(standard, DataFormat.LEGACY)
    assert restored["type"] == "tts"
    assert restored["data"]["label"] == "Speech Synthesis"
    for key in ("mode", "username", "voice_id"):
        assert restored["data"][key] == node["data"][key]
    assert restored["data"]["config"] == {"ttsApiUrl": "http://tts.local"}
    assert "_metadata" not in restored["data"]


def test_conversion_does_not_mutate_input():
    node = _legacy_tts_node()
    to_standard(node)
    assert "_metadata" not in node["data"]
    assert node["data"]["config"] == {"ttsApiUrl": "http://tts.local"}


def test_dynamic_conversion_merge_order():
    node = {"id": "asr-1", "type": "asr-node", "data": {"language": "en", "config": {"model": "large"}}}

    standard = from_dynamic_node(node, _dynamic_node_config())

    assert standard["data"]["config"] == {"language": "en", "model": "large", "beam": 5}
    assert standard["data"]["_metadata"]["sourceType"] == "dynamic"


def test_dynamic_conversion_without_template_returns_original():
    node = {"id": "x-1", "type": "custom-thing", "data": {}}
    assert from_dynamic_node(node) is node


def test_auto_convert_legacy_to_dynamic_without_template_degrades():
    node = _legacy_tts_node()
    converted = auto_convert(node, "dynamic")
    assert detect_format(converted) is DataFormat.STANDARD


def test_normalize_output_is_idempotent():
    envelope = create_text("hello", "text-1")
    assert normalize_output("text-input", envelope, "text-1") is envelope

    as_dict = envelope.to_dict()
    assert normalize_output("asr-node", as_dict, "asr-1") is as_dict


def test_normalize_legacy_heuristics():
    text = normalize_output("text-input", "hi", "n1")
    assert text.type == "text"
    assert text.text == "hi"

    audio = normalize_output("tts", {"audio_id": "a1", "audio_url": "http://a/1.wav", "text": "hi"}, "n2")
    assert audio.type == "audio"
    assert audio.content["audio"]["id"] == "a1"
    assert audio.metadata["originalText"] == "hi"

    assert normalize_output("tts", RuntimeError("boom"), "n3").type == "error"
    assert normalize_output("download", {"error": "disk full"}, "n4").content == {"error": "disk full"}
    assert normalize_output("output", {"content": {"text": "x"}}, "n5").text == "x"
    assert normalize_output("output", 42, "n6").content == {"data": 42}


def test_normalize_dynamic_output_schema():
    schema_text = {"transcript": {"type": "string"}}
    assert normalize_output("asr-node", {"transcript": "abc"}, "d1", schema_text).text == "abc"
    assert normalize_output("asr-node", "abc", "d1", schema_text).type == "text"
    # mismatch passes the raw value through
    assert normalize_output("asr-node", 5, "d1", schema_text) == 5

    data = normalize_output("asr-node", {"segments": []}, "d1", {"result": {"type": "object"}})
    assert data.type == "data"

    file_payload = {"name": "clip.mp4"}
    assert normalize_output("media-input", file_payload, "d1", {"file": {"type": "File"}}) is file_payload


def test_normalize_dynamic_output_without_schema():
    assert normalize_output("asr-node", "plain", "d1").type == "text"
    wrapped = normalize_output("asr-node", [1, 2], "d1")
    assert wrapped.type == "data"
    assert wrapped.to_dict()["content"] == {"data": [1, 2]}
    assert wrapped.metadata["preserveOriginal"] is True


def test_prepare_input_unwraps_text_for_text_consumers():
    envelope = create_text("hello", "text-1")
    assert prepare_input(envelope, "tts") == "hello"
    assert prepare_input(envelope, "text-input") == "hello"
    assert prepare_input(envelope.to_dict(), "tts") == "hello"


def test_prepare_input_tts_falls_back_to_original_text():
    audio = create_audio({"id": "a1"}, "tts-1", {"originalText": "spoken"})
    assert prepare_input(audio, "tts") == "spoken"


def test_prepare_input_passes_envelope_to_other_types():
    envelope = create_text("hello", "text-1")
    assert prepare_input(envelope, "download") is envelope
    assert prepare_input(envelope, "asr-node", {"text": {"type": "string"}}) == "hello"
    assert prepare_input(None, "tts") is None
    assert prepare_input("raw", "tts") == "raw"


def test_workflow_data_rejects_unknown_type():
    with pytest.raises(ValueError):
        WorkflowData(type="video", content={})


def test_workflow_data_content_is_detached():
    content = {"text": "a"}
    envelope = WorkflowData(type="text", content=content)
    content["text"] = "b"
    assert envelope.text == "a"


def test_workflow_data_content_is_read_only():
    envelope = create_audio({"id": "a1", "tags": ["x"]}, "tts-1")

    with pytest.raises(TypeError):
        envelope.content["audio"] = {}
    with pytest.raises(TypeError):
        envelope.content["audio"]["id"] = "a2"
    with pytest.raises(AttributeError):
        envelope.content["audio"]["tags"].append("y")

    exported = envelope.to_dict()
    exported["content"]["audio"]["id"] = "a2"
    assert envelope.content["audio"]["id"] == "a1"
    assert exported["content"]["audio"]["tags"] == ["x"]


def test_rewrapped_envelope_shares_no_mutable_state():
    envelope = create_text("hello", "n1")
    passed_on = normalize_output("text-input", envelope, "n1")

    with pytest.raises(TypeError):
        passed_on.content["text"] = "changed"
    assert envelope.text == "hello"
    assert copy.deepcopy(envelope) == envelope


def test_clone_refreshes_metadata():
    envelope = create_text("hello", "text-1")
    copy = clone(envelope, source="replay")
    assert copy.type == "text"
    assert copy.content == envelope.content
    assert copy.metadata["source"] == "replay"
    assert copy.metadata["nodeId"] == "text-1"


def test_validate_workflow_data_reports_problems():
    assert validate_workflow_data(create_text("x"))["valid"] is True
    result = validate_workflow_data({"type": "video", "content": {}, "metadata": {}})
    assert result["valid"] is False
    assert len(result["errors"]) == 2
    assert not is_workflow_data({"type": "text", "content": {}})


def test_preview_and_size_formatting():
    preview = get_preview(create_text("x" * 60))
    assert preview["summary"] == "x" * 50 + "..."
    assert preview["details"] == "60 characters"
    assert format_size(0) == "0 B"
    assert format_size(1536) == "1.5 KB"
    assert format_size(None) == "unknown"
