"""Built-in templates of the fixed-shape node types."""

from __future__ import annotations

from typing import Dict, List

from ..models.node_types import SAFE_FILENAME_PATTERN
from ..models.template import NodeTemplate

DOWNLOAD_FORMATS = ["auto", "wav", "mp3", "txt", "json", "png", "jpg"]


def build_legacy_templates() -> List[NodeTemplate]:
    return [
        NodeTemplate(
            type="text-input",
            label="Text Input",
            icon="📝",
            description="Enter the text to process",
            theme="purple",
            category="input",
            source_type="legacy",
            output_type="text",
            default_data={"text": "", "placeholder": "Enter text..."},
            validation={
                "required": ["text"],
                "textMinLength": 1,
                "rules": {"text": {"type": "string", "minLength": 1}},
            },
        ),
        NodeTemplate(
            type="tts",
            label="Speech Synthesis",
            icon="🎤",
            description="Convert text to speech",
            theme="purple",
            category="processor",
            source_type="legacy",
            output_type="audio",
            requires_api="ttsApiUrl",
            default_data={
                "mode": "character",
                "character": "",
                "selectedCharacter": "",
                "gender": "",
                "pitch": "",
                "speed": "",
                "username": "workflow_user",
                "voice_id": "",
            },
            validation={
                "required": ["mode"],
                "conditionalRequired": {
                    "character": ["selectedCharacter"],
                    "custom": ["username", "voice_id"],
                },
                "rules": {"mode": {"enum": ["character", "custom"]}},
            },
        ),
        NodeTemplate(
            type="output",
            label="Output",
            icon="👁️",
            description="Preview and emit the pipeline result",
            theme="orange",
            category="output",
            source_type="legacy",
            output_type="display",
            default_data={
                "displayMode": "auto",
                "autoExpand": False,
                "showValidation": True,
                "downloadEnabled": True,
                "maxPreviewSize": 1000,
                "preferredPanel": "main",
            },
            validation={
                "required": [],
                "rules": {
                    "displayMode": {"enum": ["auto", "compact", "full"]},
                    "maxPreviewSize": {"type": "number", "min": 100, "max": 10000},
                },
            },
        ),
        NodeTemplate(
            type="download",
            label="Download",
            icon="📥",
            description="Save the result as a local file",
            theme="green",
            category="output",
            source_type="legacy",
            output_type="file",
            is_terminal=True,
            default_data={
                "autoDownload": False,
                "customFileName": "",
                "customPath": "",
                "downloadFormat": "auto",
                "showProgress": True,
                "allowRetry": True,
            },
            validation={
                "required": [],
                "rules": {
                    "downloadFormat": {"enum": DOWNLOAD_FORMATS},
                    "customFileName": {"type": "string", "pattern": SAFE_FILENAME_PATTERN},
                },
            },
        ),
    ]


LEGACY_TEMPLATES: Dict[str, NodeTemplate] = {template.type: template for template in build_legacy_templates()}
