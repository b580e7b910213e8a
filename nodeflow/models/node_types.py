"""Node type families and the field tables shared across the core."""

from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, Tuple


class DataFormat(str, Enum):
    LEGACY = "legacy"
    DYNAMIC = "dynamic"
    STANDARD = "standard"
    UNKNOWN = "unknown"


LEGACY_NODE_TYPES: FrozenSet[str] = frozenset({"text-input", "tts", "output", "download"})
KNOWN_DYNAMIC_TYPES: FrozenSet[str] = frozenset({"asr-node", "media-input", "simple-test"})

# Failures of these types are logged and the run continues.
CONTINUE_ON_FAILURE_TYPES: FrozenSet[str] = frozenset({"download", "output"})

# Flat keys of a legacy node's data bag that are bookkeeping, not configuration.
LEGACY_EXCLUDED_KEYS: FrozenSet[str] = frozenset(
    {
        "label",
        "nodeType",
        "nodeIndex",
        "totalNodes",
        "config",
        "result",
        "isProcessing",
        "showAddButton",
        "hideTestButton",
        "onDataChange",
        "onAddNode",
        "onSetProcessor",
        "_metadata",
        "disabled",
        "cancelled",
        "skipped",
    }
)

# System-level keys that may live in a node's config bag.
EXTERNAL_CONFIG_KEYS: Tuple[str, ...] = (
    "ttsApiUrl",
    "asrApiUrl",
    "apiKey",
    "baseUrl",
    "timeout",
    "retryAttempts",
    "debug",
    "logLevel",
)

LEGACY_FIELD_MAP: Dict[str, Tuple[str, ...]] = {
    "text-input": ("text", "placeholder"),
    "tts": ("mode", "character", "selectedCharacter", "gender", "pitch", "speed", "username", "voice_id"),
    "output": ("displayMode", "autoExpand", "showValidation", "downloadEnabled", "maxPreviewSize", "preferredPanel"),
    "download": ("autoDownload", "customFileName", "customPath", "downloadFormat", "showProgress", "allowRetry"),
}

# Characters that may not appear in a file name on common filesystems.
ILLEGAL_FILENAME_PATTERN = r'[<>:"/\\|?*]'
SAFE_FILENAME_PATTERN = r'^[^<>:"/\\|?*]*$'
