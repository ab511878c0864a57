"""JSON-based config store and runtime tunables."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_MODELS = {
    "video": "veo-3.1-generate-preview",
    "video_fast": "veo-3.1-fast-generate-preview",
    "tts": "gemini-2.5-flash-preview-tts",
    "live": "gemini-2.5-flash-native-audio-preview-12-2025",
    "image": "gemini-2.5-flash-image",
    "image_pro": "gemini-3-pro-image-preview",
    "analyze": "gemini-3-pro-preview",
    "chat": "gemini-3-flash-preview",
    "chat_thinking": "gemini-3-pro-preview",
    "chat_maps": "gemini-2.5-flash",
}

API_KEY_ENV_VARS = ("GEMINI_API_KEY", "API_KEY")


@dataclass
class StudioSettings:
    """Timing and budget knobs for the generation workflow (seconds)."""

    retries: int = 3
    initial_retry_delay: float = 10.0
    poll_interval: float = 30.0
    max_polls: int = 60
    extension_pacing: float = 15.0
    download_timeout: float = 300.0


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "omnigen_studio" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_api_key(self) -> str:
        for name in API_KEY_ENV_VARS:
            value = os.getenv(name, "").strip()
            if value:
                return value
        data = self._read_all()
        return str(data.get("api_key", ""))

    def set_api_key(self, key: str) -> None:
        data = self._read_all()
        data["api_key"] = key
        self._write_all(data)

    def get_output_dir(self) -> str:
        data = self._read_all()
        return str(data.get("output_dir", "output"))

    def set_output_dir(self, path: str) -> None:
        data = self._read_all()
        data["output_dir"] = path
        self._write_all(data)

    def get_models(self) -> dict:
        """Default model names, overridden per key by the ``models`` section."""
        data = self._read_all()
        overrides = data.get("models", {})
        models = dict(DEFAULT_MODELS)
        if isinstance(overrides, dict):
            models.update({k: str(v) for k, v in overrides.items() if k in DEFAULT_MODELS})
        return models

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
