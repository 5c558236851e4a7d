"""Prompt preset management."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List

DEFAULT_PRESETS = (
    ("Sunset", "Golden late-afternoon light, long shadows, warm orange-pink sky"),
    ("Raw concrete", "Raw concrete with grainy texture, Japanese brutalist minimalism"),
    ("Urban night", "Night lighting, warm interior lights, reflections on wet ground"),
    ("Nordic day", "Diffuse Nordic light, even overcast sky, green grass, Scandinavian mood"),
    ("Biophilia", "Lush integrated vegetation, climbing plants, vertical garden, biophilic architecture"),
)


@dataclass(slots=True)
class PromptPreset:
    """Named instruction snippet inserted into the prompt box."""

    name: str
    text: str


class PromptPresetRegistry:
    """In-memory registry of prompt presets."""

    def __init__(self) -> None:
        self._presets: Dict[str, PromptPreset] = {}

    @classmethod
    def with_defaults(cls) -> "PromptPresetRegistry":
        """Return a registry pre-filled with the built-in presets."""
        registry = cls()
        for name, text in DEFAULT_PRESETS:
            registry.add(PromptPreset(name=name, text=text))
        return registry

    def load_from_file(self, path: Path) -> None:
        """Load presets from a JSON list of ``{"name", "text"}`` objects."""
        if not path.exists():
            return
        with path.open("r", encoding="utf-8") as fp:
            data = json.load(fp)
        for entry in data:
            self.add(PromptPreset(name=entry["name"], text=entry.get("text", "")))

    def add(self, preset: PromptPreset) -> None:
        """Register a new preset, replacing any with the same name."""
        self._presets[preset.name] = preset

    def list_presets(self) -> List[PromptPreset]:
        """Return all registered presets."""
        return list(self._presets.values())

    def names(self) -> List[str]:
        return [preset.name for preset in self._presets.values()]

    def get(self, name: str) -> PromptPreset:
        """Retrieve a preset by name."""
        try:
            return self._presets[name]
        except KeyError as exc:
            raise KeyError(f"Prompt preset '{name}' not found") from exc


def append_preset(prompt: str, preset: PromptPreset) -> str:
    """Append a preset to the current prompt text, skipping duplicates."""
    current = (prompt or "").strip()
    if preset.text in current:
        return current
    return f"{current} {preset.text}".strip()
