"""
Named settings presets.

Presets are snapshots of the tunable settings stored in a single JSON file.
Loading a preset returns a new Settings instance; the caller decides where
to install it.
"""

import json
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from config.settings import Settings
from core import get_logger, InvalidInputError, StorageError
from schemas import Preset

logger = get_logger(__name__)

# Settings that describe the deployment rather than summarization behaviour
NON_PRESET_FIELDS = {
    "PRESETS_FILE",
    "LOG_LEVEL",
    "ENVIRONMENT",
    "TOKENIZER_MODEL",
    "MEMORY_STORE_DIR",
}


class PresetStore:
    """Create, overwrite, delete, export and import named presets."""

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path) if path else None
        self._presets: List[Preset] = []
        if self.path and self.path.exists():
            self._read()

    def _read(self) -> None:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            self._presets = [Preset.model_validate(p) for p in raw]
        except (OSError, ValueError, ValidationError) as e:
            raise StorageError(f"could not read presets: {e}", store=str(self.path))

    def _write(self) -> None:
        if not self.path:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            payload = [p.model_dump(mode="json") for p in self._presets]
            self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as e:
            raise StorageError(f"could not write presets: {e}", store=str(self.path))

    def _find(self, name: str) -> Optional[int]:
        for i, preset in enumerate(self._presets):
            if preset.name == name:
                return i
        return None

    def list(self) -> List[Preset]:
        return list(self._presets)

    def save(self, name: str, settings: Settings) -> Preset:
        """Snapshot settings under name, overwriting an existing preset."""
        name = (name or "").strip()
        if not name:
            raise InvalidInputError("name", "preset name is required")

        snapshot = settings.model_dump(exclude=NON_PRESET_FIELDS)
        preset = Preset(name=name, settings=snapshot)

        index = self._find(name)
        if index is None:
            self._presets.append(preset)
            logger.info("Preset saved", name=name)
        else:
            self._presets[index] = preset
            logger.info("Preset updated", name=name)

        self._write()
        return preset

    def load(self, name: str, base: Settings) -> Settings:
        """Return base settings with the preset applied on top."""
        index = self._find(name)
        if index is None:
            raise InvalidInputError("name", f"preset '{name}' not found")

        overrides = {
            k: v for k, v in self._presets[index].settings.items()
            if k not in NON_PRESET_FIELDS
        }
        merged = {**base.model_dump(), **overrides}
        try:
            loaded = Settings(**merged)
        except ValidationError as e:
            raise InvalidInputError("preset", f"preset '{name}' is invalid: {e}")
        logger.info("Preset loaded", name=name)
        return loaded

    def delete(self, name: str) -> None:
        index = self._find(name)
        if index is None:
            raise InvalidInputError("name", f"preset '{name}' not found")
        self._presets.pop(index)
        self._write()
        logger.info("Preset deleted", name=name)

    def export(self, name: str) -> str:
        index = self._find(name)
        if index is None:
            raise InvalidInputError("name", f"preset '{name}' not found")
        return self._presets[index].model_dump_json(indent=2)

    def import_(self, data: str) -> Preset:
        """Import a preset from JSON; a clashing name gets an ' (imported)' suffix."""
        try:
            preset = Preset.model_validate_json(data)
        except ValidationError as e:
            raise InvalidInputError("preset", f"invalid preset format: {e}")

        if self._find(preset.name) is not None:
            preset = preset.model_copy(update={"name": f"{preset.name} (imported)"})

        self._presets.append(preset)
        self._write()
        logger.info("Preset imported", name=preset.name)
        return preset
