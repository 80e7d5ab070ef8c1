"""Editor configuration loaded from config/editor.json.

All keys are optional; missing keys take the defaults below. Unknown
keys are rejected so that a typo cannot silently fall back to a default.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class EditorConfig:
    """Tunables of the editor and its session."""
    hash_debounce_seconds: float = 0.5
    save_debounce_seconds: float = 1.0
    history_limit: int = 100
    spacer_height: int = 32
    column_width: int = 50
    formula_precision: int = 4
    default_user: str = "Me (Owner)"
    auto_sanitize: bool = False

    CONFIG_FILENAME = "editor.json"

    @classmethod
    def default(cls) -> EditorConfig:
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EditorConfig:
        """Build and validate a config from a plain dict.

        Raises:
            ValueError: on unknown keys or out-of-range values.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown editor config keys: {', '.join(unknown)}")
        config = cls(**data)
        errors = config.validate()
        if errors:
            raise ValueError("; ".join(errors))
        return config

    @classmethod
    def from_config_dir(cls, config_dir: Path) -> EditorConfig:
        """Load editor.json from a config directory.

        Raises:
            FileNotFoundError: If editor.json does not exist.
            ValueError: If the file is structurally invalid.
        """
        path = Path(config_dir) / cls.CONFIG_FILENAME
        if not path.exists():
            raise FileNotFoundError(f"Editor config not found: {path}")
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Editor config must be a JSON object: {path}")
        return cls.from_dict(data)

    def validate(self) -> list[str]:
        """Return a list of problems (empty when valid)."""
        errors: list[str] = []
        if self.hash_debounce_seconds < 0:
            errors.append("hash_debounce_seconds must be >= 0")
        if self.save_debounce_seconds < 0:
            errors.append("save_debounce_seconds must be >= 0")
        if not isinstance(self.history_limit, int) or self.history_limit < 1:
            errors.append("history_limit must be a positive integer")
        if self.spacer_height < 0:
            errors.append("spacer_height must be >= 0")
        if not 0 < self.column_width <= 100:
            errors.append("column_width must be in (0, 100]")
        if not isinstance(self.formula_precision, int) or not 0 <= self.formula_precision <= 12:
            errors.append("formula_precision must be an integer in [0, 12]")
        if not self.default_user:
            errors.append("default_user must not be empty")
        return errors

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
