#!/usr/bin/env python3
"""docforge invariant checks against config and document files.

Usage:
    python tools/check_invariants.py [document.json ...]
"""

import json
import sys
from pathlib import Path

from docforge.config import EditorConfig
from docforge.crypto.canonical import IntegrityStatus, verify_document
from docforge.models.document import DocumentState
from docforge.tree.manager import TreeManager


ROOT = Path(__file__).resolve().parents[1]
CONFIG_DIR = ROOT / "config"


def load_json(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def check_config(errors: list[str]) -> None:
    """Editor config must load and stay inside its documented ranges."""
    try:
        config = EditorConfig.from_config_dir(CONFIG_DIR)
    except (FileNotFoundError, ValueError, TypeError) as exc:
        errors.append(f"config/editor.json: {exc}")
        return
    if config.column_width * 2 > 100:
        errors.append("column_width must allow two columns side by side (<= 50)")
    if config.hash_debounce_seconds > config.save_debounce_seconds:
        errors.append("hash_debounce_seconds must not exceed save_debounce_seconds")


def check_document(path: Path, errors: list[str]) -> None:
    """Tree invariants and integrity of one stored document."""
    try:
        document = DocumentState.from_dict(load_json(path))
    except (OSError, ValueError, KeyError, TypeError) as exc:
        errors.append(f"{path}: cannot load: {exc}")
        return

    for problem in TreeManager.validate(document.blocks):
        errors.append(f"{path}: {problem}")

    party_ids = {p.id for p in document.parties}
    for block in TreeManager.iter_nodes(document.blocks):
        if block.assigned_to_party_id and block.assigned_to_party_id not in party_ids:
            errors.append(
                f"{path}: block {block.id} assigned to unknown party "
                f"{block.assigned_to_party_id}"
            )

    timestamps = [e.timestamp for e in document.audit_log]
    if timestamps != sorted(timestamps):
        errors.append(f"{path}: audit log is not in chronological order")

    status = verify_document(document)
    if status in (IntegrityStatus.MISMATCH, IntegrityStatus.UNVERIFIABLE):
        errors.append(f"{path}: integrity {status.value}")


def check(document_paths: list[Path] | None = None) -> int:
    errors: list[str] = []

    check_config(errors)
    for path in document_paths or []:
        check_document(path, errors)

    if errors:
        print("Invariant check failed:")
        for err in errors:
            print(f"- {err}")
        return 1

    print("Invariant check passed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(check([Path(arg) for arg in sys.argv[1:]]))
