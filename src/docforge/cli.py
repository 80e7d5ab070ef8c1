"""docforge CLI — inspect, hash and evaluate documents from the shell.

Usage:
    python -m docforge.cli list --data data/documents
    python -m docforge.cli hash contract.json
    python -m docforge.cli verify contract.json
    python -m docforge.cli formula "{{price}} * qty" --var price=10 --var qty=3
    python -m docforge.cli outline contract.json
    python -m docforge.cli visible contract.json --values '{"contractType": "Album"}'
    python -m docforge.cli audit-trail contract.json --json
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from docforge.config import EditorConfig
from docforge.crypto.canonical import IntegrityStatus, hash_document, verify_document
from docforge.logic.formula import FormulaEngine
from docforge.logic.visibility import resolve_visible
from docforge.models.block import Block
from docforge.models.document import DocumentState
from docforge.persistence.audit_log import build_audit_trail, format_audit_trail
from docforge.persistence.document_store import JsonFileDocumentStore, StorageError


DEFAULT_CONFIG = Path(__file__).resolve().parents[2] / "config"
DEFAULT_DATA = Path(__file__).resolve().parents[2] / "data" / "documents"


def _load_config(config_dir: Path) -> EditorConfig:
    if (config_dir / EditorConfig.CONFIG_FILENAME).exists():
        return EditorConfig.from_config_dir(config_dir)
    return EditorConfig.default()


def _load_document(path: Path) -> DocumentState:
    with path.open("r", encoding="utf-8") as f:
        return DocumentState.from_dict(json.load(f))


def _parse_assignments(pairs: list[str]) -> dict[str, str]:
    values: dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise ValueError(f"Expected name=value, got {pair!r}")
        values[name] = value
    return values


def cmd_list(args: argparse.Namespace) -> int:
    store = JsonFileDocumentStore(args.data, seed_sample=args.seed)
    for meta in store.list_documents():
        print(f"{meta.id}\t{meta.status}\t{meta.title}")
    return 0


def cmd_hash(args: argparse.Namespace) -> int:
    digest = hash_document(_load_document(args.file))
    print(digest)
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    status = verify_document(_load_document(args.file))
    print(status.value)
    return 0 if status == IntegrityStatus.VERIFIED else 1


def cmd_formula(args: argparse.Namespace) -> int:
    config = _load_config(args.config)
    engine = FormulaEngine(precision=config.formula_precision)
    result = engine.evaluate(args.expression, _parse_assignments(args.var))
    print(result)
    return 0 if isinstance(result, float) else 1


def _print_outline(blocks: list[Block], depth: int = 0, marker: str = "") -> None:
    for block in blocks:
        label = block.label or (block.content or "")[:40].replace("\n", " ")
        print(f"{'  ' * depth}{marker}{block.type.value} {block.id}  {label}".rstrip())
        _print_outline(block.children, depth + 1)
        _print_outline(block.else_children, depth + 1, marker="else: ")


def cmd_outline(args: argparse.Namespace) -> int:
    document = _load_document(args.file)
    print(f"{document.title} [{document.status.value}]")
    _print_outline(document.blocks, 1)
    return 0


def cmd_visible(args: argparse.Namespace) -> int:
    document = _load_document(args.file)
    form_values: dict[str, Any] = json.loads(args.values) if args.values else {}
    for item in resolve_visible(document.blocks, form_values):
        print(f"{'  ' * item.depth}{item.block.type.value} {item.key}")
    return 0


def cmd_audit_trail(args: argparse.Namespace) -> int:
    trail = build_audit_trail(_load_document(args.file))
    if args.json:
        print(json.dumps(trail, indent=2, ensure_ascii=False))
    else:
        print(format_audit_trail(trail))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docforge",
        description="docforge — block-tree document engine CLI",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help="Path to config directory (default: config/)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )
    sub = parser.add_subparsers(dest="command")

    # list
    p_list = sub.add_parser("list", help="List stored documents, newest first")
    p_list.add_argument("--data", type=Path, default=DEFAULT_DATA, help="Document storage directory")
    p_list.add_argument("--seed", action="store_true", help="Seed an empty store with a sample")

    # hash / verify / outline / audit-trail take a document file
    p_hash = sub.add_parser("hash", help="Print the content hash of a document file")
    p_hash.add_argument("file", type=Path)

    p_verify = sub.add_parser("verify", help="Check the stored sha256 against the content")
    p_verify.add_argument("file", type=Path)

    p_outline = sub.add_parser("outline", help="Print the block tree")
    p_outline.add_argument("file", type=Path)

    p_trail = sub.add_parser("audit-trail", help="Export the audit trail")
    p_trail.add_argument("file", type=Path)
    p_trail.add_argument("--json", action="store_true", help="Emit JSON instead of text")

    # formula
    p_formula = sub.add_parser("formula", help="Evaluate a formula expression")
    p_formula.add_argument("expression")
    p_formula.add_argument(
        "--var", action="append", default=[], metavar="NAME=VALUE",
        help="Variable value (repeatable)",
    )

    # visible
    p_visible = sub.add_parser("visible", help="List blocks visible for given answers")
    p_visible.add_argument("file", type=Path)
    p_visible.add_argument("--values", help="Form values as a JSON object")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "list": cmd_list,
        "hash": cmd_hash,
        "verify": cmd_verify,
        "formula": cmd_formula,
        "outline": cmd_outline,
        "visible": cmd_visible,
        "audit-trail": cmd_audit_trail,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    try:
        return handler(args)
    except (OSError, ValueError, KeyError, StorageError) as exc:
        print(f"Failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
