"""FocusFlow overlay diagnostics CLI."""

from __future__ import annotations

import argparse
import json
from pathlib import Path

from focusflow.config import FocusFlowSettings
from focusflow.overlay import OverlayImportError, OverlayStore


def load_store(args: argparse.Namespace) -> OverlayStore:
    path = Path(args.path) if args.path else FocusFlowSettings().overlay_path
    return OverlayStore.from_path(path.expanduser())


def cmd_show(args: argparse.Namespace) -> None:
    store = load_store(args)
    document = store.snapshot()
    if args.json:
        print(document.model_dump_json(by_alias=True, indent=2))
        return

    print(f"version: {document.version}")
    print(f"last sync: {document.last_sync.isoformat()}")
    print(f"tracks: {len(document.tracks)}")
    print(f"goals: {len(document.goals)}")
    print(f"tasks: {len(document.tasks)}")
    for track_id, record in sorted(document.tracks.items(), key=lambda item: item[1].order_index):
        print(f"  {track_id} [{record.color}] order={record.order_index}")


def cmd_export(args: argparse.Namespace) -> None:
    store = load_store(args)
    payload = store.export_json()
    if args.output:
        Path(args.output).write_text(payload + "\n", encoding="utf-8")
        print(f"Exported overlay to {args.output}")
    else:
        print(payload)


def cmd_import(args: argparse.Namespace) -> None:
    store = load_store(args)
    try:
        text = Path(args.file).read_text(encoding="utf-8")
    except OSError as exc:
        print(f"Cannot read {args.file}: {exc}")
        raise SystemExit(1)
    try:
        document = store.import_json(text)
    except OverlayImportError as exc:
        print(f"Import failed: {exc}")
        raise SystemExit(1)
    print(
        f"Imported {len(document.tracks)} tracks, {len(document.goals)} goals, "
        f"{len(document.tasks)} tasks"
    )


def cmd_reset(args: argparse.Namespace) -> None:
    if not args.yes:
        print("Refusing to reset without --yes")
        raise SystemExit(1)
    store = load_store(args)
    store.clear()
    print("Overlay reset to defaults")


def cmd_session(args: argparse.Namespace) -> None:
    store = load_store(args)
    print(json.dumps(store.get_session().model_dump(mode="json", by_alias=True), indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="FocusFlow overlay diagnostics")
    parser.add_argument("--path", help="Overlay file (defaults to FOCUSFLOW_OVERLAY_PATH)")
    sub = parser.add_subparsers(dest="cmd")

    p_show = sub.add_parser("show", help="Summarize overlay records")
    p_show.add_argument("--json", action="store_true", help="Output the whole document as JSON")
    p_show.set_defaults(func=cmd_show)

    p_export = sub.add_parser("export", help="Export the overlay document")
    p_export.add_argument("--output", help="Write to this file instead of stdout")
    p_export.set_defaults(func=cmd_export)

    p_import = sub.add_parser("import", help="Replace the overlay with an exported document")
    p_import.add_argument("file")
    p_import.set_defaults(func=cmd_import)

    p_reset = sub.add_parser("reset", help="Delete the overlay file")
    p_reset.add_argument("--yes", action="store_true", help="Confirm the reset")
    p_reset.set_defaults(func=cmd_reset)

    p_session = sub.add_parser("session", help="Print the focus session record")
    p_session.set_defaults(func=cmd_session)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
