from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any

from .baseline import BaselineSource, load_baseline
from .config import env_or_config, resolve_repo_path
from .diff_engine import Diff, apply_diff, build_diff, datasets_equivalent
from .errors import BaselineUnavailableError, MalformedInputError
from .models import Dataset
from .session import PromptSession
from .snapshot import SnapshotStore, build_dictionary_export
from .webui_server.settings import DEFAULT_BASELINE, DEFAULT_STATE_PATH


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise MalformedInputError(f"{path} is not valid JSON: {exc}") from exc


def _write_output(payload: dict[str, Any], output: str | None) -> None:
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if not output:
        print(text, flush=True)
        return
    path = resolve_repo_path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text + "\n", encoding="utf-8")
    print(f"[ok] wrote {path}", flush=True)


def load_dataset_argument(raw: str) -> Dataset:
    """A baseline location (directory or URL) or a JSON dataset/snapshot file."""
    if raw.startswith(("http://", "https://")):
        return load_baseline(BaselineSource(raw))
    path = resolve_repo_path(raw)
    if path.is_dir():
        return load_baseline(BaselineSource(str(path)))
    payload = _read_json(path)
    if isinstance(payload, dict) and isinstance(payload.get("dataset"), dict):
        payload = payload["dataset"]
    try:
        return Dataset.from_dict(payload)
    except ValueError as exc:
        raise MalformedInputError(f"{path}: {exc}") from exc


def load_diff_argument(raw: str) -> Diff:
    payload = _read_json(resolve_repo_path(raw))
    if isinstance(payload, dict) and "customDiff" in payload:
        payload = payload["customDiff"]
    return Diff.from_dict(payload)


def _session(args: argparse.Namespace) -> PromptSession:
    baseline = args.baseline or str(env_or_config("PROMPTDEX_BASELINE", "baseline.location", DEFAULT_BASELINE))
    if not baseline.startswith(("http://", "https://")):
        baseline = str(resolve_repo_path(baseline))
    state = args.state or str(env_or_config("PROMPTDEX_STATE_PATH", "state.path", DEFAULT_STATE_PATH))
    source = BaselineSource(baseline)
    session = PromptSession(
        baseline_loader=lambda: load_baseline(source),
        store=SnapshotStore(resolve_repo_path(state)),
        save_delay_seconds=0,
    )
    return session.initialize()


def cmd_diff(args: argparse.Namespace) -> int:
    print(f"[start] diff {args.base} -> {args.current}", flush=True)
    diff = build_diff(load_dataset_argument(args.base), load_dataset_argument(args.current))
    _write_output(build_dictionary_export(diff), args.output)
    print("[summary] " + json.dumps(diff.summary()), flush=True)
    return 0


def cmd_apply(args: argparse.Namespace) -> int:
    print(f"[start] apply {args.diff} onto {args.base}", flush=True)
    dataset = apply_diff(load_dataset_argument(args.base), load_diff_argument(args.diff))
    _write_output(dataset.to_dict(), args.output)
    print(
        "[summary] " + json.dumps({"categories": len(dataset.categories), "tags": dataset.tag_count()}),
        flush=True,
    )
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    base = load_dataset_argument(args.base)
    current = load_dataset_argument(args.current)
    diff = build_diff(base, current)
    rebuilt = apply_diff(base.clone(), diff)
    ok = datasets_equivalent(rebuilt, current)
    print("[summary] " + json.dumps({**diff.summary(), "round_trip": "ok" if ok else "mismatch"}), flush=True)
    if not ok:
        print("[error] re-applying the diff onto the base does not reproduce the current dataset", flush=True)
        return 1
    print("[ok] diff round-trip verified", flush=True)
    return 0


def cmd_export_dictionary(args: argparse.Namespace) -> int:
    session = _session(args)
    _write_output(session.export_dictionary(), args.output)
    return 0


def cmd_import_presets(args: argparse.Namespace) -> int:
    session = _session(args)
    path = resolve_repo_path(args.file)
    print(f"[start] importing presets from {path}", flush=True)
    report = session.import_presets(_read_json(path))
    session.save()
    for reference in report.dropped_references:
        print(f"[warn] dropped dangling reference {reference}", flush=True)
    print("[summary] " + json.dumps(report.to_dict()), flush=True)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="promptdex", description="Prompt tag dictionary tools.")
    sub = parser.add_subparsers(dest="command", required=True)

    diff = sub.add_parser("diff", help="Write the change-set of CURRENT against BASE.")
    diff.add_argument("base", help="Baseline directory/URL or dataset JSON file.")
    diff.add_argument("current", help="Dataset JSON file or snapshot.")
    diff.add_argument("--output", help="Write the export bundle here instead of stdout.")
    diff.set_defaults(handler=cmd_diff)

    apply = sub.add_parser("apply", help="Replay a stored change-set onto BASE.")
    apply.add_argument("base", help="Baseline directory/URL or dataset JSON file.")
    apply.add_argument("diff", help="Dictionary export bundle or bare diff JSON.")
    apply.add_argument("--output", help="Write the dataset here instead of stdout.")
    apply.set_defaults(handler=cmd_apply)

    check = sub.add_parser("check", help="Verify that diff then apply reproduces CURRENT.")
    check.add_argument("base")
    check.add_argument("current")
    check.set_defaults(handler=cmd_check)

    for name, handler, help_text in (
        ("export-dictionary", cmd_export_dictionary, "Export the saved session's dictionary changes."),
        ("import-presets", cmd_import_presets, "Merge a preset bundle into the saved session."),
    ):
        command = sub.add_parser(name, help=help_text)
        if name == "import-presets":
            command.add_argument("file", help="Preset bundle or legacy preset JSON.")
        else:
            command.add_argument("--output", help="Write the export here instead of stdout.")
        command.add_argument("--state", help="Snapshot file (default: PROMPTDEX_STATE_PATH).")
        command.add_argument("--baseline", help="Baseline directory or URL (default: PROMPTDEX_BASELINE).")
        command.set_defaults(handler=handler)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return int(args.handler(args))
    except BaselineUnavailableError as exc:
        print(f"[error] {exc}", flush=True)
        return 1
    except (MalformedInputError, FileNotFoundError) as exc:
        print(f"[error] {exc}", flush=True)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
