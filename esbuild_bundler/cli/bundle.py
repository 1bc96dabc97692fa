"""Command-line entry point for bundling and dependency staging."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import List, Mapping, Optional, Sequence

from esbuild_bundler.bundler import BundleOptions, BundleOrchestrator
from esbuild_bundler.config import BundlerSettings
from esbuild_bundler.entries import Entry, FileEntry, ScriptEntry
from esbuild_bundler.errors import BundlerError, ExecutionError, MalformedEventError
from esbuild_bundler.install.dependencies import ArchiveLayout
from esbuild_bundler.process.supervisor import CallbackListener
from esbuild_bundler.schemas.build import BuildEvent, EsBuildConfig


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    handlers = {
        "bundle": _handle_bundle,
        "watch": _handle_watch,
        "install": _handle_install,
        "clear": _handle_clear,
        "resolve": _handle_resolve,
    }
    handler = handlers.get(args.command)
    if handler is None:
        parser.error(f"Unknown command '{args.command}'")
        return 1
    try:
        return handler(args)
    except BundlerError as exc:
        payload: dict[str, object] = {"error": type(exc).__name__, "message": exc.args[0] if exc.args else ""}
        if isinstance(exc, ExecutionError):
            payload["output"] = exc.output
            payload["returncode"] = exc.returncode
        _print_json(payload)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="esbuild-bundler", description="Bundle webjar/mvnpm dependencies with esbuild.")
    parser.add_argument("--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (("bundle", "Bundle entries once."), ("watch", "Bundle entries on every change.")):
        command = subparsers.add_parser(name, help=help_text)
        _add_install_arguments(command)
        command.add_argument("--entry", action="append", help="Script entry point (repeatable).")
        command.add_argument(
            "--script-entry",
            action="append",
            help="Combined entry as name=a.js,b.js (repeatable).",
        )
        command.add_argument("--esbuild-version")
        command.add_argument("--minify", action="store_true")
        command.add_argument("--sourcemap", action="store_true")
        command.add_argument("--splitting", action="store_true")
        command.add_argument("--format", default="esm")
        command.add_argument("--option", action="append", help="Passthrough esbuild flag key=value.")

    install = subparsers.add_parser("install", help="Stage dependency archives into node_modules.")
    _add_install_arguments(install)

    clear = subparsers.add_parser("clear", help="Remove installed node_modules.")
    clear.add_argument("--work-dir", required=True)
    clear.add_argument("--workspace-root")

    resolve = subparsers.add_parser("resolve", help="Resolve the esbuild executable.")
    resolve.add_argument("--esbuild-version")

    return parser


def _add_install_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--dependency", action="append", default=[], help="Archive path (repeatable).")
    parser.add_argument("--layout", choices=[layout.value for layout in ArchiveLayout], default=ArchiveLayout.MVNPM.value)
    parser.add_argument("--work-dir")
    parser.add_argument("--workspace-root")


def _handle_bundle(args: argparse.Namespace) -> int:
    orchestrator = _orchestrator(args)
    result = orchestrator.bundle(_bundle_options(args))
    payload = {
        "dist": str(result.dist),
        "files": sorted(path.relative_to(result.dist).as_posix() for path in result.dist.rglob("*") if path.is_file()),
        "returncode": result.result.returncode,
        "output": result.result.output,
    }
    _print_json(payload)
    return 0


def _handle_watch(args: argparse.Namespace) -> int:
    orchestrator = _orchestrator(args)

    def on_build(event: BuildEvent) -> None:
        print(event.model_dump_json(), flush=True)

    def on_malformed(error: MalformedEventError) -> None:
        print(json.dumps({"malformed": error.line, "message": error.args[0]}), flush=True)

    session = orchestrator.watch(_bundle_options(args), CallbackListener(on_build, on_malformed))
    with session:
        try:
            while session.is_alive():
                time.sleep(0.5)
        except KeyboardInterrupt:
            pass
    return 0


def _handle_install(args: argparse.Namespace) -> int:
    orchestrator = _orchestrator(args)
    report = orchestrator.install(_bundle_options(args))
    payload = {
        "work_dir": str(report.root),
        "node_modules": str(report.node_modules),
        "installed": [{"name": item.name, "path": str(item.path), "archive": str(item.archive)} for item in report.installed],
        "skipped": [{"archive": str(item.archive), "reason": item.reason} for item in report.skipped],
    }
    _print_json(payload)
    return 0


def _handle_clear(args: argparse.Namespace) -> int:
    workspace = _resolve_workspace(args.workspace_root)
    work_dir = _resolve_path(args.work_dir, workspace)
    _orchestrator(args).clear_dependencies(work_dir)
    _print_json({"work_dir": str(work_dir), "cleared": True})
    return 0


def _handle_resolve(args: argparse.Namespace) -> int:
    orchestrator = _orchestrator(args)
    path = orchestrator.executables.resolve(orchestrator.esbuild_version)
    _print_json({"version": orchestrator.esbuild_version, "path": str(path)})
    return 0


def _orchestrator(args: argparse.Namespace) -> BundleOrchestrator:
    settings = BundlerSettings.from_env()
    version = getattr(args, "esbuild_version", None)
    if version:
        settings = settings.model_copy(update={"esbuild_version": version})
    return BundleOrchestrator(settings)


def _bundle_options(args: argparse.Namespace) -> BundleOptions:
    workspace = _resolve_workspace(args.workspace_root)
    entries: List[Entry] = [FileEntry(_resolve_path(value, workspace)) for value in getattr(args, "entry", None) or []]
    for value in getattr(args, "script_entry", None) or []:
        name, scripts = _split_pair(value, "Script entry")
        entries.append(ScriptEntry(name, [_resolve_path(item, workspace) for item in scripts.split(",") if item.strip()]))

    config = EsBuildConfig()
    if hasattr(args, "format"):
        config = EsBuildConfig(
            minify=args.minify,
            sourcemap=args.sourcemap,
            splitting=args.splitting,
            format=args.format,
            options=_parse_options(args.option),
        )
    return BundleOptions(
        dependencies=[_resolve_path(value, workspace) for value in args.dependency],
        layout=ArchiveLayout(args.layout),
        entries=entries,
        work_dir=_resolve_path(args.work_dir, workspace) if args.work_dir else None,
        esbuild_config=config,
    )


def _parse_options(values: Optional[Sequence[str]]) -> Mapping[str, object]:
    options: dict[str, object] = {}
    for entry in values or []:
        key, raw_value = _split_pair(entry, "esbuild option")
        options[key] = _coerce_option_value(raw_value)
    return options


def _coerce_option_value(value: str) -> object:
    lowered = value.lower()
    if lowered in {"true", "false"}:
        return lowered == "true"
    return value


def _split_pair(entry: str, label: str) -> tuple[str, str]:
    if "=" not in entry:
        raise ValueError(f"{label} must be key=value (got '{entry}')")
    key, raw_value = entry.split("=", 1)
    return key.strip(), raw_value.strip()


def _resolve_workspace(value: Optional[str]) -> Path:
    return Path(value).resolve() if value else Path.cwd()


def _resolve_path(value: str, workspace: Path) -> Path:
    path = Path(value)
    if not path.is_absolute():
        path = workspace / path
    return path.resolve()


def _print_json(payload: Mapping[str, object]) -> None:
    print(json.dumps(payload, indent=2, default=str))


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
