"""Command line entry point for the lifebook tools."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, TextIO, get_args, get_origin, get_type_hints

from .ai.client import AIClient
from .ai.expansion_questions import request_expansion_questions
from .ai.partial_edit import request_partial_edit
from .conversation.flow_advisor import FlowAdvisor
from .conversation.flow_analysis import LLMFlowAnalyzer, resolve_flow_decision
from .conversation.models import ConversationTurn
from .editor.patches import RESELECT_MESSAGE, apply_selection_patch
from .editor.selection import Selection
from .services.settings import Settings, SettingsStore, parse_bool, redact_secret
from .utils import logging as logging_utils

_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_LOGGER = logging.getLogger(__name__)


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    level = logging.DEBUG if debug else logging.WARNING
    logging_utils.setup_logging(level, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except (OSError, ValueError) as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return Settings()


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the `lifebook` console script."""

    parser = _build_parser()
    args = parser.parse_args(argv)

    debug = bool(args.debug) or _env_flag("LIFEBOOK_DEBUG", default=False)
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("LIFEBOOK_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return 2

    settings = load_settings(resolved_path, store=settings_store, overrides=cli_overrides or None)

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return 0

    if settings.debug_logging and not debug:
        configure_logging(True, force=True)

    if args.command is None:
        parser.print_help(sys.stderr)
        return 2
    return args.handler(args, settings)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lifebook",
        description="Patch autobiography manuscripts and decide the next interview question strategy.",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload (with secrets redacted) and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.lifebook/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings for this run (repeatable).",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    patch = commands.add_parser("patch", help="Replace a selected passage in a manuscript file.")
    patch.add_argument("document", type=Path, help="Manuscript text file.")
    _add_selection_arguments(patch)
    patch.add_argument("--replacement", required=True, help="Text that replaces the selection.")
    patch.add_argument("--in-place", action="store_true", help="Write the result back to the document.")
    patch.set_defaults(handler=_run_patch)

    advise = commands.add_parser("advise", help="Decide between a follow-up and a topic transition.")
    advise.add_argument("turns", type=Path, help="JSON file with a list of {question, answer} turns.")
    advise.add_argument(
        "--analyze",
        action="store_true",
        help="Ask the configured model first and fall back to the heuristic on failure.",
    )
    advise.set_defaults(handler=_run_advise)

    edit = commands.add_parser("edit", help="Ask the model to rewrite a selected passage.")
    edit.add_argument("document", type=Path, help="Manuscript text file.")
    _add_selection_arguments(edit)
    edit.add_argument("--instruction", required=True, help="What to change about the passage.")
    edit.add_argument("--apply", action="store_true", help="Apply the rewrite and print the new manuscript.")
    edit.set_defaults(handler=_run_edit)

    questions = commands.add_parser("questions", help="Ask the model for interview questions that deepen a passage.")
    questions.add_argument("document", type=Path, help="Manuscript text file.")
    _add_selection_arguments(questions)
    questions.set_defaults(handler=_run_questions)
    return parser


def _add_selection_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--selection", required=True, help="The selected passage, as last seen by the user.")
    parser.add_argument("--start", type=int, default=0, help="Last known start offset of the selection.")
    parser.add_argument("--end", type=int, default=None, help="Last known end offset of the selection.")


def _selection_from_args(args: argparse.Namespace) -> Selection:
    end = args.end if args.end is not None else args.start + len(args.selection)
    return Selection(text=args.selection, approx_start=args.start, approx_end=end)


def _run_patch(args: argparse.Namespace, settings: Settings) -> int:
    document = _read_text(args.document)
    result = apply_selection_patch(document, _selection_from_args(args), args.replacement)
    if not result.ok:
        message = result.error.message if result.error else RESELECT_MESSAGE
        print(message, file=sys.stderr)
        return 1
    _LOGGER.info("Patched %s via %s strategy", args.document, result.strategy.value if result.strategy else "?")
    if args.in_place:
        args.document.write_text(result.text, encoding="utf-8")
    else:
        sys.stdout.write(result.text)
    return 0


def _run_advise(args: argparse.Namespace, settings: Settings) -> int:
    try:
        turns = _load_turns(args.turns)
    except (OSError, ValueError, TypeError) as exc:
        print(f"Unable to read turns from {args.turns}: {exc}", file=sys.stderr)
        return 2

    window = turns[-settings.flow_window:] if settings.flow_window > 0 else turns
    advisor = FlowAdvisor(settings.flow.to_thresholds())
    resolution = asyncio.run(_resolve(window, advisor, settings, analyze=args.analyze))
    output: Dict[str, Any] = resolution.decision.to_dict()
    if resolution.empathy_response:
        output["empathy_response"] = resolution.empathy_response
    if resolution.fallback_used:
        output["fallback_used"] = True
    json.dump(output, sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")
    return 0


async def _resolve(turns: List[ConversationTurn], advisor: FlowAdvisor, settings: Settings, *, analyze: bool):
    if not analyze:
        return await resolve_flow_decision(turns, advisor=advisor)
    client = AIClient(settings.client_settings())
    try:
        analyzer = LLMFlowAnalyzer(client, project_title=settings.project_title)
        return await resolve_flow_decision(turns, analyzer, advisor=advisor)
    finally:
        await client.aclose()


def _run_edit(args: argparse.Namespace, settings: Settings) -> int:
    document = _read_text(args.document)
    selection = _selection_from_args(args)
    if not settings.api_key:
        print("An API key is required: use --set api_key=... or LIFEBOOK_API_KEY.", file=sys.stderr)
        return 2

    async def _request():
        client = AIClient(settings.client_settings())
        try:
            return await request_partial_edit(
                client,
                document,
                selection,
                args.instruction,
                context_radius=settings.context_radius,
                temperature=settings.temperature,
            )
        finally:
            await client.aclose()

    proposal = asyncio.run(_request())
    if not args.apply:
        json.dump(
            {
                "original_text": proposal.original_text,
                "modified_text": proposal.modified_text,
                "edit_summary": proposal.edit_summary,
                "change_type": proposal.change_type,
                "intent": proposal.intent.value,
            },
            sys.stdout,
            indent=2,
            ensure_ascii=False,
        )
        sys.stdout.write("\n")
        return 0

    result = apply_selection_patch(document, selection, proposal.modified_text)
    if not result.ok:
        print(result.error.message if result.error else RESELECT_MESSAGE, file=sys.stderr)
        return 1
    sys.stdout.write(result.text)
    return 0


def _run_questions(args: argparse.Namespace, settings: Settings) -> int:
    document = _read_text(args.document)
    selection = _selection_from_args(args)
    if not settings.api_key:
        print("An API key is required: use --set api_key=... or LIFEBOOK_API_KEY.", file=sys.stderr)
        return 2

    async def _request():
        client = AIClient(settings.client_settings())
        try:
            return await request_expansion_questions(
                client,
                document,
                selection,
                context_radius=settings.context_radius,
                temperature=settings.temperature,
            )
        finally:
            await client.aclose()

    try:
        result = asyncio.run(_request())
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    json.dump(result.to_dict(), sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")
    return 0


def _read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def _load_turns(path: Path) -> List[ConversationTurn]:
    payload = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(payload, Mapping):
        payload = payload.get("turns", [])
    if not isinstance(payload, list):
        raise TypeError("expected a list of turns")
    return [ConversationTurn.from_dict(entry) for entry in payload if isinstance(entry, Mapping)]


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    return default if value is None else parse_bool(value)


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    """Turn ``KEY=VALUE`` strings into typed :class:`Settings` overrides."""

    hints = get_type_hints(Settings)
    overrides: Dict[str, Any] = {}
    for entry in items:
        key, sep, raw_value = entry.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        if key not in hints:
            raise ValueError(f"Unknown setting '{key}'.")
        overrides[key] = _coerce_value(hints[key], raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    optional = type(None) in get_args(annotation)
    if optional and raw_value.lower() in {"none", "null"}:
        return None
    target = _base_type(annotation)
    if target is bool:
        return _strict_bool(raw_value)
    if target in (int, float):
        return target(raw_value)
    if target is dict or is_dataclass(target):
        # Nested settings are merged field by field by the store.
        try:
            payload = json.loads(raw_value or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError("Object overrides must be valid JSON objects") from exc
        if not isinstance(payload, dict):
            raise ValueError("Object overrides must be valid JSON objects")
        return payload
    return raw_value


def _base_type(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    if origin is dict:
        return dict
    concrete = [arg for arg in get_args(annotation) if arg is not type(None)]
    return concrete[0] if concrete else origin


def _strict_bool(value: str) -> bool:
    lowered = value.lower()
    if lowered in _FALSE_VALUES:
        return False
    if parse_bool(lowered):
        return True
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    """Print the effective settings and where they came from."""

    destination = stream or sys.stdout
    payload = asdict(settings)
    payload["api_key"] = redact_secret(settings.api_key)
    meta = {
        "path": str(store.path),
        "secret_backend": store.vault.strategy,
        "cli_overrides": sorted(overrides),
        "environment_variables": sorted(name for name in os.environ if name.startswith("LIFEBOOK_")),
    }
    json.dump({"settings": payload, "meta": meta}, destination, indent=2, ensure_ascii=False)
    destination.write("\n")
