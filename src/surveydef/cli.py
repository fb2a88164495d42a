"""
Command-line front end.

    surveydef validate FILE [--version N]
    surveydef publish FILE N [-o OUT]
    surveydef duplicate FILE [-o OUT]
    surveydef render FILE TEXT --answers JSON_FILE [--version N]
    surveydef dot FILE [--version N] [--mode simple|detailed]

FILE is a survey snapshot in JSON (.json) or YAML (.yaml, .yml). Results go
to stdout (or OUT), diagnostics and logs to stderr.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from surveydef import __version__
from surveydef.backends.dot_generator import DotMode, generate_dot
from surveydef.cloner import duplicate
from surveydef.config import EngineConfig, load_config
from surveydef.errors import SerializationError, SurveyDefError, ValidationError
from surveydef.graph import Violation, validate
from surveydef.logging_setup import configure_logging
from surveydef.model import Survey, SurveyVersion
from surveydef.placeholders import resolve
from surveydef.serialization import survey_from_json, survey_from_yaml, survey_to_json, survey_to_yaml
from surveydef.versions import get_current_version, get_published_version, publish, require_version


logger = logging.getLogger(__name__)

YAML_SUFFIXES = {".yaml", ".yml"}


def _is_yaml(path: Path) -> bool:
    return path.suffix.lower() in YAML_SUFFIXES


def load_survey(path: str) -> Survey:
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise SurveyDefError(f"Cannot read {path}: {e}") from e
    return survey_from_yaml(text) if _is_yaml(p) else survey_from_json(text)


def write_survey(survey: Survey, out: Optional[str], like: str) -> None:
    """Write to `out`, or print to stdout in the format of `like`."""
    target = Path(out) if out else Path(like)
    text = survey_to_yaml(survey) if _is_yaml(target) else survey_to_json(survey) + "\n"
    if out:
        Path(out).write_text(text, encoding="utf-8")
        logger.info("Wrote %s", out)
    else:
        sys.stdout.write(text)


def _pick_version(survey: Survey, number: Optional[int], prefer_published: bool = False) -> SurveyVersion:
    if number is not None:
        return require_version(survey, number)
    version = get_published_version(survey) if prefer_published else None
    version = version or get_current_version(survey)
    if version is None:
        raise SurveyDefError(f"Survey {survey.id} has no versions")
    return version


def _print_violations(violations: List[Violation], stream) -> None:
    for v in violations:
        print(f"  [{v.kind.value}] {v.question_id or '-'}: {v.detail}", file=stream)


# =========================================================================
# Commands
# =========================================================================

def cmd_validate(args, config: EngineConfig) -> int:
    survey = load_survey(args.file)
    version = _pick_version(survey, args.version)
    violations = validate(version, ceiling=config.max_parallel_items, defaults=config.group_defaults())
    if violations:
        print(f"Version {version.version}: {len(violations)} violation(s)")
        _print_violations(violations, sys.stdout)
        return 1
    print(f"Version {version.version}: OK")
    return 0


def cmd_publish(args, config: EngineConfig) -> int:
    survey = load_survey(args.file)
    try:
        result = publish(survey, args.version, config=config)
    except ValidationError as e:
        print(f"error: {e}", file=sys.stderr)
        _print_violations(e.violations, sys.stderr)
        return 1
    write_survey(result, args.output, args.file)
    return 0


def cmd_duplicate(args, config: EngineConfig) -> int:
    survey = load_survey(args.file)
    write_survey(duplicate(survey, suffix=config.copy_suffix), args.output, args.file)
    return 0


def cmd_render(args, config: EngineConfig) -> int:
    survey = load_survey(args.file)
    version = _pick_version(survey, args.version, prefer_published=True)
    try:
        answers = json.loads(Path(args.answers).read_text(encoding="utf-8"))
    except OSError as e:
        raise SurveyDefError(f"Cannot read {args.answers}: {e}") from e
    except json.JSONDecodeError as e:
        raise SerializationError(f"Invalid answers JSON: {e}") from e
    if not isinstance(answers, dict):
        raise SerializationError("Answers file must contain a JSON object")
    rendered = resolve(
        args.text,
        answers,
        version.questions,
        max_length=config.placeholder_max_length,
        missing_value=config.missing_value_text,
        missing_option_marker=config.missing_option_marker,
    )
    print(rendered.text)
    return 0


def cmd_dot(args, config: EngineConfig) -> int:
    survey = load_survey(args.file)
    version = _pick_version(survey, args.version)
    print(generate_dot(version, mode=DotMode(args.mode), defaults=config.group_defaults()))
    return 0


# =========================================================================
# Entry point
# =========================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="surveydef", description="Versioned survey definition engine")
    parser.add_argument("--version-info", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="Path to a YAML engine configuration")
    parser.add_argument("--log-level", type=str.upper, choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Override the configured log level")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("validate", help="Report structural violations of a version")
    p.add_argument("file")
    p.add_argument("--version", type=int, help="Version number (default: current)")
    p.set_defaults(func=cmd_validate)

    p = sub.add_parser("publish", help="Publish a version, archiving the previous one")
    p.add_argument("file")
    p.add_argument("version", type=int)
    p.add_argument("-o", "--output", help="Output file (default: stdout)")
    p.set_defaults(func=cmd_publish)

    p = sub.add_parser("duplicate", help="Copy a survey under fresh ids")
    p.add_argument("file")
    p.add_argument("-o", "--output", help="Output file (default: stdout)")
    p.set_defaults(func=cmd_duplicate)

    p = sub.add_parser("render", help="Resolve placeholders in a text")
    p.add_argument("file")
    p.add_argument("text")
    p.add_argument("--answers", required=True, help="JSON file with the answer map")
    p.add_argument("--version", type=int, help="Version number (default: published, else current)")
    p.set_defaults(func=cmd_render)

    p = sub.add_parser("dot", help="Print a Graphviz DOT diagram of a version")
    p.add_argument("file")
    p.add_argument("--version", type=int, help="Version number (default: current)")
    p.add_argument("--mode", choices=[m.value for m in DotMode], default=DotMode.SIMPLE.value)
    p.set_defaults(func=cmd_dot)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = load_config(args.config)
        configure_logging(args.log_level or config.log_level)
        return args.func(args, config)
    except SurveyDefError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
