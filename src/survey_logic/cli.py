"""
Command-line entry point.

    survey-logic validate FILE     list logic issues (exit 1 when any)
    survey-logic paths FILE        per-path question/page/time statistics
    survey-logic renumber FILE     renumber and print (or write) the survey

FILE is a YAML or JSON survey document. Exit status 2 means the survey or
the settings could not be read.
"""
from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from typing import List, Optional

from survey_logic.config import ConfigurationError, load_settings
from survey_logic.index import SurveyIndex
from survey_logic.logging_setup import configure_logging
from survey_logic.paths import analyze_paths
from survey_logic.renumber import renumber
from survey_logic.serialization import (
    SurveyFormatError,
    dump_survey,
    issue_to_dict,
    load_survey,
    survey_to_yaml,
)
from survey_logic.validator import validate

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ISSUES = 1
EXIT_ERROR = 2


def _owner_ref(index: SurveyIndex, owner_id: str) -> str:
    ref = index.ref_of(owner_id)
    if ref:
        return ref
    block = index.blocks_by_id.get(owner_id)
    return block.bid if block is not None else owner_id


def _cmd_validate(args, survey, settings) -> int:
    issues = validate(survey)
    if args.json:
        print(json.dumps([issue_to_dict(i) for i in issues], indent=2))
    else:
        index = SurveyIndex(survey)
        for issue in issues:
            print(f"{_owner_ref(index, issue.question_id)} [{issue.type.value}] {issue.message}")
        print(f"{len(issues)} issue(s) found")
    return EXIT_ISSUES if issues else EXIT_OK


def _cmd_paths(args, survey, settings) -> int:
    results = analyze_paths(survey, settings)
    if args.json:
        print(json.dumps([dataclasses.asdict(r) for r in results], indent=2))
        return EXIT_OK
    if not results:
        print("No named paths")
    for r in results:
        print(
            f"{r.name}: {r.question_count} questions ({r.required_count} required), "
            f"{r.page_count} pages, {r.completion_time}"
        )
    return EXIT_OK


def _cmd_renumber(args, survey, settings) -> int:
    renumbered = renumber(survey)
    if args.output:
        dump_survey(renumbered, args.output)
        logger.info("Wrote renumbered survey to %s", args.output)
    else:
        sys.stdout.write(survey_to_yaml(renumbered))
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="survey-logic", description="Survey logic validation and analysis")
    parser.add_argument("--config", help="Path to a YAML settings file")
    parser.add_argument("--log-level", help="Override the configured log level")
    sub = parser.add_subparsers(dest="command", required=True)

    p_validate = sub.add_parser("validate", help="Report logic issues")
    p_validate.add_argument("survey", help="Survey file (.yaml/.yml/.json)")
    p_validate.add_argument("--json", action="store_true", help="Print issues as JSON")
    p_validate.set_defaults(handler=_cmd_validate)

    p_paths = sub.add_parser("paths", help="Per-path statistics")
    p_paths.add_argument("survey", help="Survey file (.yaml/.yml/.json)")
    p_paths.add_argument("--json", action="store_true", help="Print statistics as JSON")
    p_paths.set_defaults(handler=_cmd_paths)

    p_renumber = sub.add_parser("renumber", help="Renumber QIDs/BIDs and rewrite logic")
    p_renumber.add_argument("survey", help="Survey file (.yaml/.yml/.json)")
    p_renumber.add_argument("-o", "--output", help="Write the result here instead of stdout")
    p_renumber.set_defaults(handler=_cmd_renumber)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.config)
    except ConfigurationError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR

    configure_logging(args.log_level or settings.log_level)

    try:
        survey = load_survey(args.survey)
    except (OSError, SurveyFormatError) as e:
        print(f"error: cannot read {args.survey}: {e}", file=sys.stderr)
        return EXIT_ERROR

    return args.handler(args, survey, settings)


if __name__ == "__main__":
    sys.exit(main())
