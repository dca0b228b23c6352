"""
Dry-run previews of survey edits.

An edit is applied to the survey snapshot (never to the caller's copy),
the result is renumbered and validated, and the issues that were not
present before the edit are reported. Issues are compared by
(question_id, message), so a pre-existing problem does not block an
unrelated change.

Also translates the plain-argument edits produced by an assistant
(set_display_logic, set_skip_logic, set_branching_logic, ...) into
draft-machine and structural operations.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from survey_logic.drafts import update_logic
from survey_logic.identifiers import BLOCK_PREFIX, END, NEXT, block_destination, parse_choice
from survey_logic.index import SurveyIndex
from survey_logic.model import (
    Branch,
    BranchingLogic,
    CHOICE_BASED_QUESTION_TYPES,
    Condition,
    ConditionOperator,
    Confirmation,
    DisplayLogic,
    LogicField,
    LogicIssue,
    LogicalOperator,
    PerChoiceSkip,
    SimpleSkip,
    SkipRule,
    Survey,
)
from survey_logic.renumber import renumber
from survey_logic.structure import new_id, reposition_question
from survey_logic.validator import validate

logger = logging.getLogger(__name__)

Change = Callable[[Survey], Survey]


@dataclass(frozen=True)
class PreviewResult:
    """
    Outcome of a dry run.

    Properties:
        ok: True when the change introduces no new issue
        survey: The survey after the change (renumbered)
        issues: Newly introduced issues
        message: Human-readable explanation when not ok
    """

    ok: bool
    survey: Survey
    issues: Tuple[LogicIssue, ...] = ()
    message: Optional[str] = None


def introduced_issues(before: Survey, after: Survey) -> List[LogicIssue]:
    """Issues of ``after`` whose (question_id, message) is not an issue of ``before``."""
    known = {issue.key for issue in validate(before)}
    return [issue for issue in validate(after) if issue.key not in known]


def _describe(issues: List[LogicIssue], survey: Survey, heading: str) -> str:
    index = SurveyIndex(survey)
    lines = [heading]
    for issue in issues:
        owner = index.ref_of(issue.question_id)
        if not owner:
            block = index.blocks_by_id.get(issue.question_id)
            owner = block.bid if block is not None else "unknown"
        lines.append(f"- On question {owner}: {issue.message}")
    return "\n".join(lines)


def preview_change(
    survey: Survey,
    change: Change,
    heading: str = "This change may cause issues on other questions:",
) -> PreviewResult:
    """Apply ``change`` to a snapshot and diff the validator output."""
    after = renumber(change(survey))
    issues = introduced_issues(survey, after)
    if not issues:
        return PreviewResult(ok=True, survey=after)

    logger.debug("Change would introduce %d issue(s)", len(issues))
    return PreviewResult(
        ok=False,
        survey=after,
        issues=tuple(issues),
        message=_describe(issues, after, heading),
    )


def preview_reposition(
    survey: Survey,
    qid: str,
    after_qid: Optional[str] = None,
    before_qid: Optional[str] = None,
) -> PreviewResult:
    if not after_qid and not before_qid:
        return PreviewResult(
            ok=False,
            survey=survey,
            message=(
                "The destination for the move is unclear. Please specify whether to "
                "move it before or after another question."
            ),
        )

    index = SurveyIndex(survey)
    if index.resolve_ref(qid) is None:
        return PreviewResult(ok=False, survey=survey, message=f"Question {qid} was not found in the survey.")
    anchor = before_qid or after_qid
    if index.resolve_ref(anchor) is None:
        return PreviewResult(ok=False, survey=survey, message=f"The target question {anchor} was not found.")

    return preview_change(
        survey,
        lambda s: reposition_question(s, qid, after_qid=after_qid, before_qid=before_qid),
        heading="This move will create new logic issues:",
    )


# =============================================================================
# ASSISTANT EDITS
# =============================================================================

def _resolve_destination(index: SurveyIndex, destination: Optional[str]) -> str:
    """Map an assistant destination (QID, BID, next, end) to a stored destination."""
    if not destination:
        return ""
    lowered = destination.lower()
    if lowered in (NEXT, END):
        return lowered
    if destination.startswith(BLOCK_PREFIX):
        return destination

    for question in index.by_id.values():
        if question.qid and question.qid.lower() == lowered:
            return question.id
    for block in index.survey.blocks:
        if block.bid and block.bid.lower() == lowered:
            return block_destination(block.id)
    return ""


def _condition(prefix: str, entry: Mapping[str, Any]) -> Condition:
    return Condition(
        id=new_id(prefix),
        question_ref=entry.get("sourceQid", ""),
        operator=ConditionOperator(entry.get("operator", ConditionOperator.EQUALS.value)),
        value=entry.get("value") or "",
        confirmation=Confirmation.CONFIRMED,
    )


def _display_logic(args: Mapping[str, Any]) -> DisplayLogic:
    return DisplayLogic(
        operator=LogicalOperator(args.get("logicalOperator") or "AND"),
        conditions=tuple(_condition("dlc", c) for c in args.get("conditions", ())),
    )


def _skip_logic(survey: Survey, question, rules) -> Optional[Any]:
    index = SurveyIndex(survey)

    if len(rules) == 1 and not rules[0].get("choiceText") and question.type not in CHOICE_BASED_QUESTION_TYPES:
        skip_to = _resolve_destination(index, rules[0].get("destinationQid"))
        return SimpleSkip(skip_to=skip_to, confirmation=Confirmation.CONFIRMED) if skip_to else None

    skip_rules = []
    for rule in rules:
        choice_text = (rule.get("choiceText") or "").lower()
        choice = next((c for c in question.choices if parse_choice(c.text).label.lower() == choice_text), None)
        skip_to = _resolve_destination(index, rule.get("destinationQid"))
        if choice is not None and skip_to:
            skip_rules.append(SkipRule(
                id=new_id("slr"),
                choice_id=choice.id,
                skip_to=skip_to,
                confirmation=Confirmation.CONFIRMED,
            ))
    return PerChoiceSkip(rules=tuple(skip_rules)) if skip_rules else None


def _branching_logic(survey: Survey, args: Mapping[str, Any]) -> BranchingLogic:
    index = SurveyIndex(survey)
    branches = tuple(
        Branch(
            id=new_id("br"),
            operator=LogicalOperator(entry.get("conditionOperator") or "AND"),
            conditions=tuple(_condition("bc", c) for c in entry.get("conditions", ())),
            then_skip_to=_resolve_destination(index, entry.get("destination")),
            then_confirmation=Confirmation.CONFIRMED,
            path_name=entry.get("pathName"),
        )
        for entry in args.get("branches", ())
    )
    return BranchingLogic(
        branches=branches,
        otherwise_skip_to=_resolve_destination(index, args.get("otherwiseDestination")) or NEXT,
        otherwise_confirmation=Confirmation.CONFIRMED,
    )


def _set_branching_logic(survey: Survey, args: Mapping[str, Any]) -> Survey:
    target_id = args.get("targetId")
    index = SurveyIndex(survey)
    logic = _branching_logic(survey, args)

    question = index.resolve_ref(target_id)
    if question is not None:
        return update_logic(survey, question.id, LogicField.BRANCHING, logic)

    block = next((b for b in survey.blocks if target_id in (b.bid, b.id)), None)
    if block is None:
        return survey
    return survey.update_block(block.id, lambda b: replace(b, branching_logic=logic))


def apply_assistant_edit(survey: Survey, name: str, args: Dict[str, Any]) -> Survey:
    """
    Apply one named assistant edit and return the new survey.

    Returns ``survey`` unchanged when the target question cannot be found
    or the arguments describe no usable logic. Unknown edit names raise
    ValueError.
    """
    if name == "set_branching_logic":
        return renumber(_set_branching_logic(survey, args))
    if name == "reposition_question":
        return reposition_question(survey, args.get("qid"), args.get("after_qid"), args.get("before_qid"))

    handlers = ("set_display_logic", "remove_display_logic", "set_skip_logic", "remove_skip_logic")
    if name not in handlers:
        raise ValueError(f"Unknown logic edit: {name}")

    question = SurveyIndex(survey).resolve_ref(args.get("qid"))
    if question is None:
        logger.debug("Assistant edit %s names unknown question %s", name, args.get("qid"))
        return survey

    if name == "set_display_logic":
        return update_logic(survey, question.id, LogicField.DISPLAY, _display_logic(args))
    if name == "remove_display_logic":
        return update_logic(survey, question.id, LogicField.DISPLAY, None)
    if name == "remove_skip_logic":
        return update_logic(survey, question.id, LogicField.SKIP, None)

    logic = _skip_logic(survey, question, args.get("rules", ()))
    if logic is None:
        return survey
    return update_logic(survey, question.id, LogicField.SKIP, logic)


def preview_assistant_edit(survey: Survey, name: str, args: Dict[str, Any]) -> PreviewResult:
    if name == "reposition_question":
        return preview_reposition(survey, args.get("qid"), args.get("after_qid"), args.get("before_qid"))
    return preview_change(survey, lambda s: apply_assistant_edit(s, name, args))
