"""
Logic Validator: structured diagnostics for survey logic.

Walks the committed logic of every question and block and reports:
    - Dangling references (question, block or choice no longer exists)
    - Ordering violations (conditions on later questions, destinations
      that jump backward)
    - Contradictions inside AND-joined condition groups

IMPORTANT: This is a read-only pass. It does NOT modify the survey and it
does not raise for malformed-but-well-typed input. Every finding is a
LogicIssue, and the full list replaces the previous one on each run.
Draft logic is never validated; it has no effect on the survey yet.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from survey_logic.identifiers import is_terminal_destination, parse_block_destination, parse_choice
from survey_logic.index import SurveyIndex
from survey_logic.model import (
    Block,
    BranchingLogic,
    Condition,
    ConditionOperator,
    DisplayLogic,
    LogicalOperator,
    LogicIssue,
    LogicKind,
    PerChoiceSkip,
    Question,
    SINGLE_CHOICE_QUESTION_TYPES,
    SimpleSkip,
    Survey,
)

logger = logging.getLogger(__name__)

FIELD_QUESTION = "questionId"
FIELD_SKIP_TO = "skipTo"
FIELD_VALUE = "value"

SOURCE_SIMPLE = "simple"
SOURCE_OTHERWISE = "otherwise"

_NON_EMPTY_OPERATORS = (ConditionOperator.IS_NOT_EMPTY, ConditionOperator.CONTAINS)
_VALUE_OPERATORS = (ConditionOperator.EQUALS, ConditionOperator.NOT_EQUALS)


@dataclass(frozen=True)
class Contradiction:
    """An unsatisfiable combination found in one AND group."""

    message: str
    conditions: Tuple[Condition, ...]


@dataclass(frozen=True)
class _Owner:
    """Where a piece of logic lives, for ordering checks."""

    id: str
    position: int
    block_index: int
    # Block-level logic runs after the block, so its own block is behind it
    block_level: bool = False


# =============================================================================
# CONTRADICTIONS
# =============================================================================

def _label(value: str) -> str:
    return parse_choice(value).label


def check_and_logic_for_contradictions(
    conditions: Sequence[Condition],
    index: SurveyIndex,
) -> List[Contradiction]:
    """
    Find unsatisfiable requirements in an AND-joined condition group.

    Conditions are grouped by the question they reference; for each source
    question the following combinations are contradictions:

        1. is_empty together with is_not_empty or contains
        2. equals V together with not_equals V
        3. more than one equals value on a single-choice question
        4. is_empty together with any equals / not_equals

    Values are compared by choice label, so "Q1_1 Yes" and "Yes" are the
    same value.
    """
    by_source: Dict[str, List[Condition]] = defaultdict(list)
    for condition in conditions:
        if condition.question_ref:
            by_source[condition.question_ref].append(condition)

    found: List[Contradiction] = []
    for ref, group in by_source.items():
        if len(group) < 2:
            continue

        empties = [c for c in group if c.operator is ConditionOperator.IS_EMPTY]
        non_empties = [c for c in group if c.operator in _NON_EMPTY_OPERATORS]
        equals = [c for c in group if c.operator is ConditionOperator.EQUALS]
        not_equals = [c for c in group if c.operator is ConditionOperator.NOT_EQUALS]

        if empties and non_empties:
            found.append(Contradiction(
                message=f"Contradiction: {ref} cannot be empty and have a value at the same time.",
                conditions=tuple(empties + non_empties),
            ))

        excluded = {_label(c.value) for c in not_equals}
        reported = set()
        for condition in equals:
            label = _label(condition.value)
            if label in excluded and label not in reported:
                reported.add(label)
                involved = [c for c in equals + not_equals if _label(c.value) == label]
                found.append(Contradiction(
                    message=f'Contradiction: {ref} cannot both equal and not equal "{label}".',
                    conditions=tuple(involved),
                ))

        source = index.resolve_ref(ref)
        distinct_values = sorted({_label(c.value) for c in equals})
        if source is not None and source.type in SINGLE_CHOICE_QUESTION_TYPES and len(distinct_values) > 1:
            found.append(Contradiction(
                message=(
                    f"Impossible: {ref} is a single-choice question and cannot equal "
                    f"multiple values ({', '.join(distinct_values)})."
                ),
                conditions=tuple(equals),
            ))

        valued = [c for c in group if c.operator in _VALUE_OPERATORS]
        if empties and valued:
            found.append(Contradiction(
                message=f"Contradiction: {ref} requires an empty answer but also checks a value.",
                conditions=tuple(empties + valued),
            ))

    return found


def _contradiction_issues(
    conditions: Sequence[Condition],
    owner_id: str,
    kind: LogicKind,
    index: SurveyIndex,
) -> List[LogicIssue]:
    issues = []
    for contradiction in check_and_logic_for_contradictions(conditions, index):
        issues.append(LogicIssue(
            question_id=owner_id,
            type=kind,
            message=contradiction.message,
            source_id=contradiction.conditions[-1].id,
            field=FIELD_VALUE,
            related_ids=tuple(c.id for c in contradiction.conditions),
        ))
    return issues


# =============================================================================
# REFERENCES AND DESTINATIONS
# =============================================================================

def _check_condition_refs(
    conditions: Iterable[Condition],
    owner: _Owner,
    kind: LogicKind,
    index: SurveyIndex,
) -> List[LogicIssue]:
    """Conditions must name an existing, earlier question."""
    issues = []
    # Branching runs after the owner is answered, so it may read the owner itself
    allow_self = kind is LogicKind.BRANCHING

    for condition in conditions:
        if not condition.question_ref:
            continue  # still being edited

        source = index.resolve_ref(condition.question_ref)
        if source is None:
            where = " in this branch" if kind is LogicKind.BRANCHING else ""
            issues.append(LogicIssue(
                question_id=owner.id,
                type=kind,
                message=f"The selected question ({condition.question_ref}){where} no longer exists.",
                source_id=condition.id,
                field=FIELD_QUESTION,
            ))
            continue

        source_position = index.position_of(source.id)
        if allow_self:
            is_future = source_position > owner.position
        else:
            is_future = source_position >= owner.position
        if is_future:
            prefix = "Advanced logic" if kind is LogicKind.BRANCHING else "Logic"
            issues.append(LogicIssue(
                question_id=owner.id,
                type=kind,
                message=f"{prefix} cannot depend on a future question ({source.qid}).",
                source_id=condition.id,
                field=FIELD_QUESTION,
            ))
    return issues


def _check_destination(
    target: Optional[str],
    source_id: Optional[str],
    owner: _Owner,
    kind: LogicKind,
    index: SurveyIndex,
) -> Optional[LogicIssue]:
    if is_terminal_destination(target):
        return None

    verb = "Skipping" if kind is LogicKind.SKIP else "Branching"

    def issue(message: str) -> LogicIssue:
        return LogicIssue(
            question_id=owner.id,
            type=kind,
            message=message,
            source_id=source_id,
            field=FIELD_SKIP_TO,
        )

    block_id = parse_block_destination(target)
    if block_id is not None:
        target_index = index.block_position.get(block_id)
        if target_index is None:
            return issue("The destination block no longer exists.")
        is_backward = target_index <= owner.block_index if owner.block_level else target_index < owner.block_index
        if is_backward:
            return issue(f"{verb} backward to a previous block can cause loops.")
        return None

    target_question = index.by_id.get(target)
    if target_question is None:
        return issue("The destination question no longer exists.")
    if index.position_of(target_question.id) <= owner.position:
        return issue(f"{verb} backward to {target_question.qid} can cause loops.")
    return None


# =============================================================================
# PER LOGIC KIND
# =============================================================================

def _check_display_logic(logic: DisplayLogic, owner: _Owner, kind: LogicKind, index: SurveyIndex) -> List[LogicIssue]:
    issues = _check_condition_refs(logic.all_conditions(), owner, kind, index)

    if logic.operator is LogicalOperator.AND:
        issues.extend(_contradiction_issues(logic.conditions, owner.id, kind, index))
    for logic_set in logic.logic_sets:
        if logic_set.operator is LogicalOperator.AND:
            issues.extend(_contradiction_issues(logic_set.conditions, owner.id, kind, index))
    return issues


def _check_skip_logic(question: Question, owner: _Owner, index: SurveyIndex) -> List[LogicIssue]:
    logic = question.skip_logic
    issues: List[LogicIssue] = []

    if isinstance(logic, SimpleSkip):
        issue = _check_destination(logic.skip_to, SOURCE_SIMPLE, owner, LogicKind.SKIP, index)
        if issue:
            issues.append(issue)
    elif isinstance(logic, PerChoiceSkip):
        for rule in logic.rules:
            if question.find_choice(rule.choice_id) is None:
                issues.append(LogicIssue(
                    question_id=owner.id,
                    type=LogicKind.SKIP,
                    message="A choice associated with this skip rule has been deleted.",
                    source_id=rule.choice_id,
                ))
            issue = _check_destination(rule.skip_to, rule.choice_id, owner, LogicKind.SKIP, index)
            if issue:
                issues.append(issue)
    return issues


def _check_branching_logic(logic: BranchingLogic, owner: _Owner, index: SurveyIndex) -> List[LogicIssue]:
    kind = LogicKind.BRANCHING
    issues: List[LogicIssue] = []

    for branch in logic.branches:
        issues.extend(_check_condition_refs(branch.conditions, owner, kind, index))
        if branch.operator is LogicalOperator.AND:
            issues.extend(_contradiction_issues(branch.conditions, owner.id, kind, index))
        issue = _check_destination(branch.then_skip_to, branch.id, owner, kind, index)
        if issue:
            issues.append(issue)

    issue = _check_destination(logic.otherwise_skip_to, SOURCE_OTHERWISE, owner, kind, index)
    if issue:
        issues.append(issue)
    return issues


def _validate_question(question: Question, block_index: int, index: SurveyIndex) -> List[LogicIssue]:
    owner = _Owner(
        id=question.id,
        position=index.position_of(question.id),
        block_index=block_index,
    )
    issues: List[LogicIssue] = []

    if question.display_logic is not None:
        issues.extend(_check_display_logic(question.display_logic, owner, LogicKind.DISPLAY, index))
    if question.hide_logic is not None:
        issues.extend(_check_display_logic(question.hide_logic, owner, LogicKind.HIDE, index))
    if question.skip_logic is not None:
        issues.extend(_check_skip_logic(question, owner, index))
    if question.branching_logic is not None:
        issues.extend(_check_branching_logic(question.branching_logic, owner, index))
    return issues


def _validate_block(block: Block, block_index: int, index: SurveyIndex) -> List[LogicIssue]:
    if block.branching_logic is None:
        return []
    end_position = index.end_position_of_block(block.id)
    owner = _Owner(id=block.id, position=end_position, block_index=block_index, block_level=True)
    return _check_branching_logic(block.branching_logic, owner, index)


def validate(survey: Survey) -> List[LogicIssue]:
    """
    Validate all committed logic across the survey.

    Returns a list of LogicIssue. The order of issues is not significant;
    each one identifies its owner and the faulty control via source_id.
    """
    index = SurveyIndex(survey)
    issues: List[LogicIssue] = []

    for block_index, block in enumerate(survey.blocks):
        for question in block.questions:
            issues.extend(_validate_question(question, block_index, index))
        issues.extend(_validate_block(block, block_index, index))

    logger.debug("Validated %d question(s), %d issue(s)", len(index.by_id), len(issues))
    return issues


def issues_for(issues: Iterable[LogicIssue], owner_id: str, kind: Optional[LogicKind] = None) -> List[LogicIssue]:
    """Filter issues for one question (and optionally one logic kind)."""
    return [i for i in issues if i.question_id == owner_id and (kind is None or i.type is kind)]
