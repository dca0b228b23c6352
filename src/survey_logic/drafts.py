"""
Draft/Commit Logic State Machine

Each editable logic field of a question is a two-slot cell:

    committed   (display_logic, ...)        behavior-affecting
    draft       (draft_display_logic, ...)  editing buffer only

Transitions:
    Write     - an update always lands in the draft slot
    Promote   - right after every write, if every confirmable part of the
                draft is CONFIRMED the draft moves into the committed slot
    Clear     - writing None removes both slots
    Collapse  - branching logic with no branches removes both slots;
                an empty branch set means "use default routing"
    Abandon   - when editing focus leaves a question its drafts are
                dropped without promotion

A single authoring gesture ("add a branch") arrives as several writes
(add condition, pick operator, pick destination, confirm). The draft slot
keeps the half-built logic out of routing until the last write confirms it.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional, Union

from survey_logic.exhaustiveness import is_exhaustive, normalize_otherwise
from survey_logic.model import (
    Block,
    BranchingLogic,
    DisplayLogic,
    LogicField,
    PerChoiceSkip,
    Question,
    SimpleSkip,
    Survey,
)

logger = logging.getLogger(__name__)

LogicValue = Union[DisplayLogic, SimpleSkip, PerChoiceSkip, BranchingLogic]


# =============================================================================
# PROMOTION PREDICATE
# =============================================================================

def _display_logic_confirmed(logic: DisplayLogic) -> bool:
    if not all(c.confirmation.is_confirmed for c in logic.conditions):
        return False
    return all(
        logic_set.confirmation.is_confirmed
        and all(c.confirmation.is_confirmed for c in logic_set.conditions)
        for logic_set in logic.logic_sets
    )


def _skip_logic_confirmed(logic) -> bool:
    if isinstance(logic, SimpleSkip):
        return logic.confirmation.is_confirmed
    return all(rule.confirmation.is_confirmed for rule in logic.rules)


def _branching_logic_confirmed(logic: BranchingLogic, question: Question) -> bool:
    branches_confirmed = all(
        branch.then_confirmation.is_confirmed
        and all(c.confirmation.is_confirmed for c in branch.conditions)
        for branch in logic.branches
    )
    if not branches_confirmed:
        return False
    if is_exhaustive(question, logic):
        return True
    return logic.otherwise_confirmation is not None and logic.otherwise_confirmation.is_confirmed


def is_fully_confirmed(field: LogicField, logic: LogicValue, question: Question) -> bool:
    """
    True when ``logic`` may be promoted into ``field`` on ``question``.

    Pure: computed from the logic tree alone (plus the question's choices
    for branching exhaustiveness).
    """
    if field in (LogicField.DISPLAY, LogicField.HIDE):
        return _display_logic_confirmed(logic)
    if field is LogicField.SKIP:
        return _skip_logic_confirmed(logic)
    return _branching_logic_confirmed(logic, question)


# =============================================================================
# TRANSITIONS
# =============================================================================

def _clear_field(question: Question, field: LogicField) -> Question:
    return replace(question, **{field.value: None, field.draft_attr: None})


def _write_field(survey: Survey, question: Question, field: LogicField, value: LogicValue) -> Question:
    if field is LogicField.BRANCHING:
        value = normalize_otherwise(survey, question, value)

    staged = replace(question, **{field.draft_attr: value})
    if is_fully_confirmed(field, value, staged):
        logger.debug("Promoting %s on question %s", field.value, question.id)
        return replace(staged, **{field.value: value, field.draft_attr: None})

    logger.debug("Holding %s on question %s as draft", field.value, question.id)
    return staged


def update_logic(survey: Survey, question_id: str, field: LogicField, value: Optional[LogicValue]) -> Survey:
    """
    Apply one logic edit to a question and return the new survey.

    Returns ``survey`` itself when the question does not exist.
    """
    question = survey.find_question(question_id)
    if question is None:
        logger.debug("Ignoring %s update for unknown question %s", field.value, question_id)
        return survey

    if value is None:
        updated = _clear_field(question, field)
    elif field is LogicField.BRANCHING and not value.branches:
        updated = _clear_field(question, field)
    else:
        updated = _write_field(survey, question, field, value)

    new_survey = survey.update_question(question_id, lambda _: updated)
    if field is LogicField.BRANCHING and updated.branching_logic is not None:
        new_survey = _sync_block_continue_to(new_survey, updated)
    return new_survey


def _sync_block_continue_to(survey: Survey, question: Question) -> Survey:
    """The last question's confirmed fallback is also its block's exit route."""
    logic = question.branching_logic
    if logic.otherwise_confirmation is None or not logic.otherwise_confirmation.is_confirmed:
        return survey

    block = survey.block_of(question.id)
    if block is None or block.questions[-1].id != question.id:
        return survey

    def sync(b: Block) -> Block:
        if b.continue_to == logic.otherwise_skip_to:
            return b
        return replace(b, continue_to=logic.otherwise_skip_to)

    return survey.update_block(block.id, sync)


def clear_drafts(survey: Survey, question_id: Optional[str]) -> Survey:
    """Drop every outstanding draft on a question without promoting it."""
    if not question_id:
        return survey

    def abandon(question: Question) -> Question:
        if not question.has_drafts():
            return question
        logger.debug("Abandoning unconfirmed logic on question %s", question.id)
        return replace(question, **{f.draft_attr: None for f in LogicField})

    return survey.update_question(question_id, abandon)


def change_focus(survey: Survey, previous_id: Optional[str], next_id: Optional[str]) -> Survey:
    """Abandon drafts on the previously focused question when focus moves."""
    if previous_id == next_id:
        return survey
    return clear_drafts(survey, previous_id)


class DraftSession:
    """
    Tracks which question the author is editing.

    Moving focus to another question abandons the drafts left behind on
    the previous one. The survey itself stays immutable; ``focus`` returns
    the survey to use from now on.
    """

    def __init__(self, focused_id: Optional[str] = None):
        self.focused_id = focused_id

    def focus(self, survey: Survey, question_id: Optional[str]) -> Survey:
        survey = change_focus(survey, self.focused_id, question_id)
        self.focused_id = question_id
        return survey


def effective_logic(question: Question, field: LogicField) -> Optional[LogicValue]:
    """Draft if one exists, else committed. For editors, never for routing."""
    draft = getattr(question, field.draft_attr)
    if draft is not None:
        return draft
    return getattr(question, field.value)
