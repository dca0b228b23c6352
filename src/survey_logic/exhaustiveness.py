"""
Branching exhaustiveness.

A choice question's branching logic is exhaustive when every choice is
selected by some confirmed branch. The "otherwise" destination is then
unreachable, so it is removed rather than kept around in a state nobody
can reach. When the branches are not exhaustive a fallback destination
is required and a default is suggested: the next block that belongs to
no named path, or the end of the survey.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional, Set

from survey_logic.identifiers import END, block_destination, parse_choice
from survey_logic.model import (
    BranchingLogic,
    ConditionOperator,
    Confirmation,
    Question,
    Survey,
)

logger = logging.getLogger(__name__)


def current_branching_logic(question: Question) -> Optional[BranchingLogic]:
    """The logic the editor is looking at: the draft if any, else committed."""
    if question.draft_branching_logic is not None:
        return question.draft_branching_logic
    return question.branching_logic


def covered_choice_labels(question: Question, logic: BranchingLogic) -> Set[str]:
    """Labels selected by confirmed ``equals`` conditions on the question itself."""
    covered: Set[str] = set()
    for branch in logic.branches:
        if not branch.then_confirmation.is_confirmed:
            continue
        for condition in branch.conditions:
            if (
                condition.confirmation.is_confirmed
                and condition.question_ref == question.qid
                and condition.operator is ConditionOperator.EQUALS
                and condition.value
            ):
                covered.add(parse_choice(condition.value).label)
    return covered


def is_exhaustive(question: Optional[Question], logic: Optional[BranchingLogic] = None) -> bool:
    """
    True when every choice of ``question`` has its own confirmed branch.

    Choices and condition values are compared by label, so "Q1_1 Yes" and
    "Yes" match. ``logic`` defaults to the question's current logic.
    """
    if question is None or not question.choices or not question.qid:
        return False

    if logic is None:
        logic = current_branching_logic(question)
    if logic is None or not logic.branches:
        return False

    choice_labels = {parse_choice(choice.text).label for choice in question.choices}
    return choice_labels <= covered_choice_labels(question, logic)


def default_otherwise_destination(survey: Survey, question_id: str) -> str:
    """Next block after the question's block with no branch name, else "end"."""
    owner_index = None
    for index, block in enumerate(survey.blocks):
        if any(q.id == question_id for q in block.questions):
            owner_index = index
            break
    if owner_index is None:
        return END

    for block in survey.blocks[owner_index + 1:]:
        if not block.branch_name:
            return block_destination(block.id)
    return END


def normalize_otherwise(survey: Survey, question: Question, logic: BranchingLogic) -> BranchingLogic:
    """
    Bring the fallback fields in line with exhaustiveness.

    Exhaustive logic loses its otherwise fields. Otherwise a missing
    destination is filled with the default, left PENDING until the author
    confirms it.
    """
    if is_exhaustive(question, logic):
        if logic.otherwise_skip_to is not None:
            logger.debug("Branching on %s is exhaustive, dropping otherwise destination", question.qid)
        return logic.without_otherwise()

    if not logic.otherwise_skip_to:
        return replace(
            logic,
            otherwise_skip_to=default_otherwise_destination(survey, question.id),
            otherwise_confirmation=Confirmation.PENDING,
        )
    if logic.otherwise_confirmation is None:
        return replace(logic, otherwise_confirmation=Confirmation.PENDING)
    return logic
