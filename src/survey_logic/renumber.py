"""
Renumbering and Reference Rewriting

Recomputes every derived identifier from document order and rewrites all
logic that referred to the old identifiers:

    1. Map each current QID to the stable id of the first question
       carrying it.
    2. Assign dense BL<n> / Q<n> in document order. Page Break and
       Description questions get no QID; Descriptions get an automatic
       "Description <n>" label unless the author set one.
    3. Re-prefix every choice text with its owning question's new QID.
    4. Build the old QID -> new QID translation map through the stable ids.
    5. Rewrite condition references and choice-variable values in display,
       hide and branching logic (committed and draft, question and block).

The pass is pure and idempotent: its output depends only on document
order, old QIDs are used as translation keys and nothing else. A
reference with no translation is left untouched; the validator reports
it if it dangles.
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Dict, List, Optional

from survey_logic.identifiers import (
    DisplayRef,
    StableId,
    format_choice,
    make_bid,
    make_qid,
    split_value_ref,
    strip_choice_variable,
)
from survey_logic.model import (
    Block,
    BranchingLogic,
    Condition,
    DisplayLogic,
    Question,
    QuestionType,
    Survey,
)

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION_LABEL_RE = re.compile(r"^Description \d+$")

Translation = Dict[str, DisplayRef]


def _replace_if_changed(obj, **changes):
    """dataclasses.replace that keeps ``obj`` when nothing differs."""
    if all(getattr(obj, name) == value for name, value in changes.items()):
        return obj
    return replace(obj, **changes)


def find_duplicate_refs(survey: Survey) -> List[str]:
    """QIDs carried by more than one question, in first-seen order."""
    seen = set()
    duplicates: List[str] = []
    for question in survey.questions():
        if not question.qid:
            continue
        if question.qid in seen and question.qid not in duplicates:
            duplicates.append(question.qid)
        seen.add(question.qid)
    return duplicates


def _first_seen_ids(survey: Survey) -> Dict[str, StableId]:
    mapping: Dict[str, StableId] = {}
    for question in survey.questions():
        if question.qid and question.qid not in mapping:
            mapping[question.qid] = question.id
    return mapping


def is_default_description_label(label: Optional[str]) -> bool:
    return bool(label) and bool(DEFAULT_DESCRIPTION_LABEL_RE.match(label))


# =============================================================================
# CONDITION REWRITING
# =============================================================================

def _translate_condition(condition: Condition, translation: Translation) -> Condition:
    question_ref = translation.get(condition.question_ref, condition.question_ref)

    value = condition.value
    parts = split_value_ref(value)
    if parts:
        old_qid, rest = parts
        new_qid = translation.get(old_qid)
        if new_qid:
            value = f"{new_qid}_{rest}"

    return _replace_if_changed(condition, question_ref=question_ref, value=value)


def _translate_conditions(conditions, translation: Translation):
    translated = tuple(_translate_condition(c, translation) for c in conditions)
    if all(new is old for new, old in zip(translated, conditions)):
        return conditions
    return translated


def _translate_display_logic(logic: Optional[DisplayLogic], translation: Translation) -> Optional[DisplayLogic]:
    if logic is None:
        return None
    logic_sets = tuple(
        _replace_if_changed(s, conditions=_translate_conditions(s.conditions, translation))
        for s in logic.logic_sets
    )
    return _replace_if_changed(
        logic,
        conditions=_translate_conditions(logic.conditions, translation),
        logic_sets=logic_sets,
    )


def _translate_branching_logic(logic: Optional[BranchingLogic], translation: Translation) -> Optional[BranchingLogic]:
    if logic is None:
        return None
    branches = tuple(
        _replace_if_changed(b, conditions=_translate_conditions(b.conditions, translation))
        for b in logic.branches
    )
    return _replace_if_changed(logic, branches=branches)


def rewrite_question_refs(question: Question, translation: Translation) -> Question:
    """Apply an old -> new QID translation to every condition on a question."""
    return _replace_if_changed(
        question,
        display_logic=_translate_display_logic(question.display_logic, translation),
        draft_display_logic=_translate_display_logic(question.draft_display_logic, translation),
        hide_logic=_translate_display_logic(question.hide_logic, translation),
        draft_hide_logic=_translate_display_logic(question.draft_hide_logic, translation),
        branching_logic=_translate_branching_logic(question.branching_logic, translation),
        draft_branching_logic=_translate_branching_logic(question.draft_branching_logic, translation),
    )


# =============================================================================
# RENUMBERING
# =============================================================================

def _renumber_choices(question: Question, new_qid: DisplayRef):
    choices = tuple(
        _replace_if_changed(choice, text=format_choice(new_qid, index, strip_choice_variable(choice.text)))
        for index, choice in enumerate(question.choices, start=1)
    )
    if all(new is old for new, old in zip(choices, question.choices)):
        return question.choices
    return choices


class _Counters:
    def __init__(self, custom_labels):
        self.question = 1
        self.description = 1
        self.custom_labels = custom_labels

    def next_description_label(self) -> str:
        label = f"Description {self.description}"
        while label in self.custom_labels:
            self.description += 1
            label = f"Description {self.description}"
        return label


def _renumber_question(question: Question, counters: _Counters, id_to_new_ref: Dict[str, DisplayRef]) -> Question:
    if question.type is QuestionType.PAGE_BREAK:
        return _replace_if_changed(question, qid=DisplayRef(""))

    if question.type is QuestionType.DESCRIPTION:
        label = question.label
        if not label or is_default_description_label(label):
            label = counters.next_description_label()
        counters.description += 1
        return _replace_if_changed(question, qid=DisplayRef(""), label=label)

    new_qid = make_qid(counters.question)
    counters.question += 1
    id_to_new_ref[question.id] = new_qid
    return _replace_if_changed(question, qid=new_qid, choices=_renumber_choices(question, new_qid))


def renumber(survey: Survey) -> Survey:
    """
    Return a survey with dense, sequential BIDs/QIDs and rewritten logic.

    Never raises. Running it twice gives the same result as running it once.
    """
    old_ref_to_id = _first_seen_ids(survey)

    duplicates = find_duplicate_refs(survey)
    if duplicates:
        logger.warning(
            "Duplicate QIDs before renumbering: %s. Logic referencing them is "
            "attached to the first question carrying each QID.",
            ", ".join(duplicates),
        )

    custom_labels = {
        q.label
        for q in survey.questions()
        if q.type is QuestionType.DESCRIPTION and q.label and not is_default_description_label(q.label)
    }
    counters = _Counters(custom_labels)
    id_to_new_ref: Dict[str, DisplayRef] = {}

    renumbered_blocks = []
    for block_number, block in enumerate(survey.blocks, start=1):
        questions = tuple(_renumber_question(q, counters, id_to_new_ref) for q in block.questions)
        if all(new is old for new, old in zip(questions, block.questions)):
            questions = block.questions
        renumbered_blocks.append(_replace_if_changed(block, bid=make_bid(block_number), questions=questions))

    translation: Translation = {
        old_ref: id_to_new_ref[stable_id]
        for old_ref, stable_id in old_ref_to_id.items()
        if stable_id in id_to_new_ref
    }
    changed = {old: new for old, new in translation.items() if old != new}
    if changed:
        logger.debug("Renumbering rewrote %d QID(s): %s", len(changed), changed)

    rewritten_blocks = tuple(_rewrite_block(block, translation) for block in renumbered_blocks)
    return _replace_if_changed(survey, blocks=rewritten_blocks)


def _rewrite_block(block: Block, translation: Translation) -> Block:
    questions = tuple(rewrite_question_refs(q, translation) for q in block.questions)
    if all(new is old for new, old in zip(questions, block.questions)):
        questions = block.questions
    return _replace_if_changed(
        block,
        questions=questions,
        branching_logic=_translate_branching_logic(block.branching_logic, translation),
    )
