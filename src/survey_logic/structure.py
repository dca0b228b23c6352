"""
Structural Edit API

Adds, removes, copies and moves questions and blocks, and adds and removes
choices. Every operation returns a new, renumbered survey; when its target
does not exist the input survey is returned unchanged (same object).

Question operations also re-apply the paging rules, because automatic
page breaks depend on where the interactive questions are.

Move operations may break logic that was valid before the move (a
condition now reads a later question, a skip now jumps backward).
describe_logic_after_move summarises the questions affected; the full
detail comes from the validator.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from typing import Callable, Iterable, List, Optional, Set

from survey_logic.exhaustiveness import is_exhaustive
from survey_logic.identifiers import is_terminal_destination, parse_block_destination
from survey_logic.index import SurveyIndex
from survey_logic.model import (
    Block,
    CHOICE_BASED_QUESTION_TYPES,
    Choice,
    Confirmation,
    PagingMode,
    PerChoiceSkip,
    Question,
    QuestionType,
    SimpleSkip,
    Survey,
)
from survey_logic.renumber import is_default_description_label, renumber

logger = logging.getLogger(__name__)

NEW_QUESTION_TEXT = "Click to write the question text"
PAGE_BREAK_TEXT = "Page Break"
DESCRIPTION_PLACEHOLDER = "This is a description question placeholder."
NEW_BLOCK_TITLE = "New block"
DEFAULT_BLOCK_TITLE = "Default Block"

MAX_QIDS_IN_MOVE_MESSAGE = 3


# =============================================================================
# ID GENERATION
# =============================================================================

def _uuid_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


_id_factory: Callable[[str], str] = _uuid_id


def new_id(prefix: str) -> str:
    """Generate a fresh stable id ("q_...", "block_...", "c_...")."""
    return _id_factory(prefix)


def set_id_factory(factory: Optional[Callable[[str], str]]) -> None:
    """Replace the id generator (tests use a deterministic one). None restores the default."""
    global _id_factory
    _id_factory = factory or _uuid_id


# =============================================================================
# PAGING
# =============================================================================

def _page_break() -> Question:
    return Question(
        id=new_id("pb"),
        text=PAGE_BREAK_TEXT,
        type=QuestionType.PAGE_BREAK,
        is_automatic=True,
    )


def _paginate_block(block: Block, paging_mode: PagingMode) -> Block:
    questions: List[Question] = []
    for question in block.questions:
        if question.type is QuestionType.PAGE_BREAK:
            if question.is_automatic:
                continue
            if questions and questions[-1].type is QuestionType.PAGE_BREAK:
                continue
        questions.append(question)

    apply_breaks = paging_mode is PagingMode.ONE_PER_PAGE or block.automatic_page_breaks
    if apply_breaks:
        paged: List[Question] = []
        seen_interactive = False
        for question in questions:
            interactive = not question.is_structural
            if interactive and seen_interactive:
                paged.append(_page_break())
                seen_interactive = False
            if question.type is QuestionType.PAGE_BREAK:
                seen_interactive = False
            paged.append(question)
            if interactive:
                seen_interactive = True
        questions = paged

    if len(questions) == len(block.questions) and all(a is b for a, b in zip(questions, block.questions)):
        return block
    return replace(block, questions=tuple(questions))


def apply_paging_rules(survey: Survey) -> Survey:
    """
    Recompute automatic page breaks.

    Automatic breaks are removed, runs of page breaks are collapsed, and
    then, in one-per-page mode or in blocks with automatic_page_breaks,
    an automatic break is inserted between consecutive interactive
    questions. A manual page break starts a new page on its own.
    """
    blocks = tuple(_paginate_block(block, survey.paging_mode) for block in survey.blocks)
    if all(a is b for a, b in zip(blocks, survey.blocks)):
        return survey
    return survey.with_blocks(blocks)


def apply_paging_and_renumber(survey: Survey) -> Survey:
    return renumber(apply_paging_rules(survey))


def set_paging_mode(survey: Survey, paging_mode: PagingMode) -> Survey:
    if survey.paging_mode is paging_mode:
        return survey
    return apply_paging_and_renumber(replace(survey, paging_mode=paging_mode))


# =============================================================================
# HELPERS
# =============================================================================

def _locate(survey: Survey, question_id: str):
    for b_index, block in enumerate(survey.blocks):
        for q_index, question in enumerate(block.questions):
            if question.id == question_id:
                return b_index, q_index
    return None


def _block_index(survey: Survey, block_id: Optional[str]) -> int:
    for index, block in enumerate(survey.blocks):
        if block.id == block_id:
            return index
    return -1


def _without_question(blocks: List[Block], b_index: int, q_index: int) -> Question:
    block = blocks[b_index]
    questions = list(block.questions)
    removed = questions.pop(q_index)
    blocks[b_index] = replace(block, questions=tuple(questions))
    return removed


def _insert_question(block: Block, question: Question, index: Optional[int] = None) -> Block:
    questions = list(block.questions)
    if index is None or index < 0:
        questions.append(question)
    else:
        questions.insert(index, question)
    return replace(block, questions=tuple(questions))


def _drop_if_emptied(blocks: List[Block], block_id: str) -> List[Block]:
    """An emptied source block goes away unless it is the only block."""
    if len(blocks) <= 1:
        return blocks
    for block in blocks:
        if block.id == block_id and not block.questions:
            logger.debug("Removing emptied block %s", block_id)
            return [b for b in blocks if b.id != block_id]
    return blocks


def _placeholder_block(title: str) -> Block:
    return Block(
        id=new_id("block"),
        title=title,
        questions=(Question(id=new_id("q"), text=DESCRIPTION_PLACEHOLDER, type=QuestionType.DESCRIPTION),),
    )


def _default_choices(question_type: QuestionType):
    if question_type is QuestionType.CHOICE_GRID:
        texts = ["Product", "Service", "Speed"]
    elif question_type is QuestionType.RADIO:
        texts = ["Click to write choice 1", "Click to write choice 2"]
    else:
        texts = ["Click to write choice 1", "Click to write choice 2", "Click to write choice 3"]
    return tuple(Choice(id=new_id("c"), text=text) for text in texts)


def _copy_label(label: str, taken: Set[str]) -> Optional[str]:
    """Unique label for a copied Description; None lets renumbering assign one."""
    if label not in taken:
        return label
    if is_default_description_label(label):
        return None
    attempt = f"{label} (Copy)"
    copy_number = 1
    while attempt in taken:
        copy_number += 1
        attempt = f"{label} (Copy {copy_number})"
    return attempt


def _description_labels(questions: Iterable[Question]) -> Set[str]:
    return {q.label for q in questions if q.type is QuestionType.DESCRIPTION and q.label}


def _fresh_copy(question: Question) -> Question:
    return replace(
        question,
        id=new_id("q"),
        choices=tuple(replace(c, id=new_id("c")) for c in question.choices),
    )


# =============================================================================
# QUESTIONS
# =============================================================================

def add_question(
    survey: Survey,
    block_id: str,
    question_type: QuestionType,
    before_question_id: Optional[str] = None,
    question_id: Optional[str] = None,
) -> Survey:
    """
    Insert a new question of ``question_type`` into a block.

    The question goes before ``before_question_id`` when given and found,
    else at the end of the block.
    """
    b_index = _block_index(survey, block_id)
    if b_index == -1:
        return survey

    question = Question(
        id=question_id or new_id("q"),
        text=PAGE_BREAK_TEXT if question_type is QuestionType.PAGE_BREAK else NEW_QUESTION_TEXT,
        type=question_type,
    )
    if question_type in CHOICE_BASED_QUESTION_TYPES:
        question = replace(question, choices=_default_choices(question_type))

    block = survey.blocks[b_index]
    position = None
    if before_question_id is not None:
        position = next((i for i, q in enumerate(block.questions) if q.id == before_question_id), None)

    blocks = list(survey.blocks)
    blocks[b_index] = _insert_question(block, question, position)
    return apply_paging_and_renumber(survey.with_blocks(blocks))


def delete_question(survey: Survey, question_id: str) -> Survey:
    """
    Remove a question. Logic that referenced it is left in place and is
    reported by the validator.
    """
    location = _locate(survey, question_id)
    if location is None:
        return survey

    blocks = list(survey.blocks)
    _without_question(blocks, *location)
    return apply_paging_and_renumber(survey.with_blocks(blocks))


def copy_question(survey: Survey, question_id: str) -> Survey:
    """Insert a copy (new ids, same logic) right after the original."""
    location = _locate(survey, question_id)
    if location is None:
        return survey
    b_index, q_index = location

    original = survey.blocks[b_index].questions[q_index]
    copy = _fresh_copy(original)
    if copy.type is QuestionType.DESCRIPTION and copy.label:
        copy = replace(copy, label=_copy_label(copy.label, _description_labels(survey.questions())))

    blocks = list(survey.blocks)
    blocks[b_index] = _insert_question(blocks[b_index], copy, q_index + 1)
    return apply_paging_and_renumber(survey.with_blocks(blocks))


def move_question(
    survey: Survey,
    question_id: str,
    target_block_id: str,
    before_question_id: Optional[str] = None,
) -> Survey:
    """
    Move a question into ``target_block_id``, before ``before_question_id``
    or at the end of the block.
    """
    location = _locate(survey, question_id)
    if location is None or _block_index(survey, target_block_id) == -1:
        return survey

    blocks = list(survey.blocks)
    source_block_id = blocks[location[0]].id
    question = _without_question(blocks, *location)

    t_index = _block_index(survey, target_block_id)
    target = blocks[t_index]
    position = None
    if before_question_id is not None:
        position = next((i for i, q in enumerate(target.questions) if q.id == before_question_id), None)
    blocks[t_index] = _insert_question(target, question, position)

    blocks = _drop_if_emptied(blocks, source_block_id)
    return apply_paging_and_renumber(survey.with_blocks(blocks))


def reposition_question(
    survey: Survey,
    qid: str,
    after_qid: Optional[str] = None,
    before_qid: Optional[str] = None,
) -> Survey:
    """
    Move a question addressed by QID next to another QID.

    ``before_qid`` wins over ``after_qid``. When the anchor is not found the
    question goes to the end of its original block.
    """
    location = next(
        ((b, q) for b, block in enumerate(survey.blocks) for q, question in enumerate(block.questions)
         if question.qid == qid),
        None,
    )
    if not qid or location is None:
        return survey

    blocks = list(survey.blocks)
    source_block_id = blocks[location[0]].id
    question = _without_question(blocks, *location)

    anchor = before_qid or after_qid
    placed = False
    if anchor:
        for index, block in enumerate(blocks):
            position = next((i for i, q in enumerate(block.questions) if q.qid == anchor), None)
            if position is not None:
                offset = 0 if before_qid else 1
                blocks[index] = _insert_question(block, question, position + offset)
                placed = True
                break
    if not placed:
        blocks[location[0]] = _insert_question(blocks[location[0]], question)

    blocks = _drop_if_emptied(blocks, source_block_id)
    return apply_paging_and_renumber(survey.with_blocks(blocks))


# =============================================================================
# CHOICES
# =============================================================================

def _new_choice_text(question: Question) -> str:
    number = len(question.choices) + 1
    if question.type is QuestionType.CHOICE_GRID:
        return f"Row {number}"
    return f"Click to write choice {number}"


def add_choice(survey: Survey, question_id: str) -> Survey:
    """Append a placeholder choice; renumbering gives it its Q<n>_<k> prefix."""
    question = survey.find_question(question_id)
    if question is None:
        return survey

    choice = Choice(id=new_id("c"), text=_new_choice_text(question))
    survey = survey.update_question(question_id, lambda q: replace(q, choices=q.choices + (choice,)))
    return renumber(survey)


def delete_choice(survey: Survey, question_id: str, choice_id: str) -> Survey:
    """
    Remove a choice. Later choices move up one prefix position. Skip rules
    that named the choice stay and are reported by the validator.
    """
    question = survey.find_question(question_id)
    if question is None or question.find_choice(choice_id) is None:
        return survey

    def without_choice(q: Question) -> Question:
        return replace(q, choices=tuple(c for c in q.choices if c.id != choice_id))

    return renumber(survey.update_question(question_id, without_choice))


# =============================================================================
# BLOCKS
# =============================================================================

def add_block(survey: Survey, target_block_id: str, position: str = "below", block_id: Optional[str] = None) -> Survey:
    """Insert a new block holding a Description placeholder above or below a block."""
    t_index = _block_index(survey, target_block_id)
    if t_index == -1:
        return survey

    block = _placeholder_block(NEW_BLOCK_TITLE)
    if block_id:
        block = replace(block, id=block_id)

    blocks = list(survey.blocks)
    blocks.insert(t_index if position == "above" else t_index + 1, block)
    return renumber(survey.with_blocks(blocks))


def delete_block(survey: Survey, block_id: str) -> Survey:
    """Remove a block. A survey never ends up with zero blocks."""
    if _block_index(survey, block_id) == -1:
        return survey

    blocks = [b for b in survey.blocks if b.id != block_id]
    if not blocks:
        blocks.append(_placeholder_block(DEFAULT_BLOCK_TITLE))
    return renumber(survey.with_blocks(blocks))


def copy_block(survey: Survey, block_id: str) -> Survey:
    """Insert a copy of a block (title "... (Copy)", new ids) right after it."""
    b_index = _block_index(survey, block_id)
    if b_index == -1:
        return survey

    original = survey.blocks[b_index]
    taken = _description_labels(survey.questions())
    copies: List[Question] = []
    for question in original.questions:
        copy = _fresh_copy(question)
        if copy.type is QuestionType.DESCRIPTION and copy.label:
            label = _copy_label(copy.label, taken)
            copy = replace(copy, label=label)
            if label:
                taken.add(label)
        copies.append(copy)

    block = replace(
        original,
        id=new_id("block"),
        title=f"{original.title} (Copy)",
        questions=tuple(copies),
    )
    blocks = list(survey.blocks)
    blocks.insert(b_index + 1, block)
    return renumber(survey.with_blocks(blocks))


def reorder_block(survey: Survey, block_id: str, before_block_id: Optional[str] = None) -> Survey:
    """Move a block before another block, or to the end."""
    b_index = _block_index(survey, block_id)
    if b_index == -1:
        return survey

    blocks = list(survey.blocks)
    block = blocks.pop(b_index)
    target = next((i for i, b in enumerate(blocks) if b.id == before_block_id), None)
    if before_block_id is None or target is None:
        blocks.append(block)
    else:
        blocks.insert(target, block)
    return renumber(survey.with_blocks(blocks))


def _swap_blocks(survey: Survey, first: int, second: int) -> Survey:
    blocks = list(survey.blocks)
    blocks[first], blocks[second] = blocks[second], blocks[first]
    return renumber(survey.with_blocks(blocks))


def move_block_up(survey: Survey, block_id: str) -> Survey:
    b_index = _block_index(survey, block_id)
    if b_index <= 0:
        return survey
    return _swap_blocks(survey, b_index - 1, b_index)


def move_block_down(survey: Survey, block_id: str) -> Survey:
    b_index = _block_index(survey, block_id)
    if b_index == -1 or b_index >= len(survey.blocks) - 1:
        return survey
    return _swap_blocks(survey, b_index, b_index + 1)


def update_block_continue_to(survey: Survey, block_id: str, continue_to: str) -> Survey:
    """
    Set where a block continues after its last question.

    When the last question has committed branching logic with a reachable
    fallback, the fallback destination follows the block's exit.
    """
    block = survey.find_block(block_id)
    if block is None:
        return survey

    def sync_last(question: Question) -> Question:
        logic = question.branching_logic
        if logic is None or is_exhaustive(question, logic):
            return question
        return replace(
            question,
            branching_logic=replace(
                logic,
                otherwise_skip_to=continue_to,
                otherwise_confirmation=Confirmation.CONFIRMED,
            ),
        )

    questions = block.questions
    if questions:
        last = sync_last(questions[-1])
        if last is not questions[-1]:
            questions = questions[:-1] + (last,)

    if block.continue_to == continue_to and questions is block.questions:
        return survey
    return survey.update_block(block_id, lambda b: replace(b, continue_to=continue_to, questions=questions))


def set_block_automatic_page_breaks(survey: Survey, block_id: str, enabled: bool) -> Survey:
    block = survey.find_block(block_id)
    if block is None or block.automatic_page_breaks == enabled:
        return survey
    updated = survey.update_block(block_id, lambda b: replace(b, automatic_page_breaks=enabled))
    return apply_paging_and_renumber(updated)


# =============================================================================
# MOVE SUMMARY
# =============================================================================

def _jumps_backward(target: Optional[str], position: int, block_index: int, index: SurveyIndex) -> bool:
    if is_terminal_destination(target):
        return False
    block_id = parse_block_destination(target)
    if block_id is not None:
        target_block = index.block_position.get(block_id)
        return target_block is not None and target_block < block_index
    target_position = index.position_of(target)
    return target_position is not None and target_position <= position


def _reads_later_question(conditions, position: int, index: SurveyIndex) -> bool:
    for condition in conditions:
        source = index.resolve_ref(condition.question_ref)
        if source is not None and index.position_of(source.id) >= position:
            return True
    return False


def _has_ordering_problem(question: Question, index: SurveyIndex) -> bool:
    position = index.position_of(question.id)
    block_index = index.block_index_of_question(question.id)

    skip = question.skip_logic
    if isinstance(skip, SimpleSkip) and _jumps_backward(skip.skip_to, position, block_index, index):
        return True
    if isinstance(skip, PerChoiceSkip) and any(
        _jumps_backward(rule.skip_to, position, block_index, index) for rule in skip.rules
    ):
        return True

    branching = question.branching_logic
    if branching is not None:
        if _jumps_backward(branching.otherwise_skip_to, position, block_index, index):
            return True
        for branch in branching.branches:
            if branch.then_confirmation.is_confirmed and _jumps_backward(branch.then_skip_to, position, block_index, index):
                return True
            if _reads_later_question(branch.conditions, position, index):
                return True

    if question.display_logic is not None and _reads_later_question(question.display_logic.conditions, position, index):
        return True
    return False


def describe_logic_after_move(survey: Survey) -> Optional[str]:
    """
    One-line summary of questions whose logic a move broke, or None.

    "Logic on Q3, Q5, Q6 and 2 others is now invalid. Please review."
    """
    index = SurveyIndex(survey)
    affected = [
        question.qid or question.label or question.id
        for question in survey.questions()
        if _has_ordering_problem(question, index)
    ]
    if not affected:
        return None

    message = f"Logic on {', '.join(affected[:MAX_QIDS_IN_MOVE_MESSAGE])}"
    remaining = len(affected) - MAX_QIDS_IN_MOVE_MESSAGE
    if remaining > 0:
        message += f" and {remaining} others"
    return message + " is now invalid. Please review."
