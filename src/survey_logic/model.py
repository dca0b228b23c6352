"""
Core Survey Model Objects

Defines the data structures the logic engine operates on:
    - Surveys (root container, ordered blocks)
    - Blocks (ordered questions, block-level routing)
    - Questions (choices, committed logic, draft logic)
    - Logic (display/hide conditions, skip rules, branching)
    - LogicIssue (validator output)

ARCHITECTURAL RULE:
    These objects:
        - Are immutable (frozen dataclasses, tuples for sequences)
        - Know nothing about rendering or export formats
        - Are changed only by building new values (copy-on-write)

    Every helper that "modifies" a Survey returns a new Survey and shares
    every untouched block and question with the original. When the target
    of an update does not exist, the original object is returned so callers
    can detect the no-op by identity.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Iterator, Optional, Tuple, Union

from survey_logic.identifiers import DisplayRef, StableId


class QuestionType(Enum):
    """Question variants offered by the authoring tool."""

    RADIO = "Radio Button"
    CHECKBOX = "Checkbox"
    DESCRIPTION = "Description"
    TEXT_ENTRY = "Text Answer"
    PAGE_BREAK = "Page Break"
    CHOICE_GRID = "Choice Grid"
    AUTOCOMPLETE = "Autocomplete"
    CARD_SORT = "Card Sort"
    CUSTOM_QUESTION = "Custom Question"
    DATE_TIME_ANSWER = "Date Time Answer"
    DRAG_AND_DROP_RANKING = "Drag And Drop Ranking"
    DRILL_DOWN = "Drill-Down"
    DROP_DOWN_LIST = "Drop-Down List"
    EMAIL_ADDRESS_ANSWER = "Email Address Answer"
    FILE_UPLOAD = "File Upload"
    HYBRID_GRID = "Hybrid Grid"
    IMAGE_AREA_EVALUATOR = "Image Area Evaluator"
    IMAGE_AREA_SELECTOR = "Image Area Selector"
    IMAGE_CHOICE_GRID = "Image Choice Grid"
    IMAGE_SELECTOR = "Image Selector"
    LOOKUP_TABLE = "Lookup Table"
    NET_PROMOTER_NPS = "Net Promoter (NPS)"
    NUMERIC_RANKING = "Numeric Ranking"
    NUMERIC_ANSWER = "Numeric Answer"
    OPEN_END_ANSWER = "Open-End Answer"
    RESPONDENT_EMAIL = "Respondent Email"
    RESPONDENT_LANGUAGE = "Respondent Language"
    RESPONDENT_METADATA = "Respondent Metadata"
    RESPONDENT_PHONE = "Respondent Phone"
    RESPONDENT_TIME_ZONE = "Respondent Time Zone"
    RUNNING_TOTAL = "Running Total"
    SECURED_TEMPORARY_VARIABLE = "Secured Temporary Variable"
    SIGNATURE = "Signature"
    SLIDER = "Slider"
    STAR_RATING = "Star Rating"
    TEXT_HIGHLIGHTER = "Text Highlighter"
    TIMER = "Timer"
    HEATMAP = "Heatmap"
    CARROUSEL = "Carrousel"


CHOICE_BASED_QUESTION_TYPES = frozenset({
    QuestionType.RADIO,
    QuestionType.CHECKBOX,
    QuestionType.DROP_DOWN_LIST,
    QuestionType.IMAGE_SELECTOR,
    QuestionType.CHOICE_GRID,
})

SINGLE_CHOICE_QUESTION_TYPES = frozenset({
    QuestionType.RADIO,
    QuestionType.DROP_DOWN_LIST,
})

# Structural questions never receive a QID.
STRUCTURAL_QUESTION_TYPES = frozenset({
    QuestionType.DESCRIPTION,
    QuestionType.PAGE_BREAK,
})


class ConditionOperator(Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"


class LogicalOperator(Enum):
    AND = "AND"
    OR = "OR"


class Confirmation(Enum):
    """
    Edit state of a single confirmable logic unit.

    A condition, logic set, branch destination or skip rule starts PENDING
    while the author is still filling it in and becomes CONFIRMED when the
    author accepts it. Draft logic is promoted only when every unit in it
    is CONFIRMED.
    """

    PENDING = "pending"
    CONFIRMED = "confirmed"

    @classmethod
    def of(cls, flag: Optional[bool]) -> "Confirmation":
        return cls.CONFIRMED if flag else cls.PENDING

    @property
    def is_confirmed(self) -> bool:
        return self is Confirmation.CONFIRMED


class SkipRowOperator(Enum):
    """Per-row conditions on grid skip rules."""

    IS_ANSWERED_WITH = "is_answered_with"
    IS_NOT_ANSWERED_WITH = "is_not_answered_with"
    IS_ANSWERED_AFTER = "is_answered_after"
    IS_ANSWERED_BEFORE = "is_answered_before"
    IS_ANSWERED = "is_answered"
    IS_NOT_ANSWERED = "is_not_answered"


class LogicKind(Enum):
    """The kind of logic an issue was found in."""

    DISPLAY = "display"
    HIDE = "hide"
    SKIP = "skip"
    BRANCHING = "branching"


class LogicField(Enum):
    """Editable logic fields on a question, each with a draft slot."""

    DISPLAY = "display_logic"
    HIDE = "hide_logic"
    SKIP = "skip_logic"
    BRANCHING = "branching_logic"

    @property
    def draft_attr(self) -> str:
        return f"draft_{self.value}"


class PagingMode(Enum):
    ONE_PER_PAGE = "one-per-page"
    MULTI_PER_PAGE = "multi-per-page"


# =============================================================================
# LOGIC
# =============================================================================

@dataclass(frozen=True)
class Choice:
    """
    A selectable answer.

    Properties:
        id: Stable id
        text: Composite "Q<n>_<k> <label>" text (see identifiers.parse_choice)
    """

    id: StableId
    text: str


@dataclass(frozen=True)
class Condition:
    """
    One comparison against an earlier question's answer.

    Used by display logic, hide logic and branching logic.

    Properties:
        id:
            Stable id, reported back as LogicIssue.source_id
        question_ref:
            QID of the referenced question. This is a display reference,
            NOT the question's stable id, and is rewritten by renumbering.
            Empty while the author has not picked a question yet.
        operator:
            ConditionOperator
        value:
            Compared value. Choice values carry the composite choice text
            ("Q1_2 No") so they are renumbered together with the source.
        confirmation:
            Edit state
        grid_value:
            Column (scale point) id for grid row conditions
    """

    id: StableId
    question_ref: DisplayRef
    operator: ConditionOperator = ConditionOperator.EQUALS
    value: str = ""
    confirmation: Confirmation = Confirmation.PENDING
    grid_value: str = ""


@dataclass(frozen=True)
class LogicSet:
    """A nested, independently joined group of conditions."""

    id: StableId
    operator: LogicalOperator = LogicalOperator.AND
    conditions: Tuple[Condition, ...] = ()
    confirmation: Confirmation = Confirmation.PENDING


@dataclass(frozen=True)
class DisplayLogic:
    """
    Condition set controlling whether a question is shown (or hidden).

    Two levels only: top-level conditions joined by ``operator``, plus
    optional logic sets each joined by their own operator.
    Hide logic uses the same shape.
    """

    operator: LogicalOperator = LogicalOperator.AND
    conditions: Tuple[Condition, ...] = ()
    logic_sets: Tuple[LogicSet, ...] = ()

    def all_conditions(self) -> Iterator[Condition]:
        yield from self.conditions
        for logic_set in self.logic_sets:
            yield from logic_set.conditions


HideLogic = DisplayLogic


@dataclass(frozen=True)
class SimpleSkip:
    """Fires once the question is answered, whatever the answer."""

    skip_to: str
    confirmation: Confirmation = Confirmation.PENDING


@dataclass(frozen=True)
class SkipRule:
    """
    Destination for one choice of a per-choice skip.

    ``operator`` and ``value_choice_id`` add a per-row condition for grid
    questions (e.g. row "Speed" is answered with column "Satisfied").
    """

    id: StableId
    choice_id: StableId
    skip_to: str
    confirmation: Confirmation = Confirmation.PENDING
    operator: Optional[SkipRowOperator] = None
    value_choice_id: str = ""


@dataclass(frozen=True)
class PerChoiceSkip:
    rules: Tuple[SkipRule, ...] = ()


SkipLogic = Union[SimpleSkip, PerChoiceSkip]


@dataclass(frozen=True)
class Branch:
    """
    One conditional route of branching logic.

    Properties:
        id: Stable id
        operator: How ``conditions`` are joined
        conditions: Conditions that select this branch
        then_skip_to: Destination ("next", "end", "block:<id>" or question id)
        then_confirmation: Edit state of the destination
        path_name: Optional label of the named path this branch starts
    """

    id: StableId
    operator: LogicalOperator = LogicalOperator.AND
    conditions: Tuple[Condition, ...] = ()
    then_skip_to: str = ""
    then_confirmation: Confirmation = Confirmation.PENDING
    path_name: Optional[str] = None


@dataclass(frozen=True)
class BranchingLogic:
    """
    Ordered branches plus a single fallback ("otherwise") destination.

    When the branches cover every choice of the owning question the
    fallback is unreachable and the three ``otherwise_*`` fields are None.
    """

    branches: Tuple[Branch, ...] = ()
    otherwise_skip_to: Optional[str] = None
    otherwise_confirmation: Optional[Confirmation] = None
    otherwise_path_name: Optional[str] = None

    def without_otherwise(self) -> "BranchingLogic":
        return replace(
            self,
            otherwise_skip_to=None,
            otherwise_confirmation=None,
            otherwise_path_name=None,
        )


# =============================================================================
# STRUCTURE
# =============================================================================

@dataclass(frozen=True)
class Question:
    """
    A survey question and all logic attached to it.

    Properties:
        id:
            Stable id
        qid:
            Derived display id ("Q<n>"); empty for Description and
            Page Break questions and for questions not yet renumbered
        text:
            Question text
        type:
            QuestionType
        choices:
            Choices for choice-based types (empty otherwise)
        label:
            Author-visible label of Description questions
        force_response:
            Whether an answer is required
        is_automatic:
            Page breaks inserted by the paging rules (not by the author)

        display_logic / hide_logic / skip_logic / branching_logic:
            Committed logic. The only fields that affect behavior.

        draft_display_logic / draft_hide_logic / draft_skip_logic /
        draft_branching_logic:
            Staging copies used while an edit is incomplete. Ignored by
            every consumer except the editor.
    """

    id: StableId
    qid: DisplayRef = DisplayRef("")
    text: str = ""
    type: QuestionType = QuestionType.TEXT_ENTRY
    choices: Tuple[Choice, ...] = ()
    label: Optional[str] = None
    force_response: bool = False
    is_automatic: bool = False

    display_logic: Optional[DisplayLogic] = None
    hide_logic: Optional[DisplayLogic] = None
    skip_logic: Optional[SkipLogic] = None
    branching_logic: Optional[BranchingLogic] = None

    draft_display_logic: Optional[DisplayLogic] = None
    draft_hide_logic: Optional[DisplayLogic] = None
    draft_skip_logic: Optional[SkipLogic] = None
    draft_branching_logic: Optional[BranchingLogic] = None

    @property
    def is_structural(self) -> bool:
        return self.type in STRUCTURAL_QUESTION_TYPES

    def has_drafts(self) -> bool:
        return any(getattr(self, f.draft_attr) is not None for f in LogicField)

    def find_choice(self, choice_id: str) -> Optional[Choice]:
        for choice in self.choices:
            if choice.id == choice_id:
                return choice
        return None


@dataclass(frozen=True)
class Block:
    """
    An ordered group of questions.

    Properties:
        id: Stable id
        bid: Derived display id ("BL<n>")
        title: Block title
        questions: Questions in document order
        branching_logic: Optional block-level routing after the last question
        branch_name: Name of the path this block belongs to, if any
        continue_to: Routing after the block ("next", "end", "block:<id>")
        automatic_page_breaks: One question per page inside this block
    """

    id: StableId
    bid: DisplayRef = DisplayRef("")
    title: str = ""
    questions: Tuple[Question, ...] = ()
    branching_logic: Optional[BranchingLogic] = None
    branch_name: Optional[str] = None
    continue_to: str = "next"
    automatic_page_breaks: bool = False


@dataclass(frozen=True)
class Survey:
    """
    Root container. Block order defines document order, which in turn
    defines which references point forward and which point backward.
    """

    title: str = ""
    blocks: Tuple[Block, ...] = ()
    paging_mode: PagingMode = PagingMode.MULTI_PER_PAGE

    def questions(self) -> Tuple[Question, ...]:
        """All questions in document order."""
        return tuple(q for block in self.blocks for q in block.questions)

    def find_question(self, question_id: str) -> Optional[Question]:
        for block in self.blocks:
            for question in block.questions:
                if question.id == question_id:
                    return question
        return None

    def find_block(self, block_id: str) -> Optional[Block]:
        for block in self.blocks:
            if block.id == block_id:
                return block
        return None

    def block_of(self, question_id: str) -> Optional[Block]:
        for block in self.blocks:
            if any(q.id == question_id for q in block.questions):
                return block
        return None

    def with_blocks(self, blocks) -> "Survey":
        return replace(self, blocks=tuple(blocks))

    def update_block(self, block_id: str, fn: Callable[[Block], Block]) -> "Survey":
        """Return a survey with ``fn`` applied to one block, or self."""
        for index, block in enumerate(self.blocks):
            if block.id == block_id:
                updated = fn(block)
                if updated is block:
                    return self
                blocks = list(self.blocks)
                blocks[index] = updated
                return self.with_blocks(blocks)
        return self

    def update_question(self, question_id: str, fn: Callable[[Question], Question]) -> "Survey":
        """Return a survey with ``fn`` applied to one question, or self."""
        for b_index, block in enumerate(self.blocks):
            for q_index, question in enumerate(block.questions):
                if question.id != question_id:
                    continue
                updated = fn(question)
                if updated is question:
                    return self
                questions = list(block.questions)
                questions[q_index] = updated
                blocks = list(self.blocks)
                blocks[b_index] = replace(block, questions=tuple(questions))
                return self.with_blocks(blocks)
        return self


# =============================================================================
# VALIDATION OUTPUT
# =============================================================================

@dataclass(frozen=True)
class LogicIssue:
    """
    A single problem found by the validator.

    Properties:
        question_id: Stable id of the owning question (or block)
        type: LogicKind the problem was found in
        message: Human-readable description
        source_id: Id of the faulty condition/branch/rule; "simple" and
            "otherwise" for the single-destination slots
        field: The offending field ("questionId", "skipTo", "value")
        related_ids: Every condition involved in a contradiction
    """

    question_id: str
    type: LogicKind
    message: str
    source_id: Optional[str] = None
    field: Optional[str] = None
    related_ids: Tuple[str, ...] = ()

    @property
    def key(self) -> Tuple[str, str]:
        return (self.question_id, self.message)
