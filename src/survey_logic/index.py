"""
Survey lookup tables.

SurveyIndex is the one place that translates between stable ids and
display references, and that knows each question's and block's position
in document order. Validation, exhaustiveness and the structural edit
helpers all read the survey through it.
"""

from __future__ import annotations

from typing import Dict, Optional

from survey_logic.identifiers import DisplayRef, StableId
from survey_logic.model import Block, Question, Survey


class SurveyIndex:
    """Read-only lookups over one survey snapshot."""

    def __init__(self, survey: Survey):
        self.survey = survey
        self.by_id: Dict[str, Question] = {}
        self.by_ref: Dict[str, Question] = {}
        self.question_position: Dict[str, int] = {}
        self.block_position: Dict[str, int] = {}
        self.block_of_question: Dict[str, Block] = {}
        self.blocks_by_id: Dict[str, Block] = {}
        self.block_end_position: Dict[str, int] = {}

        position = 0
        for b_index, block in enumerate(survey.blocks):
            self.block_position.setdefault(block.id, b_index)
            self.blocks_by_id.setdefault(block.id, block)
            for question in block.questions:
                self.by_id[question.id] = question
                self.question_position[question.id] = position
                self.block_of_question[question.id] = block
                # First occurrence wins on duplicate QIDs
                if question.qid and question.qid not in self.by_ref:
                    self.by_ref[question.qid] = question
                position += 1
            self.block_end_position.setdefault(block.id, position - 1)

    def resolve_ref(self, ref: Optional[str]) -> Optional[Question]:
        """Question currently carrying display reference ``ref``."""
        if not ref:
            return None
        return self.by_ref.get(ref)

    def ref_of(self, question_id: StableId) -> DisplayRef:
        question = self.by_id.get(question_id)
        return DisplayRef(question.qid if question else "")

    def position_of(self, question_id: str) -> Optional[int]:
        return self.question_position.get(question_id)

    def block_index_of_question(self, question_id: str) -> Optional[int]:
        block = self.block_of_question.get(question_id)
        if block is None:
            return None
        return self.block_position[block.id]

    def end_position_of_block(self, block_id: str) -> Optional[int]:
        """
        Document position of the block's last question. An empty block
        sits after the questions of the blocks before it (-1 when first).
        """
        return self.block_end_position.get(block_id)
