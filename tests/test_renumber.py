"""
Tests for renumbering and reference rewriting.

These tests verify:
    - Dense, gap-free QIDs/BIDs in document order
    - Choice texts re-prefixed with the owning QID
    - Condition references and choice values follow their question
    - Idempotence
"""

import logging

from survey_logic.model import (
    Block,
    Branch,
    BranchingLogic,
    Choice,
    Condition,
    DisplayLogic,
    LogicSet,
    Question,
    QuestionType,
    Survey,
)
from survey_logic.renumber import find_duplicate_refs, renumber, rewrite_question_refs


def build_stale_survey() -> Survey:
    """Questions carry QIDs from an earlier order."""
    radio = Question(
        id="q_a",
        qid="Q3",
        type=QuestionType.RADIO,
        choices=(Choice(id="c1", text="Q3_1 Yes"), Choice(id="c2", text="Q3_2 No")),
    )
    description = Question(id="d1", type=QuestionType.DESCRIPTION)
    text = Question(id="q_b", qid="Q1")
    page_break = Question(id="pb1", qid="Q9", type=QuestionType.PAGE_BREAK)
    dependent = Question(
        id="q_c",
        qid="Q2",
        display_logic=DisplayLogic(conditions=(
            Condition(id="dc1", question_ref="Q3", value="Q3_1 Yes"),
        )),
        draft_hide_logic=DisplayLogic(logic_sets=(
            LogicSet(id="s1", conditions=(Condition(id="hc1", question_ref="Q1"),)),
        )),
    )
    block_logic = BranchingLogic(branches=(
        Branch(id="br1", conditions=(Condition(id="bc1", question_ref="Q2", value="x"),)),
    ))
    return Survey(blocks=(
        Block(id="b1", bid="BL7", questions=(radio, description, text, page_break)),
        Block(id="b2", questions=(dependent,), branching_logic=block_logic),
    ))


class TestDensity:
    """QIDs are Q1..Qn over interactive questions only."""

    def test_qids_are_dense(self):
        survey = renumber(build_stale_survey())
        qids = [q.qid for q in survey.questions() if not q.is_structural]
        assert qids == ["Q1", "Q2", "Q3"]

    def test_structural_questions_have_no_qid(self):
        survey = renumber(build_stale_survey())
        assert survey.find_question("d1").qid == ""
        assert survey.find_question("pb1").qid == ""

    def test_bids_are_dense(self):
        survey = renumber(build_stale_survey())
        assert [b.bid for b in survey.blocks] == ["BL1", "BL2"]

    def test_description_gets_default_label(self):
        survey = renumber(build_stale_survey())
        assert survey.find_question("d1").label == "Description 1"


class TestReferenceIntegrity:
    """Logic keeps pointing at the same questions."""

    def test_display_condition_follows_its_question(self):
        survey = renumber(build_stale_survey())
        condition = survey.find_question("q_c").display_logic.conditions[0]
        assert condition.question_ref == survey.find_question("q_a").qid == "Q1"

    def test_choice_value_is_rewritten(self):
        survey = renumber(build_stale_survey())
        condition = survey.find_question("q_c").display_logic.conditions[0]
        assert condition.value == "Q1_1 Yes"

    def test_draft_logic_sets_are_rewritten(self):
        survey = renumber(build_stale_survey())
        condition = survey.find_question("q_c").draft_hide_logic.logic_sets[0].conditions[0]
        assert condition.question_ref == "Q2"

    def test_block_branching_is_rewritten(self):
        survey = renumber(build_stale_survey())
        condition = survey.find_block("b2").branching_logic.branches[0].conditions[0]
        assert condition.question_ref == "Q3"

    def test_choices_are_reprefixed(self):
        survey = renumber(build_stale_survey())
        assert [c.text for c in survey.find_question("q_a").choices] == ["Q1_1 Yes", "Q1_2 No"]

    def test_unknown_reference_is_left_alone(self):
        q = Question(id="q1", qid="Q1", display_logic=DisplayLogic(conditions=(
            Condition(id="c", question_ref="Q42"),
        )))
        survey = renumber(Survey(blocks=(Block(id="b", questions=(q,)),)))
        assert survey.find_question("q1").display_logic.conditions[0].question_ref == "Q42"


class TestIdempotence:
    def test_renumber_twice_equals_once(self):
        once = renumber(build_stale_survey())
        assert renumber(once) == once

    def test_renumbered_survey_is_shared(self):
        """Nothing changes on a second pass, so every object is reused."""
        once = renumber(build_stale_survey())
        assert renumber(once) is once


class TestDescriptions:
    def test_custom_labels_are_kept(self):
        survey = renumber(Survey(blocks=(Block(id="b", questions=(
            Question(id="d1", type=QuestionType.DESCRIPTION, label="Intro"),
            Question(id="d2", type=QuestionType.DESCRIPTION),
        )),)))
        assert survey.find_question("d1").label == "Intro"
        assert survey.find_question("d2").label == "Description 2"

    def test_default_labels_are_recomputed(self):
        survey = renumber(Survey(blocks=(Block(id="b", questions=(
            Question(id="d1", type=QuestionType.DESCRIPTION, label="Description 5"),
        )),)))
        assert survey.find_question("d1").label == "Description 1"


class TestDuplicates:
    def _survey(self):
        return Survey(blocks=(Block(id="b", questions=(
            Question(id="first", qid="Q1"),
            Question(id="second", qid="Q1"),
            Question(id="reader", qid="Q3", display_logic=DisplayLogic(conditions=(
                Condition(id="c", question_ref="Q1"),
            ))),
        )),))

    def test_duplicates_are_reported(self):
        assert find_duplicate_refs(self._survey()) == ["Q1"]

    def test_duplicates_are_logged(self, caplog):
        with caplog.at_level(logging.WARNING, logger="survey_logic.renumber"):
            renumber(self._survey())
        assert "Duplicate QIDs" in caplog.text

    def test_first_occurrence_wins(self):
        survey = renumber(self._survey())
        condition = survey.find_question("reader").display_logic.conditions[0]
        assert condition.question_ref == survey.find_question("first").qid


def test_rewrite_question_refs_without_matches_returns_same_question():
    q = Question(id="q1", display_logic=DisplayLogic(conditions=(Condition(id="c", question_ref="Q1"),)))
    assert rewrite_question_refs(q, {"Q9": "Q10"}) is q
