"""
Tests for branching exhaustiveness.
"""

from survey_logic.exhaustiveness import (
    covered_choice_labels,
    default_otherwise_destination,
    is_exhaustive,
    normalize_otherwise,
)
from survey_logic.identifiers import END, block_destination
from survey_logic.model import (
    Block,
    Branch,
    BranchingLogic,
    Choice,
    Condition,
    ConditionOperator,
    Confirmation,
    Question,
    QuestionType,
    Survey,
)

CONFIRMED = Confirmation.CONFIRMED


def _radio() -> Question:
    return Question(
        id="q1",
        qid="Q1",
        type=QuestionType.RADIO,
        choices=(Choice(id="c1", text="Q1_1 Yes"), Choice(id="c2", text="Q1_2 No")),
    )


def _branch(value, operator=ConditionOperator.EQUALS, ref="Q1", confirmation=CONFIRMED):
    return Branch(
        id=f"br_{value}",
        conditions=(Condition(id=f"c_{value}", question_ref=ref, operator=operator, value=value, confirmation=CONFIRMED),),
        then_skip_to=END,
        then_confirmation=confirmation,
    )


class TestIsExhaustive:
    def test_every_choice_covered(self):
        logic = BranchingLogic(branches=(_branch("Q1_1 Yes"), _branch("Q1_2 No")))
        assert is_exhaustive(_radio(), logic)

    def test_removing_a_branch_breaks_exhaustiveness(self):
        logic = BranchingLogic(branches=(_branch("Q1_1 Yes"),))
        assert not is_exhaustive(_radio(), logic)

    def test_labels_match_without_prefix(self):
        logic = BranchingLogic(branches=(_branch("Yes"), _branch("No")))
        assert is_exhaustive(_radio(), logic)

    def test_not_equals_does_not_cover(self):
        logic = BranchingLogic(branches=(_branch("Q1_1 Yes"), _branch("Q1_2 No", ConditionOperator.NOT_EQUALS)))
        assert not is_exhaustive(_radio(), logic)

    def test_other_question_does_not_cover(self):
        logic = BranchingLogic(branches=(_branch("Q1_1 Yes"), _branch("Q1_2 No", ref="Q7")))
        assert not is_exhaustive(_radio(), logic)

    def test_unconfirmed_destination_does_not_cover(self):
        logic = BranchingLogic(branches=(_branch("Q1_1 Yes"), _branch("Q1_2 No", confirmation=Confirmation.PENDING)))
        assert covered_choice_labels(_radio(), logic) == {"Yes"}
        assert not is_exhaustive(_radio(), logic)

    def test_question_without_choices(self):
        question = Question(id="q1", qid="Q1")
        assert not is_exhaustive(question, BranchingLogic(branches=(_branch("Yes"),)))

    def test_defaults_to_question_logic(self):
        question = Question(
            id="q1",
            qid="Q1",
            type=QuestionType.RADIO,
            choices=_radio().choices,
            branching_logic=BranchingLogic(branches=(_branch("Yes"), _branch("No"))),
        )
        assert is_exhaustive(question)
        assert not is_exhaustive(None)


class TestDefaultDestination:
    def _survey(self):
        return Survey(blocks=(
            Block(id="b1", questions=(_radio(),)),
            Block(id="b2", branch_name="Path A", questions=(Question(id="q2"),)),
            Block(id="b3", questions=(Question(id="q3"),)),
        ))

    def test_skips_path_blocks(self):
        assert default_otherwise_destination(self._survey(), "q1") == block_destination("b3")

    def test_end_when_no_shared_block_follows(self):
        assert default_otherwise_destination(self._survey(), "q3") == END

    def test_normalize_fills_pending_default(self):
        logic = normalize_otherwise(self._survey(), _radio(), BranchingLogic(branches=(_branch("Yes"),)))
        assert logic.otherwise_skip_to == block_destination("b3")
        assert logic.otherwise_confirmation is Confirmation.PENDING

    def test_normalize_keeps_chosen_destination(self):
        logic = BranchingLogic(branches=(_branch("Yes"),), otherwise_skip_to=END, otherwise_confirmation=CONFIRMED)
        assert normalize_otherwise(self._survey(), _radio(), logic) is logic
