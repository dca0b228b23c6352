"""
Tests for the structural edit API.

Every operation returns a renumbered survey, and the untouched input
survey when its target does not exist.
"""

import itertools

import pytest

from survey_logic.examples import build_coffee_survey, build_skip_survey
from survey_logic.identifiers import END, NEXT, block_destination
from survey_logic.model import (
    Block,
    Branch,
    BranchingLogic,
    Condition,
    Confirmation,
    DisplayLogic,
    PagingMode,
    Question,
    QuestionType,
    SimpleSkip,
    Survey,
)
from survey_logic.renumber import renumber
from survey_logic.structure import (
    add_block,
    add_choice,
    add_question,
    apply_paging_rules,
    copy_block,
    copy_question,
    delete_block,
    delete_choice,
    delete_question,
    describe_logic_after_move,
    move_block_down,
    move_block_up,
    move_question,
    new_id,
    reorder_block,
    reposition_question,
    set_block_automatic_page_breaks,
    set_id_factory,
    set_paging_mode,
    update_block_continue_to,
)
from survey_logic.validator import validate


@pytest.fixture(autouse=True)
def sequential_ids():
    counter = itertools.count(1)
    set_id_factory(lambda prefix: f"{prefix}_new{next(counter)}")
    yield
    set_id_factory(None)


def _ids(survey):
    return [q.id for q in survey.questions()]


class TestIdFactory:
    def test_injected_factory(self):
        assert new_id("q") == "q_new1"
        assert new_id("c") == "c_new2"


class TestQuestions:
    def test_add_question_at_end(self):
        survey = add_question(build_skip_survey(), "b1", QuestionType.TEXT_ENTRY, question_id="q_new")
        assert _ids(survey) == ["q1", "q2", "q3", "q_new"]
        assert survey.find_question("q_new").qid == "Q4"

    def test_add_question_before(self):
        survey = add_question(build_skip_survey(), "b1", QuestionType.TEXT_ENTRY, before_question_id="q2", question_id="q_new")
        assert _ids(survey) == ["q1", "q_new", "q2", "q3"]
        assert survey.find_question("q2").qid == "Q3"

    def test_add_radio_gets_prefixed_choices(self):
        survey = add_question(build_skip_survey(), "b1", QuestionType.RADIO, question_id="q_new")
        texts = [c.text for c in survey.find_question("q_new").choices]
        assert texts == ["Q4_1 Click to write choice 1", "Q4_2 Click to write choice 2"]

    def test_add_question_to_unknown_block(self):
        survey = build_skip_survey()
        assert add_question(survey, "nope", QuestionType.TEXT_ENTRY) is survey

    def test_delete_unknown_question(self):
        survey = build_skip_survey()
        assert delete_question(survey, "nope") is survey

    def test_copy_question(self):
        survey = copy_question(build_skip_survey(), "q1")
        questions = survey.questions()
        copy = questions[1]
        assert copy.id != "q1"
        assert copy.qid == "Q2"
        assert [c.text for c in copy.choices] == ["Q2_1 Yes", "Q2_2 No"]
        assert {c.id for c in copy.choices}.isdisjoint({"q1_c1", "q1_c2"})
        assert copy.skip_logic == survey.find_question("q1").skip_logic

    def test_copy_description_label(self):
        base = renumber(Survey(blocks=(Block(id="b", questions=(
            Question(id="d1", type=QuestionType.DESCRIPTION, label="Intro"),
        )),)))
        once = copy_question(base, "d1")
        assert [q.label for q in once.questions()] == ["Intro", "Intro (Copy)"]
        twice = copy_question(once, "d1")
        assert [q.label for q in twice.questions()] == ["Intro", "Intro (Copy 2)", "Intro (Copy)"]

    def test_move_question_between_blocks(self):
        survey = build_coffee_survey()
        moved = move_question(survey, "q_comments", "b_habits", before_question_id="q_cups")
        assert [q.id for q in moved.find_block("b_habits").questions] == ["q_fav", "q_comments", "q_cups"]
        assert moved.find_question("q_comments").qid == "Q3"

    def test_moving_last_question_removes_block(self):
        survey = build_coffee_survey()
        moved = move_question(survey, "q_why", "b_habits")
        assert moved.find_block("b_abstain") is None

    def test_reposition_by_qid(self):
        survey = reposition_question(build_skip_survey(), "Q3", before_qid="Q1")
        assert _ids(survey) == ["q3", "q1", "q2"]
        assert survey.find_question("q3").qid == "Q1"

    def test_reposition_after(self):
        survey = reposition_question(build_skip_survey(), "Q1", after_qid="Q2")
        assert _ids(survey) == ["q2", "q1", "q3"]

    def test_reposition_unknown_qid(self):
        survey = build_skip_survey()
        assert reposition_question(survey, "Q9", after_qid="Q1") is survey


class TestChoices:
    def test_add_choice(self):
        survey = add_choice(build_skip_survey(), "q1")
        q1 = survey.find_question("q1")
        assert [c.text for c in q1.choices] == ["Q1_1 Yes", "Q1_2 No", "Q1_3 Click to write choice 3"]
        assert q1.choices[-1].id == "c_new1"

    def test_add_grid_row(self):
        base = renumber(Survey(blocks=(Block(id="b", questions=(
            Question(id="g", type=QuestionType.CHOICE_GRID, choices=()),
        )),)))
        survey = add_choice(base, "g")
        assert [c.text for c in survey.find_question("g").choices] == ["Q1_1 Row 1"]

    def test_delete_choice_renumbers_prefixes(self):
        survey = delete_choice(build_skip_survey(), "q3", "q3_c1")
        assert [c.text for c in survey.find_question("q3").choices] == ["Q3_1 Comfort", "Q3_2 Safety"]

    def test_deleted_choice_breaks_skip_rule(self):
        survey = delete_choice(build_skip_survey(), "q1", "q1_c1")
        issues = validate(survey)
        assert [(i.question_id, i.source_id, i.message) for i in issues] == [
            ("q1", "q1_c1", "A choice associated with this skip rule has been deleted."),
        ]

    def test_unknown_targets_are_noops(self):
        survey = build_skip_survey()
        assert add_choice(survey, "nope") is survey
        assert delete_choice(survey, "q1", "nope") is survey
        assert delete_choice(survey, "nope", "q1_c1") is survey


class TestBlocks:
    def test_add_block_below(self):
        survey = add_block(build_skip_survey(), "b1", block_id="b_new")
        assert [b.id for b in survey.blocks] == ["b1", "b_new"]
        new_block = survey.find_block("b_new")
        assert new_block.bid == "BL2"
        assert new_block.questions[0].type is QuestionType.DESCRIPTION

    def test_add_block_above(self):
        survey = add_block(build_skip_survey(), "b1", position="above", block_id="b_new")
        assert [b.id for b in survey.blocks] == ["b_new", "b1"]

    def test_delete_last_block_leaves_default(self):
        survey = delete_block(build_skip_survey(), "b1")
        assert len(survey.blocks) == 1
        assert survey.blocks[0].title == "Default Block"

    def test_delete_unknown_block(self):
        survey = build_skip_survey()
        assert delete_block(survey, "nope") is survey

    def test_copy_block(self):
        survey = copy_block(build_skip_survey(), "b1")
        assert [b.title for b in survey.blocks] == ["Cars", "Cars (Copy)"]
        assert [q.qid for q in survey.blocks[1].questions] == ["Q4", "Q5", "Q6"]
        assert not set(_ids(survey)[:3]) & set(_ids(survey)[3:])

    def test_reorder_block(self):
        survey = reorder_block(build_coffee_survey(), "b_wrapup", before_block_id="b_screen")
        assert [b.id for b in survey.blocks] == ["b_wrapup", "b_screen", "b_habits", "b_abstain"]
        assert survey.find_question("q_comments").qid == "Q1"

    def test_reorder_to_end(self):
        survey = reorder_block(build_coffee_survey(), "b_screen")
        assert survey.blocks[-1].id == "b_screen"

    def test_move_block_up_and_down(self):
        survey = build_coffee_survey()
        up = move_block_up(survey, "b_habits")
        assert [b.id for b in up.blocks][:2] == ["b_habits", "b_screen"]
        down = move_block_down(up, "b_habits")
        assert [b.id for b in down.blocks] == [b.id for b in survey.blocks]

    def test_move_first_block_up_is_noop(self):
        survey = build_coffee_survey()
        assert move_block_up(survey, "b_screen") is survey
        assert move_block_down(survey, "b_wrapup") is survey


class TestContinueTo:
    def _survey(self):
        q = Question(id="q1", qid="Q1", branching_logic=BranchingLogic(
            branches=(Branch(id="br", then_skip_to=END, then_confirmation=Confirmation.CONFIRMED),),
            otherwise_skip_to=NEXT,
            otherwise_confirmation=Confirmation.PENDING,
        ))
        return Survey(blocks=(Block(id="b1", questions=(q,)), Block(id="b2", questions=(Question(id="q2"),))))

    def test_syncs_last_question_otherwise(self):
        survey = update_block_continue_to(self._survey(), "b1", END)
        assert survey.find_block("b1").continue_to == END
        logic = survey.find_question("q1").branching_logic
        assert logic.otherwise_skip_to == END
        assert logic.otherwise_confirmation is Confirmation.CONFIRMED

    def test_unknown_block(self):
        survey = self._survey()
        assert update_block_continue_to(survey, "nope", END) is survey


class TestPaging:
    def _survey(self, mode=PagingMode.MULTI_PER_PAGE, automatic=False):
        return Survey(paging_mode=mode, blocks=(Block(id="b", automatic_page_breaks=automatic, questions=(
            Question(id="a"),
            Question(id="d", type=QuestionType.DESCRIPTION),
            Question(id="b"),
            Question(id="pb1", type=QuestionType.PAGE_BREAK),
            Question(id="pb2", type=QuestionType.PAGE_BREAK),
            Question(id="c"),
        )),))

    def test_consecutive_page_breaks_collapse(self):
        survey = apply_paging_rules(self._survey())
        assert _ids(survey) == ["a", "d", "b", "pb1", "c"]

    def test_one_per_page_inserts_automatic_breaks(self):
        survey = apply_paging_rules(self._survey(PagingMode.ONE_PER_PAGE))
        types = [(q.id if not q.is_automatic else "auto") for q in survey.questions()]
        assert types == ["a", "d", "auto", "b", "pb1", "c"]

    def test_block_automatic_page_breaks(self):
        survey = apply_paging_rules(self._survey(automatic=True))
        assert sum(1 for q in survey.questions() if q.is_automatic) == 1

    def test_automatic_breaks_are_recomputed(self):
        paged = apply_paging_rules(self._survey(PagingMode.ONE_PER_PAGE))
        back = set_paging_mode(paged, PagingMode.MULTI_PER_PAGE)
        assert not any(q.is_automatic for q in back.questions())

    def test_toggle_block_page_breaks(self):
        survey = set_block_automatic_page_breaks(self._survey(), "b", True)
        assert survey.find_block("b").automatic_page_breaks
        assert any(q.is_automatic for q in survey.questions())

    def test_nothing_to_do_returns_same_survey(self):
        survey = Survey(blocks=(Block(id="b", questions=(Question(id="a"),)),))
        assert apply_paging_rules(survey) is survey


class TestMoveSummary:
    def test_clean_survey(self):
        assert describe_logic_after_move(build_skip_survey()) is None

    def test_move_breaks_skip(self):
        survey = reposition_question(build_skip_survey(), "Q3", before_qid="Q1")
        assert describe_logic_after_move(survey) == "Logic on Q2 is now invalid. Please review."

    def test_many_affected_questions(self):
        questions = [Question(id="q0")] + [
            Question(id=f"q{i}", skip_logic=SimpleSkip(skip_to="q0", confirmation=Confirmation.CONFIRMED))
            for i in range(1, 6)
        ]
        survey = renumber(Survey(blocks=(Block(id="b", questions=tuple(questions)),)))
        assert describe_logic_after_move(survey) == "Logic on Q2, Q3, Q4 and 2 others is now invalid. Please review."

    def test_display_logic_on_later_question(self):
        q1 = Question(id="q1", display_logic=DisplayLogic(conditions=(Condition(id="c", question_ref="Q2"),)))
        survey = renumber(Survey(blocks=(Block(id="b", questions=(q1, Question(id="q2"))),)))
        assert describe_logic_after_move(survey) == "Logic on Q1 is now invalid. Please review."
