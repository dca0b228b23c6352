"""
Tests for dry-run previews and assistant edits.
"""

import pytest

from survey_logic.examples import build_coffee_survey, build_skip_survey
from survey_logic.identifiers import END, NEXT, block_destination
from survey_logic.model import Confirmation, LogicKind, PerChoiceSkip, SimpleSkip
from survey_logic.preview import (
    apply_assistant_edit,
    introduced_issues,
    preview_assistant_edit,
    preview_change,
    preview_reposition,
)
from survey_logic.structure import delete_question
from survey_logic.validator import validate


class TestIntroducedIssues:
    def test_no_change_no_issues(self):
        survey = build_skip_survey()
        assert introduced_issues(survey, survey) == []

    def test_preexisting_issues_are_ignored(self):
        broken = apply_assistant_edit(build_skip_survey(), "set_skip_logic", {
            "qid": "Q2", "rules": [{"destinationQid": "Q1"}],
        })
        assert len(validate(broken)) == 1
        assert introduced_issues(broken, broken) == []


class TestPreviewChange:
    def test_input_survey_is_untouched(self):
        survey = build_skip_survey()
        result = preview_change(survey, lambda s: delete_question(s, "q2"))
        assert result.ok
        assert survey.find_question("q2") is not None
        assert result.survey.find_question("q2") is None

    def test_new_issue_is_reported(self):
        survey = build_skip_survey()
        result = preview_change(survey, lambda s: delete_question(s, "q1"))
        assert result.ok

        result = preview_assistant_edit(survey, "set_skip_logic", {"qid": "Q2", "rules": [{"destinationQid": "Q1"}]})
        assert not result.ok
        assert len(result.issues) == 1
        assert result.message.splitlines() == [
            "This change may cause issues on other questions:",
            "- On question Q2: Skipping backward to Q1 can cause loops.",
        ]


class TestPreviewReposition:
    def test_missing_anchor(self):
        result = preview_reposition(build_skip_survey(), "Q1")
        assert not result.ok
        assert "unclear" in result.message

    def test_unknown_question(self):
        result = preview_reposition(build_skip_survey(), "Q9", after_qid="Q1")
        assert result.message == "Question Q9 was not found in the survey."

    def test_unknown_target(self):
        result = preview_reposition(build_skip_survey(), "Q1", after_qid="Q9")
        assert result.message == "The target question Q9 was not found."

    def test_move_that_breaks_skip(self):
        result = preview_reposition(build_skip_survey(), "Q3", before_qid="Q1")
        assert not result.ok
        assert result.message.startswith("This move will create new logic issues:")


class TestAssistantEdits:
    def test_set_display_logic_is_committed(self):
        survey = apply_assistant_edit(build_skip_survey(), "set_display_logic", {
            "qid": "Q3",
            "logicalOperator": "AND",
            "conditions": [{"sourceQid": "Q1", "operator": "equals", "value": "Q1_1 Yes"}],
        })
        logic = survey.find_question("q3").display_logic
        assert logic is not None
        assert logic.conditions[0].question_ref == "Q1"
        assert survey.find_question("q3").draft_display_logic is None

    def test_remove_display_logic(self):
        survey = apply_assistant_edit(build_skip_survey(), "set_display_logic", {
            "qid": "Q3", "conditions": [{"sourceQid": "Q1", "operator": "is_not_empty"}],
        })
        survey = apply_assistant_edit(survey, "remove_display_logic", {"qid": "Q3"})
        assert survey.find_question("q3").display_logic is None

    def test_simple_skip_on_text_question(self):
        survey = apply_assistant_edit(build_skip_survey(), "set_skip_logic", {
            "qid": "Q2", "rules": [{"destinationQid": "END"}],
        })
        assert survey.find_question("q2").skip_logic == SimpleSkip(skip_to=END, confirmation=Confirmation.CONFIRMED)

    def test_per_choice_skip_matches_labels(self):
        survey = apply_assistant_edit(build_skip_survey(), "set_skip_logic", {
            "qid": "Q1", "rules": [{"choiceText": "no", "destinationQid": "Q3"}],
        })
        logic = survey.find_question("q1").skip_logic
        assert isinstance(logic, PerChoiceSkip)
        assert [(r.choice_id, r.skip_to) for r in logic.rules] == [("q1_c2", "q3")]

    def test_remove_skip_logic(self):
        survey = apply_assistant_edit(build_skip_survey(), "remove_skip_logic", {"qid": "Q1"})
        assert survey.find_question("q1").skip_logic is None

    def test_set_branching_logic_on_question(self):
        survey = apply_assistant_edit(build_skip_survey(), "set_branching_logic", {
            "targetId": "Q1",
            "branches": [{
                "conditions": [{"sourceQid": "Q1", "operator": "equals", "value": "Yes"}],
                "destination": "Q3",
                "pathName": "Owners",
            }],
            "otherwiseDestination": "next",
        })
        logic = survey.find_question("q1").branching_logic
        assert logic.branches[0].then_skip_to == "q3"
        assert logic.branches[0].path_name == "Owners"
        assert logic.otherwise_skip_to == NEXT

    def test_set_branching_logic_on_block(self):
        survey = apply_assistant_edit(build_coffee_survey(), "set_branching_logic", {
            "targetId": "BL2",
            "branches": [{"conditions": [], "destination": "BL4"}],
        })
        logic = survey.find_block("b_habits").branching_logic
        assert logic.branches[0].then_skip_to == block_destination("b_wrapup")

    def test_unknown_question_is_noop(self):
        survey = build_skip_survey()
        assert apply_assistant_edit(survey, "set_display_logic", {"qid": "Q9", "conditions": []}) is survey

    def test_unknown_edit(self):
        with pytest.raises(ValueError):
            apply_assistant_edit(build_skip_survey(), "drop_table", {})

    def test_reposition(self):
        survey = apply_assistant_edit(build_skip_survey(), "reposition_question", {"qid": "Q2", "after_qid": "Q3"})
        assert [q.id for q in survey.questions()] == ["q1", "q3", "q2"]

    def test_issue_types_survive(self):
        survey = apply_assistant_edit(build_skip_survey(), "set_skip_logic", {
            "qid": "Q2", "rules": [{"destinationQid": "Q1"}],
        })
        assert [i.type for i in validate(survey)] == [LogicKind.SKIP]
