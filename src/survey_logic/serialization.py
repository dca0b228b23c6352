"""
Serialization helpers for survey objects (Survey, Block, Question, logic).

Provides lossless JSON/YAML round-trip via intermediate dict representation.
Field names follow the authoring tool's document format (camelCase:
qid, displayLogic, draftBranchingLogic, isConfirmed, thenSkipToIsConfirmed,
otherwiseSkipTo, pagingMode, ...). Optional fields that are unset are left
out of the dict rather than written as null.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from survey_logic.model import (
    Block,
    Branch,
    BranchingLogic,
    Choice,
    Condition,
    ConditionOperator,
    Confirmation,
    DisplayLogic,
    LogicalOperator,
    LogicIssue,
    LogicSet,
    PagingMode,
    PerChoiceSkip,
    Question,
    QuestionType,
    SimpleSkip,
    SkipLogic,
    SkipRowOperator,
    SkipRule,
    Survey,
)


class SurveyFormatError(ValueError):
    """Raised when a serialized survey cannot be turned into model objects."""


def _compact(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}


def _confirmed(d: Dict[str, Any], key: str = "isConfirmed") -> Confirmation:
    return Confirmation.of(d.get(key))


# =============================================================================
# CONDITIONS
# =============================================================================

def condition_to_dict(c: Condition) -> Dict[str, Any]:
    return _compact({
        "id": c.id,
        "questionId": c.question_ref,
        "operator": c.operator.value,
        "value": c.value,
        "isConfirmed": c.confirmation.is_confirmed,
        "gridValue": c.grid_value or None,
    })


def condition_from_dict(d: Dict[str, Any]) -> Condition:
    return Condition(
        id=d["id"],
        question_ref=d.get("questionId", ""),
        operator=ConditionOperator(d.get("operator", "equals")),
        value=d.get("value", ""),
        confirmation=_confirmed(d),
        grid_value=d.get("gridValue", ""),
    )


def logic_set_to_dict(s: LogicSet) -> Dict[str, Any]:
    return {
        "id": s.id,
        "operator": s.operator.value,
        "conditions": [condition_to_dict(c) for c in s.conditions],
        "isConfirmed": s.confirmation.is_confirmed,
    }


def logic_set_from_dict(d: Dict[str, Any]) -> LogicSet:
    return LogicSet(
        id=d["id"],
        operator=LogicalOperator(d.get("operator", "AND")),
        conditions=tuple(condition_from_dict(c) for c in d.get("conditions", [])),
        confirmation=_confirmed(d),
    )


def display_logic_to_dict(logic: Optional[DisplayLogic]) -> Optional[Dict[str, Any]]:
    if logic is None:
        return None
    d = {
        "operator": logic.operator.value,
        "conditions": [condition_to_dict(c) for c in logic.conditions],
    }
    if logic.logic_sets:
        d["logicSets"] = [logic_set_to_dict(s) for s in logic.logic_sets]
    return d


def display_logic_from_dict(d: Optional[Dict[str, Any]]) -> Optional[DisplayLogic]:
    if d is None:
        return None
    return DisplayLogic(
        operator=LogicalOperator(d.get("operator", "AND")),
        conditions=tuple(condition_from_dict(c) for c in d.get("conditions", [])),
        logic_sets=tuple(logic_set_from_dict(s) for s in d.get("logicSets", [])),
    )


# =============================================================================
# SKIP AND BRANCHING
# =============================================================================

def skip_rule_to_dict(r: SkipRule) -> Dict[str, Any]:
    return _compact({
        "id": r.id,
        "choiceId": r.choice_id,
        "skipTo": r.skip_to,
        "isConfirmed": r.confirmation.is_confirmed,
        "operator": r.operator.value if r.operator else None,
        "valueChoiceId": r.value_choice_id or None,
    })


def skip_rule_from_dict(d: Dict[str, Any]) -> SkipRule:
    operator = d.get("operator")
    return SkipRule(
        id=d["id"],
        choice_id=d.get("choiceId", ""),
        skip_to=d.get("skipTo", ""),
        confirmation=_confirmed(d),
        operator=SkipRowOperator(operator) if operator else None,
        value_choice_id=d.get("valueChoiceId", ""),
    )


def skip_logic_to_dict(logic: Optional[SkipLogic]) -> Optional[Dict[str, Any]]:
    if logic is None:
        return None
    if isinstance(logic, SimpleSkip):
        return {"type": "simple", "skipTo": logic.skip_to, "isConfirmed": logic.confirmation.is_confirmed}
    if isinstance(logic, PerChoiceSkip):
        return {"type": "per_choice", "rules": [skip_rule_to_dict(r) for r in logic.rules]}
    raise TypeError(f"Unsupported skip logic type: {type(logic)}")


def skip_logic_from_dict(d: Optional[Dict[str, Any]]) -> Optional[SkipLogic]:
    if d is None:
        return None
    t = d.get("type")
    if t == "simple":
        return SimpleSkip(skip_to=d.get("skipTo", ""), confirmation=_confirmed(d))
    if t == "per_choice":
        return PerChoiceSkip(rules=tuple(skip_rule_from_dict(r) for r in d.get("rules", [])))
    raise SurveyFormatError(f"Unsupported skip logic type: {t!r}")


def branch_to_dict(b: Branch) -> Dict[str, Any]:
    return _compact({
        "id": b.id,
        "operator": b.operator.value,
        "conditions": [condition_to_dict(c) for c in b.conditions],
        "thenSkipTo": b.then_skip_to,
        "thenSkipToIsConfirmed": b.then_confirmation.is_confirmed,
        "pathName": b.path_name,
    })


def branch_from_dict(d: Dict[str, Any]) -> Branch:
    return Branch(
        id=d["id"],
        operator=LogicalOperator(d.get("operator", "AND")),
        conditions=tuple(condition_from_dict(c) for c in d.get("conditions", [])),
        then_skip_to=d.get("thenSkipTo", ""),
        then_confirmation=_confirmed(d, "thenSkipToIsConfirmed"),
        path_name=d.get("pathName"),
    )


def branching_logic_to_dict(logic: Optional[BranchingLogic]) -> Optional[Dict[str, Any]]:
    if logic is None:
        return None
    confirmation = logic.otherwise_confirmation
    return _compact({
        "branches": [branch_to_dict(b) for b in logic.branches],
        "otherwiseSkipTo": logic.otherwise_skip_to,
        "otherwiseIsConfirmed": confirmation.is_confirmed if confirmation is not None else None,
        "otherwisePathName": logic.otherwise_path_name,
    })


def branching_logic_from_dict(d: Optional[Dict[str, Any]]) -> Optional[BranchingLogic]:
    if d is None:
        return None
    confirmed = d.get("otherwiseIsConfirmed")
    return BranchingLogic(
        branches=tuple(branch_from_dict(b) for b in d.get("branches", [])),
        otherwise_skip_to=d.get("otherwiseSkipTo"),
        otherwise_confirmation=Confirmation.of(confirmed) if confirmed is not None else None,
        otherwise_path_name=d.get("otherwisePathName"),
    )


# =============================================================================
# STRUCTURE
# =============================================================================

def question_to_dict(q: Question) -> Dict[str, Any]:
    return _compact({
        "id": q.id,
        "qid": q.qid,
        "text": q.text,
        "type": q.type.value,
        "choices": [{"id": c.id, "text": c.text} for c in q.choices] or None,
        "label": q.label,
        "forceResponse": q.force_response or None,
        "isAutomatic": q.is_automatic or None,
        "displayLogic": display_logic_to_dict(q.display_logic),
        "hideLogic": display_logic_to_dict(q.hide_logic),
        "skipLogic": skip_logic_to_dict(q.skip_logic),
        "branchingLogic": branching_logic_to_dict(q.branching_logic),
        "draftDisplayLogic": display_logic_to_dict(q.draft_display_logic),
        "draftHideLogic": display_logic_to_dict(q.draft_hide_logic),
        "draftSkipLogic": skip_logic_to_dict(q.draft_skip_logic),
        "draftBranchingLogic": branching_logic_to_dict(q.draft_branching_logic),
    })


def question_from_dict(d: Dict[str, Any]) -> Question:
    return Question(
        id=d["id"],
        qid=d.get("qid", ""),
        text=d.get("text", ""),
        type=QuestionType(d.get("type", QuestionType.TEXT_ENTRY.value)),
        choices=tuple(Choice(id=c["id"], text=c.get("text", "")) for c in d.get("choices") or []),
        label=d.get("label"),
        force_response=bool(d.get("forceResponse", False)),
        is_automatic=bool(d.get("isAutomatic", False)),
        display_logic=display_logic_from_dict(d.get("displayLogic")),
        hide_logic=display_logic_from_dict(d.get("hideLogic")),
        skip_logic=skip_logic_from_dict(d.get("skipLogic")),
        branching_logic=branching_logic_from_dict(d.get("branchingLogic")),
        draft_display_logic=display_logic_from_dict(d.get("draftDisplayLogic")),
        draft_hide_logic=display_logic_from_dict(d.get("draftHideLogic")),
        draft_skip_logic=skip_logic_from_dict(d.get("draftSkipLogic")),
        draft_branching_logic=branching_logic_from_dict(d.get("draftBranchingLogic")),
    )


def block_to_dict(b: Block) -> Dict[str, Any]:
    return _compact({
        "id": b.id,
        "bid": b.bid,
        "title": b.title,
        "questions": [question_to_dict(q) for q in b.questions],
        "branchingLogic": branching_logic_to_dict(b.branching_logic),
        "branchName": b.branch_name,
        "continueTo": b.continue_to,
        "automaticPageBreaks": b.automatic_page_breaks or None,
    })


def block_from_dict(d: Dict[str, Any]) -> Block:
    return Block(
        id=d["id"],
        bid=d.get("bid", ""),
        title=d.get("title", ""),
        questions=tuple(question_from_dict(q) for q in d.get("questions", [])),
        branching_logic=branching_logic_from_dict(d.get("branchingLogic")),
        branch_name=d.get("branchName"),
        continue_to=d.get("continueTo", "next"),
        automatic_page_breaks=bool(d.get("automaticPageBreaks", False)),
    )


def survey_to_dict(s: Survey) -> Dict[str, Any]:
    return {
        "title": s.title,
        "blocks": [block_to_dict(b) for b in s.blocks],
        "pagingMode": s.paging_mode.value,
    }


def survey_from_dict(d: Any) -> Survey:
    """
    Build a Survey from its dict form.

    Raises SurveyFormatError when required keys are missing or a value
    does not belong to its enumeration.
    """
    if not isinstance(d, dict):
        raise SurveyFormatError(f"Expected a mapping at the top level, got {type(d).__name__}")
    try:
        return Survey(
            title=d.get("title", ""),
            blocks=tuple(block_from_dict(b) for b in d.get("blocks", [])),
            paging_mode=PagingMode(d.get("pagingMode", PagingMode.MULTI_PER_PAGE.value)),
        )
    except KeyError as exc:
        raise SurveyFormatError(f"Missing required field {exc}") from exc
    except (TypeError, AttributeError) as exc:
        raise SurveyFormatError(f"Malformed survey structure: {exc}") from exc
    except SurveyFormatError:
        raise
    except ValueError as exc:
        raise SurveyFormatError(str(exc)) from exc


def issue_to_dict(i: LogicIssue) -> Dict[str, Any]:
    return _compact({
        "questionId": i.question_id,
        "type": i.type.value,
        "message": i.message,
        "sourceId": i.source_id,
        "field": i.field,
        "relatedIds": list(i.related_ids) or None,
    })


# =============================================================================
# TEXT FORMATS
# =============================================================================

def survey_to_json(s: Survey) -> str:
    return json.dumps(survey_to_dict(s), sort_keys=True)


def survey_from_json(s: str) -> Survey:
    try:
        d = json.loads(s)
    except json.JSONDecodeError as exc:
        raise SurveyFormatError(f"Invalid JSON: {exc}") from exc
    return survey_from_dict(d)


def survey_to_yaml(s: Survey) -> str:
    return yaml.safe_dump(survey_to_dict(s), sort_keys=False)


def survey_from_yaml(s: str) -> Survey:
    try:
        d = yaml.safe_load(s)
    except yaml.YAMLError as exc:
        raise SurveyFormatError(f"Invalid YAML: {exc}") from exc
    return survey_from_dict(d)


def load_survey(path: Union[str, Path]) -> Survey:
    """Read a survey file; ``.json`` is parsed as JSON, anything else as YAML."""
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        return survey_from_json(text)
    return survey_from_yaml(text)


def dump_survey(s: Survey, path: Union[str, Path]) -> None:
    path = Path(path)
    text = survey_to_json(s) if path.suffix.lower() == ".json" else survey_to_yaml(s)
    path.write_text(text, encoding="utf-8")
