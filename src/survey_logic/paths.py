"""
Path Analyzer

Aggregates named paths into per-path statistics.

A path is a name carried by branches (path_name), by the fallback of
branching logic (otherwise_path_name) and by blocks (branch_name). The
blocks whose branch_name equals a path name make up that path.

Completion time is estimated from a per-question-type point table:
points are summed over the path's questions and divided by the configured
points-per-minute rate.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterator, List, Optional, Set

from survey_logic.model import Block, BranchingLogic, Question, QuestionType, Survey

logger = logging.getLogger(__name__)

DEFAULT_POINTS_PER_MINUTE = 8

_POINTS = {
    QuestionType.RADIO: 1,
    QuestionType.CHECKBOX: 1,
    QuestionType.DROP_DOWN_LIST: 1,
    QuestionType.IMAGE_SELECTOR: 1,
    QuestionType.TEXT_ENTRY: 2,
    QuestionType.NUMERIC_ANSWER: 2,
    QuestionType.EMAIL_ADDRESS_ANSWER: 2,
    QuestionType.RESPONDENT_PHONE: 2,
    QuestionType.DATE_TIME_ANSWER: 2,
    QuestionType.CHOICE_GRID: 3,
    QuestionType.HYBRID_GRID: 3,
    QuestionType.SLIDER: 2,
    QuestionType.STAR_RATING: 2,
    QuestionType.NET_PROMOTER_NPS: 2,
    QuestionType.NUMERIC_RANKING: 2,
    QuestionType.DRAG_AND_DROP_RANKING: 2,
    QuestionType.CARD_SORT: 2,
    QuestionType.FILE_UPLOAD: 3,
    QuestionType.SIGNATURE: 3,
}


@dataclass(frozen=True)
class PathAnalysisResult:
    """
    Statistics for one named path.

    Properties:
        name: Path name
        question_count: Interactive questions (no Description / Page Break)
        required_count: Interactive questions with force_response
        page_count: Pages across the path's blocks
        points: Summed question points
        minutes: Estimated minutes, rounded half up
        completion_time: "<1 min" or "<n> min"
    """

    name: str
    question_count: int
    required_count: int
    page_count: int
    points: int
    minutes: int
    completion_time: str


def calculate_question_points(question: Question) -> int:
    return _POINTS.get(question.type, 1)


def get_pages_for_block(block: Block) -> List[List[Question]]:
    """
    Split a block's questions on Page Break questions.

    A block without page breaks is a single page (possibly empty). A
    trailing page break does not open an empty last page.
    """
    pages: List[List[Question]] = []
    current: List[Question] = []

    for question in block.questions:
        if question.type is QuestionType.PAGE_BREAK:
            pages.append(current)
            current = []
        else:
            current.append(question)

    if not pages or current:
        pages.append(current)
    return pages


def _interactive(questions) -> List[Question]:
    return [q for q in questions if not q.is_structural]


def count_block_pages(block: Block) -> int:
    if block.automatic_page_breaks:
        return len(_interactive(block.questions))
    return sum(1 for page in get_pages_for_block(block) if page)


def estimate_minutes(points: int, points_per_minute: int = DEFAULT_POINTS_PER_MINUTE) -> int:
    """points / rate, rounded half up."""
    return int(math.floor(points / points_per_minute + 0.5))


def format_completion_time(
    points: int,
    question_count: int,
    points_per_minute: int = DEFAULT_POINTS_PER_MINUTE,
) -> str:
    """Estimate text: "0 min" without questions, "<1 min" when the rounded estimate is zero."""
    if question_count == 0:
        return "0 min"
    minutes = estimate_minutes(points, points_per_minute)
    if minutes < 1:
        return "<1 min"
    return f"{minutes} min"


# =============================================================================
# PATH DISCOVERY
# =============================================================================

def _all_branching_logic(survey: Survey) -> Iterator[BranchingLogic]:
    for block in survey.blocks:
        if block.branching_logic is not None:
            yield block.branching_logic
        for question in block.questions:
            if question.branching_logic is not None:
                yield question.branching_logic


def discover_path_names(survey: Survey) -> Set[str]:
    names: Set[str] = set()
    for logic in _all_branching_logic(survey):
        names.update(b.path_name for b in logic.branches if b.path_name)
        if logic.otherwise_path_name:
            names.add(logic.otherwise_path_name)
    names.update(block.branch_name for block in survey.blocks if block.branch_name)
    return names


def analyze_path(survey: Survey, name: str, points_per_minute: int = DEFAULT_POINTS_PER_MINUTE) -> PathAnalysisResult:
    blocks = [block for block in survey.blocks if block.branch_name == name]
    questions = _interactive(q for block in blocks for q in block.questions)
    points = sum(calculate_question_points(q) for q in questions)

    return PathAnalysisResult(
        name=name,
        question_count=len(questions),
        required_count=sum(1 for q in questions if q.force_response),
        page_count=sum(count_block_pages(block) for block in blocks),
        points=points,
        minutes=estimate_minutes(points, points_per_minute),
        completion_time=format_completion_time(points, len(questions), points_per_minute),
    )


def analyze_paths(survey: Survey, settings=None) -> List[PathAnalysisResult]:
    """
    Statistics for every named path, ordered by name.

    ``settings`` is an EngineSettings; its points_per_minute replaces the
    default rate of 8 points per minute.
    """
    points_per_minute = settings.points_per_minute if settings is not None else DEFAULT_POINTS_PER_MINUTE
    names = discover_path_names(survey)
    logger.debug("Analyzing %d path(s)", len(names))
    return [analyze_path(survey, name, points_per_minute) for name in sorted(names)]


def find_path(results: List[PathAnalysisResult], name: str) -> Optional[PathAnalysisResult]:
    for result in results:
        if result.name == name:
            return result
    return None
