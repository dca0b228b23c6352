"""
Example survey builders.

Small, fully renumbered surveys used by the tests and handy for trying the
CLI. Ids are fixed strings so results are reproducible.
"""
from survey_logic.identifiers import END, NEXT, block_destination
from survey_logic.model import (
    Block,
    Branch,
    BranchingLogic,
    Choice,
    Condition,
    Confirmation,
    PerChoiceSkip,
    Question,
    QuestionType,
    SkipRule,
    Survey,
)
from survey_logic.renumber import renumber

CONFIRMED = Confirmation.CONFIRMED


def _choices(question_id: str, *labels: str):
    return tuple(Choice(id=f"{question_id}_c{i}", text=label) for i, label in enumerate(labels, start=1))


def build_skip_survey() -> Survey:
    """
    Q1 (Radio: Yes/No) -> Q2 (Text) -> Q3 (Checkbox), one block.

    Q1 skips to Q3 on "Yes" and continues normally on "No".
    """
    q1 = Question(
        id="q1",
        text="Do you own a car?",
        type=QuestionType.RADIO,
        choices=_choices("q1", "Yes", "No"),
        skip_logic=PerChoiceSkip(rules=(
            SkipRule(id="r_yes", choice_id="q1_c1", skip_to="q3", confirmation=CONFIRMED),
            SkipRule(id="r_no", choice_id="q1_c2", skip_to=NEXT, confirmation=CONFIRMED),
        )),
    )
    q2 = Question(id="q2", text="Why not?", type=QuestionType.TEXT_ENTRY)
    q3 = Question(
        id="q3",
        text="Which features matter to you?",
        type=QuestionType.CHECKBOX,
        choices=_choices("q3", "Price", "Comfort", "Safety"),
    )
    block = Block(id="b1", title="Cars", questions=(q1, q2, q3))
    return renumber(Survey(title="Car ownership", blocks=(block,)))


def build_coffee_survey() -> Survey:
    """
    A screening question that branches into two named paths.

        Screening:      Q1 "Do you drink coffee?" (Yes / No)
        Coffee habits:  path "Coffee drinkers", then continues to Wrap-up
        Abstainers:     path "Non-drinkers"
        Wrap-up:        shared closing block

    Q1's branches cover both choices, so its branching logic has no
    otherwise destination.
    """
    screening_q = Question(
        id="q_drink",
        text="Do you drink coffee?",
        type=QuestionType.RADIO,
        choices=_choices("q_drink", "Yes", "No"),
        force_response=True,
        branching_logic=BranchingLogic(branches=(
            Branch(
                id="br_yes",
                conditions=(Condition(id="bc_yes", question_ref="Q1", value="Q1_1 Yes", confirmation=CONFIRMED),),
                then_skip_to=block_destination("b_habits"),
                then_confirmation=CONFIRMED,
                path_name="Coffee drinkers",
            ),
            Branch(
                id="br_no",
                conditions=(Condition(id="bc_no", question_ref="Q1", value="Q1_2 No", confirmation=CONFIRMED),),
                then_skip_to=block_destination("b_abstain"),
                then_confirmation=CONFIRMED,
                path_name="Non-drinkers",
            ),
        )),
    )

    habits = Block(
        id="b_habits",
        title="Coffee habits",
        branch_name="Coffee drinkers",
        continue_to=block_destination("b_wrapup"),
        questions=(
            Question(
                id="q_fav",
                text="What is your favourite drink?",
                type=QuestionType.RADIO,
                choices=_choices("q_fav", "Latte", "Espresso", "Cappuccino"),
                force_response=True,
            ),
            Question(id="q_cups", text="How many cups per day?", type=QuestionType.NUMERIC_ANSWER),
        ),
    )
    abstainers = Block(
        id="b_abstain",
        title="Abstainers",
        branch_name="Non-drinkers",
        questions=(
            Question(id="q_why", text="Why don't you drink coffee?", type=QuestionType.TEXT_ENTRY),
        ),
    )
    wrapup = Block(
        id="b_wrapup",
        title="Wrap-up",
        continue_to=END,
        questions=(
            Question(id="q_thanks", text="Thank you for taking part.", type=QuestionType.DESCRIPTION),
            Question(id="q_comments", text="Any other comments?", type=QuestionType.TEXT_ENTRY),
        ),
    )
    screening = Block(id="b_screen", title="Screening", questions=(screening_q,))

    return renumber(Survey(title="Coffee habits", blocks=(screening, habits, abstainers, wrapup)))
