"""
Example survey builder.

A small household questionnaire exercising every engine feature:
    - a radio question with a transition rule (o1 -> Q2)
    - a follow-up shown only for the other answer (visibility rule)
    - a parallel group repeated once per child
    - a resolution question and a placeholder text
"""
from typing import Optional

from surveydef.conditions import (
    ConditionType,
    ResolutionCondition,
    ResolutionRule,
    RuleAction,
    VisibilityCondition,
    VisibilityGroup,
    VisibilityRule,
)
from surveydef.model import Page, Question, QuestionOption, Survey, TransitionRule
from surveydef.settings import DisplayMode, NumberSettings, ParallelBranchSettings, QuestionType
from surveydef.versions import create_survey, update_draft


def build_example_pages():
    return [
        Page(id="P1", title="Семья"),
        Page(id="P2", title="Дети", description="Ответьте для каждого ребенка"),
        Page(id="P3", title="Итог"),
    ]


def build_example_questions():
    has_children = Question(
        id="Q1",
        type=QuestionType.RADIO,
        title="У вас есть дети?",
        page_id="P1",
        required=True,
        options=[QuestionOption("o1", "Yes"), QuestionOption("o2", "No")],
        transition_rules=[TransitionRule(id="r1", answer="o1", next_question_id="Q2")],
    )

    # Asked only when Q1 is "No"; "Yes" jumps straight to the group.
    reason = Question(
        id="QN",
        type=QuestionType.TEXT,
        title="Почему нет?",
        page_id="P1",
        visibility_rules=[
            VisibilityRule(
                id="vr1",
                action=RuleAction.SHOW,
                groups=(VisibilityGroup(
                    id="vg1",
                    conditions=(VisibilityCondition(ConditionType.ANSWER_EQUALS, "Q1", "o2"),),
                ),),
            )
        ],
    )

    children = Question(
        id="Q2",
        type=QuestionType.PARALLEL_GROUP,
        title="Дети",
        page_id="P2",
        settings=ParallelBranchSettings(
            item_label="Ребенок",
            display_mode=DisplayMode.TABS,
            min_items=1,
            max_items=5,
            count_label="Сколько у вас детей?",
            count_required=True,
        ),
        parallel_questions=["CH_NAME", "CH_AGE"],
    )
    child_name = Question(id="CH_NAME", type=QuestionType.TEXT, title="Имя", page_id="P2", required=True)
    child_age = Question(
        id="CH_AGE",
        type=QuestionType.NUMBER,
        title="Возраст {{CH_NAME}}",
        page_id="P2",
        settings=NumberSettings(min=0, max=25, step=1),
    )

    outcome = Question(
        id="Q3",
        type=QuestionType.RESOLUTION,
        title="Категория",
        page_id="P3",
        resolution_rules=[
            ResolutionRule(
                id="rr1",
                conditions=(ResolutionCondition("Q1", value="o1"),),
                result_text="Семья с детьми",
            )
        ],
        default_resolution="Без детей",
    )
    summary = Question(
        id="Q4",
        type=QuestionType.TEXT,
        title="Вы ответили {{Q1}}. Что-нибудь еще?",
        page_id="P3",
    )

    return [has_children, reason, children, child_name, child_age, outcome, summary]


def build_example_survey(survey_id: str = "example-survey", now: Optional[str] = None) -> Survey:
    """Survey with one draft version 1 holding the example pages and questions."""
    survey = create_survey("Household", "Example household survey", survey_id=survey_id, now=now)
    return update_draft(
        survey,
        1,
        pages=build_example_pages(),
        questions=build_example_questions(),
        now=now,
    )
