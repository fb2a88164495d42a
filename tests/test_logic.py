"""Tests for visibility rules and resolution outcomes."""

import pytest

from surveydef.conditions import (
    ConditionType,
    Logic,
    ResolutionCondition,
    ResolutionOperator,
    ResolutionRule,
    RuleAction,
    VisibilityCondition,
    VisibilityGroup,
    VisibilityRule,
)
from surveydef.logic import (
    evaluate_condition,
    is_page_visible,
    is_question_visible,
    resolve_outcome,
    visible_pages,
    visible_questions,
)
from surveydef.model import Page, Question
from surveydef.settings import QuestionType


KNOWN = {"q1", "q2"}


def rule(action, *conditions, logic=Logic.AND, rule_id="r"):
    return VisibilityRule(
        id=rule_id,
        action=action,
        groups=(VisibilityGroup(id="g", logic=logic, conditions=tuple(conditions)),),
    )


def cond(kind, question_id="q1", value=None):
    return VisibilityCondition(kind, question_id, value)


def questions():
    return [
        Question(id="q1", type=QuestionType.TEXT, title=""),
        Question(id="q2", type=QuestionType.CHECKBOX, title=""),
    ]


class TestConditions:
    @pytest.mark.parametrize("kind, value, answer, expected", [
        (ConditionType.ANSWERED, None, "x", True),
        (ConditionType.ANSWERED, None, "", False),
        (ConditionType.ANSWERED, None, [], False),
        (ConditionType.NOT_ANSWERED, None, None, True),
        (ConditionType.ANSWER_EQUALS, "yes", "yes", True),
        (ConditionType.ANSWER_EQUALS, "yes", "no", False),
        (ConditionType.ANSWER_NOT_EQUALS, "yes", "no", True),
        (ConditionType.ANSWER_CONTAINS, "MOS", "Moscow", True),
        (ConditionType.ANSWER_CONTAINS, "1", 12, False),
        (ConditionType.ANSWER_GREATER_THAN, 3, 5, True),
        (ConditionType.ANSWER_GREATER_THAN, 3, "5", False),
        (ConditionType.ANSWER_LESS_THAN, 3, 1.5, True),
        (ConditionType.ANSWER_INCLUDES, "b", ["a", "b"], True),
        (ConditionType.ANSWER_INCLUDES, "b", "b", False),
    ])
    def test_condition_types(self, kind, value, answer, expected):
        assert evaluate_condition(cond(kind, value=value), {"q1": answer}, KNOWN) is expected

    def test_unknown_question_is_false(self):
        assert evaluate_condition(cond(ConditionType.NOT_ANSWERED, "ghost"), {}, KNOWN) is False


class TestQuestionVisibility:
    def test_no_rules_is_visible(self):
        q = Question(id="q3", type=QuestionType.TEXT, title="")
        assert is_question_visible(q, {}, questions())

    def test_show_rule(self):
        q = Question(id="q3", type=QuestionType.TEXT, title="",
                     visibility_rules=[rule(RuleAction.SHOW, cond(ConditionType.ANSWER_EQUALS, value="yes"))])
        assert is_question_visible(q, {"q1": "yes"}, questions())
        assert not is_question_visible(q, {"q1": "no"}, questions())

    def test_hide_rule(self):
        q = Question(id="q3", type=QuestionType.TEXT, title="",
                     visibility_rules=[rule(RuleAction.HIDE, cond(ConditionType.ANSWERED))])
        assert not is_question_visible(q, {"q1": "x"}, questions())
        assert is_question_visible(q, {}, questions())

    def test_first_firing_rule_wins(self):
        q = Question(id="q3", type=QuestionType.TEXT, title="", visibility_rules=[
            rule(RuleAction.HIDE, cond(ConditionType.ANSWERED), rule_id="r1"),
            rule(RuleAction.SHOW, cond(ConditionType.ANSWERED), rule_id="r2"),
        ])
        assert not is_question_visible(q, {"q1": "x"}, questions())

    def test_or_logic(self):
        q = Question(id="q3", type=QuestionType.TEXT, title="", visibility_rules=[
            rule(
                RuleAction.SHOW,
                cond(ConditionType.ANSWER_EQUALS, value="a"),
                cond(ConditionType.ANSWER_INCLUDES, "q2", "x"),
                logic=Logic.OR,
            ),
        ])
        assert is_question_visible(q, {"q2": ["x"]}, questions())
        assert not is_question_visible(q, {"q1": "b"}, questions())

    def test_empty_group_never_fires(self):
        q = Question(id="q3", type=QuestionType.TEXT, title="",
                     visibility_rules=[rule(RuleAction.HIDE)])
        assert is_question_visible(q, {"q1": "x"}, questions())

    def test_visible_questions_filter(self):
        hidden = Question(id="q3", type=QuestionType.TEXT, title="",
                          visibility_rules=[rule(RuleAction.HIDE, cond(ConditionType.NOT_ANSWERED))])
        shown = Question(id="q4", type=QuestionType.TEXT, title="")
        assert [q.id for q in visible_questions([hidden, shown], {}, questions())] == ["q4"]


class TestPageVisibility:
    def test_page_defaults_to_visible(self):
        page = Page(id="p", title="", visibility_rules=[rule(RuleAction.SHOW, cond(ConditionType.ANSWERED))])
        assert is_page_visible(page, {}, questions())

    def test_hide_page(self):
        page = Page(id="p", title="", visibility_rules=[rule(RuleAction.HIDE, cond(ConditionType.ANSWERED))])
        assert not is_page_visible(page, {"q1": "x"}, questions())
        other = Page(id="p2", title="")
        assert visible_pages([page, other], {"q1": "x"}, questions()) == [other]


class TestResolution:
    def build_question(self):
        return Question(
            id="res",
            type=QuestionType.RESOLUTION,
            title="",
            resolution_rules=[
                ResolutionRule(
                    id="a",
                    conditions=(
                        ResolutionCondition("age", ResolutionOperator.GREATER_THAN, 17),
                        ResolutionCondition("country", ResolutionOperator.EQUALS, "LV"),
                    ),
                    result_text="Adult in Latvia",
                ),
                ResolutionRule(
                    id="b",
                    conditions=(
                        ResolutionCondition("langs", ResolutionOperator.INCLUDES, "ru"),
                        ResolutionCondition("country", ResolutionOperator.NOT_EQUALS, "LV"),
                    ),
                    logic=Logic.OR,
                    result_text="Other",
                ),
            ],
            default_resolution="Unknown",
        )

    def test_first_matching_rule(self):
        q = self.build_question()
        assert resolve_outcome(q, {"age": "18", "country": "LV"}) == "Adult in Latvia"
        assert resolve_outcome(q, {"age": 10, "country": "LV", "langs": ["ru"]}) == "Other"

    def test_default_when_nothing_matches(self):
        q = self.build_question()
        assert resolve_outcome(q, {"age": "abc", "country": "LV"}) == "Unknown"

    def test_missing_answer_is_not_equal(self):
        q = self.build_question()
        assert resolve_outcome(q, {}) == "Other"
