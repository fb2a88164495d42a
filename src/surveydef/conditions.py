"""
Conditional Logic Values

Visibility rules (show/hide a question or page) and resolution rules
(pick an outcome text for a `resolution` question) are stored as small
immutable value trees, never as strings of code.

    VisibilityRule
        └── groups: VisibilityGroup[]   (combined by rule.groups_logic)
              └── conditions: VisibilityCondition[]   (combined by group.logic)

    ResolutionRule
        └── conditions: ResolutionCondition[]   (combined by rule.logic)

These objects are structure only. Evaluation lives in surveydef.logic.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union


Scalar = Union[str, int, float, bool]


class Logic(Enum):
    AND = "AND"
    OR = "OR"


class RuleAction(Enum):
    SHOW = "show"
    HIDE = "hide"


class ConditionType(Enum):
    """
    Visibility condition kinds.

    ANSWERED / NOT_ANSWERED ignore `value`.
    ANSWER_CONTAINS is a case-insensitive substring test on strings.
    ANSWER_INCLUDES is membership in a multi-choice (array) answer.
    """

    ANSWER_EQUALS = "answer_equals"
    ANSWER_NOT_EQUALS = "answer_not_equals"
    ANSWER_CONTAINS = "answer_contains"
    ANSWER_GREATER_THAN = "answer_greater_than"
    ANSWER_LESS_THAN = "answer_less_than"
    ANSWERED = "answered"
    NOT_ANSWERED = "not_answered"
    ANSWER_INCLUDES = "answer_includes"


@dataclass(frozen=True)
class VisibilityCondition:
    type: ConditionType
    question_id: str
    value: Optional[Scalar] = None


@dataclass(frozen=True)
class VisibilityGroup:
    id: str
    logic: Logic = Logic.AND
    conditions: Tuple[VisibilityCondition, ...] = ()


@dataclass(frozen=True)
class VisibilityRule:
    """
    Properties:
        action: SHOW or HIDE when the rule fires
        groups: Condition groups
        groups_logic: How group results combine
    """

    id: str
    action: RuleAction
    groups: Tuple[VisibilityGroup, ...] = ()
    groups_logic: Logic = Logic.AND


class ResolutionOperator(Enum):
    EQUALS = "=="
    NOT_EQUALS = "!="
    GREATER_THAN = ">"
    LESS_THAN = "<"
    INCLUDES = "includes"


@dataclass(frozen=True)
class ResolutionCondition:
    question_id: str
    operator: ResolutionOperator = ResolutionOperator.EQUALS
    value: Optional[Scalar] = None


@dataclass(frozen=True)
class ResolutionRule:
    """First matching rule's `result_text` is the outcome of a resolution question."""

    id: str
    conditions: Tuple[ResolutionCondition, ...] = ()
    logic: Logic = Logic.AND
    result_text: str = ""


def referenced_question_ids(rule: Union[VisibilityRule, ResolutionRule]) -> Tuple[str, ...]:
    """All question ids a rule reads, in declaration order."""
    if isinstance(rule, VisibilityRule):
        return tuple(c.question_id for g in rule.groups for c in g.conditions)
    return tuple(c.question_id for c in rule.conditions)
