"""
Conditional logic evaluation: visibility of questions and pages, and the
outcome of resolution questions.

Rule semantics:
    - No rules: visible.
    - Rules are checked in order. The first firing HIDE rule hides,
      the first firing SHOW rule shows.
    - Nothing fired: a question with any SHOW rule is hidden, otherwise
      visible. Pages stay visible.
    - A rule without groups, or a group without conditions, never fires.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, Optional, Sequence

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
from surveydef.model import Page, Question


logger = logging.getLogger(__name__)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _as_number(value: Any) -> Optional[float]:
    if _is_number(value):
        return float(value)
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return None


def is_answered(answer: Any) -> bool:
    return answer is not None and answer != "" and answer != []


def _combine(results: List[bool], logic: Logic) -> bool:
    if not results:
        return False
    return all(results) if logic == Logic.AND else any(results)


def evaluate_condition(condition: VisibilityCondition, answers: Mapping[str, Any], known_ids) -> bool:
    if condition.question_id not in known_ids:
        logger.debug("Visibility condition references unknown question %s", condition.question_id)
        return False
    answer = answers.get(condition.question_id)
    kind = condition.type
    value = condition.value

    if kind == ConditionType.ANSWERED:
        return is_answered(answer)
    if kind == ConditionType.NOT_ANSWERED:
        return not is_answered(answer)
    if kind == ConditionType.ANSWER_EQUALS:
        return answer == value
    if kind == ConditionType.ANSWER_NOT_EQUALS:
        return answer != value
    if kind == ConditionType.ANSWER_CONTAINS:
        if isinstance(answer, str) and isinstance(value, str):
            return value.lower() in answer.lower()
        return False
    if kind == ConditionType.ANSWER_GREATER_THAN:
        return _is_number(answer) and _is_number(value) and answer > value
    if kind == ConditionType.ANSWER_LESS_THAN:
        return _is_number(answer) and _is_number(value) and answer < value
    if kind == ConditionType.ANSWER_INCLUDES:
        if isinstance(answer, (list, tuple)) and isinstance(value, str):
            return value in answer
        return False
    return False


def evaluate_group(group: VisibilityGroup, answers: Mapping[str, Any], known_ids) -> bool:
    return _combine([evaluate_condition(c, answers, known_ids) for c in group.conditions], group.logic)


def evaluate_rule(rule: VisibilityRule, answers: Mapping[str, Any], known_ids) -> bool:
    return _combine([evaluate_group(g, answers, known_ids) for g in rule.groups], rule.groups_logic)


def _first_firing(rules: Sequence[VisibilityRule], answers, known_ids) -> Optional[RuleAction]:
    for rule in rules:
        if evaluate_rule(rule, answers, known_ids):
            return rule.action
    return None


def is_question_visible(question: Question, answers: Mapping[str, Any], questions: Iterable[Question]) -> bool:
    if not question.visibility_rules:
        return True
    known_ids = {q.id for q in questions}
    action = _first_firing(question.visibility_rules, answers, known_ids)
    if action is not None:
        return action == RuleAction.SHOW
    return not any(r.action == RuleAction.SHOW for r in question.visibility_rules)


def is_page_visible(page: Page, answers: Mapping[str, Any], questions: Iterable[Question]) -> bool:
    if not page.visibility_rules:
        return True
    known_ids = {q.id for q in questions}
    action = _first_firing(page.visibility_rules, answers, known_ids)
    return action != RuleAction.HIDE


def visible_questions(
    page_questions: Iterable[Question],
    answers: Mapping[str, Any],
    all_questions: Sequence[Question],
) -> List[Question]:
    return [q for q in page_questions if is_question_visible(q, answers, all_questions)]


def visible_pages(pages: Iterable[Page], answers: Mapping[str, Any], all_questions: Sequence[Question]) -> List[Page]:
    return [p for p in pages if is_page_visible(p, answers, all_questions)]


# =========================================================================
# Resolution questions
# =========================================================================

def _resolution_matches(condition: ResolutionCondition, answers: Mapping[str, Any]) -> bool:
    answer = answers.get(condition.question_id)
    op = condition.operator
    value = condition.value

    if op == ResolutionOperator.INCLUDES:
        if isinstance(answer, (list, tuple)):
            return str(value) in [str(a) for a in answer]
        return answer is not None and str(value) in str(answer)
    if op in (ResolutionOperator.GREATER_THAN, ResolutionOperator.LESS_THAN):
        left, right = _as_number(answer), _as_number(value)
        if left is None or right is None:
            return False
        return left > right if op == ResolutionOperator.GREATER_THAN else left < right

    if isinstance(answer, (list, tuple)):
        equal = str(value) in [str(a) for a in answer]
    else:
        equal = answer is not None and str(answer) == str(value)
    return equal if op == ResolutionOperator.EQUALS else not equal


def matching_resolution(rules: Sequence[ResolutionRule], answers: Mapping[str, Any]) -> Optional[ResolutionRule]:
    for rule in rules:
        results = [_resolution_matches(c, answers) for c in rule.conditions]
        if _combine(results, rule.logic):
            return rule
    return None


def resolve_outcome(question: Question, answers: Mapping[str, Any]) -> Optional[str]:
    """Result text of the first matching rule, else the question's default."""
    rule = matching_resolution(question.resolution_rules, answers)
    if rule is not None:
        return rule.result_text
    return question.default_resolution
