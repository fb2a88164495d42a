"""
Transition Rule Engine: pick the next question from an answer.

Rules are evaluated in order; the first rule whose `answer` equals the
current answer wins. Array answers match when any element matches. When
no rule matches, navigation falls through to linear page/question order.

Dangling rule targets are not checked here; they are structural violations
reported by surveydef.graph.validate before publish.
"""

from __future__ import annotations

from typing import Any, List, Optional

from surveydef.graph import QuestionGraph
from surveydef.model import Question, TransitionRule


def answer_text(value: Any) -> str:
    """Answer value as rule answers spell it: true, 2 (not True, 2.0)."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _answer_strings(answer: Any) -> List[str]:
    if answer is None:
        return []
    if isinstance(answer, (list, tuple, set, frozenset)):
        return [answer_text(a) for a in answer if a is not None]
    return [answer_text(answer)]


def valid_rules(question: Question) -> List[TransitionRule]:
    """Rules with both an answer and a target filled in."""
    return [
        r for r in question.transition_rules
        if r.answer.strip() and r.next_question_id.strip()
    ]


def match_rule(question: Question, answer: Any) -> Optional[TransitionRule]:
    """First rule triggered by `answer`, or None."""
    values = _answer_strings(answer)
    if not values:
        return None
    for rule in valid_rules(question):
        if rule.answer in values:
            return rule
    return None


def evaluate(question: Question, answer: Any) -> Optional[str]:
    """
    Target of the first matching rule.

    Returns:
        Next question id, or None meaning "continue sequentially"
    """
    rule = match_rule(question, answer)
    return rule.next_question_id if rule else None


def sequential_next(graph: QuestionGraph, question_id: str) -> Optional[str]:
    """
    Next question in linear order after `question_id`, or None at the end.

    A nested question continues after its owning group.
    """
    parent = graph.find_parent_group(question_id)
    anchor = parent.id if parent is not None else question_id
    ordered = [q.id for q in graph.ordered_questions()]
    if anchor not in ordered:
        return None
    index = ordered.index(anchor)
    return ordered[index + 1] if index + 1 < len(ordered) else None


def next_question_id(graph: QuestionGraph, question_id: str, answer: Any) -> Optional[str]:
    """Rule target if a rule fires, else the sequential successor; None at the end."""
    question = graph.get(question_id)
    if question is None:
        return None
    target = evaluate(question, answer)
    if target is not None:
        return target
    return sequential_next(graph, question_id)


def next_page_id(graph: QuestionGraph, question_id: str, answer: Any) -> Optional[str]:
    """Page holding the question that next_question_id() selects."""
    target_id = next_question_id(graph, question_id, answer)
    if target_id is None:
        return None
    target = graph.get(target_id)
    if target is None:
        return None
    parent = graph.find_parent_group(target_id)
    return parent.page_id if parent is not None else target.page_id


def rule_label(question: Question, rule: TransitionRule) -> str:
    """Human-readable trigger: option text for option-based questions, else the raw answer."""
    if question.is_option_based:
        option = question.get_option(rule.answer)
        if option is not None:
            return option.text
    return rule.answer
