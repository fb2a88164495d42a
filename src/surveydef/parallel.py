"""
Parallel Group Engine: repeat-group settings, membership and expansion.

A parallel group wraps an ordered list of member questions that are asked
N times, where N is a count the respondent enters. Answers are addressed:

    <groupId>_count                     the repeat count
    <groupId>:<questionId>:<index>      member answer in instance `index` (0-based)

Inside instance keys, "%" and ":" in ids are written as "%25" and "%3A".

All functions are pure: they return new values and leave inputs untouched.
Editing state such as the active tab is passed in and returned explicitly.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from surveydef.config import (
    DEFAULT_DISPLAY_MODE,
    DEFAULT_ITEM_LABEL,
    DEFAULT_MAX_ITEMS,
    DEFAULT_MIN_ITEMS,
    MAX_PARALLEL_ITEMS,
    max_items_message,
)
from surveydef.graph import QuestionGraph
from surveydef.model import Question
from surveydef.settings import ParallelBranchSettings, merge_parallel_defaults


logger = logging.getLogger(__name__)

COUNT_SUFFIX = "_count"
KEY_SEPARATOR = ":"

_ESCAPES = {"%": "%25", KEY_SEPARATOR: "%3A"}
_UNESCAPES = {v: k for k, v in _ESCAPES.items()}
_ESCAPE_RE = re.compile("[%:]")
_UNESCAPE_RE = re.compile("%25|%3A")
_INDEX_RE = re.compile("[0-9]+")


# =========================================================================
# Settings
# =========================================================================

def effective_settings(
    question: Question,
    item_label: str = DEFAULT_ITEM_LABEL,
    display_mode: str = DEFAULT_DISPLAY_MODE,
    min_items: int = DEFAULT_MIN_ITEMS,
    max_items: int = DEFAULT_MAX_ITEMS,
) -> ParallelBranchSettings:
    """Stored settings of a parallel group merged over the defaults."""
    stored = question.settings if isinstance(question.settings, ParallelBranchSettings) else None
    return merge_parallel_defaults(
        stored,
        item_label=item_label,
        display_mode=display_mode,
        min_items=min_items,
        max_items=max_items,
    )


@dataclass(frozen=True)
class MaxItemsUpdate:
    """
    Result of a max_items change.

    warning is True when the requested value exceeded the ceiling and was
    clamped; message carries the user-facing text in that case.
    """

    settings: ParallelBranchSettings
    requested: int
    warning: bool = False
    message: Optional[str] = None


def update_max_items(
    settings: ParallelBranchSettings,
    value: int,
    ceiling: int = MAX_PARALLEL_ITEMS,
) -> MaxItemsUpdate:
    """
    Set max_items to clamp(max(value, min_items), 0, ceiling).

    Never below min_items, never above the ceiling. Exceeding the ceiling is
    signalled through MaxItemsUpdate.warning, not dropped silently.
    """
    min_items = settings.min_items if settings.min_items is not None else DEFAULT_MIN_ITEMS
    new_max = min(max(max(value, min_items), 0), ceiling)
    warning = value > ceiling
    if warning:
        logger.info("max_items %d clamped to %d", value, new_max)
    return MaxItemsUpdate(
        settings=replace(settings, max_items=new_max),
        requested=value,
        warning=warning,
        message=max_items_message(ceiling) if warning else None,
    )


# =========================================================================
# Membership
# =========================================================================

def reorder_questions(ids: Sequence[str], from_index: int, to_index: int) -> List[str]:
    """Move one id; out-of-range indices leave the order unchanged."""
    result = list(ids)
    if not (0 <= from_index < len(result) and 0 <= to_index < len(result)):
        return result
    moved = result.pop(from_index)
    result.insert(to_index, moved)
    return result


def add_question(ids: Sequence[str], question_id: str) -> List[str]:
    result = list(ids)
    if question_id not in result:
        result.append(question_id)
    return result


def remove_question(ids: Sequence[str], question_id: str) -> List[str]:
    return [i for i in ids if i != question_id]


def add_to_group(graph: QuestionGraph, group: Question, candidate_id: str) -> Tuple[Question, Optional[str]]:
    """
    Add a member to a group if the graph allows it.

    Returns (group, problem): a new group question and None on success, or
    the unchanged group and the reason the member was refused.
    """
    problem = graph.add_to_group_problem(candidate_id, group.id)
    if problem is not None:
        return group, problem
    return replace(group, parallel_questions=add_question(group.parallel_questions, candidate_id)), None


def available_for_group(graph: QuestionGraph, group: Question) -> List[Question]:
    """Questions on the group's page that could be added to it now."""
    return [
        q for q in graph.visible_questions(group.page_id)
        if q.id not in group.parallel_questions and graph.can_add_to_group(q.id, group.id)
    ]


# =========================================================================
# Instance addressing
# =========================================================================

def count_key(group_id: str) -> str:
    return group_id + COUNT_SUFFIX


def _escape_id(identifier: str) -> str:
    return _ESCAPE_RE.sub(lambda m: _ESCAPES[m.group(0)], identifier)


def _unescape_id(identifier: str) -> str:
    return _UNESCAPE_RE.sub(lambda m: _UNESCAPES[m.group(0)], identifier)


def instance_answer_key(group_id: str, question_id: str, index: int) -> str:
    """
    Answer key of member `question_id` in repeat instance `index`.

    Inverse of parse_instance_answer_key for any ids.

    Raises:
        ValueError: if index is negative
    """
    if index < 0:
        raise ValueError(f"instance index must be >= 0, got {index}")
    return KEY_SEPARATOR.join((_escape_id(group_id), _escape_id(question_id), str(index)))


def parse_instance_answer_key(key: str) -> Optional[Tuple[str, str, int]]:
    """(group_id, question_id, index) for an instance key, None for any other key."""
    parts = key.split(KEY_SEPARATOR)
    if len(parts) != 3:
        return None
    group_id, question_id, index = parts
    if not group_id or not question_id or not _INDEX_RE.fullmatch(index):
        return None
    return _unescape_id(group_id), _unescape_id(question_id), int(index)


# =========================================================================
# Expansion
# =========================================================================

def resolve_instance_count(answers: Mapping[str, Any], key: str) -> int:
    """User-entered repeat count; 0 when absent or not a number."""
    raw = answers.get(key)
    if raw is None or isinstance(raw, bool):
        return 0
    try:
        count = float(str(raw).strip())
    except ValueError:
        return 0
    if math.isnan(count) or math.isinf(count):
        return 0
    return max(int(count), 0)


def requires_confirmation(old_count: int, new_count: int) -> bool:
    """Shrinking a non-empty repeat discards answers and needs user confirmation."""
    return old_count > 0 and new_count < old_count


@dataclass(frozen=True)
class RepeatInstance:
    """
    One expanded repetition of a parallel group.

    Properties:
        index: 0-based instance number
        label: Display label, e.g. "Элемент 1"
        answer_keys: member question id -> answer key for this instance
    """

    group_id: str
    index: int
    label: str
    answer_keys: Dict[str, str] = field(default_factory=dict)


def expand(
    graph: QuestionGraph,
    group: Question,
    answers: Mapping[str, Any],
    settings: Optional[ParallelBranchSettings] = None,
) -> List[RepeatInstance]:
    """
    Repeat instances of a group for the count currently in `answers`.

    The count is capped at max_items of `settings` (default: the group's
    effective settings). Members that do not resolve in the graph are skipped.
    """
    settings = settings or effective_settings(group)
    count = min(resolve_instance_count(answers, count_key(group.id)), settings.max_items)
    members = graph.nested_questions(group.id)
    return [
        RepeatInstance(
            group_id=group.id,
            index=i,
            label=f"{settings.item_label} {i + 1}",
            answer_keys={m.id: instance_answer_key(group.id, m.id, i) for m in members},
        )
        for i in range(count)
    ]


def discarded_answer_keys(answers: Mapping[str, Any], group_id: str, new_count: int) -> List[str]:
    """Keys of instance answers that a shrink to `new_count` would drop."""
    dropped = []
    for key in answers:
        parsed = parse_instance_answer_key(key)
        if parsed is not None and parsed[0] == group_id and parsed[2] >= new_count:
            dropped.append(key)
    return dropped


def collapse(answers: Mapping[str, Any], group_id: str, new_count: int) -> Dict[str, Any]:
    """
    New answer map with the count set and out-of-range instance answers removed.

    Callers must check requires_confirmation() first; this function commits.
    """
    dropped = set(discarded_answer_keys(answers, group_id, new_count))
    if dropped:
        logger.info("Discarding %d answer(s) of group %s beyond instance %d", len(dropped), group_id, new_count)
    result = {k: v for k, v in answers.items() if k not in dropped}
    result[count_key(group_id)] = str(new_count)
    return result


def clamp_active_instance(active_instance: int, count: int) -> int:
    """Active tab index after a count change: back to 0 when out of range."""
    if active_instance >= count or active_instance < 0:
        return 0
    return active_instance
