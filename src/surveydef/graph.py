"""
Question Graph: in-memory index and structural validation of a version.

Questions are stored as an arena keyed by id plus adjacency lists
(group -> member ids, member -> owning groups). Nested objects are never
followed by reference, so cycle detection is a walk with a visited set.

Structural rules:
    1. A question listed in a parallel group is "nested" and does not
       appear in normal page listings.
    2. Nesting depth is 1: parallel groups are never members of a group.
    3. No group reaches itself through membership.
    4. Transition targets exist in the same version.
    5. min_items <= max_items <= ceiling for parallel settings.

validate() reports breaches as Violation records. It never raises.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from surveydef.conditions import referenced_question_ids
from surveydef.config import MAX_PARALLEL_ITEMS
from surveydef.model import Page, Question, SurveyVersion
from surveydef.settings import ParallelBranchSettings, QuestionType, merge_parallel_defaults


logger = logging.getLogger(__name__)


class ViolationKind(Enum):
    CYCLE = "cycle"
    NESTING_DEPTH = "nesting_depth"
    DANGLING_REFERENCE = "dangling_reference"
    DUPLICATE_MEMBERSHIP = "duplicate_membership"
    MISSING_MEMBER = "missing_member"
    DUPLICATE_ID = "duplicate_id"
    ORPHAN_QUESTION = "orphan_question"
    INVALID_SETTINGS = "invalid_settings"
    DANGLING_CONDITION = "dangling_condition"


@dataclass(frozen=True)
class Violation:
    """One structural problem. `question_id` is None for page-level problems."""

    kind: ViolationKind
    question_id: Optional[str]
    detail: str


class QuestionGraph:
    """
    Derived indices over a flat question collection.

    Build one per snapshot; it is not updated when questions change.
    """

    def __init__(self, questions: Iterable[Question], pages: Iterable[Page] = ()):
        self.questions: List[Question] = list(questions)
        self.pages: List[Page] = list(pages)

        self._by_id: Dict[str, Question] = {}
        self._duplicate_ids: List[str] = []
        for q in self.questions:
            if q.id in self._by_id:
                self._duplicate_ids.append(q.id)
            else:
                self._by_id[q.id] = q

        self._children: Dict[str, List[str]] = {}
        self._parents: Dict[str, List[str]] = defaultdict(list)
        for q in self._by_id.values():
            if q.type != QuestionType.PARALLEL_GROUP:
                continue
            self._children[q.id] = list(q.parallel_questions)
            for member_id in q.parallel_questions:
                self._parents[member_id].append(q.id)

        self._visible_by_page: Dict[Optional[str], List[Question]] = defaultdict(list)
        for q in self._by_id.values():
            if not self.is_nested(q.id):
                self._visible_by_page[q.page_id].append(q)

    @classmethod
    def from_version(cls, version: SurveyVersion) -> "QuestionGraph":
        return cls(version.questions, version.pages)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def __contains__(self, question_id: str) -> bool:
        return question_id in self._by_id

    def get(self, question_id: str) -> Optional[Question]:
        return self._by_id.get(question_id)

    def is_nested(self, question_id: str) -> bool:
        return bool(self._parents.get(question_id))

    def find_parent_group(self, question_id: str) -> Optional[Question]:
        parents = self._parents.get(question_id)
        if not parents:
            return None
        return self._by_id.get(parents[0])

    def member_ids(self, group_id: str) -> List[str]:
        return list(self._children.get(group_id, []))

    def nested_questions(self, group_id: str) -> List[Question]:
        """Resolved members of a group, in group order. Unknown ids are skipped."""
        return [self._by_id[m] for m in self._children.get(group_id, []) if m in self._by_id]

    def visible_questions(self, page_id: Optional[str]) -> List[Question]:
        """Non-nested questions of a page, in collection order."""
        return list(self._visible_by_page.get(page_id, []))

    def ordered_questions(self) -> List[Question]:
        """
        Linear question order: pages in order, each page's visible questions.

        Without pages, all non-nested questions in collection order.
        """
        if not self.pages:
            return [q for q in self._by_id.values() if not self.is_nested(q.id)]
        ordered: List[Question] = []
        for page in self.pages:
            ordered.extend(self._visible_by_page.get(page.id, []))
        return ordered

    def reachable_members(self, group_id: str) -> Set[str]:
        """Ids reachable from a group through membership, transitively."""
        seen: Set[str] = set()
        stack = list(self._children.get(group_id, []))
        while stack:
            node = stack.pop()
            if node in seen:
                continue
            seen.add(node)
            stack.extend(self._children.get(node, []))
        return seen

    # ------------------------------------------------------------------
    # Editing guards
    # ------------------------------------------------------------------

    def add_to_group_problem(self, candidate_id: str, group_id: str) -> Optional[str]:
        """
        Why `candidate_id` cannot join `group_id`, or None when it can.

        Adding a current member again is allowed (membership is set-like).
        """
        group = self._by_id.get(group_id)
        if group is None or group.type != QuestionType.PARALLEL_GROUP:
            return f"{group_id} is not a parallel group"
        if candidate_id == group_id:
            return "a group cannot contain itself"
        candidate = self._by_id.get(candidate_id)
        if candidate is None:
            return f"{candidate_id} does not exist"
        if candidate.type == QuestionType.RESOLUTION:
            return "resolution questions cannot be repeated"
        if group_id in self.reachable_members(candidate_id):
            return f"{candidate_id} already references {group_id}"
        if candidate.type == QuestionType.PARALLEL_GROUP:
            if any(self._by_id.get(m) is not None and self._by_id[m].is_parallel_group
                   for m in self._children.get(candidate_id, [])):
                return f"{candidate_id} already contains a nested group"
            return "parallel groups cannot be nested"
        if self.is_nested(group_id):
            return f"{group_id} is itself nested in a group"
        other_parents = [p for p in self._parents.get(candidate_id, []) if p != group_id]
        if other_parents:
            return f"{candidate_id} already belongs to group {other_parents[0]}"
        return None

    def can_add_to_group(self, candidate_id: str, group_id: str) -> bool:
        return self.add_to_group_problem(candidate_id, group_id) is None

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(
        self,
        ceiling: int = MAX_PARALLEL_ITEMS,
        defaults: Optional[Mapping[str, Any]] = None,
    ) -> List[Violation]:
        """
        Structural violations of the indexed version.

        `defaults` are the keyword arguments of merge_parallel_defaults used
        for groups whose stored settings leave a field unset.
        """
        violations: List[Violation] = []

        for qid in self._duplicate_ids:
            violations.append(Violation(ViolationKind.DUPLICATE_ID, qid, f"id {qid} is used more than once"))

        for group_id, members in self._children.items():
            violations.extend(self._check_group(group_id, members))
            violations.extend(self._check_parallel_settings(self._by_id[group_id], ceiling, defaults or {}))

        for child_id, parents in self._parents.items():
            owners = sorted(set(parents))
            if len(owners) > 1:
                violations.append(Violation(
                    ViolationKind.DUPLICATE_MEMBERSHIP,
                    child_id,
                    f"member of {len(owners)} groups: {', '.join(owners)}",
                ))

        page_ids = {p.id for p in self.pages}
        for q in self._by_id.values():
            for rule in q.transition_rules:
                if rule.next_question_id not in self._by_id:
                    violations.append(Violation(
                        ViolationKind.DANGLING_REFERENCE,
                        q.id,
                        f"transition rule {rule.id} targets unknown question {rule.next_question_id!r}",
                    ))
            if not self.is_nested(q.id) and q.page_id not in page_ids:
                violations.append(Violation(
                    ViolationKind.ORPHAN_QUESTION,
                    q.id,
                    f"page {q.page_id!r} does not exist",
                ))
            for rule in list(q.visibility_rules) + list(q.resolution_rules):
                violations.extend(self._check_condition_refs(q.id, rule.id, referenced_question_ids(rule)))

        for page in self.pages:
            for rule in page.visibility_rules:
                for v in self._check_condition_refs(None, rule.id, referenced_question_ids(rule)):
                    violations.append(Violation(v.kind, None, f"page {page.id}: {v.detail}"))

        logger.debug("Validated %d questions: %d violation(s)", len(self.questions), len(violations))
        return violations

    def _check_group(self, group_id: str, members: List[str]) -> List[Violation]:
        violations: List[Violation] = []
        seen: Set[str] = set()
        for member_id in members:
            if member_id == group_id:
                violations.append(Violation(ViolationKind.CYCLE, group_id, "group lists itself as a member"))
                continue
            if member_id in seen:
                violations.append(Violation(
                    ViolationKind.DUPLICATE_MEMBERSHIP, member_id, f"listed twice in group {group_id}",
                ))
                continue
            seen.add(member_id)
            member = self._by_id.get(member_id)
            if member is None:
                violations.append(Violation(
                    ViolationKind.MISSING_MEMBER, group_id, f"member {member_id!r} does not exist",
                ))
            elif member.type == QuestionType.PARALLEL_GROUP:
                violations.append(Violation(
                    ViolationKind.NESTING_DEPTH, group_id, f"parallel group {member_id} is nested inside it",
                ))

        # Transitive cycle through other members; the direct self-reference is reported above.
        reach: Set[str] = set()
        for member_id in members:
            if member_id != group_id:
                reach.add(member_id)
                reach |= self.reachable_members(member_id)
        if group_id in reach:
            violations.append(Violation(ViolationKind.CYCLE, group_id, "group reaches itself through its members"))
        return violations

    def _check_parallel_settings(self, group: Question, ceiling: int, defaults: Mapping[str, Any]) -> List[Violation]:
        stored = group.settings if isinstance(group.settings, ParallelBranchSettings) else None
        settings = merge_parallel_defaults(stored, **defaults)
        problems = []
        if settings.min_items < 0:
            problems.append(f"min_items {settings.min_items} is negative")
        if settings.min_items > settings.max_items:
            problems.append(f"min_items {settings.min_items} exceeds max_items {settings.max_items}")
        if settings.max_items > ceiling:
            problems.append(f"max_items {settings.max_items} exceeds the limit of {ceiling}")
        return [Violation(ViolationKind.INVALID_SETTINGS, group.id, p) for p in problems]

    def _check_condition_refs(self, owner_id: Optional[str], rule_id: str, refs) -> List[Violation]:
        return [
            Violation(
                ViolationKind.DANGLING_CONDITION,
                owner_id,
                f"rule {rule_id} reads unknown question {ref!r}",
            )
            for ref in refs
            if ref not in self._by_id
        ]


def validate(
    version: SurveyVersion,
    ceiling: int = MAX_PARALLEL_ITEMS,
    defaults: Optional[Mapping[str, Any]] = None,
) -> List[Violation]:
    """Structural violations of a version; an empty list means valid."""
    return QuestionGraph.from_version(version).validate(ceiling=ceiling, defaults=defaults)
