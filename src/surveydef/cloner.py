"""
Graph Cloner: duplicate a survey with fresh identities.

Every survey, version, page, question and rule id is replaced, and every
internal reference is rewritten through per-version id maps:

    question.page_id              via the page map
    group.parallel_questions      via the question map
    rule.next_question_id         via the question map
    condition.question_id         via the question map

The question map is filled lazily in a single pass: an id referenced before
its question is reached gets its new id on first encounter, and the
question itself picks up that id later. The input is never mutated.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import replace
from typing import Callable, Dict, Optional

from surveydef.conditions import ResolutionRule, VisibilityRule
from surveydef.config import COPY_SUFFIX
from surveydef.model import Page, Question, Survey, SurveyStatus, SurveyVersion, TransitionRule, new_id, utc_now


logger = logging.getLogger(__name__)

IdFactory = Callable[[], str]


class _IdMap:
    """Old id -> new id, minting on first lookup."""

    def __init__(self, id_factory: IdFactory):
        self._ids: Dict[str, str] = {}
        self._factory = id_factory

    def __getitem__(self, old_id: str) -> str:
        if old_id not in self._ids:
            self._ids[old_id] = self._factory()
        return self._ids[old_id]

    def get(self, old_id: Optional[str]) -> Optional[str]:
        if old_id is None:
            return None
        return self._ids.get(old_id)


def _clone_visibility(rule: VisibilityRule, questions: _IdMap, id_factory: IdFactory) -> VisibilityRule:
    groups = tuple(
        replace(
            g,
            id=id_factory(),
            conditions=tuple(replace(c, question_id=questions[c.question_id]) for c in g.conditions),
        )
        for g in rule.groups
    )
    return replace(rule, id=id_factory(), groups=groups)


def _clone_resolution(rule: ResolutionRule, questions: _IdMap, id_factory: IdFactory) -> ResolutionRule:
    conditions = tuple(replace(c, question_id=questions[c.question_id]) for c in rule.conditions)
    return replace(rule, id=id_factory(), conditions=conditions)


def _clone_question(question: Question, questions: _IdMap, id_factory: IdFactory) -> Question:
    clone = copy.deepcopy(question)
    clone.id = questions[question.id]
    clone.parallel_questions = [questions[m] for m in question.parallel_questions]
    clone.transition_rules = [
        TransitionRule(id=id_factory(), answer=r.answer, next_question_id=questions[r.next_question_id])
        for r in question.transition_rules
    ]
    clone.visibility_rules = [_clone_visibility(r, questions, id_factory) for r in question.visibility_rules]
    clone.resolution_rules = [_clone_resolution(r, questions, id_factory) for r in question.resolution_rules]
    return clone


def _clone_version(
    version: SurveyVersion,
    fallback_title: str,
    suffix: str,
    now: str,
    id_factory: IdFactory,
) -> SurveyVersion:
    questions = _IdMap(id_factory)
    pages = _IdMap(id_factory)

    new_questions = [_clone_question(q, questions, id_factory) for q in version.questions]
    new_pages = []
    for page in version.pages:
        clone: Page = copy.deepcopy(page)
        clone.id = pages[page.id]
        clone.visibility_rules = [_clone_visibility(r, questions, id_factory) for r in page.visibility_rules]
        new_pages.append(clone)

    for q in new_questions:
        # Unknown page ids are kept as they are.
        mapped = pages.get(q.page_id)
        if mapped is not None:
            q.page_id = mapped

    return SurveyVersion(
        id=id_factory(),
        version=1,
        status=SurveyStatus.DRAFT,
        title=f"{version.title or fallback_title}{suffix}",
        description=version.description,
        pages=new_pages,
        questions=new_questions,
        created_at=now,
        updated_at=now,
    )


def duplicate(
    survey: Survey,
    id_factory: IdFactory = new_id,
    now: Optional[str] = None,
    suffix: str = COPY_SUFFIX,
) -> Survey:
    """
    Deep copy of `survey` under fresh identities.

    Versions restart at number 1 in draft status, publish state is cleared
    and titles get `suffix`.
    """
    now = now or utc_now()
    versions = [_clone_version(v, survey.title, suffix, now, id_factory) for v in survey.versions]
    result = Survey(
        id=id_factory(),
        title=f"{survey.title}{suffix}",
        description=survey.description,
        status=SurveyStatus.DRAFT,
        current_version=1,
        published_version=None,
        versions=versions,
        revision=0,
        created_at=now,
        updated_at=now,
    )
    logger.info("Duplicated survey %s as %s (%d version(s))", survey.id, result.id, len(versions))
    return result
