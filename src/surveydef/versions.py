"""
Version Manager: lifecycle of a survey's versions.

State machine per SurveyVersion:

    draft ──publish──> published ──(another version published)──> archived

    - create_new_version: always a new draft numbered current_version + 1
    - publish: blocked by any structural violation; archives the previous
      published version; exactly one version is published afterwards
    - only drafts are editable

Every function takes a Survey snapshot and returns a new one. Atomicity
across concurrent writers is the persistence layer's job: publish_with_store
runs publish inside the store's compare-and-set and retries on conflict.
"""

from __future__ import annotations

import copy
import logging
from typing import Callable, List, Optional, Protocol

from surveydef.config import EngineConfig
from surveydef.errors import (
    ConflictError,
    SurveyNotFoundError,
    ValidationError,
    VersionNotFoundError,
    VersionStateError,
)
from surveydef.graph import validate
from surveydef.model import Page, Question, Survey, SurveyStatus, SurveyVersion, new_id, utc_now


logger = logging.getLogger(__name__)


class SurveyStore(Protocol):
    """
    Persistence collaborator.

    atomic_update applies `mutator` to the stored snapshot only if its
    revision still equals `expected_revision`, stores the result with the
    revision incremented, and returns it. Otherwise it raises ConflictError.
    """

    def load(self, survey_id: str) -> Optional[Survey]:
        ...

    def atomic_update(
        self,
        survey_id: str,
        expected_revision: int,
        mutator: Callable[[Survey], Survey],
    ) -> Survey:
        ...


# =========================================================================
# Lookups
# =========================================================================

def load_version(survey: Survey, version: int) -> Optional[SurveyVersion]:
    return survey.get_version(version)


def get_current_version(survey: Survey) -> Optional[SurveyVersion]:
    return survey.get_version(survey.current_version)


def get_published_version(survey: Survey) -> Optional[SurveyVersion]:
    for v in survey.versions:
        if v.status == SurveyStatus.PUBLISHED:
            return v
    return None


def require_version(survey: Survey, version: int) -> SurveyVersion:
    found = survey.get_version(version)
    if found is None:
        raise VersionNotFoundError(version)
    return found


# =========================================================================
# Transitions
# =========================================================================

def create_survey(
    title: str,
    description: str = "",
    survey_id: Optional[str] = None,
    now: Optional[str] = None,
) -> Survey:
    """A new survey holding an empty draft version 1."""
    now = now or utc_now()
    survey = Survey(
        id=survey_id or new_id(),
        title=title,
        description=description,
        created_at=now,
        updated_at=now,
    )
    return create_new_version(survey, now=now)


def create_new_version(
    survey: Survey,
    baseline: Optional[int] = None,
    title: Optional[str] = None,
    description: Optional[str] = None,
    now: Optional[str] = None,
) -> Survey:
    """
    Append a draft version numbered current_version + 1.

    Pages and questions are copied from `baseline` (default: the latest
    version), keeping their ids so answers stay addressable across versions.
    The new version becomes the current version.
    """
    now = now or utc_now()
    if baseline is not None:
        source = require_version(survey, baseline)
    else:
        source = max(survey.versions, key=lambda v: v.version) if survey.versions else None

    result = copy.deepcopy(survey)
    number = survey.current_version + 1
    draft = SurveyVersion(
        id=new_id(),
        version=number,
        status=SurveyStatus.DRAFT,
        title=title if title is not None else survey.title,
        description=description if description is not None else survey.description,
        pages=copy.deepcopy(source.pages) if source else [],
        questions=copy.deepcopy(source.questions) if source else [],
        created_at=now,
        updated_at=now,
    )
    result.versions.append(draft)
    result.current_version = number
    result.updated_at = now
    logger.info("Survey %s: created draft version %d", survey.id, number)
    return result


def update_draft(
    survey: Survey,
    version: int,
    pages: Optional[List[Page]] = None,
    questions: Optional[List[Question]] = None,
    title: Optional[str] = None,
    description: Optional[str] = None,
    now: Optional[str] = None,
) -> Survey:
    """
    Replace the content of a draft version.

    Raises:
        VersionNotFoundError: unknown version number
        VersionStateError: the version is published or archived
    """
    target = require_version(survey, version)
    if target.status != SurveyStatus.DRAFT:
        raise VersionStateError(version, target.status.value, "edit")

    now = now or utc_now()
    result = copy.deepcopy(survey)
    draft = result.get_version(version)
    if pages is not None:
        draft.pages = copy.deepcopy(pages)
    if questions is not None:
        draft.questions = copy.deepcopy(questions)
    if title is not None:
        draft.title = title
    if description is not None:
        draft.description = description
    draft.updated_at = now
    result.updated_at = now
    return result


def publish(
    survey: Survey,
    version: int,
    now: Optional[str] = None,
    config: Optional[EngineConfig] = None,
) -> Survey:
    """
    Publish a version, archiving the previously published one.

    Validation uses the limits and group defaults of `config`.

    Re-publishing the version that is already published returns an
    equivalent snapshot, so retries are safe.

    Raises:
        VersionNotFoundError: unknown version number
        VersionStateError: the version is archived
        ValidationError: the version has structural violations
    """
    target = require_version(survey, version)
    if target.status == SurveyStatus.ARCHIVED:
        raise VersionStateError(version, target.status.value, "publish")

    config = config or EngineConfig()
    violations = validate(target, ceiling=config.max_parallel_items, defaults=config.group_defaults())
    if violations:
        logger.warning("Survey %s: publish of version %d blocked by %d violation(s)",
                       survey.id, version, len(violations))
        raise ValidationError(violations)

    now = now or utc_now()
    result = copy.deepcopy(survey)
    changed = False
    for v in result.versions:
        if v.status == SurveyStatus.PUBLISHED and v.version != version:
            v.status = SurveyStatus.ARCHIVED
            v.archived_at = now
            v.updated_at = now
            changed = True
            logger.info("Survey %s: archived version %d", survey.id, v.version)
        elif v.version == version and v.status != SurveyStatus.PUBLISHED:
            v.status = SurveyStatus.PUBLISHED
            v.published_at = now
            v.updated_at = now
            changed = True
            logger.info("Survey %s: published version %d", survey.id, version)

    result.published_version = version
    result.status = SurveyStatus.PUBLISHED
    if changed:
        result.updated_at = now
    return result


def publish_with_store(
    store: SurveyStore,
    survey_id: str,
    version: int,
    retries: Optional[int] = None,
    now: Optional[str] = None,
    config: Optional[EngineConfig] = None,
) -> Survey:
    """
    Publish through the persistence collaborator's compare-and-set.

    Each attempt re-reads the snapshot and re-validates it, so a concurrent
    edit is never published unchecked. ConflictError propagates after
    `retries` failed attempts, config.publish_retries when not given.
    """
    config = config or EngineConfig()
    if retries is None:
        retries = config.publish_retries
    attempt = 0
    while True:
        attempt += 1
        snapshot = store.load(survey_id)
        if snapshot is None:
            raise SurveyNotFoundError(survey_id)
        try:
            return store.atomic_update(
                survey_id,
                snapshot.revision,
                lambda current: publish(current, version, now=now, config=config),
            )
        except ConflictError:
            if attempt >= retries:
                raise
            logger.warning("Survey %s: publish conflict on attempt %d, retrying", survey_id, attempt)
