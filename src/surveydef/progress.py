"""
Response progress: resumable answer state for one respondent.

Progress lives in a ProgressStore that the caller owns and passes in;
nothing here is process-global. ResponseSession drives a respondent
through the published version of a survey and keeps UI-facing state
(current page, active repeat instance per group) as explicit data.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from surveydef.config import EngineConfig
from surveydef.errors import SurveyDefError
from surveydef.graph import QuestionGraph
from surveydef.logic import visible_pages
from surveydef.model import Page, Survey, SurveyVersion
from surveydef.parallel import (
    RepeatInstance,
    clamp_active_instance,
    collapse,
    count_key,
    effective_settings,
    expand,
    requires_confirmation,
    resolve_instance_count,
)
from surveydef.placeholders import RenderedText, resolve
from surveydef.settings import ParallelBranchSettings
from surveydef.transitions import next_question_id
from surveydef.versions import get_published_version


logger = logging.getLogger(__name__)


@dataclass
class SurveyProgress:
    """
    Properties:
        version: Version number the answers belong to
        current_page_index: Index into the version's visible pages
        answers: Answer map keyed by question id / instance key
        active_instances: Parallel group id -> active repeat instance
    """

    version: Optional[int] = None
    current_page_index: int = 0
    answers: Dict[str, Any] = field(default_factory=dict)
    active_instances: Dict[str, int] = field(default_factory=dict)


class ProgressStore(Protocol):
    def load(self, survey_id: str) -> Optional[SurveyProgress]:
        ...

    def save(self, survey_id: str, progress: SurveyProgress) -> None:
        ...

    def clear(self, survey_id: str) -> None:
        ...


class InMemoryProgressStore:
    """Dictionary-backed ProgressStore. Stores copies, never shared objects."""

    def __init__(self):
        self._items: Dict[str, SurveyProgress] = {}

    def load(self, survey_id: str) -> Optional[SurveyProgress]:
        stored = self._items.get(survey_id)
        return copy.deepcopy(stored) if stored is not None else None

    def save(self, survey_id: str, progress: SurveyProgress) -> None:
        self._items[survey_id] = copy.deepcopy(progress)

    def clear(self, survey_id: str) -> None:
        self._items.pop(survey_id, None)


class ResponseSession:
    """
    One respondent taking the published version of a survey.

    Saved progress is resumed only when it was recorded against the same
    version number; otherwise it is discarded.

    Raises:
        SurveyDefError: the survey has no published version
    """

    def __init__(self, survey: Survey, store: ProgressStore, config: Optional[EngineConfig] = None):
        version = get_published_version(survey)
        if version is None:
            raise SurveyDefError(f"Survey {survey.id} has no published version")
        self.survey = survey
        self.version: SurveyVersion = version
        self.store = store
        self.config = config or EngineConfig()
        self.graph = QuestionGraph.from_version(version)

        saved = store.load(survey.id)
        if saved is not None and saved.version == version.version:
            self.progress = saved
        else:
            if saved is not None:
                logger.info("Discarding progress of survey %s recorded for version %s", survey.id, saved.version)
                store.clear(survey.id)
            self.progress = SurveyProgress(version=version.version)

    # ------------------------------------------------------------------

    @property
    def answers(self) -> Dict[str, Any]:
        return self.progress.answers

    @property
    def has_saved_answers(self) -> bool:
        return bool(self.progress.answers)

    def _save(self) -> None:
        self.store.save(self.survey.id, self.progress)

    def answer(self, question_id: str, value: Any) -> None:
        self.progress.answers[question_id] = value
        self._save()

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    def visible_pages(self) -> List[Page]:
        return visible_pages(self.version.pages, self.progress.answers, self.version.questions)

    def current_page(self) -> Optional[Page]:
        pages = self.visible_pages()
        if not pages:
            return None
        index = min(self.progress.current_page_index, len(pages) - 1)
        return pages[index]

    def next_page(self) -> bool:
        """Advance one page; False when already on the last page."""
        if self.progress.current_page_index >= len(self.visible_pages()) - 1:
            return False
        self.progress.current_page_index += 1
        self._save()
        return True

    def previous_page(self) -> bool:
        if self.progress.current_page_index <= 0:
            return False
        self.progress.current_page_index -= 1
        self._save()
        return True

    def next_question_id(self, question_id: str) -> Optional[str]:
        return next_question_id(self.graph, question_id, self.progress.answers.get(question_id))

    # ------------------------------------------------------------------
    # Repeat groups
    # ------------------------------------------------------------------

    def group_settings(self, group_id: str) -> Optional[ParallelBranchSettings]:
        """Effective repeat settings of a group, with the configured defaults."""
        group = self.graph.get(group_id)
        if group is None or not group.is_parallel_group:
            return None
        return effective_settings(group, **self.config.group_defaults())

    def instances(self, group_id: str) -> List[RepeatInstance]:
        settings = self.group_settings(group_id)
        if settings is None:
            return []
        return expand(self.graph, self.graph.get(group_id), self.progress.answers, settings)

    def instance_count(self, group_id: str) -> int:
        return resolve_instance_count(self.progress.answers, count_key(group_id))

    def set_instance_count(self, group_id: str, count: int, confirmed: bool = False) -> bool:
        """
        Change a group's repeat count.

        Shrinking a non-empty group drops the answers of removed instances
        and is only committed with confirmed=True. Returns False when the
        change was not committed.
        """
        old = self.instance_count(group_id)
        if requires_confirmation(old, count) and not confirmed:
            return False
        settings = self.group_settings(group_id)
        limit = self.config.max_parallel_items
        if settings is not None:
            limit = min(limit, settings.max_items)
        count = max(min(count, limit), 0)
        self.progress.answers = collapse(self.progress.answers, group_id, count)
        active = self.progress.active_instances.get(group_id, 0)
        self.progress.active_instances[group_id] = clamp_active_instance(active, count)
        self._save()
        return True

    def active_instance(self, group_id: str) -> int:
        return self.progress.active_instances.get(group_id, 0)

    def set_active_instance(self, group_id: str, index: int) -> None:
        count = self.instance_count(group_id)
        if not 0 <= index < max(count, 1):
            raise ValueError(f"instance {index} out of range for group {group_id} with {count} instance(s)")
        self.progress.active_instances[group_id] = index
        self._save()

    # ------------------------------------------------------------------

    def render(self, text: str) -> RenderedText:
        return resolve(
            text,
            self.progress.answers,
            self.version.questions,
            max_length=self.config.placeholder_max_length,
            missing_value=self.config.missing_value_text,
            missing_option_marker=self.config.missing_option_marker,
        )

    def clear(self) -> None:
        self.store.clear(self.survey.id)
        self.progress = SurveyProgress(version=self.version.version)
