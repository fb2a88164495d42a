"""
Core Survey Model Objects

Defines the data structures of a versioned survey definition:
    - Surveys (root container, owns versions)
    - SurveyVersions (snapshot of pages and questions)
    - Pages (ordered sections of a version)
    - Questions (nodes of the question graph)
    - TransitionRules (conditional edges between questions)

ARCHITECTURAL RULE:
    These objects:
        - Hold plain data, no I/O
        - Are fully serializable (see surveydef.serialization)
        - Represent structure, not behavior
    Engine operations copy them; they never mutate a snapshot handed in.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from surveydef.conditions import ResolutionRule, VisibilityRule
from surveydef.settings import (
    OPTION_BASED_TYPES,
    QuestionSettings,
    QuestionType,
    default_settings_for,
)


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> str:
    """Current time as an ISO-8601 UTC timestamp."""
    return datetime.now(timezone.utc).isoformat()


class SurveyStatus(Enum):
    """
    Lifecycle status of a version.

    The survey-level status mirrors its currently published version.
    """

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class DescriptionPosition(Enum):
    BEFORE = "before"
    AFTER = "after"


@dataclass(frozen=True)
class QuestionOption:
    id: str
    text: str


@dataclass
class TransitionRule:
    """
    Directed, conditional edge from an answered question to another question.

    Properties:
        id: Rule identifier
        answer: Triggering answer value (an option id for option-based questions)
        next_question_id: Target question within the same version

    Ordering within Question.transition_rules is significant:
    the first matching rule wins.
    """

    id: str
    answer: str
    next_question_id: str


@dataclass
class Page:
    """
    Properties:
        id: Page identifier
        title: Page title
        description: Optional text shown around the page's questions
        description_position: BEFORE or AFTER the questions
        visibility_rules: Conditional show/hide rules
    """

    id: str
    title: str
    description: Optional[str] = None
    description_position: Optional[DescriptionPosition] = None
    visibility_rules: List[VisibilityRule] = field(default_factory=list)


@dataclass
class Question:
    """
    A single node of the question graph.

    Properties:
        id:
            Unique within its version
        type:
            QuestionType (closed set)
        title / description / required:
            Presentation
        page_id:
            Owning page. Ignored for questions nested inside a parallel group.
        options:
            Ordered choices, only for radio / checkbox / select
        settings:
            The QuestionSettings variant for `type`. None means defaults.
        transition_rules:
            Ordered conditional edges, first match wins
        parallel_questions:
            Ordered member ids, only for PARALLEL_GROUP
        visibility_rules:
            Conditional show/hide rules
        resolution_rules / default_resolution:
            Outcome rules, only for RESOLUTION

    INVARIANTS (checked by surveydef.graph.validate, not here):
        - A question is a member of at most one parallel group
        - Parallel groups never nest
        - Transition targets exist in the same version
    """

    id: str
    type: QuestionType
    title: str
    page_id: Optional[str] = None
    description: Optional[str] = None
    required: bool = False
    options: List[QuestionOption] = field(default_factory=list)
    settings: Optional[QuestionSettings] = None
    transition_rules: List[TransitionRule] = field(default_factory=list)
    parallel_questions: List[str] = field(default_factory=list)
    visibility_rules: List[VisibilityRule] = field(default_factory=list)
    resolution_rules: List[ResolutionRule] = field(default_factory=list)
    default_resolution: Optional[str] = None

    @property
    def is_parallel_group(self) -> bool:
        return self.type == QuestionType.PARALLEL_GROUP

    @property
    def is_option_based(self) -> bool:
        return self.type in OPTION_BASED_TYPES

    def effective_settings(self) -> QuestionSettings:
        """Stored settings, or the empty variant for this type."""
        if self.settings is None:
            return default_settings_for(self.type)
        return self.settings

    def get_option(self, option_id: str) -> Optional[QuestionOption]:
        for option in self.options:
            if option.id == option_id:
                return option
        return None


@dataclass
class SurveyVersion:
    """
    One numbered snapshot of a survey's pages and questions.

    Immutable once published: only DRAFT versions are edited.

    Properties:
        id: Version identifier
        version: Positive integer, unique within the survey, sequential from 1
        status: SurveyStatus
        title / description: Snapshot of the survey texts
        pages: Ordered pages
        questions: Flat question collection, page membership via page_id
        created_at / updated_at / published_at / archived_at: ISO-8601 timestamps
    """

    id: str
    version: int
    status: SurveyStatus = SurveyStatus.DRAFT
    title: str = ""
    description: str = ""
    pages: List[Page] = field(default_factory=list)
    questions: List[Question] = field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    published_at: Optional[str] = None
    archived_at: Optional[str] = None

    def get_question(self, question_id: str) -> Optional[Question]:
        """
        Retrieve a question by ID.

        Returns:
            Question object or None if not found
        """
        for question in self.questions:
            if question.id == question_id:
                return question
        return None

    def get_page(self, page_id: str) -> Optional[Page]:
        for page in self.pages:
            if page.id == page_id:
                return page
        return None


@dataclass
class Survey:
    """
    Root container: one authored questionnaire and all of its versions.

    Properties:
        id: Survey identifier
        title / description: Current texts
        status: Mirrors the currently published version (DRAFT if none)
        current_version: Highest version number, the one being edited
        published_version: Number of the published version, or None
        versions: Ordered SurveyVersions
        revision: Persistence revision counter for compare-and-set updates
        created_at / updated_at: ISO-8601 timestamps

    INVARIANTS:
        - Version numbers are unique and sequential from 1
        - At most one version has status PUBLISHED
    """

    id: str
    title: str
    description: str = ""
    status: SurveyStatus = SurveyStatus.DRAFT
    current_version: int = 0
    published_version: Optional[int] = None
    versions: List[SurveyVersion] = field(default_factory=list)
    revision: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def get_version(self, version: int) -> Optional[SurveyVersion]:
        """
        Retrieve a version by number.

        Returns:
            SurveyVersion or None if not found
        """
        for v in self.versions:
            if v.version == version:
                return v
        return None

    def published_versions(self) -> List[SurveyVersion]:
        return [v for v in self.versions if v.status == SurveyStatus.PUBLISHED]
