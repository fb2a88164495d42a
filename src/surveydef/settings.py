"""
Per-type Question Settings

Each question type has exactly one settings shape. Settings are a tagged
union keyed by the question's type: SETTINGS_BY_TYPE maps every
QuestionType to the dataclass that holds its configuration.

ARCHITECTURAL RULE:
    No free-form settings dictionaries in the model.
    Code that reads settings goes through the variant for the question type.

All variants are immutable (frozen=True). Use dataclasses.replace to
derive a changed copy.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Optional, Tuple, Type

from surveydef.config import (
    DEFAULT_DISPLAY_MODE,
    DEFAULT_ITEM_LABEL,
    DEFAULT_MAX_ITEMS,
    DEFAULT_MIN_ITEMS,
)


class QuestionType(Enum):
    """
    Closed set of question types.

    Option-based types (radio, checkbox, select) carry `options`.
    PARALLEL_GROUP carries `parallel_questions`.
    RESOLUTION carries resolution rules (see surveydef.conditions).
    """

    TEXT = "text"
    NUMBER = "number"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    SELECT = "select"
    DATE = "date"
    EMAIL = "email"
    PHONE = "phone"
    FILE_UPLOAD = "file_upload"
    PARALLEL_GROUP = "parallel_group"
    RESOLUTION = "resolution"


OPTION_BASED_TYPES = frozenset({QuestionType.RADIO, QuestionType.CHECKBOX, QuestionType.SELECT})


class DisplayMode(Enum):
    """How repeat instances of a parallel group are presented."""
    SEQUENTIAL = "sequential"
    TABS = "tabs"


class QuestionSettings:
    """
    Base class for all settings variants.

    Structure only. The `question_type` class attribute is the union tag.
    """
    question_type: QuestionType


@dataclass(frozen=True)
class TextSettings(QuestionSettings):
    """
    Properties:
        input_mask: Input mask, e.g. "+7 (000) 000-00-00"
        show_title_inside: Render the question title inside the input
    """

    question_type = QuestionType.TEXT

    input_mask: Optional[str] = None
    show_title_inside: bool = False


@dataclass(frozen=True)
class NumberSettings(QuestionSettings):
    question_type = QuestionType.NUMBER

    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None


@dataclass(frozen=True)
class DateSettings(QuestionSettings):
    question_type = QuestionType.DATE

    format: Optional[str] = None


@dataclass(frozen=True)
class SelectSettings(QuestionSettings):
    question_type = QuestionType.SELECT

    default_option_id: Optional[str] = None


@dataclass(frozen=True)
class PhoneSettings(QuestionSettings):
    question_type = QuestionType.PHONE

    country_code: Optional[str] = None
    mask: Optional[str] = None


@dataclass(frozen=True)
class FileUploadSettings(QuestionSettings):
    """
    Properties:
        allowed_types: MIME patterns or extensions, e.g. ("image/*", ".pdf")
        max_file_size: Bytes per file
        max_files: Files per answer
    """

    question_type = QuestionType.FILE_UPLOAD

    allowed_types: Tuple[str, ...] = ("*",)
    max_file_size: int = 10 * 1024 * 1024
    max_files: int = 5
    button_text: Optional[str] = None
    help_text: Optional[str] = None


@dataclass(frozen=True)
class ParallelBranchSettings(QuestionSettings):
    """
    Repeat configuration of a parallel group.

    Fields are optional as STORED. Effective values come from
    surveydef.parallel.effective_settings, which merges these over the
    engine defaults.

    Properties:
        item_label: Name of one repetition (e.g. "Ребенок")
        display_mode: DisplayMode for the repetitions
        min_items / max_items: Bounds for the repeat count
        count_label / count_description / count_required: The count field
        source_question_id: Optional number question providing the count
    """

    question_type = QuestionType.PARALLEL_GROUP

    item_label: Optional[str] = None
    display_mode: Optional[DisplayMode] = None
    min_items: Optional[int] = None
    max_items: Optional[int] = None
    count_label: Optional[str] = None
    count_description: Optional[str] = None
    count_required: Optional[bool] = None
    source_question_id: Optional[str] = None


@dataclass(frozen=True)
class EmptySettings(QuestionSettings):
    """Settings for types with no configuration (radio, checkbox, email, resolution)."""

    question_type: Optional[QuestionType] = field(default=None, compare=False)


SETTINGS_BY_TYPE: Dict[QuestionType, Type[QuestionSettings]] = {
    QuestionType.TEXT: TextSettings,
    QuestionType.NUMBER: NumberSettings,
    QuestionType.RADIO: EmptySettings,
    QuestionType.CHECKBOX: EmptySettings,
    QuestionType.SELECT: SelectSettings,
    QuestionType.DATE: DateSettings,
    QuestionType.EMAIL: EmptySettings,
    QuestionType.PHONE: PhoneSettings,
    QuestionType.FILE_UPLOAD: FileUploadSettings,
    QuestionType.PARALLEL_GROUP: ParallelBranchSettings,
    QuestionType.RESOLUTION: EmptySettings,
}


def settings_class_for(question_type: QuestionType) -> Type[QuestionSettings]:
    return SETTINGS_BY_TYPE[question_type]


def default_settings_for(question_type: QuestionType) -> QuestionSettings:
    """Empty settings of the right variant for a question type."""
    cls = SETTINGS_BY_TYPE[question_type]
    if cls is EmptySettings:
        return EmptySettings(question_type=question_type)
    return cls()


def matches_type(settings: QuestionSettings, question_type: QuestionType) -> bool:
    """True if `settings` is the variant the union assigns to `question_type`."""
    return isinstance(settings, SETTINGS_BY_TYPE[question_type])


def merge_parallel_defaults(
    stored: Optional[ParallelBranchSettings],
    item_label: str = DEFAULT_ITEM_LABEL,
    display_mode: str = DEFAULT_DISPLAY_MODE,
    min_items: int = DEFAULT_MIN_ITEMS,
    max_items: int = DEFAULT_MAX_ITEMS,
) -> ParallelBranchSettings:
    """
    Overlay stored parallel settings on the defaults.

    Every field that is None in `stored` takes the default. The result has
    item_label, display_mode, min_items, max_items and count_required set.
    """
    stored = stored or ParallelBranchSettings()
    return replace(
        stored,
        item_label=stored.item_label if stored.item_label is not None else item_label,
        display_mode=stored.display_mode if stored.display_mode is not None else DisplayMode(display_mode),
        min_items=stored.min_items if stored.min_items is not None else min_items,
        max_items=stored.max_items if stored.max_items is not None else max_items,
        count_required=bool(stored.count_required),
    )
