"""
Placeholder Resolver: interpolate prior answers into question texts.

Grammar:
    {{ key }}          answer of question `key`
    {{ key.field }}    one field of an object-shaped answer

Keys are word or hyphen characters, fields are word characters; whitespace
inside the braces is tolerated. Rendering is two steps:

    tokenize(text)                     -> Tokens (text and placeholder parts)
    resolve(parts, answers, questions) -> RenderedText

Long values are truncated for display only: every RenderedPart keeps its
full value next to the shortened one.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, Mapping, Optional, Sequence, Tuple, Union

from surveydef.config import MISSING_OPTION_MARKER, MISSING_VALUE_TEXT, PLACEHOLDER_MAX_LENGTH
from surveydef.model import Question
from surveydef.settings import QuestionType


logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\{\{\s*([\w-]+)(?:\.(\w+))?\s*\}\}")

ELLIPSIS = "…"
EMPTY_FIELD = "—"

FileLookup = Callable[[str], Optional[Mapping[str, Any]]]


@dataclass(frozen=True)
class TextPart:
    value: str

    type = "text"


@dataclass(frozen=True)
class PlaceholderPart:
    """`value` is the raw token text, e.g. "{{ q1.city }}"."""

    value: str
    key: str
    field: Optional[str] = None

    type = "placeholder"


Part = Union[TextPart, PlaceholderPart]


class Tokens:
    """
    Parts of a text, produced lazily.

    Iterating again starts over, so one Tokens object can be rendered any
    number of times. Joining every part's `value` gives back the text.
    """

    def __init__(self, text: str):
        self.text = text or ""

    def __iter__(self) -> Iterator[Part]:
        pos = 0
        for match in PLACEHOLDER_RE.finditer(self.text):
            if match.start() > pos:
                yield TextPart(self.text[pos:match.start()])
            yield PlaceholderPart(match.group(0), match.group(1), match.group(2))
            pos = match.end()
        if pos < len(self.text):
            yield TextPart(self.text[pos:])

    def keys(self) -> Tuple[str, ...]:
        return tuple(p.key for p in self if isinstance(p, PlaceholderPart))


def tokenize(text: str) -> Tokens:
    return Tokens(text)


class RenderKind(Enum):
    TEXT = "text"
    VALUE = "value"
    MISSING_OPTION = "missing_option"
    UNDEFINED = "undefined"


@dataclass(frozen=True)
class RenderedPart:
    """
    Properties:
        display: What to show (possibly truncated)
        full: Untruncated value, for tooltips or on-demand disclosure
        kind: RenderKind; MISSING_OPTION marks an answer with no option text
        truncated: display is a shortened `full`
    """

    display: str
    full: str
    kind: RenderKind = RenderKind.TEXT
    truncated: bool = False
    key: Optional[str] = None


@dataclass(frozen=True)
class RenderedText:
    parts: Tuple[RenderedPart, ...]

    @property
    def text(self) -> str:
        return "".join(p.display for p in self.parts)

    @property
    def full_text(self) -> str:
        return "".join(p.full for p in self.parts)

    @property
    def has_truncation(self) -> bool:
        return any(p.truncated for p in self.parts)

    def __str__(self) -> str:
        return self.text


def _truncate(value: str, max_length: int) -> Tuple[str, bool]:
    if len(value) > max_length:
        return value[:max_length] + ELLIPSIS, True
    return value, False


def _option_texts(question: Question, ids: Sequence[Any]) -> list:
    texts = []
    for option_id in ids:
        option = question.get_option(str(option_id))
        if option is not None:
            texts.append(option.text)
    return texts


def _file_names(answer: Mapping[str, Any], file_lookup: Optional[FileLookup]) -> list:
    names = []
    for entry in answer.get("files") or []:
        if not isinstance(entry, Mapping):
            continue
        name = entry.get("name")
        if not name and file_lookup is not None and entry.get("serverFileId"):
            meta = file_lookup(entry["serverFileId"]) or {}
            name = meta.get("name")
        if name:
            names.append(str(name))
    return names


class _Renderer:
    def __init__(
        self,
        answers: Mapping[str, Any],
        questions: Iterable[Question],
        max_length: int,
        missing_value: str,
        missing_option_marker: str,
        file_lookup: Optional[FileLookup],
    ):
        self.answers = answers or {}
        self.by_id: Dict[str, Question] = {q.id: q for q in (questions or [])}
        self.max_length = max_length
        self.missing_value = missing_value
        self.missing_option_marker = missing_option_marker
        self.file_lookup = file_lookup

    def value(self, full: str, key: str) -> RenderedPart:
        display, truncated = _truncate(full, self.max_length)
        return RenderedPart(display, full, RenderKind.VALUE, truncated, key)

    def render(self, part: PlaceholderPart) -> RenderedPart:
        key, field = part.key, part.field
        value = self.answers.get(key)
        question = self.by_id.get(key)

        if value is None:
            if question is None:
                logger.debug("Placeholder %s has no answer or question", key)
            return RenderedPart(self.missing_value, self.missing_value, RenderKind.UNDEFINED, False, key)

        if question is not None and question.type in (QuestionType.RADIO, QuestionType.SELECT):
            option = question.get_option(str(value))
            if option is not None:
                return self.value(option.text, key)
            flagged = f"{value} {self.missing_option_marker}"
            return RenderedPart(flagged, flagged, RenderKind.MISSING_OPTION, False, key)

        if question is not None and question.type == QuestionType.CHECKBOX and isinstance(value, (list, tuple)):
            texts = _option_texts(question, value)
            if texts:
                return self.value(", ".join(texts), key)

        if question is not None and question.type == QuestionType.FILE_UPLOAD and isinstance(value, Mapping):
            names = _file_names(value, self.file_lookup)
            if names:
                return self.value(", ".join(names), key)

        if isinstance(value, (list, tuple)):
            return self.value(", ".join(str(v) for v in value), key)
        if isinstance(value, Mapping):
            picked = value.get(field) if field else None
            return self.value(EMPTY_FIELD if picked is None else str(picked), key)
        return self.value(str(value), key)


def resolve(
    text_or_parts: Union[str, Iterable[Part]],
    answers: Mapping[str, Any],
    questions: Iterable[Question] = (),
    max_length: int = PLACEHOLDER_MAX_LENGTH,
    missing_value: str = MISSING_VALUE_TEXT,
    missing_option_marker: str = MISSING_OPTION_MARKER,
    file_lookup: Optional[FileLookup] = None,
) -> RenderedText:
    """
    Render placeholders against an answer map.

    Args:
        text_or_parts: Raw text or the output of tokenize()
        answers: Answer map keyed by question id
        questions: Question metadata used for option labels
        max_length: Display truncation threshold
        missing_value: Text for keys with no answer (literal "undefined" by default)
        missing_option_marker: Appended when a choice answer has no matching option
        file_lookup: Resolves a stored file id to its metadata for file_upload answers

    Returns:
        RenderedText; str() of it is the display string
    """
    parts = tokenize(text_or_parts) if isinstance(text_or_parts, str) else text_or_parts
    renderer = _Renderer(answers, questions, max_length, missing_value, missing_option_marker, file_lookup)
    rendered = []
    for part in parts:
        if isinstance(part, PlaceholderPart):
            rendered.append(renderer.render(part))
        else:
            rendered.append(RenderedPart(part.value, part.value))
    return RenderedText(tuple(rendered))


def render_text(text: str, answers: Mapping[str, Any], questions: Iterable[Question] = (), **kwargs) -> str:
    """Shortcut for str(resolve(...))."""
    return resolve(text, answers, questions, **kwargs).text
