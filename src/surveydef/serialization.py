"""
Serialization helpers for survey snapshots (Survey, SurveyVersion, Question, ...).

Provides JSON/YAML round-trip through the plain dict shape persisted by the
document store:

    Survey: { id, title, description, status, currentVersion, publishedVersion?,
              versions, createdAt, updatedAt }
    SurveyVersion: { id, version, status, title, description, pages, questions,
                     createdAt, updatedAt, publishedAt?, archivedAt? }
    Page: { id, title, description?, descriptionPosition? }
    Question: { id, pageId?, type, title, description?, required?, options?,
                settings?, transitionRules?, parallelQuestions? }

Optional keys are omitted when unset.
"""
from __future__ import annotations

import json
import re
from dataclasses import fields
from enum import Enum
from typing import Any, Dict, List, Optional, Union, get_args, get_origin, get_type_hints

import yaml

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
from surveydef.errors import SerializationError
from surveydef.model import (
    DescriptionPosition,
    Page,
    Question,
    QuestionOption,
    Survey,
    SurveyStatus,
    SurveyVersion,
    TransitionRule,
)
from surveydef.settings import (
    EmptySettings,
    QuestionSettings,
    QuestionType,
    settings_class_for,
)
from surveydef.transitions import answer_text


_CAMEL_RE = re.compile(r"_([a-z])")


def _camel(name: str) -> str:
    return _CAMEL_RE.sub(lambda m: m.group(1).upper(), name)


def _put(d: Dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        d[key] = value


def _enum(cls, value: Any, what: str):
    try:
        return cls(value)
    except ValueError as e:
        raise SerializationError(f"Unknown {what}: {value!r}") from e


def _require(d: Dict[str, Any], key: str, what: str) -> Any:
    if not isinstance(d, dict):
        raise SerializationError(f"{what} must be a mapping, got {type(d).__name__}")
    if key not in d:
        raise SerializationError(f"{what} is missing required key {key!r}")
    return d[key]


def _int(value: Any, what: str) -> int:
    if isinstance(value, bool):
        raise SerializationError(f"{what} must be an integer, got {value!r}")
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise SerializationError(f"{what} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"{what} must be an integer, got {value!r}") from e


def _float(value: Any, what: str) -> float:
    if isinstance(value, bool):
        raise SerializationError(f"{what} must be a number, got {value!r}")
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"{what} must be a number, got {value!r}") from e


def _bool(value: Any, what: str) -> bool:
    if isinstance(value, bool):
        return value
    if value in ("true", "false"):
        return value == "true"
    raise SerializationError(f"{what} must be true or false, got {value!r}")


def _setting_value(value: Any, hint: Any, what: str) -> Any:
    """Coerce a decoded settings value to the field's annotated type."""
    if get_origin(hint) is Union:
        hint = next(a for a in get_args(hint) if a is not type(None))
    if hint is bool:
        return _bool(value, what)
    if hint is int:
        return _int(value, what)
    if hint is float:
        return _float(value, what)
    if isinstance(hint, type) and issubclass(hint, Enum):
        return _enum(hint, value, what)
    if get_origin(hint) is tuple:
        if not isinstance(value, (list, tuple)):
            raise SerializationError(f"{what} must be a list, got {value!r}")
        return tuple(str(v) for v in value)
    if not isinstance(value, str):
        raise SerializationError(f"{what} must be a string, got {value!r}")
    return value


# =========================================================================
# Settings
# =========================================================================

def settings_to_dict(s: Optional[QuestionSettings]) -> Optional[Dict[str, Any]]:
    if s is None:
        return None
    if isinstance(s, EmptySettings):
        return {}
    out: Dict[str, Any] = {}
    for f in fields(s):
        value = getattr(s, f.name)
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, tuple):
            value = list(value)
        _put(out, _camel(f.name), value)
    return out


def settings_from_dict(question_type: QuestionType, d: Optional[Dict[str, Any]]) -> Optional[QuestionSettings]:
    if d is None:
        return None
    if not isinstance(d, dict):
        raise SerializationError(f"settings of a {question_type.value} question must be a mapping")
    cls = settings_class_for(question_type)
    if cls is EmptySettings:
        return EmptySettings(question_type=question_type)
    hints = get_type_hints(cls)
    kwargs: Dict[str, Any] = {}
    for f in fields(cls):
        key = _camel(f.name)
        if key not in d or d[key] is None:
            continue
        kwargs[f.name] = _setting_value(d[key], hints[f.name], f"setting {key}")
    return cls(**kwargs)


# =========================================================================
# Conditions
# =========================================================================

def visibility_rule_to_dict(r: VisibilityRule) -> Dict[str, Any]:
    return {
        "id": r.id,
        "action": r.action.value,
        "groupsLogic": r.groups_logic.value,
        "groups": [
            {
                "id": g.id,
                "logic": g.logic.value,
                "conditions": [
                    {k: v for k, v in (("type", c.type.value), ("questionId", c.question_id), ("value", c.value))
                     if v is not None}
                    for c in g.conditions
                ],
            }
            for g in r.groups
        ],
    }


def visibility_rule_from_dict(d: Dict[str, Any]) -> VisibilityRule:
    groups = tuple(
        VisibilityGroup(
            id=g.get("id", ""),
            logic=_enum(Logic, g.get("logic", "AND"), "logic"),
            conditions=tuple(
                VisibilityCondition(
                    type=_enum(ConditionType, c.get("type"), "condition type"),
                    question_id=c.get("questionId", ""),
                    value=c.get("value"),
                )
                for c in g.get("conditions", [])
            ),
        )
        for g in d.get("groups", [])
    )
    return VisibilityRule(
        id=d.get("id", ""),
        action=_enum(RuleAction, d.get("action"), "rule action"),
        groups=groups,
        groups_logic=_enum(Logic, d.get("groupsLogic", "AND"), "logic"),
    )


def resolution_rule_to_dict(r: ResolutionRule) -> Dict[str, Any]:
    return {
        "id": r.id,
        "logic": r.logic.value,
        "resultText": r.result_text,
        "conditions": [
            {"questionId": c.question_id, "operator": c.operator.value, "value": c.value}
            for c in r.conditions
        ],
    }


def resolution_rule_from_dict(d: Dict[str, Any]) -> ResolutionRule:
    return ResolutionRule(
        id=d.get("id", ""),
        logic=_enum(Logic, d.get("logic", "AND"), "logic"),
        result_text=d.get("resultText", ""),
        conditions=tuple(
            ResolutionCondition(
                question_id=c.get("questionId", ""),
                operator=_enum(ResolutionOperator, c.get("operator", "=="), "operator"),
                value=c.get("value"),
            )
            for c in d.get("conditions", [])
        ),
    )


# =========================================================================
# Questions and pages
# =========================================================================

def question_to_dict(q: Question) -> Dict[str, Any]:
    d: Dict[str, Any] = {"id": q.id, "type": q.type.value, "title": q.title}
    _put(d, "pageId", q.page_id)
    _put(d, "description", q.description)
    if q.required:
        d["required"] = True
    if q.options:
        d["options"] = [{"id": o.id, "text": o.text} for o in q.options]
    _put(d, "settings", settings_to_dict(q.settings))
    if q.transition_rules:
        d["transitionRules"] = [
            {"id": r.id, "answer": r.answer, "nextQuestionId": r.next_question_id}
            for r in q.transition_rules
        ]
    if q.parallel_questions:
        d["parallelQuestions"] = list(q.parallel_questions)
    if q.visibility_rules:
        d["visibilityRules"] = [visibility_rule_to_dict(r) for r in q.visibility_rules]
    if q.resolution_rules:
        d["resolutionRules"] = [resolution_rule_to_dict(r) for r in q.resolution_rules]
    _put(d, "defaultResolution", q.default_resolution)
    return d


def question_from_dict(d: Dict[str, Any]) -> Question:
    qtype = _enum(QuestionType, _require(d, "type", "question"), "question type")
    return Question(
        id=_require(d, "id", "question"),
        type=qtype,
        title=d.get("title", ""),
        page_id=d.get("pageId"),
        description=d.get("description"),
        required=bool(d.get("required", False)),
        options=[QuestionOption(id=_require(o, "id", "option"), text=o.get("text", "")) for o in d.get("options") or []],
        settings=settings_from_dict(qtype, d.get("settings")),
        transition_rules=[
            TransitionRule(id=r.get("id", ""), answer=answer_text(r.get("answer", "")),
                           next_question_id=r.get("nextQuestionId", ""))
            for r in d.get("transitionRules") or []
        ],
        parallel_questions=list(d.get("parallelQuestions") or []),
        visibility_rules=[visibility_rule_from_dict(r) for r in d.get("visibilityRules") or []],
        resolution_rules=[resolution_rule_from_dict(r) for r in d.get("resolutionRules") or []],
        default_resolution=d.get("defaultResolution"),
    )


def page_to_dict(p: Page) -> Dict[str, Any]:
    d: Dict[str, Any] = {"id": p.id, "title": p.title}
    _put(d, "description", p.description)
    if p.description_position is not None:
        d["descriptionPosition"] = p.description_position.value
    if p.visibility_rules:
        d["visibilityRules"] = [visibility_rule_to_dict(r) for r in p.visibility_rules]
    return d


def page_from_dict(d: Dict[str, Any]) -> Page:
    position = d.get("descriptionPosition")
    return Page(
        id=_require(d, "id", "page"),
        title=d.get("title", ""),
        description=d.get("description"),
        description_position=_enum(DescriptionPosition, position, "description position") if position else None,
        visibility_rules=[visibility_rule_from_dict(r) for r in d.get("visibilityRules") or []],
    )


# =========================================================================
# Versions and surveys
# =========================================================================

def version_to_dict(v: SurveyVersion) -> Dict[str, Any]:
    d: Dict[str, Any] = {
        "id": v.id,
        "version": v.version,
        "status": v.status.value,
        "title": v.title,
        "description": v.description,
        "pages": [page_to_dict(p) for p in v.pages],
        "questions": [question_to_dict(q) for q in v.questions],
    }
    _put(d, "createdAt", v.created_at)
    _put(d, "updatedAt", v.updated_at)
    _put(d, "publishedAt", v.published_at)
    _put(d, "archivedAt", v.archived_at)
    return d


def version_from_dict(d: Dict[str, Any]) -> SurveyVersion:
    return SurveyVersion(
        id=_require(d, "id", "version"),
        version=_int(_require(d, "version", "version"), "version number"),
        status=_enum(SurveyStatus, d.get("status", "draft"), "status"),
        title=d.get("title", ""),
        description=d.get("description", ""),
        pages=[page_from_dict(p) for p in d.get("pages") or []],
        questions=[question_from_dict(q) for q in d.get("questions") or []],
        created_at=d.get("createdAt"),
        updated_at=d.get("updatedAt"),
        published_at=d.get("publishedAt"),
        archived_at=d.get("archivedAt"),
    )


def survey_to_dict(s: Survey) -> Dict[str, Any]:
    d: Dict[str, Any] = {
        "id": s.id,
        "title": s.title,
        "description": s.description,
        "status": s.status.value,
        "currentVersion": s.current_version,
        "versions": [version_to_dict(v) for v in s.versions],
    }
    _put(d, "publishedVersion", s.published_version)
    if s.revision:
        d["revision"] = s.revision
    _put(d, "createdAt", s.created_at)
    _put(d, "updatedAt", s.updated_at)
    return d


def survey_from_dict(d: Any) -> Survey:
    if not isinstance(d, dict):
        raise SerializationError(f"Survey snapshot must be a mapping, got {type(d).__name__}")
    versions: List[SurveyVersion] = [version_from_dict(v) for v in d.get("versions") or []]
    published = d.get("publishedVersion")
    return Survey(
        id=_require(d, "id", "survey"),
        title=d.get("title", ""),
        description=d.get("description", ""),
        status=_enum(SurveyStatus, d.get("status", "draft"), "status"),
        current_version=_int(d.get("currentVersion", max((v.version for v in versions), default=0)), "currentVersion"),
        published_version=_int(published, "publishedVersion") if published is not None else None,
        versions=versions,
        revision=_int(d.get("revision", 0), "revision"),
        created_at=d.get("createdAt"),
        updated_at=d.get("updatedAt"),
    )


def survey_to_json(s: Survey) -> str:
    return json.dumps(survey_to_dict(s), sort_keys=True, ensure_ascii=False)


def survey_from_json(s: str) -> Survey:
    try:
        d = json.loads(s)
    except json.JSONDecodeError as e:
        raise SerializationError(f"Invalid JSON: {e}") from e
    return survey_from_dict(d)


def survey_to_yaml(s: Survey) -> str:
    return yaml.safe_dump(survey_to_dict(s), allow_unicode=True, sort_keys=False)


def survey_from_yaml(s: str) -> Survey:
    try:
        d = yaml.safe_load(s)
    except yaml.YAMLError as e:
        raise SerializationError(f"Invalid YAML: {e}") from e
    return survey_from_dict(d)
