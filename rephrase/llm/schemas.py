"""Pydantic models for structured model output.

Wire names are camelCase (``targetBand``, ``keyStructures``, ``meaningVi`` ...)
to match the JSON the prompts ask for; Python attributes are snake_case.
"""
from __future__ import annotations

import json
import uuid
from typing import List, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .errors import LLMSchemaError, LLMValidationError

T = TypeVar('T', bound=BaseModel)

BAND_MIN = 0.0
BAND_MAX = 9.0


def _snap_band(value: float) -> float:
    if value < BAND_MIN or value > BAND_MAX:
        raise ValueError(f'band must be between {BAND_MIN} and {BAND_MAX}, got {value}')
    return round(value * 2) / 2


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Sentence(WireModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    vietnamese: str = Field(..., min_length=1)
    topic: str
    target_band: str
    hint: str
    key_structures: List[str]

    @field_validator('target_band', mode='before')
    @classmethod
    def band_as_label(cls, value):
        # models sometimes echo the band back as a number
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return f'{float(value):.1f}'
        return value


class CriterionScore(WireModel):
    band: float
    comment: str

    @field_validator('band')
    @classmethod
    def snap_band(cls, value: float) -> float:
        return _snap_band(value)


class CriteriaScores(WireModel):
    lexical_resource: CriterionScore
    grammatical_range: CriterionScore
    coherence: CriterionScore
    task_achievement: CriterionScore


class Issue(WireModel):
    word: str
    criterion: str
    reason: str


class Alternative(WireModel):
    word: str
    pos: str
    meaning: str
    example: str
    meaning_vi: str
    band_level: str


class Upgrade(WireModel):
    original: str
    context: str
    alternatives: List[Alternative] = Field(..., min_length=1)


class Feedback(WireModel):
    overall_band: float
    criteria: CriteriaScores
    good_points: List[str]
    issues: List[Issue]
    upgrades: List[Upgrade]
    improved_sentence: str
    explanation: str

    @field_validator('overall_band')
    @classmethod
    def snap_overall_band(cls, value: float) -> float:
        return _snap_band(value)


def parse_payload(model: Type[T], text: str) -> T:
    """Decode ``text`` as JSON and validate it against ``model``.

    Raises ``LLMValidationError`` for unparseable text and ``LLMSchemaError``
    when required fields are missing or malformed.
    """
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise LLMValidationError(f'Response is not valid JSON: {e}', raw=text) from e
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise LLMSchemaError(f'{model.__name__} schema mismatch: {e.error_count()} error(s)', raw=text) from e
