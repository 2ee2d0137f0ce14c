"""Named model-parameter presets, one per request kind."""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class RequestKind(str, Enum):
    GENERATE = 'generate'
    EVALUATE = 'evaluate'
    STREAM = 'stream'


class RequestConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    model: str = 'gpt-4o'
    temperature: float = Field(0.7, ge=0, le=2)
    system_message: Optional[str] = None
    max_tokens: int = Field(2000, gt=0)
    stop_sequences: Optional[Tuple[str, ...]] = None

    def with_model(self, model: str) -> 'RequestConfig':
        return self.model_copy(update={'model': model})

    def chat_body(self, prompt: str, stream: bool = False) -> Dict[str, Any]:
        messages = []
        if self.system_message:
            messages.append({'role': 'system', 'content': self.system_message})
        messages.append({'role': 'user', 'content': prompt})
        body: Dict[str, Any] = {
            'model': self.model,
            'messages': messages,
            'max_tokens': self.max_tokens,
            'temperature': self.temperature,
        }
        if self.stop_sequences:
            body['stop'] = list(self.stop_sequences)
        if stream:
            body['stream'] = True
        return body


_JSON_ONLY = 'Respond with a single valid JSON object only. No markdown, no code fences, no commentary.'

GENERATE = RequestConfig(
    temperature=0.9,
    max_tokens=600,
    system_message='You write natural Vietnamese practice sentences for IELTS translation drills. ' + _JSON_ONLY,
)

EVALUATE = RequestConfig(
    temperature=0.3,
    max_tokens=2000,
    system_message='You are a strict but encouraging IELTS examiner grading Vietnamese-to-English translations. ' + _JSON_ONLY,
)

STREAM = RequestConfig(
    temperature=0.7,
    max_tokens=800,
    system_message='You are a friendly IELTS writing tutor. Answer in plain prose.',
)

PRESETS = {
    RequestKind.GENERATE: GENERATE,
    RequestKind.EVALUATE: EVALUATE,
    RequestKind.STREAM: STREAM,
}


def preset_for(kind: RequestKind, model: Optional[str] = None) -> RequestConfig:
    config = PRESETS[RequestKind(kind)]
    return config.with_model(model) if model else config
