"""Best-effort extraction of a JSON object from free-form model text."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Optional

MODEL_UNAVAILABLE = 'model_unavailable'
EMPTY_RESPONSE = 'empty_response'
NO_JSON = 'no_json'
INVALID_JSON = 'invalid_json'
INVALID_SHAPE = 'invalid_shape'

_FENCE_RE = re.compile(r'```[a-zA-Z]*')
_OBJECT_RE = re.compile(r'\{[\s\S]*\}')


@dataclass(frozen=True)
class Outcome:
    """Either a parsed value or a named reason for using a default instead."""

    value: Any
    fallback_reason: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        return self.fallback_reason is not None

    @classmethod
    def fallback(cls, reason: str, default: Any = None) -> 'Outcome':
        return cls(value=default, fallback_reason=reason)


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub('', text).strip()


def extract_json_object(text: Optional[str]) -> Outcome:
    if not isinstance(text, str) or not text.strip():
        return Outcome.fallback(EMPTY_RESPONSE)

    match = _OBJECT_RE.search(strip_code_fences(text))
    if not match:
        return Outcome.fallback(NO_JSON)

    try:
        parsed = json.loads(match.group(0))
    except (TypeError, json.JSONDecodeError):
        return Outcome.fallback(INVALID_JSON)

    if not isinstance(parsed, dict):
        return Outcome.fallback(INVALID_SHAPE)
    return Outcome(parsed)
