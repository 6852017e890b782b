"""Natural-language query -> one of the fixed feedback query intents."""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field

from services.extraction import EMPTY_RESPONSE, INVALID_SHAPE, MODEL_UNAVAILABLE, Outcome, extract_json_object
from services.inference import DEFAULT_MODEL, InferenceError, build_messages, generate

logger = logging.getLogger(__name__)

INTENTS = ('top_issues', 'bugs_recent', 'search', 'summary', 'issue_drilldown', 'help')

INTENT_PROMPT = """You are an intent router for a Product Feedback Copilot.
Your only job is to read the user's message and output a SINGLE valid JSON object that matches the schema below exactly. Do not include any other text.

Schema:
{
  "intent": "top_issues" | "bugs_recent" | "search" | "summary" | "issue_drilldown" | "help",
  "params": { "hours": number, "days": number, "term": string, "id": string }
}

Rules:
- Always output JSON only. No markdown, no explanations.
- Use only the intents listed. If request does not match, use "help".
- params must include ALL keys: hours, days, term, id.
- If not applicable: hours=0, days=0, term="", id="".
- Interpret time phrases:
  - today => hours=24
  - last day/past day/yesterday => hours=24
  - last 6 hours => hours=6
  - this week/last week/past week => days=7
- Prefer hours if both mentioned, unless the user explicitly wants a weekly summary.
- Map intent:
  - top_issues: highest priority/highest pull/most urgent
  - bugs_recent: bugs/breakages in recent window (default 24h if unspecified)
  - search: keyword mentions (extract term)
  - summary: trend summary (default days=7)
  - issue_drilldown: specific issue id (extract id)
  - help: capabilities/ambiguous
- If user says show me everything: top_issues."""


@dataclass(frozen=True)
class QueryParams:
    hours: int = 0
    days: int = 0
    term: str = ''
    id: str = ''


@dataclass(frozen=True)
class IntentQuery:
    intent: str = 'help'
    params: QueryParams = field(default_factory=QueryParams)

    def to_dict(self):
        return asdict(self)


HELP_INTENT = IntentQuery()


def _non_negative_int(value):
    if isinstance(value, bool):
        return 0
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return 0
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return 0
    return max(0, int(value))


def _text(value):
    if value is None or isinstance(value, (dict, list)):
        return ''
    return str(value).strip()


def parse_intent(data: dict) -> Outcome:
    if 'intent' not in data or 'params' not in data:
        return Outcome.fallback(INVALID_SHAPE, HELP_INTENT)

    intent, params = data['intent'], data['params']
    if intent not in INTENTS or not isinstance(params, dict):
        return Outcome.fallback(INVALID_SHAPE, HELP_INTENT)

    return Outcome(IntentQuery(
        intent=intent,
        params=QueryParams(
            hours=_non_negative_int(params.get('hours', 0)),
            days=_non_negative_int(params.get('days', 0)),
            term=_text(params.get('term')),
            id=_text(params.get('id')),
        ),
    ))


def route_intent(query, inference, *, model: str = DEFAULT_MODEL, retries: int = 2, backoff_s: float = 1.0) -> Outcome:
    """Map a user question to an IntentQuery; any failure resolves to `help`."""
    if not isinstance(query, str) or not query.strip():
        return Outcome.fallback(EMPTY_RESPONSE, HELP_INTENT)

    try:
        raw = generate(inference, model, build_messages(INTENT_PROMPT, query), retries=retries, backoff_s=backoff_s)
    except InferenceError as exc:
        logger.warning('Intent router model unavailable: %s', exc)
        return Outcome.fallback(MODEL_UNAVAILABLE, HELP_INTENT)

    extracted = extract_json_object(raw)
    if extracted.is_fallback:
        return Outcome.fallback(extracted.fallback_reason, HELP_INTENT)
    return parse_intent(extracted.value)
