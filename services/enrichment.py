"""AI enrichment of a single feedback submission."""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass

from services.extraction import INVALID_SHAPE, MODEL_UNAVAILABLE, Outcome, extract_json_object
from services.inference import DEFAULT_MODEL, InferenceError, build_messages, generate
from services.scoring import CATEGORIES

logger = logging.getLogger(__name__)

ENRICHMENT_PROMPT = """You analyze raw user feedback and return STRICT JSON only.

Return exactly this schema:
{ "sentiment": number, "category": "Bug" | "UX" | "Feature" | "Other", "explanation": string }

Rules:
- Output JSON only. No markdown.
- sentiment must be between -1 and 1.
- category:
  - Bug: broken/errors/crashes/regressions/can't log in/failures
  - UX: confusing UI/slow/hard to find/friction/unclear flow
  - Feature: new capability/integration/API/export/filters
  - Other: praise/general comments/pricing with no concrete ask
- explanation: 1 sentence, max 18 words.
- If both bug and feature request appear, choose Bug.
- If mostly negative but not broken, choose UX."""


@dataclass(frozen=True)
class Analysis:
    sentiment: float
    category: str
    explanation: str

    def to_dict(self):
        return asdict(self)


FALLBACK_ANALYSIS = Analysis(sentiment=0.0, category='Other', explanation='Failed to analyze')


def _coerce_sentiment(value):
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return None
    return max(-1.0, min(1.0, float(value)))


def parse_analysis(data: dict) -> Outcome:
    """Validate a decoded model object into an Analysis."""
    sentiment = _coerce_sentiment(data.get('sentiment'))
    if sentiment is None:
        return Outcome.fallback(INVALID_SHAPE, FALLBACK_ANALYSIS)

    category = data.get('category')
    if category not in CATEGORIES:
        category = 'Other'

    explanation = data.get('explanation')
    explanation = '' if explanation is None else str(explanation).strip()
    return Outcome(Analysis(sentiment=sentiment, category=category, explanation=explanation))


def analyze_feedback(content: str, inference, *, model: str = DEFAULT_MODEL, retries: int = 2, backoff_s: float = 1.0) -> Outcome:
    """
    Classify one feedback item. Never raises for model problems: the
    fallback analysis is returned with the reason attached.
    """
    try:
        raw = generate(inference, model, build_messages(ENRICHMENT_PROMPT, content), retries=retries, backoff_s=backoff_s)
    except InferenceError as exc:
        logger.warning('Enrichment model unavailable, using fallback: %s', exc)
        return Outcome.fallback(MODEL_UNAVAILABLE, FALLBACK_ANALYSIS)

    extracted = extract_json_object(raw)
    if extracted.is_fallback:
        logger.info('Enrichment output unparsable (%s), using fallback', extracted.fallback_reason)
        return Outcome.fallback(extracted.fallback_reason, FALLBACK_ANALYSIS)

    outcome = parse_analysis(extracted.value)
    if outcome.is_fallback:
        logger.info('Enrichment output has wrong shape, using fallback')
    return outcome
