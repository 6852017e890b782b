"""Chat pipeline: intent routing -> lookup -> grounded answer."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from services.answer import STRUCTURED_FORMAT, TEXT_FORMAT, compose_answer
from services.inference import DEFAULT_MODEL
from services.intent import route_intent
from services.queries import execute_intent

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "I can answer questions about submitted feedback. Try:\n"
    "- What are the top issues right now?\n"
    "- Any bugs in the last 6 hours?\n"
    "- Search feedback for \"export\"\n"
    "- Summarize this week's feedback\n"
    "- Tell me about issue <id>"
)


def help_answer(answer_format: str = TEXT_FORMAT) -> dict:
    if answer_format == STRUCTURED_FORMAT:
        lines = HELP_TEXT.splitlines()
        return {
            'headline': lines[0],
            'stats': [],
            'issues': [],
            'follow_up': lines[1].lstrip('- '),
        }
    return {'answer': HELP_TEXT}


def answer_query(query, inference, store, *, model: str = DEFAULT_MODEL, answer_format: str = TEXT_FORMAT,
                 retries: int = 2, backoff_s: float = 1.0, now: Optional[datetime] = None) -> dict:
    routed = route_intent(query, inference, model=model, retries=retries, backoff_s=backoff_s)
    if routed.is_fallback:
        logger.info('Intent routing fell back to help: %s', routed.fallback_reason)
    intent_query = routed.value

    if intent_query.intent == 'help':
        return dict(help_answer(answer_format), intent='help', rows=[])

    rows = execute_intent(intent_query, store, now=now)
    composed = compose_answer(
        query, intent_query.intent, rows, inference,
        answer_format=answer_format, model=model, retries=retries, backoff_s=backoff_s,
    )
    if composed.is_fallback:
        logger.warning('Answer composer fell back for intent %s: %s', intent_query.intent, composed.fallback_reason)

    return dict(composed.value, intent=intent_query.intent, rows=rows)
