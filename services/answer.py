"""Grounded answers over the rows returned for a chat query."""

from __future__ import annotations

import json
import logging
from typing import List

from services.extraction import EMPTY_RESPONSE, INVALID_SHAPE, MODEL_UNAVAILABLE, Outcome, extract_json_object
from services.inference import DEFAULT_MODEL, InferenceError, build_messages, generate

logger = logging.getLogger(__name__)

TEXT_FORMAT = 'text'
STRUCTURED_FORMAT = 'structured'
ANSWER_FORMATS = (TEXT_FORMAT, STRUCTURED_FORMAT)

_GROUNDING_RULES = """You must answer using ONLY the provided data in TOOL_DATA. Do not invent issues, numbers, trends, or ids not present in TOOL_DATA.
If TOOL_DATA is empty, say you found no matching feedback and suggest a next query the PM could try.
Tone: concise, PM-friendly, action-oriented.
Do not mention SQL, databases, or internal tooling."""

TEXT_ANSWER_PROMPT = f"""You are a Product Feedback Copilot used by PMs.
{_GROUNDING_RULES}

Output format:
- Start with a 1-2 sentence summary.
- Then bullets of up to 5 items. Each bullet includes:
  gravity_score, category, source, created_at, short paraphrase, one suggested next step.
- End with one follow-up question to help next decision.
Do not output markdown tables."""

STRUCTURED_ANSWER_PROMPT = f"""You are a Product Feedback Copilot used by PMs.
{_GROUNDING_RULES}

Return STRICT JSON only, no markdown, matching exactly:
{{
  "headline": string,
  "stats": [{{ "label": string, "value": string }}],
  "issues": [{{ "id": string, "gravity_score": number, "category": string, "summary": string, "next_step": string }}],
  "follow_up": string
}}
- headline: 1 sentence summary.
- stats: up to 4 short chips (counts, top category, highest gravity).
- issues: up to 5 items ranked by gravity_score, ids copied exactly from TOOL_DATA.
- follow_up: one question to help the next decision."""

TEXT_ERROR_ANSWER = "Sorry, I couldn't analyze the feedback right now. Please try again in a moment."

STRUCTURED_ERROR_ANSWER = {
    'headline': 'Error analyzing data',
    'stats': [],
    'issues': [],
    'follow_up': 'Try asking again in a moment.',
}

REFINEMENTS = {
    'top_issues': 'Try submitting some feedback first, then ask "what are the top issues?"',
    'bugs_recent': 'Try widening the window, e.g. "bugs from the last 7 days", or ask for the top issues.',
    'search': 'Try a shorter or different keyword, e.g. "search for login".',
    'summary': 'Try a longer period, e.g. "summarize the last 30 days".',
    'issue_drilldown': 'Check the issue id on the dashboard, or ask for the top issues to find it.',
}
DEFAULT_REFINEMENT = 'Try asking "what are the top issues?"'


def no_results_answer(intent: str, answer_format: str = TEXT_FORMAT) -> dict:
    suggestion = REFINEMENTS.get(intent, DEFAULT_REFINEMENT)
    if answer_format == STRUCTURED_FORMAT:
        return {
            'headline': 'No matching feedback found.',
            'stats': [{'label': 'Matches', 'value': '0'}],
            'issues': [],
            'follow_up': suggestion,
        }
    return {'answer': f'I found no matching feedback for that question. {suggestion}'}


def error_answer(answer_format: str = TEXT_FORMAT) -> dict:
    if answer_format == STRUCTURED_FORMAT:
        return dict(STRUCTURED_ERROR_ANSWER, stats=[], issues=[])
    return {'answer': TEXT_ERROR_ANSWER}


def tool_message(query: str, rows: List[dict]) -> str:
    return f'User Query: {query}\nTOOL_DATA: {json.dumps(rows, default=str)}'


def parse_structured_answer(data: dict, rows: List[dict]) -> Outcome:
    """Validate a structured answer, dropping issue cards for unknown ids."""
    headline = data.get('headline')
    if not isinstance(headline, str) or not headline.strip():
        return Outcome.fallback(INVALID_SHAPE, error_answer(STRUCTURED_FORMAT))

    cards = data.get('issues')
    chips = data.get('stats')
    if not isinstance(cards, list):
        cards = []
    if not isinstance(chips, list):
        chips = []

    known = {row.get('id'): row for row in rows}
    issues = []
    for card in cards:
        if not isinstance(card, dict) or not isinstance(card.get('id'), str) or card['id'] not in known:
            continue
        row = known[card['id']]
        issues.append({
            'id': row['id'],
            'gravity_score': row.get('gravity_score'),
            'category': row.get('category'),
            'summary': str(card.get('summary') or row.get('explanation') or ''),
            'next_step': str(card.get('next_step') or ''),
        })

    stats = [
        {'label': str(chip.get('label', '')), 'value': str(chip.get('value', ''))}
        for chip in chips
        if isinstance(chip, dict)
    ]

    follow_up = data.get('follow_up')
    return Outcome({
        'headline': headline.strip(),
        'stats': stats,
        'issues': issues,
        'follow_up': follow_up.strip() if isinstance(follow_up, str) else '',
    })


def compose_answer(query: str, intent: str, rows: List[dict], inference, *, answer_format: str = TEXT_FORMAT,
                   model: str = DEFAULT_MODEL, retries: int = 2, backoff_s: float = 1.0) -> Outcome:
    if not rows:
        return Outcome(no_results_answer(intent, answer_format))

    structured = answer_format == STRUCTURED_FORMAT
    prompt = STRUCTURED_ANSWER_PROMPT if structured else TEXT_ANSWER_PROMPT
    try:
        raw = generate(inference, model, build_messages(prompt, tool_message(query, rows)), retries=retries, backoff_s=backoff_s)
    except InferenceError as exc:
        logger.warning('Answer model unavailable: %s', exc)
        return Outcome.fallback(MODEL_UNAVAILABLE, error_answer(answer_format))

    if not structured:
        if not raw or not raw.strip():
            return Outcome.fallback(EMPTY_RESPONSE, error_answer(answer_format))
        return Outcome({'answer': raw.strip()})

    extracted = extract_json_object(raw)
    if extracted.is_fallback:
        return Outcome.fallback(extracted.fallback_reason, error_answer(answer_format))
    return parse_structured_answer(extracted.value, rows)
