"""Executes a routed intent as one fixed lookup over stored feedback."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from services.intent import IntentQuery

logger = logging.getLogger(__name__)

RESULT_LIMIT = 10
SUMMARY_LIMIT = 50
DEFAULT_BUG_WINDOW_HOURS = 24
DEFAULT_SUMMARY_DAYS = 7
MAX_WINDOW_DAYS = 3650
MAX_WINDOW_HOURS = MAX_WINDOW_DAYS * 24


def execute_intent(intent_query: IntentQuery, store, now: Optional[datetime] = None) -> List[dict]:
    """Return the rows for `intent_query`; `help` issues no query."""
    now = now or datetime.now(timezone.utc)
    intent, params = intent_query.intent, intent_query.params

    if intent == 'top_issues':
        rows = store.top(limit=RESULT_LIMIT)
    elif intent == 'bugs_recent':
        hours = min(params.hours or DEFAULT_BUG_WINDOW_HOURS, MAX_WINDOW_HOURS)
        rows = store.recent_by_category('Bug', now - timedelta(hours=hours), limit=RESULT_LIMIT)
    elif intent == 'search':
        rows = store.search(params.term, limit=RESULT_LIMIT) if params.term else []
    elif intent == 'summary':
        days = min(params.days or DEFAULT_SUMMARY_DAYS, MAX_WINDOW_DAYS)
        rows = store.created_since(now - timedelta(days=days), limit=SUMMARY_LIMIT)
    elif intent == 'issue_drilldown':
        row = store.get(params.id) if params.id else None
        rows = [row] if row else []
    else:
        rows = []

    logger.info('Intent %s returned %d rows', intent, len(rows))
    return rows
