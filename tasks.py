"""
Background enrichment workflow.

A submission is processed in two Celery tasks, each its own retry unit:
  feedback.enrich  - model classification (falls back locally, never fails on model errors)
  feedback.store   - gravity scoring and persistence (retried on SQLite lock errors)

Worker (dev):
  celery -A celery_worker.celery_app worker -l info
"""

from __future__ import annotations

import logging
import random
import sqlite3
import uuid
from datetime import datetime, timezone

from celery import Celery, Task, shared_task
from flask import current_app

from services.enrichment import analyze_feedback
from services.scoring import compute_gravity_score
from services.store import FeedbackItem, format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

SAMPLE_FEEDBACK = [
    "login completely broken fix it!!!",
    "I love the new dashboard, very clean",
    "where is the export button? cant find it",
    "app crashes when I upload large images",
    "pricing page is confusing as hell",
    "please add dark mode support",
    "api returns 500 error on tuesdays",
    "documentation link is broken",
    "best tool I've used all year",
    "loading takes forever on my phone",
    "can I invite more than 5 users?",
    "delete my account immediately",
]
SAMPLE_SOURCE = 'random-generator'


def celery_init_app(app):
    """Bind a Celery instance to `app` so tasks run inside its app context."""

    class FlaskTask(Task):
        def __call__(self, *args, **kwargs):
            with app.app_context():
                return self.run(*args, **kwargs)

    celery_app = Celery(app.name, task_cls=FlaskTask)
    celery_app.config_from_object(app.config['CELERY'])
    celery_app.set_default()
    app.extensions['celery'] = celery_app
    return celery_app


def random_sample():
    return random.choice(SAMPLE_FEEDBACK)


def queue_feedback(content, source='api', created_at=None):
    """Queue one submission for enrichment and return the Celery result handle."""
    payload = {
        'content': content,
        'source': source or 'api',
        'created_at': format_timestamp(created_at or datetime.now(timezone.utc)),
    }
    return enrich_feedback.delay(payload)


@shared_task(bind=True, name='feedback.enrich', ignore_result=True)
def enrich_feedback(self, payload):
    services = current_app.extensions['copilot']
    outcome = analyze_feedback(
        payload['content'],
        services.inference,
        model=current_app.config['AI_MODEL'],
        retries=current_app.config['AI_MAX_RETRIES'],
        backoff_s=current_app.config['AI_RETRY_BACKOFF'],
    )
    if outcome.is_fallback:
        logger.warning('Feedback enriched with fallback analysis (%s)', outcome.fallback_reason)

    feedback_id = str(uuid.uuid4())
    store_feedback.delay(feedback_id, payload, outcome.value.to_dict())
    return feedback_id


@shared_task(
    bind=True,
    name='feedback.store',
    autoretry_for=(sqlite3.OperationalError,),
    retry_backoff=True,
    max_retries=5,
)
def store_feedback(self, feedback_id, payload, analysis):
    services = current_app.extensions['copilot']
    now = datetime.now(timezone.utc)
    created = parse_timestamp(payload['created_at']) if payload.get('created_at') else now

    item = FeedbackItem(
        id=feedback_id,
        content=payload['content'],
        source=payload.get('source') or 'api',
        sentiment=analysis['sentiment'],
        category=analysis['category'],
        explanation=analysis['explanation'],
        gravity_score=compute_gravity_score(analysis['sentiment'], analysis['category'], created, now),
        created_at=format_timestamp(created),
    )
    try:
        services.store.insert(item)
    except sqlite3.IntegrityError:
        logger.info('Feedback %s already stored, skipping duplicate delivery', feedback_id)
        return feedback_id

    logger.info('Stored feedback %s category=%s gravity=%s', item.id, item.category, item.gravity_score)
    return item.id
