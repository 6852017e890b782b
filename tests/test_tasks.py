import os
import tempfile

import pytest

from services.enrichment import ENRICHMENT_PROMPT
from tasks import SAMPLE_FEEDBACK, queue_feedback, random_sample, store_feedback

ANALYSIS = {'sentiment': -0.5, 'category': 'Bug', 'explanation': 'Crash on upload.'}


@pytest.fixture
def app(routed):
    from app import create_app

    db_fd, db_path = tempfile.mkstemp()
    app = create_app(
        {
            'DATABASE_PATH': db_path,
            'TESTING': True,
            'LOG_DIR': tempfile.mkdtemp(),
            'AI_RETRY_BACKOFF': 0,
            'CELERY': {'broker_url': 'memory://', 'task_always_eager': True, 'task_eager_propagates': True},
        },
        inference=routed({ENRICHMENT_PROMPT: '{"sentiment": 0.8, "category": "Feature", "explanation": "Wants dark mode."}'}),
    )
    yield app
    os.close(db_fd)
    os.unlink(db_path)


def test_random_sample_is_from_pool():
    assert random_sample() in SAMPLE_FEEDBACK


def test_queue_feedback_runs_enrich_then_store(app):
    with app.app_context():
        queue_feedback('please add dark mode support', 'email')
    [row] = app.extensions['copilot'].store.top()
    assert row['category'] == 'Feature'
    assert row['source'] == 'email'
    assert row['gravity_score'] == 8.0


def test_duplicate_store_delivery_keeps_one_row(app):
    payload = {'content': 'app crashes when I upload large images', 'source': 'api',
               'created_at': '2026-03-01T12:00:00+00:00'}
    with app.app_context():
        store_feedback.apply(args=('fixed-id', payload, ANALYSIS)).get()
        store_feedback.apply(args=('fixed-id', payload, ANALYSIS)).get()
    rows = app.extensions['copilot'].store.top()
    assert [row['id'] for row in rows] == ['fixed-id']
