import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from services.store import STATUS_CLOSED, FeedbackItem, FeedbackStore, format_timestamp, parse_timestamp

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def store(tmp_path):
    s = FeedbackStore(str(tmp_path / 'feedback.db'))
    s.init_db()
    return s


def make_item(content='export button missing', **kwargs):
    fields = dict(
        content=content,
        source='api',
        sentiment=-0.4,
        category='UX',
        explanation='Cannot find export.',
        gravity_score=4.0,
        created_at=format_timestamp(NOW),
    )
    fields.update(kwargs)
    return FeedbackItem(**fields)


def test_timestamps_are_utc_seconds():
    local = datetime(2026, 3, 1, 14, 30, 15, 999, tzinfo=timezone(timedelta(hours=2)))
    assert format_timestamp(local) == '2026-03-01T12:30:15+00:00'
    assert parse_timestamp('2026-03-01T12:30:15Z') == datetime(2026, 3, 1, 12, 30, 15, tzinfo=timezone.utc)
    assert parse_timestamp('2026-03-01T12:30:15').tzinfo is not None


def test_unknown_category_rejected():
    with pytest.raises(ValueError):
        make_item(category='Praise')


def test_insert_and_get(store):
    item = make_item()
    store.insert(item)
    row = store.get(item.id)
    assert row['content'] == 'export button missing'
    assert row['status'] == 'open'
    assert row['closed_at'] is None
    assert store.get('missing') is None


def test_duplicate_id_raises_integrity_error(store):
    item = make_item()
    store.insert(item)
    with pytest.raises(sqlite3.IntegrityError):
        store.insert(item)


def test_top_orders_by_gravity_then_recency(store):
    older = make_item('older', gravity_score=5.0, created_at=format_timestamp(NOW - timedelta(hours=3)))
    newer = make_item('newer', gravity_score=5.0)
    low = make_item('low', gravity_score=0.5)
    high = make_item('high', gravity_score=20.0)
    for item in (older, newer, low, high):
        store.insert(item)
    assert [row['content'] for row in store.top(limit=3)] == ['high', 'newer', 'older']


def test_close_is_idempotent(store):
    item = make_item()
    store.insert(item)
    first = store.close_item(item.id, closed_at=NOW)
    second = store.close_item(item.id, closed_at=NOW + timedelta(hours=1))
    assert first['status'] == STATUS_CLOSED
    assert second['closed_at'] == first['closed_at'] == format_timestamp(NOW)
    assert store.close_item('missing') is None


def test_init_db_adds_lifecycle_columns(tmp_path):
    path = str(tmp_path / 'legacy.db')
    conn = sqlite3.connect(path)
    conn.execute('''CREATE TABLE feedback (id TEXT PRIMARY KEY, source TEXT, content TEXT NOT NULL, sentiment REAL,
                    category TEXT, explanation TEXT, gravity_score REAL, created_at TEXT NOT NULL)''')
    conn.execute("INSERT INTO feedback VALUES ('a', 'api', 'old row', 0.1, 'Other', 'x', 0.5, '2026-01-01T00:00:00+00:00')")
    conn.commit()
    conn.close()

    store = FeedbackStore(path)
    store.init_db()
    row = store.get('a')
    assert row['status'] == 'open'
    assert row['closed_at'] is None
