"""SQLite persistence for enriched feedback items."""

from __future__ import annotations

import sqlite3
import uuid
from contextlib import closing
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from services.scoring import CATEGORIES

STATUS_OPEN = 'open'
STATUS_CLOSED = 'closed'

_COLUMNS = (
    'id', 'content', 'source', 'sentiment', 'category', 'explanation',
    'gravity_score', 'created_at', 'status', 'closed_at',
)


def format_timestamp(value: datetime) -> str:
    """UTC ISO-8601 at seconds precision, so stored values compare as strings."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec='seconds')


def parse_timestamp(value: str) -> datetime:
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass
class FeedbackItem:
    content: str
    source: str
    sentiment: float
    category: str
    explanation: str
    gravity_score: float
    created_at: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: str = STATUS_OPEN
    closed_at: Optional[str] = None

    def __post_init__(self):
        if self.category not in CATEGORIES:
            raise ValueError(f'Unknown category: {self.category}')

    def to_dict(self):
        return asdict(self)


class FeedbackStore:
    """Thin wrapper over the `feedback` table. One connection per call."""

    def __init__(self, database_path: str):
        self.database_path = database_path

    def connect(self):
        conn = sqlite3.connect(self.database_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self):
        """Create the feedback table and indexes, migrating older schemas."""
        with closing(self.connect()) as conn:
            c = conn.cursor()
            c.execute('''
                CREATE TABLE IF NOT EXISTS feedback (
                    id TEXT PRIMARY KEY,
                    source TEXT,
                    content TEXT NOT NULL,
                    sentiment REAL NOT NULL DEFAULT 0,
                    category TEXT NOT NULL DEFAULT 'Other',
                    explanation TEXT,
                    gravity_score REAL NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    status TEXT DEFAULT 'open',
                    closed_at TEXT
                )
            ''')

            # Migration: lifecycle columns were added after the first schema
            c.execute('PRAGMA table_info(feedback)')
            columns = [col[1] for col in c.fetchall()]
            if 'status' not in columns:
                c.execute("ALTER TABLE feedback ADD COLUMN status TEXT DEFAULT 'open'")
            if 'closed_at' not in columns:
                c.execute('ALTER TABLE feedback ADD COLUMN closed_at TEXT')

            c.execute('CREATE INDEX IF NOT EXISTS idx_feedback_gravity ON feedback(gravity_score)')
            c.execute('CREATE INDEX IF NOT EXISTS idx_feedback_created_at ON feedback(created_at)')
            c.execute('CREATE INDEX IF NOT EXISTS idx_feedback_category ON feedback(category)')
            conn.commit()

    def insert(self, item: FeedbackItem) -> str:
        row = item.to_dict()
        with closing(self.connect()) as conn:
            conn.execute(
                f'INSERT INTO feedback ({", ".join(_COLUMNS)}) VALUES ({", ".join("?" for _ in _COLUMNS)})',
                tuple(row[name] for name in _COLUMNS),
            )
            conn.commit()
        return item.id

    def _select(self, where: str = '', params=(), order_by: str = 'gravity_score DESC, created_at DESC', limit: int = 10) -> List[dict]:
        sql = f'SELECT {", ".join(_COLUMNS)} FROM feedback'
        if where:
            sql += f' WHERE {where}'
        if order_by:
            sql += f' ORDER BY {order_by}'
        sql += ' LIMIT ?'
        with closing(self.connect()) as conn:
            rows = conn.execute(sql, (*params, limit)).fetchall()
        return [dict(row) for row in rows]

    def get(self, item_id: str) -> Optional[dict]:
        rows = self._select('id = ?', (item_id,), order_by='', limit=1)
        return rows[0] if rows else None

    def top(self, limit: int = 10) -> List[dict]:
        return self._select(limit=limit)

    def recent_by_category(self, category: str, since: datetime, limit: int = 10) -> List[dict]:
        return self._select('category = ? AND created_at >= ?', (category, format_timestamp(since)), limit=limit)

    def search(self, term: str, limit: int = 10) -> List[dict]:
        escaped = term.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
        return self._select("content LIKE ? ESCAPE '\\'", (f'%{escaped}%',), limit=limit)

    def created_since(self, since: datetime, limit: int = 50) -> List[dict]:
        return self._select('created_at >= ?', (format_timestamp(since),), order_by='created_at DESC', limit=limit)

    def close_item(self, item_id: str, closed_at: Optional[datetime] = None) -> Optional[dict]:
        """Mark an item closed. Closing an already closed item keeps its first closed_at."""
        closed_at = format_timestamp(closed_at or datetime.now(timezone.utc))
        with closing(self.connect()) as conn:
            conn.execute(
                'UPDATE feedback SET status = ?, closed_at = ? WHERE id = ? AND status IS NOT ?',
                (STATUS_CLOSED, closed_at, item_id, STATUS_CLOSED),
            )
            conn.commit()
        return self.get(item_id)
