#!/usr/bin/env python3
"""Operator CLI for the feedback store."""

from __future__ import annotations

import argparse
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import Config
from services.store import FeedbackStore


def init_db(store: FeedbackStore):
    store.init_db()
    print(f"initialized={store.database_path}")


def show_top(store: FeedbackStore, limit: int):
    rows = store.top(limit=limit)
    if not rows:
        print("no_feedback")
        return
    for row in rows:
        print(f"{row['gravity_score']:>6.2f}  {row['category']:<8} {row['status']:<6} {row['id']}  {row['content'][:60]}")


def close_item(store: FeedbackStore, item_id: str):
    item = store.close_item(item_id)
    if item is None:
        print("feedback_not_found")
        return
    print(f"closed_at={item['closed_at']}")


def queue_samples(count: int):
    from app import create_app
    from tasks import SAMPLE_SOURCE, queue_feedback, random_sample

    app = create_app()
    with app.app_context():
        for _ in range(count):
            result = queue_feedback(random_sample(), SAMPLE_SOURCE)
            print(f"queued={result.id}")


def main():
    parser = argparse.ArgumentParser(description='Feedback Copilot admin utility')
    parser.add_argument('--database', default=Config.DATABASE_PATH)
    sub = parser.add_subparsers(dest='cmd', required=True)

    sub.add_parser('init-db')

    p_top = sub.add_parser('top')
    p_top.add_argument('--limit', type=int, default=10)

    p_close = sub.add_parser('close')
    p_close.add_argument('--id', required=True)

    p_samples = sub.add_parser('queue-samples')
    p_samples.add_argument('--count', type=int, default=5)

    args = parser.parse_args()
    store = FeedbackStore(args.database)

    if args.cmd == 'init-db':
        init_db(store)
    elif args.cmd == 'top':
        show_top(store, args.limit)
    elif args.cmd == 'close':
        close_item(store, args.id)
    elif args.cmd == 'queue-samples':
        queue_samples(args.count)


if __name__ == '__main__':
    main()
