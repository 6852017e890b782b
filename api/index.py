"""
Vercel serverless entry point for Feedback Copilot.

NOTE ON SQLITE + VERCEL:
Vercel's serverless functions use an ephemeral (read-only) filesystem except
for /tmp. Point DATABASE_PATH at /tmp/feedback.db only for evaluating the UI;
data is lost on cold starts.

Enrichment runs in a Celery worker, which cannot live inside the function.
Point CELERY_BROKER_URL at a hosted Redis and run the worker elsewhere
(Railway, Render, Fly.io, a VPS), or set CELERY_TASK_ALWAYS_EAGER=1 to
enrich inline during the ingest request.
"""

import sys
import os

# Make the project root importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app

# The @vercel/python runtime calls app(environ, start_response) directly
app = create_app()
