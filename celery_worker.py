"""
Celery worker entry point for the enrichment workflow.

Usage (dev):
  export CELERY_BROKER_URL=redis://localhost:6379/0
  celery -A celery_worker.celery_app worker -l info

The worker builds the same Flask app as the web process so tasks share its
store and inference handles.
"""

from app import create_app

flask_app = create_app()
celery_app = flask_app.extensions['celery']
