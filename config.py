"""
Configuration classes for the Feedback Copilot application
Loads settings from environment variables
"""

import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Application configuration"""

    # Flask
    SECRET_KEY = os.environ.get('SECRET_KEY')
    if not SECRET_KEY:
        raise RuntimeError("SECRET_KEY environment variable must be set")

    APP_ENV = os.environ.get('APP_ENV', 'production')
    DEBUG = os.environ.get('FLASK_ENV') == 'development' or os.environ.get('FLASK_DEBUG') == '1'

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.environ.get('SESSION_COOKIE_SAMESITE', 'Lax')
    SESSION_COOKIE_SECURE = os.environ.get('SESSION_COOKIE_SECURE', '1') == '1'

    # Database
    DATABASE_PATH = os.environ.get('DATABASE_PATH') or 'feedback.db'

    # Workers AI inference
    CF_ACCOUNT_ID = os.environ.get('CF_ACCOUNT_ID')
    CF_API_TOKEN = os.environ.get('CF_API_TOKEN')
    WORKERS_AI_BASE_URL = os.environ.get('WORKERS_AI_BASE_URL', 'https://api.cloudflare.com/client/v4')
    AI_MODEL = os.environ.get('AI_MODEL', '@cf/meta/llama-3-8b-instruct')
    AI_TIMEOUT = float(os.environ.get('AI_TIMEOUT', '30'))
    AI_MAX_RETRIES = int(os.environ.get('AI_MAX_RETRIES', '2'))
    AI_RETRY_BACKOFF = float(os.environ.get('AI_RETRY_BACKOFF', '1.0'))

    # Chat / ingest behaviour
    CHAT_ANSWER_FORMAT = os.environ.get('CHAT_ANSWER_FORMAT', 'text')
    INGEST_SAMPLE_FALLBACK = os.environ.get('INGEST_SAMPLE_FALLBACK', '0') == '1'
    MAX_FEEDBACK_LENGTH = int(os.environ.get('MAX_FEEDBACK_LENGTH', '5000'))
    DASHBOARD_LIMIT = int(os.environ.get('DASHBOARD_LIMIT', '50'))
    APP_QUICKLIST_LIMIT = int(os.environ.get('APP_QUICKLIST_LIMIT', '5'))

    # Access gate (header set by the upstream identity proxy)
    AUTH_REQUIRED = os.environ.get('AUTH_REQUIRED', '1') == '1'
    AUTH_HEADER = os.environ.get('AUTH_HEADER', 'X-Authenticated-User-Email')

    # Rate limiting
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')
    INGEST_RATE_LIMIT = os.environ.get('INGEST_RATE_LIMIT', '60 per minute')
    CHAT_RATE_LIMIT = os.environ.get('CHAT_RATE_LIMIT', '20 per minute')

    # Background enrichment queue
    CELERY = {
        'broker_url': os.environ.get('CELERY_BROKER_URL', 'redis://localhost:6379/0'),
        'result_backend': os.environ.get('CELERY_RESULT_BACKEND') or None,
        'task_ignore_result': True,
        'task_acks_late': True,
        'worker_prefetch_multiplier': 1,
        'task_always_eager': os.environ.get('CELERY_TASK_ALWAYS_EAGER', '0') == '1',
        'timezone': 'UTC',
        'enable_utc': True,
    }

    # Monitoring / logging
    SENTRY_DSN = os.environ.get('SENTRY_DSN')
    SENTRY_TRACES_SAMPLE_RATE = float(os.environ.get('SENTRY_TRACES_SAMPLE_RATE', '0.1'))
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_DIR = os.environ.get('LOG_DIR', 'logs')
