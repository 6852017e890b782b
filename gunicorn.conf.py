import os

bind = f"0.0.0.0:{os.getenv('PORT', '10000')}"
workers = int(os.getenv('GUNICORN_WORKERS', '2'))
threads = int(os.getenv('GUNICORN_THREADS', '4'))
worker_class = os.getenv('GUNICORN_WORKER_CLASS', 'gthread')
# /chat makes two model calls, each with up to three attempts
timeout = int(os.getenv('GUNICORN_TIMEOUT', '180'))
graceful_timeout = 30
keepalive = 5
max_requests = 1000
max_requests_jitter = 50
accesslog = '-'
errorlog = '-'
loglevel = os.getenv('GUNICORN_LOG_LEVEL', 'info')
wsgi_app = 'app:create_app()'
