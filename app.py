"""
Feedback Copilot - Flask Application
Routes for feedback ingest, the chat copilot, and the read-only dashboard
"""

import html
import os
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from logging.handlers import RotatingFileHandler

import bleach
import sentry_sdk
from flask import (
    Blueprint,
    Flask,
    abort,
    current_app,
    flash,
    jsonify,
    redirect,
    render_template,
    request,
    url_for,
)
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager, UserMixin, login_required
from flask_wtf.csrf import CSRFProtect
from sentry_sdk.integrations.celery import CeleryIntegration
from sentry_sdk.integrations.flask import FlaskIntegration

from config import Config
from services.answer import ANSWER_FORMATS
from services.copilot import answer_query
from services.inference import WorkersAIClient
from services.store import FeedbackStore, parse_timestamp
from tasks import SAMPLE_SOURCE, celery_init_app, queue_feedback, random_sample

MAX_SOURCE_LENGTH = 120
CF_ACCESS_HEADER = 'Cf-Access-Authenticated-User-Email'

csrf = CSRFProtect()
login_manager = LoginManager()
limiter = Limiter(
    key_func=get_remote_address,
    strategy='fixed-window',
    default_limits=["2000 per day", "500 per hour"],
)

bp = Blueprint('copilot', __name__)


@dataclass
class AppServices:
    """External handles shared by request handlers and Celery tasks."""

    store: FeedbackStore
    inference: object


class Operator(UserMixin):
    """Identity asserted by the upstream access proxy."""

    def __init__(self, email):
        self.id = email
        self.email = email


@login_manager.request_loader
def load_operator_from_request(req):
    email = req.headers.get(current_app.config['AUTH_HEADER']) or req.headers.get(CF_ACCESS_HEADER)
    if email and email.strip():
        return Operator(email.strip())
    return None


@login_manager.unauthorized_handler
def unauthorized():
    if request.path.startswith('/chat') or request.is_json:
        return jsonify({'error': 'Unauthorized'}), 401
    return 'Unauthorized', 401


@limiter.request_filter
def _rate_limit_exempt_for_tests():
    return current_app.config.get('TESTING', False)


def _services():
    return current_app.extensions['copilot']


def plain_text(value):
    """Strip markup but keep the characters the user typed; templates escape on output."""
    return html.unescape(bleach.clean(value, tags=[], strip=True))


def gravity_level(score):
    """Dashboard badge level for a gravity score."""
    score = score or 0
    if score >= 20:
        return 'critical'
    if score >= 10:
        return 'high'
    if score >= 5:
        return 'medium'
    return 'low'


# ===== UI ROUTES =====

@bp.route('/')
def root():
    return redirect(url_for('copilot.chat_ui'))


@bp.route('/app')
@login_required
def chat_ui():
    """Chat UI with a short list of the highest-gravity items."""
    items = _services().store.top(limit=current_app.config['APP_QUICKLIST_LIMIT'])
    return render_template('app.html', items=items)


@bp.route('/dashboard')
@login_required
def dashboard():
    items = _services().store.top(limit=current_app.config['DASHBOARD_LIMIT'])
    return render_template('dashboard.html', items=items)


@bp.route('/feedback/<feedback_id>/close', methods=['POST'])
@login_required
def close_feedback(feedback_id):
    item = _services().store.close_item(feedback_id)
    if item is None:
        abort(404)
    current_app.logger.info('Feedback %s closed', feedback_id)
    flash('Issue closed.', 'success')
    return redirect(url_for('copilot.dashboard'))


# ===== API ROUTES =====

@bp.route('/ingest', methods=['POST'])
@csrf.exempt
@limiter.limit(lambda: current_app.config['INGEST_RATE_LIMIT'])
def ingest():
    """Queue a submission for background enrichment and acknowledge at once."""
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        body = {}

    text = body.get('text')
    source = body.get('source')
    if not isinstance(text, str) or not text.strip():
        if not current_app.config['INGEST_SAMPLE_FALLBACK']:
            return jsonify({'error': 'text is required'}), 400
        text = random_sample()
        source = SAMPLE_SOURCE

    max_length = current_app.config['MAX_FEEDBACK_LENGTH']
    if len(text) > max_length:
        return jsonify({'error': f'text must be at most {max_length} characters'}), 400

    source = source.strip()[:MAX_SOURCE_LENGTH] if isinstance(source, str) and source.strip() else 'api'

    created_at = None
    if body.get('created_at') is not None:
        try:
            created_at = parse_timestamp(str(body['created_at']))
        except ValueError:
            return jsonify({'error': 'created_at must be an ISO-8601 timestamp'}), 400

    result = queue_feedback(plain_text(text.strip()), plain_text(source), created_at)
    current_app.logger.info('Queued feedback from source=%s task=%s', source, result.id)
    return jsonify({'ok': True, 'started': True, 'task_id': result.id}), 202


@bp.route('/chat', methods=['POST'])
@csrf.exempt
@login_required
@limiter.limit(lambda: current_app.config['CHAT_RATE_LIMIT'])
def chat():
    """Answer a natural-language question about stored feedback."""
    body = request.get_json(silent=True)
    query = body.get('query') if isinstance(body, dict) else None
    services = _services()
    payload = answer_query(
        query,
        services.inference,
        services.store,
        model=current_app.config['AI_MODEL'],
        answer_format=current_app.config['CHAT_ANSWER_FORMAT'],
        retries=current_app.config['AI_MAX_RETRIES'],
        backoff_s=current_app.config['AI_RETRY_BACKOFF'],
    )
    return jsonify(payload)


@bp.route('/health')
def health():
    return jsonify({'status': 'ok', 'service': 'feedback-copilot'}), 200


# ===== ERROR HANDLERS =====

def rate_limited(error):
    reset_ts = int((datetime.now(timezone.utc) + timedelta(minutes=1)).timestamp())
    resp = jsonify({'error': 'Too many requests', 'detail': str(getattr(error, 'description', ''))})
    resp.status_code = 429
    resp.headers['X-RateLimit-Reset'] = str(reset_ts)
    return resp


def not_found(error):
    return jsonify({'error': 'not found'}), 404


def internal_error(error):
    current_app.logger.exception('Unhandled server error: %s', error)
    return jsonify({'error': 'internal server error'}), 500


# ===== APPLICATION FACTORY =====

def configure_logging(app):
    os.makedirs(app.config.get('LOG_DIR', 'logs'), exist_ok=True)
    file_handler = RotatingFileHandler(
        os.path.join(app.config.get('LOG_DIR', 'logs'), 'app.log'),
        maxBytes=5 * 1024 * 1024,
        backupCount=5,
        delay=True,
    )
    file_handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s'))
    for logger in (app.logger, logging.getLogger('services'), logging.getLogger('tasks')):
        logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))
        if not any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
            logger.addHandler(file_handler)


def create_app(overrides=None, store=None, inference=None):
    """Build the Flask app. `store` and `inference` default to the configured SQLite file and Workers AI."""
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)
    app.config['LOGIN_DISABLED'] = not app.config.get('AUTH_REQUIRED', True)

    if app.config['CHAT_ANSWER_FORMAT'] not in ANSWER_FORMATS:
        raise RuntimeError(f"CHAT_ANSWER_FORMAT must be one of {', '.join(ANSWER_FORMATS)}")

    configure_logging(app)

    if app.config.get('SENTRY_DSN'):
        sentry_sdk.init(
            dsn=app.config.get('SENTRY_DSN'),
            integrations=[FlaskIntegration(), CeleryIntegration()],
            traces_sample_rate=app.config.get('SENTRY_TRACES_SAMPLE_RATE', 0.1),
        )

    if store is None:
        store = FeedbackStore(app.config['DATABASE_PATH'])
    if inference is None:
        inference = WorkersAIClient(
            app.config.get('CF_ACCOUNT_ID'),
            app.config.get('CF_API_TOKEN'),
            base_url=app.config['WORKERS_AI_BASE_URL'],
            timeout=app.config['AI_TIMEOUT'],
        )
    store.init_db()
    app.extensions['copilot'] = AppServices(store=store, inference=inference)

    csrf.init_app(app)
    limiter.init_app(app)
    login_manager.init_app(app)
    celery_init_app(app)

    app.jinja_env.filters['gravity_level'] = gravity_level

    @app.context_processor
    def inject_current_year():
        return {"current_year": datetime.now(timezone.utc).year}

    app.register_blueprint(bp)
    app.register_error_handler(404, not_found)
    app.register_error_handler(429, rate_limited)
    app.register_error_handler(500, internal_error)
    return app


# ===== APPLICATION ENTRY POINT =====

if __name__ == '__main__':
    application = create_app()
    port = int(os.environ.get('PORT', 5000))
    application.run(host='0.0.0.0', port=port, debug=application.config['DEBUG'])
