#!/usr/bin/env python3
"""
Flask web application for the News Curator platform.
Features: primary source aggregation/search, homepage spot layout, response caching,
rate limiting, security headers and CORS.
"""

from flask import Flask, Blueprint, jsonify, request, session, g, current_app
from werkzeug.middleware.proxy_fix import ProxyFix
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_caching import Cache
from flask_compress import Compress
import logging
import os
import secrets
import time
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Any, Dict, Optional, Sequence

import psutil  # For load shedding protection
import psycopg
from dotenv import load_dotenv

from database import ArticleDatabase, DatabaseError
from newscurator.contracts.categories import CategoryConfig, load_categories
from newscurator.layout.homepage import build_homepage
from newscurator.sources.aggregator import GROUPING_MODES, InvalidInput, PrimarySourceAggregator

# Load environment variables from .env file
load_dotenv()

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Load configuration from environment variables with fallbacks
DB_PATH = os.environ.get('DB_PATH', 'news_curator.db')
PG_DSN = os.environ.get('PG_DSN', '')
SOURCE_GROUPING = os.environ.get('SOURCE_GROUPING', 'raw').strip().lower()
CACHE_TIMEOUT = int(os.environ.get('CACHE_TIMEOUT', '300'))
ADMIN_API_TOKENS = [
    token.strip() for token in os.environ.get('ADMIN_API_TOKENS', '').split(',')
    if token.strip()
]

# Initialize extensions (bound to an app in create_app)
cache = Cache()
compress = Compress()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["1000 per day", "200 per hour"],
    storage_uri="memory://"
)

api = Blueprint('api', __name__, url_prefix='/api')

# =====================
# Load Shedding Protection
# =====================
LOAD_SHEDDING_ENABLED = os.environ.get('ENABLE_LOAD_SHEDDING', 'true').lower() != 'false'
LOAD_SHEDDING_CPU_THRESHOLD = int(os.environ.get('LOAD_SHEDDING_CPU_THRESHOLD', '95'))
LOAD_SHEDDING_COOLDOWN_SECONDS = int(os.environ.get('LOAD_SHEDDING_COOLDOWN_SECONDS', '5'))
LOAD_SHEDDING_EXEMPT_PATHS = {
    '/api/health',
}
_load_shedding_state = {'last_trigger': 0.0}


def check_server_load():
    """Shed write load if the server is overloaded; reads always go through."""
    if not LOAD_SHEDDING_ENABLED:
        return None
    if request.method in ('GET', 'HEAD', 'OPTIONS'):
        return None
    if request.path in LOAD_SHEDDING_EXEMPT_PATHS:
        return None

    try:
        # Non-blocking CPU check (interval=0)
        cpu_percent = psutil.cpu_percent(interval=0)
    except Exception as e:
        logger.error(f"Load check error: {e}")
        return None

    if cpu_percent >= LOAD_SHEDDING_CPU_THRESHOLD:
        now = time.time()
        if now - _load_shedding_state['last_trigger'] < LOAD_SHEDDING_COOLDOWN_SECONDS:
            logger.warning(f"[LOAD SHEDDING] CPU at {cpu_percent:.1f}% (cooldown hit)")
        else:
            _load_shedding_state['last_trigger'] = now
            logger.warning(f"[LOAD SHEDDING] CPU at {cpu_percent:.1f}% (triggered)")
        return jsonify({
            'error': 'Server under high load',
            'message': 'Please retry in 30 seconds',
            'cpu_percent': cpu_percent
        }), 503
    return None


def add_security_headers(response):
    """Add security headers to every response"""
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['X-Frame-Options'] = 'DENY'
    response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
    response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
    response.headers['Permissions-Policy'] = 'geolocation=(), microphone=(), camera=()'
    return response

# =====================
# Admin context
# =====================
def is_admin_request() -> bool:
    """True for an authenticated admin session or a configured bearer token."""
    if session.get('is_admin'):
        return True
    auth_header = request.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        token = auth_header[7:].strip()
        tokens = current_app.config.get('ADMIN_API_TOKENS') or []
        return any(secrets.compare_digest(token, t) for t in tokens)
    return False


def require_admin(f):
    """Decorator to require an admin context"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not is_admin_request():
            return jsonify({'error': 'Authentication required'}), 401
        g.is_admin = True
        return f(*args, **kwargs)
    return decorated_function


def handle_database_error(f):
    """Decorator for handling database errors gracefully"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except (DatabaseError, psycopg.Error) as e:
            logger.error(f"Database error in {f.__name__}: {e}")
            return jsonify({'error': 'Database temporarily unavailable', 'retry': True}), 503
        except Exception as e:
            logger.error(f"Unexpected error in {f.__name__}: {e}", exc_info=True)
            return jsonify({'error': 'Internal server error'}), 500
    return decorated_function


def _only_ok_responses(rv) -> bool:
    """Cache filter: never memoize error payloads."""
    if isinstance(rv, tuple):
        return len(rv) < 2 or rv[1] == 200
    return getattr(rv, 'status_code', 200) == 200


def _services() -> Dict[str, Any]:
    return current_app.extensions['news_curator']


# =====================
# Routes
# =====================
@api.route('/health')
@limiter.exempt
def health_check():
    """API health check endpoint"""
    return jsonify({
        'status': 'healthy',
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'store': type(_services()['store']).__name__,
        'grouping': _services()['aggregator'].group_by,
    })


@api.route('/categories')
@cache.cached(query_string=True, unless=is_admin_request, response_filter=_only_ok_responses)
@limiter.limit("30 per minute")
@handle_database_error
def get_categories():
    """Configured categories, in homepage order, with published article counts"""
    services = _services()
    counts = services['store'].get_category_counts()
    return jsonify([
        dict(c.to_dict(), count=counts.get(c.name, 0))
        for c in services['categories']
    ])


@api.route('/primary-sources')
@cache.cached(query_string=True, unless=is_admin_request, response_filter=_only_ok_responses)
@limiter.limit("30 per minute")
@handle_database_error
def list_primary_sources():
    """Primary sources with article counts, most cited first"""
    category = request.args.get('category', None)
    groups = _services()['aggregator'].list_sources(category=category)
    return jsonify([grp.to_dict() for grp in groups])


@api.route('/primary-sources/search')
@limiter.limit("20 per minute")
@handle_database_error
def search_primary_sources():
    """Case-insensitive substring search over primary sources"""
    query = request.args.get('q', '')
    try:
        groups = _services()['aggregator'].search_sources(query)
    except InvalidInput as e:
        return jsonify({'error': str(e)}), 400
    return jsonify([grp.to_dict() for grp in groups])


@api.route('/primary-sources/<path:source_id>/articles', merge_slashes=False)
@cache.cached(query_string=True, unless=is_admin_request, response_filter=_only_ok_responses)
@limiter.limit("30 per minute")
@handle_database_error
def get_primary_source_articles(source_id):
    """Paginated articles citing one primary source (the router decodes the path once)"""
    result = _services()['aggregator'].articles_for_source(
        source_id,
        page=request.args.get('page'),
        limit=request.args.get('limit'),
        sort=request.args.get('sort'),
    )
    return jsonify(result.to_dict())


@api.route('/homepage')
@cache.cached(query_string=True, unless=is_admin_request, response_filter=_only_ok_responses)
@limiter.limit("60 per minute")
@handle_database_error
def get_homepage():
    """Featured tier plus category sections with sequential spot numbers"""
    services = _services()
    homepage = build_homepage(services['store'].get_published_articles(), services['categories'])
    return jsonify(homepage.to_dict())


@api.route('/admin/cache/clear', methods=['POST'])
@require_admin
def clear_response_cache():
    """Drop every memoized response (call after editing articles)"""
    cache.clear()
    logger.info("Response cache cleared")
    return jsonify({'success': True})


def not_found(error):
    """Custom 404 handler"""
    return jsonify({'error': 'Endpoint not found'}), 404


def rate_limit_handler(error):
    """Custom rate limit handler"""
    return jsonify({
        'error': 'Rate limit exceeded',
        'message': 'Too many requests, please slow down',
        'retry_after': 60
    }), 429


def internal_error(error):
    """Custom 500 handler"""
    logger.error(f"Internal server error: {error}")
    return jsonify({'error': 'Internal server error'}), 500

# =====================
# App factory
# =====================
def _build_store(categories: Sequence[CategoryConfig]):
    """Prefer Postgres when PG_DSN is configured; fall back to SQLite."""
    if PG_DSN:
        try:
            from newscurator.storage.postgres_articles import PostgresArticleStore
            from newscurator.storage.postgres_schema import ensure_postgres_schema
            ensure_postgres_schema(PG_DSN)
            logger.info("Postgres schema ready")
            return PostgresArticleStore(PG_DSN, categories=categories)
        except Exception as e:
            logger.error(f"Postgres store unavailable, falling back to SQLite: {e}")
    return ArticleDatabase(db_path=DB_PATH, categories=categories)


def create_app(
    store=None,
    categories: Optional[Sequence[CategoryConfig]] = None,
    cache_config: Optional[Dict[str, Any]] = None,
    group_by: Optional[str] = None,
    config: Optional[Dict[str, Any]] = None,
) -> Flask:
    """Build the Flask app. Every collaborator can be injected (tests pass their own)."""
    from cors_config import configure_cors

    categories = list(categories) if categories is not None else load_categories()
    group_by = group_by or SOURCE_GROUPING
    if group_by not in GROUPING_MODES:
        logger.warning(f"Unknown SOURCE_GROUPING {group_by!r}; using 'raw'")
        group_by = 'raw'
    if store is None:
        store = _build_store(categories)

    app = Flask(__name__)
    # Configure app to trust proxy headers (nginx forwards X-Forwarded-Proto, etc.)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)
    app.config['SECRET_KEY'] = os.environ.get('FLASK_SECRET_KEY', secrets.token_hex(32))
    app.config['PERMANENT_SESSION_LIFETIME'] = timedelta(hours=24)
    app.config['SESSION_COOKIE_SECURE'] = os.environ.get('FLASK_ENV') == 'production'
    app.config['SESSION_COOKIE_HTTPONLY'] = True
    app.config['SESSION_COOKIE_SAMESITE'] = 'Lax'
    app.config['ADMIN_API_TOKENS'] = list(ADMIN_API_TOKENS)
    app.json.sort_keys = False
    if config:
        app.config.update(config)

    configure_cors(app)
    cache.init_app(app, config=cache_config or {
        'CACHE_TYPE': 'SimpleCache',
        'CACHE_DEFAULT_TIMEOUT': CACHE_TIMEOUT,
    })
    compress.init_app(app)
    limiter.init_app(app)

    app.extensions['news_curator'] = {
        'store': store,
        'categories': categories,
        'aggregator': PrimarySourceAggregator(store, categories, group_by=group_by),
    }

    app.before_request(check_server_load)
    app.after_request(add_security_headers)
    app.register_error_handler(404, not_found)
    app.register_error_handler(429, rate_limit_handler)
    app.register_error_handler(500, internal_error)
    app.register_blueprint(api)

    logger.info(f"News Curator app ready ({type(store).__name__}, {len(categories)} categories, grouping={group_by})")
    return app


# Main execution block
if __name__ == '__main__':
    port = int(os.environ.get('PORT', 3002))
    debug = os.environ.get('FLASK_ENV') == 'development'
    app = create_app()

    logger.info(f"🌐 Starting News Curator API on port {port}")
    logger.info(f"🔧 Debug mode: {debug}")
    logger.info(f"💾 Response cache TTL: {CACHE_TIMEOUT}s")

    app.run(
        host='0.0.0.0',
        port=port,
        debug=debug,
        threaded=True
    )
