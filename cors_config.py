# CORS configuration
import logging
import os

from flask import request
from flask_cors import CORS

logger = logging.getLogger(__name__)

DEFAULT_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:3002",
    "http://127.0.0.1:3002",
]


def configure_cors(app):
    # Public pages and the admin pages call the API from these origins
    origins = [o.strip() for o in os.environ.get("CORS_ORIGINS", "").split(",") if o.strip()] or DEFAULT_ORIGINS
    CORS(app, resources={
        r"/api/*": {
            "origins": origins,
            "methods": ["GET", "POST", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization", "X-Requested-With"],
        }
    }, supports_credentials=True)

    @app.after_request
    def log_cors(response):
        if request.headers.get("Origin"):
            logger.debug(
                f"CORS - Origin: {request.headers.get('Origin')} "
                f"Method: {request.method} Response: {response.status_code}"
            )
        return response

    return app
