#!/usr/bin/env python3
"""
Portfolio Review Backend
========================
Run: python3 -m portfolio_backend.app
API listens on http://localhost:3001
"""
import logging
import os

from flask import Flask
from flask_cors import CORS
from dotenv import load_dotenv

from .auth import init_auth
from .config import config, HOST, PORT, DEBUG, LOG_LEVEL
from .errors import register_error_handlers
from .routes import register_routes

# Load environment variables
_app_dir = os.path.dirname(os.path.abspath(__file__))
_root_dir = os.path.dirname(_app_dir)
load_dotenv(os.path.join(_root_dir, '.env'))


def create_app(overrides=None):
    """Build the Flask app: CORS, auth hook, error handlers, blueprints."""
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = Flask(__name__)
    app.config['MAX_CONTENT_LENGTH'] = config.max_content_length
    if overrides:
        app.config.update(overrides)
    CORS(app, supports_credentials=True)

    # Auth must run before any blueprint handler
    init_auth(app)
    register_error_handlers(app)
    register_routes(app)
    return app


if __name__ == '__main__':
    create_app().run(host=HOST, port=PORT, debug=DEBUG)
