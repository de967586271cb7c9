"""
Error taxonomy for the portfolio backend.

NotFound, Conflict and BadRequest are deterministic and shown to the caller
verbatim. UpstreamError means storage or the database failed after local
validation passed; its message to the caller is generic and the cause is logged.
"""
import logging
from flask import jsonify

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = '23505'


class PortfolioError(Exception):
    """Base class for errors surfaced to API callers."""
    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def public_message(self):
        return self.message


class NotFound(PortfolioError):
    status_code = 404


class Conflict(PortfolioError):
    status_code = 409


class BadRequest(PortfolioError):
    status_code = 400


class UpstreamError(PortfolioError):
    status_code = 502

    def public_message(self):
        return "Upstream service failed, please try again"


def is_unique_violation(exc):
    """True when a postgrest APIError reports a unique-constraint violation."""
    return getattr(exc, 'code', None) == UNIQUE_VIOLATION


def register_error_handlers(app):
    """Render PortfolioError subclasses as JSON responses."""

    @app.errorhandler(PortfolioError)
    def handle_portfolio_error(err):
        if isinstance(err, UpstreamError):
            logger.error("Upstream failure: %s", err.message)
        return jsonify({"success": False, "error": err.public_message()}), err.status_code

    @app.errorhandler(413)
    def handle_too_large(err):
        return jsonify({"success": False, "error": "File exceeds the upload size limit"}), 413
