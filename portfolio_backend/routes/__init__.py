"""
Portfolio Review API Routes
===========================

All API route blueprints for the portfolio review backend.

Usage:
    from portfolio_backend.routes import register_routes
    register_routes(app)
"""
from .auth_routes import auth_bp
from .subject_routes import subject_bp
from .portfolio_routes import portfolio_bp
from .template_routes import template_bp
from .analytics_routes import analytics_bp


def register_routes(app):
    """Register all route blueprints with the Flask app."""
    app.register_blueprint(auth_bp)
    app.register_blueprint(subject_bp)
    app.register_blueprint(portfolio_bp)
    app.register_blueprint(template_bp)
    app.register_blueprint(analytics_bp)


__all__ = [
    'register_routes',
    'auth_bp',
    'subject_bp',
    'portfolio_bp',
    'template_bp',
    'analytics_bp',
]
