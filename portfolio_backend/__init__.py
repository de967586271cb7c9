"""
Portfolio Review Backend Package
================================

Flask-based backend for academic portfolio submission, review and evaluation.

Structure:
- routes/: API route blueprints
- services/: Business logic services (identity, rubric, templates, portfolios, catalog)
- config.py: Configuration management
- rubric_config.py: Default criteria, built-in templates and grade thresholds
"""

from .config import config, Config

__version__ = "1.0.0"

__all__ = ['config', 'Config']
