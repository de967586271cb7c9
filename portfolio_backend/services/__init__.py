"""
Portfolio Review Services
=========================

Business logic for the portfolio review backend.

Services:
- identity: short code / canonical id resolution
- rubric_engine: criterion scoring, totals and percentage
- template_store: reusable criteria sets per teacher
- portfolio_service: submission, decision, deletion, file URLs
- catalog_service: subjects, groups and enrollment
- portfolio_query: filtered/sorted views and teacher statistics
- user_service: registration and profile lookup
- storage: private blob bucket access
"""

# Services are imported directly when needed to avoid circular imports
# Example: from portfolio_backend.services.rubric_engine import score_evaluation

__all__ = [
    'identity',
    'rubric_engine',
    'template_store',
    'portfolio_service',
    'catalog_service',
    'portfolio_query',
    'user_service',
    'storage',
]
