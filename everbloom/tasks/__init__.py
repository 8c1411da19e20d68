"""
Background tasks for EverBloom
"""

from .celery_app import celery, make_celery
from .suggestions import generate_suggestion_async

__all__ = [
    'celery',
    'make_celery',
    'generate_suggestion_async',
]
