"""
Utility modules for EverBloom
"""

from .redis_client import get_redis_client, reset_redis_client

__all__ = [
    'get_redis_client',
    'reset_redis_client',
]
