"""
EverBloom - Relationship nurturing core

Scores relationship strength from interaction recency, resolves upcoming
birthdays and anniversaries, and derives a ranked notification feed of
reminders, milestones and AI suggestions.
"""

__version__ = "1.0.0"
__author__ = "EverBloom Team"

from . import config
from . import strength
from . import dates
from . import notifications
from . import store
from . import aggregator

__all__ = [
    "config",
    "strength",
    "dates",
    "notifications",
    "store",
    "aggregator",
]
