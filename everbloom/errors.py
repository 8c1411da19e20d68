"""
Exception types for EverBloom
"""


class EverBloomError(Exception):
    """Base class for all EverBloom errors."""
    pass


class ValidationError(EverBloomError):
    """Raised for malformed input (bad dates, empty names, unknown enum values)."""
    pass


class RecordNotFound(EverBloomError):
    """Raised when a record does not exist or belongs to another user."""
    pass


class UpstreamFetchError(EverBloomError):
    """Raised when the entity store fails to return data for a derivation pass."""
    pass


class EntitlementError(EverBloomError):
    """Raised when an action exceeds the caller's subscription caps."""

    def __init__(self, action: str, tier: str, limit: int):
        self.action = action
        self.tier = tier
        self.limit = limit
        super().__init__(f"{tier} tier limit reached for {action} (limit={limit})")
