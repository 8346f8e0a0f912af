from typing import Dict, List


class CommunityServiceError(Exception):
    """Base class for every failure the request handlers know how to report."""


class InputValidationError(CommunityServiceError):
    """
    Submitted data is malformed. Carries the per-field error list,
    each entry shaped as {"field": ..., "message": ...}.
    """

    def __init__(self, errors: List[Dict[str, str]]):
        super().__init__("Validation error")
        self.errors = errors


class ConfigurationError(CommunityServiceError):
    """A required setting is missing. Fatal for the request only."""


class UpstreamError(CommunityServiceError):
    """The webhook target rejected the upload or could not be reached."""


class PersistenceError(CommunityServiceError):
    """The record store is unavailable or a write failed."""


class DuplicateUsername(PersistenceError):
    def __init__(self, username: str):
        super().__init__(f"Username already exists: {username}")
        self.username = username
