"""
Exception hierarchy for the matchmaking engine.

Low-level components raise these; orchestrators (find_matches,
process_upload, generate_visualization) catch them and record a status.
"""

from typing import List


class MatchmakingError(Exception):
    """Base class for all matchmaking errors."""


class ActorNotFoundError(MatchmakingError, LookupError):
    """Raised when a referenced actor does not exist in the corpus."""

    def __init__(self, actor_id: str):
        super().__init__(f"Actor not found: {actor_id}")
        self.actor_id = actor_id


class ProfileNotFoundError(MatchmakingError, LookupError):
    """Raised when a referenced weight profile does not exist."""

    def __init__(self, profile_id: str):
        super().__init__(f"Weight profile not found: {profile_id}")
        self.profile_id = profile_id


class ProfileValidationError(MatchmakingError, ValueError):
    """
    Raised when a weight profile fails validation.

    All problems found are aggregated into a single rejection so that no
    partially-valid profile is ever written.
    """

    def __init__(self, errors: List[str]):
        super().__init__(f"Validation errors: {', '.join(errors)}")
        self.errors = list(errors)


class DefaultProfileError(MatchmakingError):
    """Raised when attempting to delete a default weight profile."""


class UploadRejectedError(MatchmakingError, ValueError):
    """Raised for file-level upload problems (type, size, empty payload)."""


class ConsentError(MatchmakingError):
    """Raised when an operation needs matchmaking consent that was not given."""


class BatchSizeExceededError(MatchmakingError):
    """Raised when a write batch grows past the store's atomic-write ceiling."""
