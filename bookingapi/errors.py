from typing import Any, Dict, Optional


class APIError(Exception):
    """Raised when the booking API answers with an error or cannot be reached."""


class InstitutionNotFound(APIError):
    pass


class EventCategoryNotFound(APIError):
    pass


class EventTypeOrCategoryNotFound(APIError):
    pass


class ForbiddenWithCurrentInsuranceSettings(APIError):
    pass


class EventUnavailable(APIError):
    pass


class CommentFormValidationError(APIError):
    """The booking API rejected the structured comment."""

    def __init__(self, reason: str, errors: Optional[Dict[str, Any]] = None):
        self.errors = errors or {}
        super().__init__(reason)
