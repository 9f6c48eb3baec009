"""
Custom Exceptions for PostGen API

Hierarchical exception classes for proper error handling across layers.
Messages are the user-facing (German) texts returned by the API.
"""

from typing import Optional, Dict, Any


class PostGenError(Exception):
    """Base exception for all PostGen errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.message,
            "code": self.__class__.__name__,
            "details": self.details
        }


class ValidationError(PostGenError):
    """Raised when input validation fails."""
    status_code = 400


class UnauthorizedError(PostGenError):
    """Raised when the session credential is missing or invalid."""
    status_code = 401

    def __init__(self, message: str = "Nicht autorisiert", reason: Optional[str] = None):
        details = {"reason": reason} if reason else None
        super().__init__(message, details)


class DatabaseError(PostGenError):
    """Raised when database operations fail."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if table:
            details["table"] = table
        super().__init__(message, details, original_error)


class NotFoundError(DatabaseError):
    """Raised when a requested resource is not found."""
    status_code = 404


class PlanNotFoundError(NotFoundError):
    """Raised when a subscription plan id does not exist."""

    def __init__(self, plan_id: str):
        super().__init__("Plan nicht gefunden", table="subscription_plans")
        self.details["plan_id"] = plan_id


class ConfigurationError(PostGenError):
    """Raised when configuration is missing or invalid."""
    status_code = 400

    def __init__(
        self,
        message: str,
        missing_keys: Optional[list] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if missing_keys:
            details["missing_keys"] = missing_keys
        super().__init__(message, details, original_error)


class MissingPriceMappingError(ConfigurationError):
    """Raised when a paid plan has no Stripe price id."""

    def __init__(self, plan_id: str):
        super().__init__(
            "Stripe Price ID fehlt für diesen Plan",
            missing_keys=["stripe_price_id"],
        )
        self.details["plan_id"] = plan_id


class ProcessorError(PostGenError):
    """Raised when a payment processor (Stripe) call fails."""
    status_code = 500

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {"operation": operation} if operation else {}
        super().__init__(message, details, original_error)


class SignatureError(ProcessorError):
    """Raised when a webhook payload or its signature cannot be verified."""
    status_code = 400


class QuotaExceededError(PostGenError):
    """Raised when the monthly post limit is exhausted."""
    status_code = 403

    def __init__(self, limit: int, used: int):
        super().__init__(
            "Monatliches Post-Limit erreicht",
            details={"monthly_post_limit": limit, "used": used},
        )


class SubscriptionRequiredError(PostGenError):
    """Raised when a feature needs an active subscription."""
    status_code = 403

    def __init__(self, message: str = "Kein aktives Abonnement"):
        super().__init__(message)


class GenerationError(PostGenError):
    """Raised when the content generation webhook fails."""
    status_code = 502

    def __init__(
        self,
        message: str,
        platform: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {"platform": platform} if platform else {}
        super().__init__(message, details, original_error)


class ParseError(GenerationError):
    """Raised when a generation response has an unrecognised shape."""
    pass
