"""
Previz Custom Exceptions

Exception classes for error handling across the storyboard pipeline.
"""


class PrevizError(Exception):
    """Base exception for all previz errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================

class ConfigurationError(PrevizError):
    """Raised when there's an issue with configuration."""
    pass


class MissingConfigError(ConfigurationError):
    """Raised when a required configuration is missing."""
    pass


class InvalidConfigError(ConfigurationError):
    """Raised when a configuration value is invalid."""
    pass


# =============================================================================
# INPUT ERRORS
# =============================================================================

class InputError(PrevizError):
    """Raised for bad caller input. Never reaches the network."""
    pass


class UnsupportedFileTypeError(InputError):
    """Raised when an uploaded file is neither PDF nor plain text."""

    def __init__(self, file_name: str, mime_type: str = None):
        message = "Unsupported file type. Please upload PDF or text files."
        details = {"file_name": file_name}
        if mime_type:
            details["mime_type"] = mime_type
        super().__init__(message, details)


class EmptyScriptError(InputError):
    """Raised when script text is empty or whitespace."""

    def __init__(self, message: str = "Script text is empty"):
        super().__init__(message)


class MissingParameterError(InputError):
    """Raised when a required parameter is not supplied."""

    def __init__(self, parameter: str):
        super().__init__(f"Missing required parameter: '{parameter}'", {"parameter": parameter})
        self.parameter = parameter


class InvalidShotUpdateError(InputError):
    """Raised when a shot update names unknown or read-only fields."""

    def __init__(self, fields: list):
        message = f"Cannot update shot fields: {', '.join(sorted(fields))}"
        super().__init__(message, {"fields": sorted(fields)})


class IngestionInProgressError(InputError):
    """Raised when the same file is submitted while it is still being processed."""

    def __init__(self, file_key: str):
        super().__init__("This file is already being processed", {"file_key": file_key})


# =============================================================================
# UPSTREAM SERVICE ERRORS
# =============================================================================

class UpstreamServiceError(PrevizError):
    """Base exception for failures reported by an external service."""

    def __init__(self, service: str, reason: str, status_code: int = None):
        details = {"service": service}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(reason, details)
        self.service = service
        self.reason = reason
        self.status_code = status_code


class LLMProviderError(UpstreamServiceError):
    """Raised when the text-generation service fails."""
    pass


class RateLimitError(UpstreamServiceError):
    """Raised when an upstream service answers 429."""

    def __init__(self, service: str, reason: str = None):
        super().__init__(
            service,
            reason or "Rate limit exceeded. Please try again in a moment.",
            status_code=429,
        )


class CreditsExhaustedError(UpstreamServiceError):
    """Raised when an upstream service answers 402."""

    def __init__(self, service: str, reason: str = None):
        super().__init__(
            service,
            reason or "Credits depleted. Please add credits to continue.",
            status_code=402,
        )


class ImageGenerationError(UpstreamServiceError):
    """Raised when the image-generation service fails."""
    pass


class FrameRenderError(ImageGenerationError):
    """Raised when a frame cannot be rendered at all (no fallback possible)."""

    def __init__(self, shot_number: int, reason: str, status_code: int = None):
        super().__init__("image-generation", reason, status_code)
        self.details["shot_number"] = shot_number
        self.shot_number = shot_number


class EdgeFunctionError(UpstreamServiceError):
    """Raised when a hosted edge function reports an error."""
    pass


class OCRServiceError(EdgeFunctionError):
    """Raised when document text extraction fails."""

    def __init__(self, reason: str, status_code: int = None):
        super().__init__("parse-document", reason, status_code)


# =============================================================================
# PLAN ERRORS
# =============================================================================

class PlanValidationError(PrevizError):
    """Raised when a model reply is not a valid shot plan."""

    def __init__(self, reason: str, expected: int = None, received: int = None):
        details = {}
        if expected is not None:
            details["expected"] = expected
        if received is not None:
            details["received"] = received
        super().__init__(reason, details)
        self.expected = expected
        self.received = received


# =============================================================================
# PROJECT ERRORS
# =============================================================================

class ProjectError(PrevizError):
    """Base exception for project state errors."""
    pass


class ProjectNotFoundError(ProjectError):
    """Raised when a project is not found or not visible to the caller."""

    def __init__(self, project_id: str):
        super().__init__(f"Project not found: {project_id}", {"project_id": project_id})
        self.project_id = project_id


class ShotNotFoundError(ProjectError):
    """Raised when a shot number does not exist in a project."""

    def __init__(self, shot_number: int, shot_count: int = None):
        details = {"shot_number": shot_number}
        if shot_count is not None:
            details["shot_count"] = shot_count
        super().__init__(f"Shot not found: {shot_number}", details)
        self.shot_number = shot_number


class StateConsistencyError(ProjectError):
    """Raised when frames and shots disagree (frame for a missing shot)."""

    def __init__(self, message: str, orphaned: list = None):
        super().__init__(message, {"orphaned_shot_numbers": orphaned or []})
        self.orphaned = orphaned or []


class PersistenceError(ProjectError):
    """Raised when the record store rejects an operation."""
    pass
