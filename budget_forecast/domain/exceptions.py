"""
Domain Exceptions for the Forecast Aggregation Engine.

Custom exceptions enforcing forecasting rules:
- Date range validity
- Required inputs on forecastable rows
- Single-row edit lifecycle
- Bucket set consistency across rows
"""


class DomainError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, code: str = "DOMAIN_ERROR"):
        self.message = message
        self.code = code
        super().__init__(self.message)


# =============================================================================
# Validation Exceptions
# =============================================================================

class ValidationError(DomainError):
    """Raised when data validation fails."""

    def __init__(self, field: str, message: str):
        super().__init__(f"Validation failed for '{field}': {message}", code="VALIDATION_ERROR")
        self.field = field


class InvalidDateRangeError(DomainError):
    """Raised when a start date falls after its end date."""

    def __init__(self, start_date, end_date):
        message = (
            f"Start date ({start_date}) must not be after "
            f"end date ({end_date})"
        )
        super().__init__(message, code="INVALID_DATE_RANGE")
        self.start_date = start_date
        self.end_date = end_date


class MissingRequiredFieldError(DomainError):
    """Raised when a forecastable row is committed without budget or dates."""

    def __init__(self, field_name: str, cost_code: str, variant: str):
        message = (
            f"'{field_name}' is required on {variant} "
            f"for cost code '{cost_code}'"
        )
        super().__init__(message, code="MISSING_REQUIRED_FIELD")
        self.field_name = field_name
        self.cost_code = cost_code
        self.variant = variant


# =============================================================================
# Lookup Exceptions
# =============================================================================

class CostCodeNotFoundError(DomainError):
    """Raised when a cost code is not present in the view."""

    def __init__(self, cost_code: str):
        message = f"Cost code '{cost_code}' not found"
        super().__init__(message, code="COST_CODE_NOT_FOUND")
        self.cost_code = cost_code


class RowNotFoundError(DomainError):
    """Raised when a tree path does not address a row."""

    def __init__(self, segments):
        message = f"No forecast row at path {list(segments)!r}"
        super().__init__(message, code="ROW_NOT_FOUND")
        self.segments = list(segments)


# =============================================================================
# Edit Session Exceptions
# =============================================================================

class RowNotEditableError(DomainError):
    """Raised when an edit targets a derived row or a field it does not own."""

    def __init__(self, variant: str, field_name: str = None):
        if field_name:
            message = f"Field '{field_name}' cannot be edited on {variant} rows"
        else:
            message = f"{variant} rows are derived and cannot be edited"
        super().__init__(message, code="ROW_NOT_EDITABLE")
        self.variant = variant
        self.field_name = field_name


class NoActiveEditError(DomainError):
    """Raised when confirm/cancel/set_field is called outside an edit."""

    def __init__(self):
        super().__init__("No row is currently being edited", code="NO_ACTIVE_EDIT")


class PersistenceFailureError(DomainError):
    """Raised when the storage collaborator rejects a row save."""

    def __init__(self, cost_code: str, variant: str, reason: str):
        message = (
            f"Failed to save {variant} for cost code '{cost_code}': {reason}"
        )
        super().__init__(message, code="PERSISTENCE_FAILURE")
        self.cost_code = cost_code
        self.variant = variant
        self.reason = reason


# =============================================================================
# Invariant Exceptions
# =============================================================================

class InconsistentBucketSetError(DomainError):
    """Raised when a row's bucket keys differ from the view's bucket sequence."""

    def __init__(self, cost_code: str, variant: str, missing: list, unexpected: list):
        message = (
            f"Bucket set mismatch on {variant} for '{cost_code}'. "
            f"Missing: {missing}, Unexpected: {unexpected}"
        )
        super().__init__(message, code="INCONSISTENT_BUCKET_SET")
        self.cost_code = cost_code
        self.variant = variant
        self.missing = missing
        self.unexpected = unexpected
