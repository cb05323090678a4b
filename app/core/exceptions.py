"""
Domain exceptions for the loyalty backend.

Every error the stores and the ledger raise derives from LoyaltyError and
carries the HTTP status the API answers with.
"""


class LoyaltyError(Exception):
    """Base exception for loyalty errors."""

    status_code = 500
    default_detail = "Internal server error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(LoyaltyError):
    """Request payload has the wrong shape or blank fields."""

    status_code = 400
    default_detail = "Invalid request"


class NotFoundError(LoyaltyError):
    """Unknown customer id."""

    status_code = 404
    default_detail = "Customer not found"


class ConflictError(LoyaltyError):
    """Phone number already belongs to another customer."""

    status_code = 409
    default_detail = "A customer with this phone number already exists"


class StorageError(LoyaltyError):
    """Storage transaction failed and was rolled back."""

    status_code = 500
    default_detail = "Storage operation failed"
