"""Billing error types."""


class BillingError(Exception):
    """Base class for billing errors."""


class BillingValidationError(BillingError, ValueError):
    """Input rejected before anything is written."""


class UsageLimitError(BillingValidationError):
    """Requested usage limit is below the allowed floor."""

    def __init__(self, limit: float, minimum: float):
        self.limit = limit
        self.minimum = minimum
        super().__init__(f"Usage limit cannot be below ${minimum:g} (got {limit:g})")
