"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer, tagged with a machine-readable code"""

    code = "DOMAIN_ERROR"

    def __init__(self, message: str | None = None, code: str | None = None):
        if code is not None:
            self.code = code
        super().__init__(message or self.code)


class NotFoundError(DomainException):
    """Referenced entity does not exist (or belongs to another user)"""

    code = "NOT_FOUND"


class BusinessRuleError(DomainException):
    """Input or current state violates a business rule; nothing was written"""

    code = "BUSINESS_RULE_VIOLATION"


class ConflictError(BusinessRuleError):
    """Entity already exists (duplicate link, duplicate payment)"""

    code = "CONFLICT"


class PaymentError(DomainException):
    """Payment could not be recorded after its installment was committed as paid"""

    code = "INSTALLMENT_PAYMENT_ERROR"


class IntegrationError(DomainException):
    """Remote aggregation service failed; detail is logged, not exposed"""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(
            f"{provider} integration failed",
            code=f"{provider.upper()}_INTEGRATION_ERROR",
        )
