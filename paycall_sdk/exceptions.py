"""
PayCall SDK Exceptions
"""


class PayCallError(Exception):
    """Base exception for all PayCall SDK errors"""
    def __init__(self, message: str, code: str = None, details: dict = None, status: int = None):
        self.message = message
        self.code = code or "PAYCALL_ERROR"
        self.details = details or {}
        self.status = status
        super().__init__(self.message)


class AuthenticationError(PayCallError):
    """Raised when API key authentication fails"""
    def __init__(self, message: str = "Invalid API key", code: str = "INVALID_API_KEY"):
        super().__init__(message, code, status=401)


class NotFoundError(PayCallError):
    """Raised when a tool or agent does not exist"""
    pass


class PaymentRequiredError(PayCallError):
    """Raised on a 402 challenge; carries what to pay"""
    def __init__(self, message: str, payment: dict):
        super().__init__(message, "PAYMENT_REQUIRED", {"payment": payment}, status=402)
        self.payment = payment

    @property
    def amount(self) -> str:
        return self.payment.get("amount")


class PaymentRejectedError(PayCallError):
    """Raised when the server did not accept the submitted transaction"""
    pass


class DuplicatePaymentError(PaymentRejectedError):
    """Raised when a transaction hash was already used"""
    pass


class PaymentLimitError(PayCallError):
    """Raised when a challenge asks for more than the caller allows"""
    def __init__(self, required: str, limit: str):
        super().__init__(
            f"Payment of {required} exceeds limit {limit}",
            "PAYMENT_LIMIT_EXCEEDED",
            {"required": required, "limit": limit}
        )


class ProviderError(PayCallError):
    """Raised when the upstream provider failed"""
    pass


class ServerError(PayCallError):
    """Raised when the marketplace itself failed"""
    pass


class NetworkError(PayCallError):
    """Raised when network communication fails"""
    def __init__(self, message: str):
        super().__init__(message, "NETWORK_ERROR")
