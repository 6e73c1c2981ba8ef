"""
PayCall Backend Exceptions
Error taxonomy shared by the gateway, the registry and the orchestrator
"""

from typing import Any, Dict, Optional


class MarketplaceError(Exception):
    """Base exception for all marketplace errors"""
    status_code = 500

    def __init__(self, message: str, code: str = None, details: Dict[str, Any] = None):
        self.message = message
        self.code = code or "MARKETPLACE_ERROR"
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.message, "code": self.code}
        body.update(self.details)
        return body


class AuthenticationError(MarketplaceError):
    """Missing or invalid API / provider key"""
    status_code = 401


class PermissionDeniedError(MarketplaceError):
    """Caller is known but not allowed to do this"""
    status_code = 403


class NotFoundError(MarketplaceError):
    """Tool, agent, provider or session absent"""
    status_code = 404


class ValidationError(MarketplaceError):
    """Request is well-formed but not acceptable"""
    status_code = 400

    def __init__(self, message: str, code: str = "VALIDATION_ERROR", details: Dict[str, Any] = None):
        super().__init__(message, code, details)


class ConflictError(MarketplaceError):
    """Resource already exists"""
    status_code = 409


class PaymentRequiredError(MarketplaceError):
    """No payment proof supplied; carries the challenge"""
    status_code = 402

    def __init__(self, message: str, payment: Dict[str, Any], instructions: Optional[str] = None):
        details = {"message": message, "payment": payment}
        if instructions:
            details["instructions"] = instructions
        super().__init__("Payment Required", "PAYMENT_REQUIRED", details)
        self.payment = payment


class PaymentRejectedError(MarketplaceError):
    """On-chain proof did not satisfy the price/token/recipient requirements"""
    status_code = 402

    def __init__(self, reason: str, message: str, details: Dict[str, Any] = None):
        super().__init__(message, reason, details)
        self.reason = reason


class DuplicatePaymentError(MarketplaceError):
    """Transaction hash already unlocked an execution"""
    status_code = 409

    def __init__(self, tx_hash: str):
        super().__init__(
            "Payment transaction already used",
            "DUPLICATE_PAYMENT",
            {"txHash": tx_hash},
        )


class ProviderError(MarketplaceError):
    """Upstream provider answered non-2xx"""
    status_code = 502

    def __init__(self, upstream_status: int, body: str):
        super().__init__(
            "Provider API error",
            "PROVIDER_ERROR",
            {"details": body, "upstreamStatus": upstream_status},
        )
        self.upstream_status = upstream_status
        self.body = body


class ConfigurationError(MarketplaceError):
    """Tool has no data source"""
    status_code = 500

    def __init__(self, message: str = "Tool has no data source configured"):
        super().__init__(message, "CONFIGURATION_ERROR")


class ExecutionError(MarketplaceError):
    """Unexpected failure while running a tool"""
    status_code = 500

    def __init__(self, details: str):
        super().__init__("Execution failed", "EXECUTION_ERROR", {"details": details})


class ChainUnavailableError(MarketplaceError):
    """The RPC node could not be asked about a payment"""
    status_code = 503

    def __init__(self, details: str):
        super().__init__("Payment verification unavailable", "CHAIN_UNAVAILABLE", {"details": details})


class RateLimitError(MarketplaceError):
    """Orchestrator session cap reached"""
    status_code = 429

    def __init__(self, message: str, reset_in: int):
        super().__init__(
            "Rate limit exceeded",
            "RATE_LIMITED",
            {"message": message, "resetIn": reset_in},
        )
        self.reset_in = reset_in


class OrchestratorError(MarketplaceError):
    """Ends a demo session irrecoverably"""

    def __init__(self, message: str, code: str = "FATAL"):
        super().__init__(message, code)


class NoToolSelectedError(OrchestratorError):
    """The model answered without choosing a tool"""

    def __init__(self, message: str = "No tool selected by the model"):
        super().__init__(message, "NO_TOOL_SELECTED")
