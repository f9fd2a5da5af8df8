"""
Custom Exception Classes for the Control Toggler

Hierarchical exception structure for credential, transport and
application-level failures raised by the API clients and the toggler.
"""


class TogglerError(Exception):
    """Base exception for all control toggler errors"""

    def __init__(self, message: str, recoverable: bool = True):
        self.message = message
        self.recoverable = recoverable
        super().__init__(message)


class ConfigError(TogglerError):
    """Configuration-related errors"""

    def __init__(self, message: str, recoverable: bool = False):
        super().__init__(f"Config Error: {message}", recoverable)


class InvalidCredentialsError(TogglerError):
    """Signing key missing or unusable; raised before any request is made"""

    def __init__(self, message: str = "Valid credentials not configured"):
        super().__init__(message, recoverable=False)


class TransportError(TogglerError):
    """Network failure, or a response that is not a valid API envelope"""

    def __init__(self, message: str, status: int | None = None):
        self.status = status
        super().__init__(message, recoverable=True)


class ApplicationError(TogglerError):
    """API envelope reported success=false"""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        code: str | None = None,
    ):
        self.status = status
        self.code = code
        super().__init__(message, recoverable=True)

    @classmethod
    def from_envelope(cls, status: int, envelope: dict) -> "ApplicationError":
        """Build from a `{success: false, message?, code?}` response body"""
        code = envelope.get("code") or None
        message = envelope.get("message") or f"HTTP {status}"
        if code:
            message = f"{message} ({code})"
        return cls(message, status=status, code=code)
