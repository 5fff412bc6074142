"""Custom exceptions for statelock.

Every lock failure surfaces as a subclass of StateLockError carrying the
resource identity and the operation that was attempted, so callers can
report it without re-deriving context.
"""


class StateLockError(Exception):
    """Base exception for all statelock errors."""

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ConfigInvalidError(StateLockError):
    """Raised when a lock option is missing or malformed.

    Always raised during resolution, before any network call is made.

    Examples:
        - Missing state_file_id for the dynamodb backend
        - backup set to something that is not a boolean
        - max_lock_retries that is not a positive integer
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        backend: str | None = None,
        details: str | None = None,
    ):
        self.field = field
        self.backend = backend
        super().__init__(message, details)

    def __str__(self) -> str:
        text = super().__str__()
        if self.backend:
            return f"unable to configure lock {self.backend}: {text}"
        return text


class BackendNotFoundError(StateLockError):
    """Raised when the requested lock backend is not registered."""

    def __init__(self, backend: str, available: list[str] | None = None):
        self.backend = backend
        self.available = available or []
        details = f"available backends: {', '.join(self.available)}" if self.available else None
        super().__init__(f"no Lock implementation found for {backend}", details)


class CredentialsMissingError(StateLockError):
    """Raised when a required secret is absent from the execution environment.

    Attributes:
        source: Where the credential was expected (e.g. "ARM_ACCESS_KEY")
    """

    def __init__(self, message: str, source: str, details: str | None = None):
        self.source = source
        super().__init__(message, details)

    def __str__(self) -> str:
        return f"[{self.source}] {super().__str__()}"


class ResourceNotFoundError(StateLockError):
    """Raised when the protected object does not exist where it must."""

    def __init__(self, message: str, resource: str | None = None, details: str | None = None):
        self.resource = resource
        super().__init__(message, details)


class LockContentionError(StateLockError):
    """Raised when another holder currently owns the lock.

    This is the expected, recoverable outcome when another operator is
    active; every other StateLockError needs investigation.

    Attributes:
        resource: Description of the protected resource
        attempts: Number of acquisition attempts made
        holder: Informational holder metadata reported by the backend, if any
    """

    def __init__(
        self,
        resource: str,
        attempts: int = 1,
        holder: dict[str, str] | None = None,
        details: str | None = None,
    ):
        self.resource = resource
        self.attempts = attempts
        self.holder = holder or {}

        message = f"{resource} is locked by another holder"
        if details is None:
            parts = [f"{attempts} attempt{'s' if attempts != 1 else ''}"]
            if self.holder:
                parts.append(", ".join(f"{k}={v}" for k, v in sorted(self.holder.items())))
            details = "; ".join(parts)
        super().__init__(message, details)


class BackupFailedError(StateLockError):
    """Raised when the backup copy cannot be written after acquisition.

    The lock is still held when this is raised. The caller owns the lease
    described by lease_token and must release it.
    """

    def __init__(
        self,
        message: str,
        resource: str | None = None,
        lease_token: object | None = None,
        original_error: Exception | None = None,
    ):
        self.resource = resource
        self.lease_token = lease_token
        self.original_error = original_error
        details = str(original_error) if original_error is not None else None
        super().__init__(message, details)


class TransportError(StateLockError):
    """Raised for backend/network failures not otherwise classified.

    Wraps SDK errors with the operation and the resource involved.
    """

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        resource: str | None = None,
        status_code: int | None = None,
        details: str | None = None,
        original_error: Exception | None = None,
    ):
        self.operation = operation
        self.resource = resource
        self.status_code = status_code
        self.original_error = original_error
        if details is None and original_error is not None:
            details = str(original_error)
        super().__init__(message, details)

    def __str__(self) -> str:
        parts = [self.message]
        if self.status_code:
            parts.append(f"HTTP {self.status_code}")
        if self.operation:
            parts.append(f"during {self.operation}")
        if self.resource:
            parts.append(f"on {self.resource}")
        if self.details:
            parts.append(self.details)
        return " - ".join(parts)
