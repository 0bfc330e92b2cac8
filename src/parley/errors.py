"""
Error taxonomy shared by the gateway, the store and the HTTP surface.

Every error carries a machine-readable ``code`` and the HTTP status it maps
to, so the API layer can translate any of them without branching on type.
"""

from typing import Optional


class ParleyError(Exception):
    """Base class for all application errors."""

    code = "error"
    http_status = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidInput(ParleyError):
    """A client-correctable problem with a completion request.

    Attributes
    ----------
    field : str
        Which part of the request failed: ``message``, ``history``,
        ``history-item`` or ``provider``.
    """

    code = "invalid_input"
    http_status = 400

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message)


class MissingCredential(ParleyError):
    """No API key was supplied for a provider that requires one."""

    code = "missing_credential"
    http_status = 400

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"API key required for {provider}")


class UpstreamError(ParleyError):
    """The completion backend failed or could not be reached."""

    code = "upstream_error"
    http_status = 500

    def __init__(self, message: str, provider: Optional[str] = None):
        self.provider = provider
        super().__init__(message)


class StorageFault(ParleyError):
    """Local persistence failed. Logged by the store, never raised to callers."""

    code = "storage_fault"

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation}: {message}")
