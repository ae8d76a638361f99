from __future__ import annotations


class HeartbeatError(Exception):
    """Base exception for heartbeat errors."""
    def __init__(self, message: str, code: str = "ERR_UNKNOWN"):
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")


class ConfigError(HeartbeatError):
    """Missing or invalid configuration. Fatal at startup."""
    def __init__(self, message: str):
        super().__init__(message, code="ERR_CONFIG")


class CredentialError(HeartbeatError):
    """Token exchange or client construction failed."""
    def __init__(self, message: str):
        super().__init__(message, code="ERR_CREDENTIAL")


class CredentialsUnavailableError(ConfigError, CredentialError):
    """No usable credential source was configured."""
    def __init__(self, message: str):
        HeartbeatError.__init__(self, message, code="ERR_CONFIG")


class StorageOperationError(HeartbeatError):
    """An object store call failed."""
    def __init__(self, message: str, operation: str | None = None):
        code = "ERR_STORAGE"
        if operation:
            code = f"ERR_STORAGE_{operation.upper()}"
        self.operation = operation
        super().__init__(message, code=code)
