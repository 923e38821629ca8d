"""Domain errors for pgseed."""


class SeedError(RuntimeError):
    """Raised when a seeded environment cannot be provisioned safely."""


class StartupTimeout(SeedError):
    """Raised when an instance does not accept connections within the deadline."""

    def __init__(self, role: str, timeout_seconds: float, message: str):
        super().__init__(message)
        self.role = role
        self.timeout_seconds = timeout_seconds


class RestoreFailed(SeedError):
    """Raised when the restore tool exits non-zero for a backup artifact."""

    def __init__(self, role: str, result, message: str):
        super().__init__(message)
        self.role = role
        self.result = result

    @property
    def backup(self) -> str:
        return self.result.backup


class BackupNotFound(SeedError):
    """Raised when a backup artifact name cannot be resolved to a file."""


class InvalidStateTransition(SeedError):
    """Raised when an instance is moved outside its lifecycle."""
