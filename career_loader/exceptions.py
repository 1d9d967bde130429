"""Application exceptions."""


class AppError(Exception):
    """Base exception for application errors."""


class CareerSyncError(AppError):
    """Base exception for persistence synchronization errors."""


class UnsafeCareerError(CareerSyncError):
    """Raised when a career not marked as safe reaches the synchronizer."""

    def __init__(self, career_id: str, career_name: str):
        self.career_id = career_id
        self.career_name = career_name
        super().__init__(
            f"Career {career_id!r} ({career_name!r}) is not marked as safe to persist"
        )


class InvalidCareerError(CareerSyncError):
    """Raised when a career carries data the relational schema cannot hold."""


class StoreConnectionError(CareerSyncError):
    """Raised when the row store cannot be reached."""


class DatabaseConnectionError(AppError):
    """Raised when database connection fails."""
