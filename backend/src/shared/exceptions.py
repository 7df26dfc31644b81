class AppError(Exception):
    """Base exception for application errors."""

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class RegistryClosedError(AppError):
    """Raised when subscribing to a registry that has been shut down."""

    def __init__(self, message: str = "Subscription registry is closed"):
        super().__init__(message)
