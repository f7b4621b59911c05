"""Errors shared across the collector services."""


class StartupError(Exception):
    """Raised when a session with an external service cannot be established.

    Startup failures are fatal: the process exits instead of retrying.
    """

    def __init__(self, service: str, cause: Exception):
        super().__init__(f"Cannot connect to {service}: {cause}")
        self.service = service
        self.cause = cause
