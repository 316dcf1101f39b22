class ConfigurationError(RuntimeError):
    """Raised when a required credential or connection URL is missing."""


class BatchNotFoundError(LookupError):
    """Raised when an import batch id has no matching record."""

    def __init__(self, batch_id: str) -> None:
        super().__init__(f"Batch {batch_id} not found")
        self.batch_id = batch_id


class BatchStateError(RuntimeError):
    """Raised when a batch transition is attempted from a terminal state."""

    def __init__(self, batch_id: str, status: str) -> None:
        super().__init__(f"Batch {batch_id} is already {status}")
        self.batch_id = batch_id
        self.status = status
