class GroceryError(Exception):
    """Base class for every failure surfaced by the grocery list."""


class ExternalToolError(GroceryError):
    """dstask could not be started or exited with a failure."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class ClearError(ExternalToolError):
    """A removal failed part way through clearing bought items."""

    def __init__(self, message: str, removed: int, total: int, cause: ExternalToolError):
        super().__init__(message, returncode=cause.returncode, stderr=cause.stderr)
        self.removed = removed
        self.total = total


class ValidationError(GroceryError):
    pass


class UnknownActionError(GroceryError):
    pass
