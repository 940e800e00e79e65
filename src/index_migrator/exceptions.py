class IndexMigratorError(Exception):
    """Base exception for index migration operations.

    The orchestrator sets ``state`` to the migration state that was running
    when the error was raised.
    """

    state = None


class ConfigurationError(IndexMigratorError):
    """Raised when the migration options are invalid."""

    pass


class SourceIsAliasError(IndexMigratorError):
    """Raised when the configured index to copy from is an alias."""

    pass


class SourceNotFoundError(IndexMigratorError):
    """Raised when the index to copy from does not exist."""

    pass


class IndexCreationError(IndexMigratorError):
    """Raised when the cluster rejects the creation of the new index."""

    pass


class IndexAlreadyExistsError(IndexCreationError):
    """Raised when the index to create already exists."""

    pass


class ContentCopyError(IndexMigratorError):
    """Raised when the content copier fails."""

    pass


class AliasUpdateError(IndexMigratorError):
    """Raised when the alias actions are rejected by the cluster."""

    pass


class IndexDeletionError(IndexMigratorError):
    """Raised when an old index cannot be deleted."""

    pass
