"""Exceptions raised by sparsegrid.

Missing source files are reported with the built-in FileNotFoundError (see
utils.paths.check_path); bad arguments with TypeError/ValueError.
"""


class GridError(Exception):
    """Base class for grid related errors."""


class UnsupportedOperationError(GridError, NotImplementedError):
    """Operation is not available for the storage representation of a grid."""

    def __init__(self, operation: str, representation: str = "sparse"):
        self.operation = operation
        self.representation = representation
        super().__init__(
            f"{operation} is not supported for the {representation} grid representation"
        )


class InconsistentStateError(GridError):
    """Grid values are not resident and cannot be loaded from a source file."""
