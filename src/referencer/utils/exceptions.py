"""Custom exceptions for the import reference resolver.

Exception Hierarchy:
-------------------
ReferencerError (base)
├── RegistrationError          # Registration mapping has the wrong structure
├── UnknownEntityKindError     # Entity kind tag is not supported
├── CyclicDependencyError      # Circular dependency between entity kinds
├── DocumentError              # Reference document could not be loaded
└── StoreError (base for Data Store errors)
    ├── StoreQueryError        # Query execution failed
    └── UnsupportedFieldError  # Field unknown to the store for this kind

Usage Guidelines:
----------------
1. A reference that does not exist is NOT an error. Lookups return None and
   the import pipeline creates the entity.

2. StoreError is raised by Data Store implementations and passes through the
   resolver untouched. The resolver never caches a partial batch, so the next
   lookup of the same kind repeats the whole query.

3. Use ReferencerError as catch-all for resolver-specific errors.
"""


class ReferencerError(Exception):
    """Base exception for all reference resolver errors."""

    pass


class RegistrationError(ReferencerError):
    """Raised when a pending registration mapping is structurally invalid."""

    def __init__(self, kind: str, message: str) -> None:
        """
        Initialize RegistrationError.

        Args:
            kind: Entity kind the registration was made for.
            message: What is wrong with the mapping.
        """
        super().__init__(f"Invalid {kind} registration: {message}")
        self.kind = kind


class UnknownEntityKindError(ReferencerError):
    """Raised when an entity kind tag is not supported."""

    def __init__(self, kind: str) -> None:
        super().__init__(f"Unknown entity kind: {kind}")
        self.kind = kind


class CyclicDependencyError(ReferencerError):
    """
    Raised when circular dependencies are detected between entity kinds.

    The kind graph is static, so this only fires when the dependency table is
    edited into an inconsistent state.
    """

    def __init__(self, message: str, cycles: list[list[str]] | None = None) -> None:
        """
        Initialize CyclicDependencyError.

        Args:
            message: Error message.
            cycles: Detected cycles, each a list of entity kind names.
        """
        super().__init__(message)
        self.cycles = cycles or []


class DocumentError(ReferencerError):
    """Raised when a reference document cannot be read or parsed."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message)
        self.original_error = original_error


class StoreError(ReferencerError):
    """Base exception for Data Store errors."""

    pass


class StoreQueryError(StoreError):
    """Raised when the Data Store fails to execute a query."""

    def __init__(self, kind: str, message: str, original_error: Exception | None = None) -> None:
        """
        Initialize StoreQueryError.

        Args:
            kind: Entity kind that was being queried.
            message: Error message from the storage engine.
            original_error: Optional original exception.
        """
        super().__init__(f"Query for {kind} failed: {message}")
        self.kind = kind
        self.original_error = original_error


class UnsupportedFieldError(StoreError):
    """Raised when a query names a field the store does not expose for a kind."""

    def __init__(self, kind: str, field: str) -> None:
        super().__init__(f"Field '{field}' is not available for {kind}")
        self.kind = kind
        self.field = field
