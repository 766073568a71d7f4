"""Custom exceptions for the music tree runtime."""

from typing import List, Optional


class MusicTreeError(Exception):
    """Base exception for music tree runtime errors."""
    pass


class ConfigurationError(MusicTreeError):
    """Raised when there's an error in configuration."""
    pass


class StateError(MusicTreeError):
    """Raised when a state path cannot be read or written."""
    pass


class ValidationError(StateError):
    """Raised when a value does not satisfy a registered predicate."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message)
        self.path = path


class TransactionError(StateError):
    """Raised when a write inside a transaction fails.

    Writes listed in ``applied_paths`` stay in the document; only their
    pending notifications are dropped. The failing write's own error is the
    ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        failed_path: Optional[str] = None,
        applied_paths: Optional[List[str]] = None
    ) -> None:
        super().__init__(message)
        self.path = failed_path
        self.failed_path = failed_path
        self.applied_paths = applied_paths or []


class DependencyError(MusicTreeError):
    """Raised when services cannot be started in dependency order."""
    pass


class MissingDependencyError(DependencyError):
    """Raised when a service depends on an unregistered service."""

    def __init__(self, service: str, dependency: str) -> None:
        super().__init__(
            f"Dependency '{dependency}' not found for service '{service}'"
        )
        self.service = service
        self.dependency = dependency


class CircularDependencyError(DependencyError):
    """Raised when the dependency graph contains a cycle."""

    def __init__(self, cycle: List[str]) -> None:
        super().__init__(
            f"Circular dependency detected: {' -> '.join(cycle)}"
        )
        self.cycle = cycle


class ServiceInitializationError(DependencyError):
    """Raised when a required service fails to initialize."""

    def __init__(self, service: str, message: str) -> None:
        super().__init__(
            f"Required service '{service}' failed to initialize: {message}"
        )
        self.service = service


class ServiceRegistrationError(MusicTreeError):
    """Raised when a service cannot be registered."""
    pass
