"""Application-level error types."""


class TaskwaveError(Exception):
    """Base error for the engine."""


class PlanError(TaskwaveError):
    """Raised when a workflow file cannot be loaded."""


class ValidationError(TaskwaveError):
    """Raised (or returned) when a workflow fails pre-execution validation."""


class InvalidTaskError(ValidationError):
    """A task field is malformed."""


class DuplicateTaskError(ValidationError):
    """Two tasks share an id."""


class MissingDependencyError(ValidationError):
    """A dependency references an unknown task."""


class CircularDependencyError(ValidationError):
    """The dependency relation has a cycle."""


class ConfigurationError(TaskwaveError):
    """Raised when a resolved retry configuration is invalid."""


class TaskTimeoutError(TaskwaveError):
    """A handler invocation did not settle before its deadline."""


class DeadlockError(TaskwaveError):
    """Tasks remain incomplete but none of them can become ready."""


class TaskCancelledError(TaskwaveError):
    """A handler invocation was cancelled from inside the handler itself."""
