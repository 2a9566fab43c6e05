"""
Error taxonomy for audit construction and state transitions.

Every error is raised at the point of detection and never retried.
Builder and transition failures are atomic: no partial audit record is
returned and no live record is left half-modified.
"""
from typing import Any, List, Optional


class AuditingError(Exception):
    """Base class for every auditing failure."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class InvalidEventError(AuditingError):
    """Raised when an audit is built without a valid event."""
    def __init__(self, event: Optional[str] = None):
        self.event = event
        super().__init__("A valid audit event has not been set")


class MissingStrategyError(AuditingError):
    """Raised when a custom event resolves to a strategy the record does not provide."""
    def __init__(self, event: str, strategy: str):
        self.event = event
        self.strategy = strategy
        super().__init__(f'Unable to handle "{event}" event, {strategy}() strategy missing')


class InvalidModifierError(AuditingError):
    """Raised when an attribute modifier is neither a redactor nor an encoder."""
    def __init__(self, attribute: str, identifier: Any):
        self.attribute = attribute
        self.identifier = identifier
        super().__init__(
            f"Invalid attribute modifier implementation for {attribute}: {_describe(identifier)}"
        )


class InvalidResolverError(AuditingError):
    """Raised when an actor or context resolver is unset or cannot be invoked."""
    def __init__(self, resolver: str):
        self.resolver = resolver
        super().__init__(f"Invalid {resolver} implementation")


class InvalidDriverError(AuditingError):
    """Raised when the configured audit driver cannot be resolved."""
    def __init__(self, driver: Any):
        self.driver = driver
        super().__init__(f"Invalid audit driver implementation: {_describe(driver)}")


class TransitionError(AuditingError):
    """
    Raised when a stored audit cannot be applied to a live record.

    The live record is guaranteed to be unmodified when this is raised.
    """


class TypeMismatchError(TransitionError):
    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected auditable type {expected}, got {actual} instead")


class IdentityMismatchError(TransitionError):
    def __init__(self, expected: Any, actual: Any):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected auditable id {expected}, got {actual} instead")


class IrreversibleModifierError(TransitionError):
    def __init__(self, attributes: Optional[List[str]] = None):
        self.attributes = attributes or []
        super().__init__("Cannot transition states when an attribute redactor is set")


class IncompatibleSchemaError(TransitionError):
    """Carries the stored keys the live record cannot assign."""
    def __init__(self, message: str, incompatibilities: List[str]):
        self.incompatibilities = list(incompatibilities)
        super().__init__(message)


def _describe(identifier: Any) -> str:
    if isinstance(identifier, str):
        return identifier
    if isinstance(identifier, type):
        return identifier.__name__
    return repr(identifier)
