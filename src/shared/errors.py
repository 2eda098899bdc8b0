"""Domain error taxonomy, mapped to HTTP status codes by the API layer."""


class FraudEngineError(Exception):
    """Base class for errors raised by the fraud engine."""


class NotFoundError(FraudEngineError, LookupError):
    """A referenced rule, member, decision or request does not exist."""

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class InvalidStateError(FraudEngineError):
    """The target exists but is not in a state that allows the operation."""


class RuleValidationError(FraudEngineError, ValueError):
    """A rule definition is missing parameters its type requires."""
