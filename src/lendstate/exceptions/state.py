from typing import Any

from lendstate.exceptions.base import LendstateError


class StateError(LendstateError):
    """
    Exception raised while deriving lending state from an event.
    """


class ProtocolNotFound(StateError):
    """
    Raised when the protocol singleton is absent on a path that requires it to exist. This is an
    invariant violation: the event being processed is abandoned.
    """

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(message=f"[{operation}] Protocol not found, this SHOULD NOT happen")

    def __reduce__(self) -> tuple[Any, ...]:
        return self.__class__, (self.operation,)


class UnknownEventTopic(StateError):
    """
    Raised when a log cannot be matched to a known event signature.
    """

    def __init__(self, topic: str) -> None:
        self.topic = topic
        super().__init__(message=f"Unknown event topic: {topic}")

    def __reduce__(self) -> tuple[Any, ...]:
        return self.__class__, (self.topic,)
