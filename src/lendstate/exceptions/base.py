from typing import Any


class LendstateError(Exception):
    """
    Base exception used as the parent class for all exceptions raised by this package.

    Calling code should catch `LendstateError` and derived classes separately before general
    exceptions, e.g.:

    ```
    try:
        engine.process_event(event)
    except ProtocolNotFound:
        ... # handle a specific exception
    except LendstateError:
        ... # handle non-specific lendstate exception
    except Exception:
        ... # handle exceptions raised by 3rd party dependencies or Python built-ins
    ```

    An optional string-formatted message may be attached to the exception and retrieved by accessing
    the `.message` attribute.
    """

    message: str | None = None

    def __init__(self, message: str | None = None) -> None:
        if message:
            self.message = message
            super().__init__(message)

    # Subclasses with different constructor arguments must define their own reduction method
    def __reduce__(self) -> tuple[Any, ...]:
        return self.__class__, (self.message,)


class LendstateValueError(LendstateError): ...


class ExternalServiceError(LendstateError):
    """
    Raised on errors resulting from a call to an external service.
    """

    def __init__(self, error: str) -> None:
        self.error = error
        super().__init__(message=f"External service error: {error}")

    def __reduce__(self) -> tuple[Any, ...]:
        return self.__class__, (self.error,)
