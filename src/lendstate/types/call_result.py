from dataclasses import dataclass
from typing import Self


@dataclass(slots=True, frozen=True)
class CallResult[T]:
    """
    The outcome of a point-in-time contract read. A read either produced a value or reverted; the
    reader never raises, so callers decide how to degrade.
    """

    value: T | None = None
    revert_reason: str | None = None

    @classmethod
    def ok(cls, value: T) -> Self:
        return cls(value=value)

    @classmethod
    def reverted(cls, reason: str = "reverted") -> Self:
        return cls(revert_reason=reason)

    @property
    def is_reverted(self) -> bool:
        return self.revert_reason is not None

    def value_or(self, default: T) -> T:
        """
        Return the read value, or `default` if the call reverted.
        """

        if self.revert_reason is not None or self.value is None:
            return default
        return self.value

    def unwrap(self) -> T:
        if self.revert_reason is not None or self.value is None:
            msg = f"Cannot unwrap a reverted call result ({self.revert_reason})"
            raise ValueError(msg)
        return self.value
