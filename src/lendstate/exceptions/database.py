import pathlib
from typing import Any

from lendstate.exceptions.base import LendstateError


class BackupExists(LendstateError):
    """
    Raised by `lendstate database backup` if a file exists at the target path.
    """

    def __init__(self, path: pathlib.Path) -> None:
        self.path = path
        super().__init__(message=f"A backup at {path} already exists.")

    def __reduce__(self) -> tuple[Any, ...]:
        return self.__class__, (self.path,)
