from lendstate.exceptions.base import ExternalServiceError, LendstateError, LendstateValueError
from lendstate.exceptions.database import BackupExists
from lendstate.exceptions.state import ProtocolNotFound, StateError, UnknownEventTopic

from . import base, database, state

__all__ = (
    "BackupExists",
    "ExternalServiceError",
    "LendstateError",
    "LendstateValueError",
    "ProtocolNotFound",
    "StateError",
    "UnknownEventTopic",
    "base",
    "database",
    "state",
)
