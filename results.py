# results.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar, Union

T = TypeVar("T")


class FailureKind(str, Enum):
    OFFLINE = "offline"
    NETWORK = "network"
    SERVER_STATUS = "server_status"
    MALFORMED = "malformed"
    # Local store miss; logged, never reported as a transport error.
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Failure:
    kind: FailureKind
    detail: str
    status_code: Optional[int] = None

    def __str__(self) -> str:
        if self.kind is FailureKind.SERVER_STATUS:
            return f"{self.kind.value}({self.status_code}): {self.detail}"
        return f"{self.kind.value}: {self.detail}"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    failure: Failure

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]


def offline(detail: str) -> Err:
    return Err(Failure(FailureKind.OFFLINE, detail))


def network(detail: str) -> Err:
    return Err(Failure(FailureKind.NETWORK, detail))


def server_status(status_code: int, detail: str) -> Err:
    return Err(Failure(FailureKind.SERVER_STATUS, detail, status_code=status_code))


def malformed(detail: str) -> Err:
    return Err(Failure(FailureKind.MALFORMED, detail))
