"""Result values returned by the client's public operations.

Callers branch on ``result.ok`` instead of guessing whether ``None`` means
"absent" or "something failed"::

    result = await engine.get_entity("task", task_id)
    if result.ok:
        render(result.value)
    elif isinstance(result.failure, Offline):
        show_offline_banner()
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic
from typing import Optional
from typing import TypeVar
from typing import Union

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Failure:
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class NotFound(Failure):
    """The requested record (or its backing snapshot) does not exist."""


@dataclass(frozen=True)
class PersistenceFailure(Failure):
    """Local storage could not be written; in-memory state is still current."""


@dataclass(frozen=True)
class RemoteFailure(Failure):
    status_code: Optional[int] = None

    @property
    def permanent(self) -> bool:
        """4xx other than 408/429: retrying the same request cannot succeed."""

        code = self.status_code
        return code is not None and 400 <= code < 500 and code not in (408, 429)


@dataclass(frozen=True)
class Offline(Failure):
    """The operation needs the remote API and the client is offline."""


# ---------------------------------------------------------------------------
# Ok / Err
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    ok = True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    failure: Failure

    ok = False

    def unwrap(self):
        raise ResultError(self.failure)


class ResultError(Exception):
    """Raised by :meth:`Err.unwrap` for callers that prefer exceptions."""

    def __init__(self, failure: Failure):
        super().__init__(str(failure))
        self.failure = failure


Result = Union[Ok[T], Err]


__all__ = [
    "Failure",
    "NotFound",
    "PersistenceFailure",
    "RemoteFailure",
    "Offline",
    "Ok",
    "Err",
    "Result",
    "ResultError",
]
