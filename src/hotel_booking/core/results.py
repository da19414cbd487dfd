# src/hotel_booking/core/results.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T
    next_token: Optional[str] = None  # continuation, list stages only


@dataclass(frozen=True)
class Failure:
    message: str


StageResult = Union[Success[Any], Failure]


@dataclass(frozen=True)
class StageState:
    """
    What a screen renders for one stage.

    busy is orthogonal to result: while a request is in flight the
    previous Success/Failure stays visible.
    """

    busy: bool = False
    result: Optional[StageResult] = None

    @property
    def succeeded(self) -> bool:
        return isinstance(self.result, Success)

    @property
    def failed(self) -> bool:
        return isinstance(self.result, Failure)

    @property
    def value(self) -> Any:
        if isinstance(self.result, Success):
            return self.result.value
        return None

    @property
    def error_message(self) -> Optional[str]:
        if isinstance(self.result, Failure):
            return self.result.message
        return None

