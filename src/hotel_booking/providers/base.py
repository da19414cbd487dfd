# src/hotel_booking/providers/base.py

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Any, Generic, Optional, TypeVar, Union

from hotel_booking.core.models import BookingRequest

T = TypeVar("T")


@dataclass(frozen=True)
class ApiSuccess(Generic[T]):
    data: T
    next_token: Optional[str] = None


@dataclass(frozen=True)
class ApiError:
    status: Optional[int] = None
    code: Optional[int] = None
    title: Optional[str] = None
    detail: Optional[str] = None

    def describe(self) -> str:
        parts = [str(p) for p in (self.status, self.code, self.title, self.detail) if p]
        return " / ".join(parts) or "unknown error"


ApiResult = Union[ApiSuccess[Any], ApiError]


class HotelBookingProvider(ABC):
    """
    The five capability groups the booking workflow consumes.

    Implementations never raise for API or network failures: they
    answer with an ApiError instead.
    """

    @abstractmethod
    async def search_locations(self, keyword: str, sub_type: str = "CITY") -> ApiResult:
        """ApiSuccess[List[Location]]"""

    @abstractmethod
    async def hotel_offers_by_city(
        self, city_code: str, check_in: date, check_out: date
    ) -> ApiResult:
        """ApiSuccess[List[HotelOffer]] with an optional continuation token."""

    @abstractmethod
    async def next_page(self, token: str) -> ApiResult:
        """ApiSuccess[List[HotelOffer]] for the page behind a continuation token."""

    @abstractmethod
    async def hotel_offers_by_hotel(
        self, hotel_id: str, check_in: date, check_out: date
    ) -> ApiResult:
        """ApiSuccess[HotelOffer]"""

    @abstractmethod
    async def hotel_offer(self, offer_id: str) -> ApiResult:
        """ApiSuccess[HotelOffer] with the finalized price."""

    @abstractmethod
    async def book(self, request: BookingRequest) -> ApiResult:
        """ApiSuccess[List[BookingConfirmation]]"""

