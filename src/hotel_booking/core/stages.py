# src/hotel_booking/core/stages.py

from __future__ import annotations

import logging
from datetime import date
from typing import Optional, Sequence

from hotel_booking.core.models import (
    BookingRequest,
    Guest,
    PaymentMethod,
    SearchResultPage,
)
from hotel_booking.core.results import Failure, StageResult, StageState, Success
from hotel_booking.core.signals import Observable, StageScope
from hotel_booking.providers.base import ApiError, ApiResult, HotelBookingProvider

logger = logging.getLogger(__name__)

NO_RESULTS_MESSAGE = "No result for your research"


class Stage:
    """
    One step of the booking workflow.

    Publishes StageState through `state`. API errors never escape a
    stage: they become a Failure carrying `failure_message`, and the
    technical detail only goes to the log.
    """

    failure_message = "Something went wrong, please try again"

    def __init__(self, provider: HotelBookingProvider, scope: Optional[StageScope] = None):
        self.provider = provider
        self.scope = scope or StageScope()
        self.state: Observable[StageState] = Observable(StageState())

    @property
    def busy(self) -> bool:
        return self.state.value.busy

    def _begin(self) -> bool:
        if not self.scope.active:
            logger.debug("%s: scope closed, request not sent", type(self).__name__)
            return False
        self.state.set(StageState(busy=True, result=self.state.value.result))
        return True

    def _publish(self, result: StageResult) -> Optional[StageResult]:
        # A torn-down screen never sees a late result
        if not self.scope.active:
            logger.debug("%s: scope closed, dropping result", type(self).__name__)
            return None
        self.state.set(StageState(busy=False, result=result))
        return result

    def _failure(self, error: ApiError) -> Failure:
        logger.warning("%s failed: %s", type(self).__name__, error.describe())
        return Failure(self.failure_message)

    def _to_stage_result(self, result: ApiResult) -> StageResult:
        if isinstance(result, ApiError):
            return self._failure(result)
        return Success(result.data)


class LocationStage(Stage):
    """Turns free text into candidate cities."""

    failure_message = "An error occurred while searching for cities"

    async def search(self, fragment: str) -> Optional[StageResult]:
        if not self._begin():
            return None

        # Airports are excluded by the request itself
        result = await self.provider.search_locations(fragment, sub_type="CITY")
        if isinstance(result, ApiError):
            return self._publish(self._failure(result))

        # An empty city list is a valid answer here
        return self._publish(Success(list(result.data)))


class OfferSearchStage(Stage):
    """
    Hotel offers for a city and date range, with continuation.

    `page` is the retained SearchResultPage: replaced by `search`,
    extended by `load_more`.
    """

    failure_message = "An error occurred while searching for hotels"

    def __init__(self, provider: HotelBookingProvider, scope: Optional[StageScope] = None):
        super().__init__(provider, scope)
        self.page: Optional[SearchResultPage] = None
        self._generation = 0

    @property
    def can_load_more(self) -> bool:
        return self.page is not None and self.page.next_token is not None

    async def search(
        self, city_code: str, check_in: date, check_out: date
    ) -> Optional[StageResult]:
        if not self._begin():
            return None
        self._generation += 1
        generation = self._generation

        # Date validity is left to the API
        result = await self.provider.hotel_offers_by_city(city_code, check_in, check_out)
        if generation != self._generation:
            return None

        if isinstance(result, ApiError):
            self.page = None
            return self._publish(self._failure(result))

        if not result.data:
            self.page = None
            logger.info("No hotel offers for %s %s..%s", city_code, check_in, check_out)
            return self._publish(Failure(NO_RESULTS_MESSAGE))

        self.page = SearchResultPage(offers=tuple(result.data), next_token=result.next_token)
        return self._publish(Success(list(self.page.offers), self.page.next_token))

    async def load_more(self) -> Optional[StageResult]:
        # One continuation at a time; extra taps are dropped
        if self.busy:
            logger.debug("load_more ignored, a request is already in flight")
            return None
        if not self.can_load_more:
            return None

        page = self.page
        if not self._begin():
            return None
        generation = self._generation

        result = await self.provider.next_page(page.next_token)
        # A fresh search replaced the page meanwhile
        if generation != self._generation:
            return None

        if isinstance(result, ApiError):
            return self._publish(self._failure(result))

        if not result.data:
            # End of list: keep what we have, stop offering more pages
            self.page = SearchResultPage(offers=page.offers, next_token=None)
            return self._publish(Failure(NO_RESULTS_MESSAGE))

        self.page = page.extended(result.data, result.next_token)
        return self._publish(Success(list(self.page.offers), self.page.next_token))


class RateStage(Stage):
    """Room offers for one hotel. Loaded eagerly when the rate view opens."""

    failure_message = "Unable to load the rates for this hotel"

    async def fetch_rates(
        self, hotel_id: str, check_in: date, check_out: date
    ) -> Optional[StageResult]:
        if not self._begin():
            return None
        result = await self.provider.hotel_offers_by_hotel(hotel_id, check_in, check_out)
        return self._publish(self._to_stage_result(result))


class PriceStage(Stage):
    """Finalized price for one room offer. Loaded eagerly on entry."""

    failure_message = "Unable to confirm the price of this offer"

    async def fetch_price(self, offer_id: str) -> Optional[StageResult]:
        if not self._begin():
            return None
        result = await self.provider.hotel_offer(offer_id)
        return self._publish(self._to_stage_result(result))


class BookingStage(Stage):
    failure_message = "Booking failed"

    async def post_booking(
        self,
        offer_id: str,
        guests: Sequence[Guest],
        payments: Sequence[PaymentMethod],
    ) -> Optional[StageResult]:
        # Sent once: a second submit while one is in flight is dropped
        if self.busy:
            logger.warning("Booking of %s ignored, a submission is already in flight", offer_id)
            return None
        if not self._begin():
            return None

        request = BookingRequest(offer_id=offer_id, guests=tuple(guests), payments=tuple(payments))
        result = await self.provider.book(request)
        if isinstance(result, ApiError):
            return self._publish(self._failure(result))

        confirmations = list(result.data)
        if not confirmations:
            logger.warning("Booking of %s succeeded without a confirmation", offer_id)
            return self._publish(Failure(self.failure_message))

        # Single-offer booking: extra confirmations are ignored
        if len(confirmations) > 1:
            logger.info("Ignoring %d extra booking confirmation(s)", len(confirmations) - 1)
        return self._publish(Success(confirmations[0]))
