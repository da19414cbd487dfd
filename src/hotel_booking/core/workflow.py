# src/hotel_booking/core/workflow.py

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import Optional, Sequence

from hotel_booking.core.models import (
    TEST_PAYMENT,
    BookingConfirmation,
    Guest,
    HotelOffer,
    Location,
    PaymentMethod,
    PriceConfirmation,
    RoomOffer,
)
from hotel_booking.core.results import StageResult, Success
from hotel_booking.core.signals import Observable, StageScope
from hotel_booking.core.stages import (
    BookingStage,
    LocationStage,
    OfferSearchStage,
    PriceStage,
    RateStage,
)
from hotel_booking.providers.base import HotelBookingProvider

logger = logging.getLogger(__name__)


class WorkflowError(ValueError):
    """Raised when a transition is attempted without the input it needs."""


class WorkflowStep(str, Enum):
    LOCATION_SEARCH = "location_search"
    OFFER_SEARCH = "offer_search"
    RATE_VIEW = "rate_view"
    PRICE_CONFIRM = "price_confirm"
    BOOKING_SUBMIT = "booking_submit"
    DONE = "done"


@dataclass(frozen=True)
class BookingContext:
    """Everything chosen so far, carried forward from stage to stage."""

    location: Optional[Location] = None
    check_in: Optional[date] = None
    check_out: Optional[date] = None
    hotel_id: Optional[str] = None
    offer_id: Optional[str] = None
    price: Optional[PriceConfirmation] = None
    confirmation: Optional[BookingConfirmation] = None

    @property
    def city_code(self) -> Optional[str]:
        return self.location.iata_code if self.location else None


class BookingWorkflow:
    """
    Sequences the five stages of a hotel booking, strictly forward:

        LOCATION_SEARCH -> OFFER_SEARCH -> RATE_VIEW -> PRICE_CONFIRM
            -> BOOKING_SUBMIT -> DONE

    Every selection must come out of the current stage's Success value,
    otherwise WorkflowError is raised and nothing changes. Entering the
    rate view and the price view triggers their lookup right away.

    One workflow owns one StageScope; `close()` cancels whatever is
    still in flight and freezes every stage's state.
    """

    def __init__(self, provider: HotelBookingProvider, scope: Optional[StageScope] = None):
        self.provider = provider
        self.scope = scope or StageScope()

        self.locations = LocationStage(provider, self.scope)
        self.offers = OfferSearchStage(provider, self.scope)
        self.rates = RateStage(provider, self.scope)
        self.price = PriceStage(provider, self.scope)
        self.booking = BookingStage(provider, self.scope)

        self.step: Observable[WorkflowStep] = Observable(WorkflowStep.LOCATION_SEARCH)
        self._context = BookingContext()

    @property
    def current_step(self) -> WorkflowStep:
        return self.step.value

    @property
    def context(self) -> BookingContext:
        return self._context

    def close(self) -> None:
        self.scope.close()

    def _require_step(self, *allowed: WorkflowStep) -> None:
        if not self.scope.active:
            raise WorkflowError("The booking workflow has been closed")
        if self.current_step not in allowed:
            raise WorkflowError(
                f"Not allowed in step {self.current_step.value}, expected one of "
                + ", ".join(s.value for s in allowed)
            )

    def _advance(self, step: WorkflowStep, **changes) -> None:
        self._context = replace(self._context, **changes)
        logger.info("Booking workflow: %s -> %s", self.current_step.value, step.value)
        self.step.set(step)

    # --- Location search -------------------------------------------------

    async def search_locations(self, fragment: str) -> Optional[StageResult]:
        self._require_step(WorkflowStep.LOCATION_SEARCH)
        return await self.locations.search(fragment)

    def select_location(self, location: Location) -> None:
        self._require_step(WorkflowStep.LOCATION_SEARCH)
        found = self.locations.state.value.value or []
        if location not in found:
            raise WorkflowError(f"{location.iata_code} is not part of the last city search")
        self._advance(WorkflowStep.OFFER_SEARCH, location=location)

    # --- Offer search ----------------------------------------------------

    async def search_offers(self, check_in: date, check_out: date) -> Optional[StageResult]:
        self._require_step(WorkflowStep.OFFER_SEARCH)
        result = await self.offers.search(self._context.city_code, check_in, check_out)
        # Dates only count once a search for them has succeeded
        if isinstance(result, Success):
            self._context = replace(self._context, check_in=check_in, check_out=check_out)
        return result

    async def load_more(self) -> Optional[StageResult]:
        self._require_step(WorkflowStep.OFFER_SEARCH)
        return await self.offers.load_more()

    async def select_hotel(self, hotel_offer: HotelOffer) -> Optional[StageResult]:
        self._require_step(WorkflowStep.OFFER_SEARCH)
        if self.offers.busy:
            raise WorkflowError("Hotel search results are still loading")
        page = self.offers.page
        if page is None or hotel_offer.hotel_id not in {o.hotel_id for o in page.offers}:
            raise WorkflowError(f"Hotel {hotel_offer.hotel_id} is not part of the search results")

        ctx = self._context
        self._advance(WorkflowStep.RATE_VIEW, hotel_id=hotel_offer.hotel_id)
        return await self.rates.fetch_rates(hotel_offer.hotel_id, ctx.check_in, ctx.check_out)

    # --- Rates -----------------------------------------------------------

    async def select_offer(self, room_offer: RoomOffer) -> Optional[StageResult]:
        self._require_step(WorkflowStep.RATE_VIEW)
        rates = self.rates.state.value
        if not rates.succeeded or rates.value.find_offer(room_offer.offer_id) is None:
            raise WorkflowError(f"Offer {room_offer.offer_id} is not part of the hotel rates")

        self._advance(WorkflowStep.PRICE_CONFIRM, offer_id=room_offer.offer_id)
        return await self._fetch_price()

    async def reload(self) -> Optional[StageResult]:
        """Run the rate view or price view entry lookup again, e.g. after a failure."""
        self._require_step(WorkflowStep.RATE_VIEW, WorkflowStep.PRICE_CONFIRM)
        ctx = self._context
        if self.current_step is WorkflowStep.RATE_VIEW:
            return await self.rates.fetch_rates(ctx.hotel_id, ctx.check_in, ctx.check_out)
        return await self._fetch_price()

    async def _fetch_price(self) -> Optional[StageResult]:
        offer_id = self._context.offer_id
        self._context = replace(self._context, price=None)
        result = await self.price.fetch_price(offer_id)
        if isinstance(result, Success):
            try:
                confirmation = PriceConfirmation.from_hotel_offer(result.value)
            except ValueError:
                logger.warning("Price lookup for %s returned no room offer", offer_id)
            else:
                self._context = replace(self._context, price=confirmation)
        return result

    # --- Booking ---------------------------------------------------------

    async def confirm_booking(
        self,
        guests: Sequence[Guest],
        payments: Sequence[PaymentMethod] = (TEST_PAYMENT,),
    ) -> Optional[StageResult]:
        self._require_step(WorkflowStep.PRICE_CONFIRM, WorkflowStep.BOOKING_SUBMIT)
        if self._context.price is None:
            raise WorkflowError("The offer price has not been confirmed")
        if not guests:
            raise WorkflowError("At least one guest is required")
        if self.booking.busy:
            raise WorkflowError("This booking is already being submitted")

        if self.current_step is WorkflowStep.PRICE_CONFIRM:
            self._advance(WorkflowStep.BOOKING_SUBMIT)

        result = await self.booking.post_booking(self._context.offer_id, guests, payments)
        if isinstance(result, Success):
            self._advance(WorkflowStep.DONE, confirmation=result.value)
        return result
