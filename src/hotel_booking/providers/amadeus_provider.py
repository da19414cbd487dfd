# src/hotel_booking/providers/amadeus_provider.py

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional

import anyio
import requests

from hotel_booking.core.models import (
    BookingConfirmation,
    BookingRequest,
    Hotel,
    HotelOffer,
    Location,
    RoomOffer,
)
from hotel_booking.providers.base import ApiError, ApiResult, ApiSuccess, HotelBookingProvider
from hotel_booking.services.amadeus_client import AmadeusClient, AmadeusResponseError

logger = logging.getLogger(__name__)


def _parse_date(value: Optional[str]) -> Optional[date]:
    """
    Parse Amadeus dates like '2023-06-01'.
    """
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _to_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _next_token(payload: Dict[str, Any]) -> Optional[str]:
    meta = payload.get("meta", {}) or {}
    links = meta.get("links", {}) or {}
    return links.get("next") or None


def build_location(raw: Dict[str, Any]) -> Location:
    address = raw.get("address", {}) or {}
    return Location(
        name=str(raw.get("name") or address.get("cityName") or ""),
        iata_code=str(raw.get("iataCode") or address.get("cityCode") or ""),
        sub_type=str(raw.get("subType") or "CITY"),
        country_code=address.get("countryCode"),
    )


def _build_hotel(raw: Dict[str, Any]) -> Hotel:
    address = raw.get("address", {}) or {}
    return Hotel(
        hotel_id=str(raw.get("hotelId", "")),
        name=str(raw.get("name", "")),
        city_code=raw.get("cityCode"),
        rating=str(raw["rating"]) if raw.get("rating") is not None else None,
        latitude=_to_float(raw.get("latitude")),
        longitude=_to_float(raw.get("longitude")),
        address_lines=tuple(address.get("lines", []) or []),
    )


def _build_room_offer(raw: Dict[str, Any]) -> RoomOffer:
    price = raw.get("price", {}) or {}
    total = _to_float(price.get("total")) or _to_float(price.get("base")) or 0.0

    room = raw.get("room", {}) or {}
    type_estimated = room.get("typeEstimated", {}) or {}
    description = (room.get("description", {}) or {}).get("text") or (
        (raw.get("description", {}) or {}).get("text"))

    guests = raw.get("guests", {}) or {}

    policies = raw.get("policies", {}) or {}
    cancellation = policies.get("cancellation", {}) or {}
    cancellations = policies.get("cancellations", []) or []
    if not cancellation and cancellations:
        cancellation = cancellations[0] or {}

    return RoomOffer(
        offer_id=str(raw["id"]),
        check_in=_parse_date(raw.get("checkInDate")),
        check_out=_parse_date(raw.get("checkOutDate")),
        total=total,
        currency=str(price.get("currency", "EUR")),
        room_type=room.get("type") or type_estimated.get("category"),
        description=description,
        adults=int(guests.get("adults", 1) or 1),
        cancellation_deadline=cancellation.get("deadline"),
        payment_type=policies.get("paymentType"),
    )


def build_hotel_offer(raw: Dict[str, Any]) -> HotelOffer:
    """
    Convert one element of Amadeus `data` (type 'hotel-offers')
    into a HotelOffer.
    """
    hotel = _build_hotel(raw.get("hotel", {}) or {})
    offers = tuple(_build_room_offer(o) for o in raw.get("offers", []) or [])
    return HotelOffer(
        hotel_id=hotel.hotel_id,
        hotel=hotel,
        offers=offers,
        available=bool(raw.get("available", True)),
    )


def build_confirmation(raw: Dict[str, Any]) -> BookingConfirmation:
    records = raw.get("associatedRecords", []) or []
    reference = records[0].get("reference") if records else None
    return BookingConfirmation(
        booking_id=str(raw["id"]),
        provider_confirmation_id=raw.get("providerConfirmationId"),
        reference=reference,
        raw=raw,
    )


class AmadeusHotelProvider(HotelBookingProvider):
    """
    Live provider (Amadeus Self-Service hotel search and booking).

    AmadeusClient is blocking, so every call runs in a worker thread.
    """

    def __init__(self, client: Optional[AmadeusClient] = None):
        self.client = client or AmadeusClient()

    async def _call(
        self,
        operation: str,
        request: Callable[[], Dict[str, Any]],
        parse: Callable[[Dict[str, Any]], Any],
    ) -> ApiResult:
        try:
            payload = await anyio.to_thread.run_sync(request)
        except AmadeusResponseError as e:
            logger.warning(
                "%s failed: status=%s code=%s detail=%s",
                operation, e.status, e.code, e.detail or e.title)
            return ApiError(status=e.status, code=e.code, title=e.title, detail=e.detail)
        except requests.RequestException as e:
            logger.warning("%s failed: %s", operation, e)
            return ApiError(title=type(e).__name__, detail=str(e))

        try:
            data = parse(payload)
            next_token = _next_token(payload)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("%s returned an unexpected payload: %r", operation, e)
            return ApiError(title="Malformed response", detail=str(e))

        return ApiSuccess(data=data, next_token=next_token)

    async def search_locations(self, keyword: str, sub_type: str = "CITY") -> ApiResult:
        query = {"keyword": keyword, "subType": sub_type}
        return await self._call(
            "Location search",
            lambda: self.client.get("/v1/reference-data/locations", query),
            lambda payload: [build_location(d) for d in payload.get("data", []) or []],
        )

    async def hotel_offers_by_city(
        self, city_code: str, check_in: date, check_out: date
    ) -> ApiResult:
        query = {
            "cityCode": city_code,
            "checkInDate": check_in.isoformat(),
            "checkOutDate": check_out.isoformat(),
        }
        return await self._call(
            "Hotel offer search",
            lambda: self.client.get("/v2/shopping/hotel-offers", query),
            _parse_hotel_offer_list,
        )

    async def next_page(self, token: str) -> ApiResult:
        # The token is the absolute `meta.links.next` URL, query included
        return await self._call(
            "Hotel offer continuation",
            lambda: self.client.get(token),
            _parse_hotel_offer_list,
        )

    async def hotel_offers_by_hotel(
        self, hotel_id: str, check_in: date, check_out: date
    ) -> ApiResult:
        query = {
            "hotelId": hotel_id,
            "checkInDate": check_in.isoformat(),
            "checkOutDate": check_out.isoformat(),
        }
        return await self._call(
            "Hotel rates lookup",
            lambda: self.client.get("/v2/shopping/hotel-offers/by-hotel", query),
            lambda payload: build_hotel_offer(payload["data"]),
        )

    async def hotel_offer(self, offer_id: str) -> ApiResult:
        return await self._call(
            "Offer price lookup",
            lambda: self.client.get(
                f"/v2/shopping/hotel-offers/{requests.utils.quote(offer_id, safe='')}"),
            lambda payload: build_hotel_offer(payload["data"]),
        )

    async def book(self, request: BookingRequest) -> ApiResult:
        return await self._call(
            "Hotel booking",
            lambda: self.client.post("/v1/booking/hotel-bookings", request.to_payload()),
            lambda payload: [build_confirmation(d) for d in payload.get("data", []) or []],
        )


def _parse_hotel_offer_list(payload: Dict[str, Any]) -> List[HotelOffer]:
    return [build_hotel_offer(d) for d in payload.get("data", []) or []]
