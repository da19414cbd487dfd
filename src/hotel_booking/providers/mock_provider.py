# src/hotel_booking/providers/mock_provider.py

from __future__ import annotations

import asyncio
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple

from hotel_booking.core.models import BookingRequest
from hotel_booking.providers.amadeus_provider import (
    build_confirmation,
    build_hotel_offer,
    build_location,
)
from hotel_booking.providers.base import ApiError, ApiResult, ApiSuccess, HotelBookingProvider

# city code -> (city name, country, hotel names)
MOCK_CITIES: Dict[str, Tuple[str, str, List[str]]] = {
    "PAR": ("PARIS", "FR", ["Hotel du Louvre", "Le Marais Suites", "Gare de Lyon Inn"]),
    "LON": ("LONDON", "GB", ["Covent Garden Rooms", "Thames View Hotel"]),
    "MAD": ("MADRID", "ES", ["Gran Via Palace"]),
    "ROM": ("ROME", "IT", []),  # no availability
}

MOCK_TOKEN_PREFIX = "mock://hotel-offers"


def _hotel_id(city_code: str, index: int) -> str:
    return f"HL{city_code}{index + 1:03d}"


def _room_offer_id(hotel_id: str, check_in: date, check_out: date, room: int) -> str:
    return f"{hotel_id}{check_in:%Y%m%d}{check_out:%Y%m%d}R{room}"


def _parse_room_offer_id(offer_id: str) -> Optional[Tuple[str, date, date, int]]:
    # HL + 3 letter city + 3 digit index, then two yyyymmdd dates, then R<n>
    if len(offer_id) < 26 or offer_id[24] != "R":
        return None
    try:
        hotel_id = offer_id[:8]
        check_in = date(int(offer_id[8:12]), int(offer_id[12:14]), int(offer_id[14:16]))
        check_out = date(int(offer_id[16:20]), int(offer_id[20:22]), int(offer_id[22:24]))
        room = int(offer_id[25:])
    except ValueError:
        return None
    return hotel_id, check_in, check_out, room


def _find_hotel(hotel_id: str) -> Optional[Tuple[str, int, str]]:
    city_code = hotel_id[2:5]
    city = MOCK_CITIES.get(city_code)
    if not city or not hotel_id.startswith("HL"):
        return None
    try:
        index = int(hotel_id[5:]) - 1
    except ValueError:
        return None
    names = city[2]
    if not 0 <= index < len(names):
        return None
    return city_code, index, names[index]


def generate_room_offers(
    hotel_id: str, hotel_index: int, check_in: date, check_out: date
) -> List[Dict[str, Any]]:
    """
    Two rates per hotel: a flexible double and a cheaper prepaid single.
    Prices scale with the number of nights.
    """
    nights = max(1, (check_out - check_in).days)
    base_price = 120 + hotel_index * 35

    return [
        {
            "id": _room_offer_id(hotel_id, check_in, check_out, 1),
            "checkInDate": check_in.isoformat(),
            "checkOutDate": check_out.isoformat(),
            "room": {
                "type": "A2D",
                "description": {"text": "Double room, breakfast included"},
            },
            "guests": {"adults": 2},
            "price": {"currency": "EUR", "total": f"{base_price * nights:.2f}"},
            "policies": {
                "paymentType": "guarantee",
                "cancellation": {
                    "deadline": (check_in - timedelta(days=2)).isoformat() + "T23:59:00",
                },
            },
        },
        {
            "id": _room_offer_id(hotel_id, check_in, check_out, 2),
            "checkInDate": check_in.isoformat(),
            "checkOutDate": check_out.isoformat(),
            "room": {
                "type": "B1K",
                "description": {"text": "Standard room, non-refundable"},
            },
            "guests": {"adults": 1},
            "price": {"currency": "EUR", "total": f"{(base_price - 25) * nights:.2f}"},
            "policies": {"paymentType": "prepay"},
        },
    ]


def generate_hotel_offer(
    city_code: str, hotel_index: int, check_in: date, check_out: date
) -> Dict[str, Any]:
    """
    Amadeus-shaped `hotel-offers` element for one mock hotel.
    """
    city_name, _, names = MOCK_CITIES[city_code]
    hotel_id = _hotel_id(city_code, hotel_index)
    return {
        "type": "hotel-offers",
        "hotel": {
            "hotelId": hotel_id,
            "name": names[hotel_index],
            "cityCode": city_code,
            "rating": str(3 + hotel_index % 3),
            "address": {"lines": [f"{10 + hotel_index} Rue Exemple"], "cityName": city_name},
        },
        "available": True,
        "offers": generate_room_offers(hotel_id, hotel_index, check_in, check_out),
    }


class MockHotelProvider(HotelBookingProvider):
    """
    Deterministic offline provider for dev/testing.
    Generates Amadeus-shaped payloads and parses them like the live provider.

    calls records (operation, argument) for every request so tests can
    assert on network traffic.
    """

    def __init__(self, page_size: int = 2, delay_seconds: float = 0.0):
        self.page_size = max(1, int(page_size))
        self.delay_seconds = delay_seconds
        self.calls: List[Tuple[str, Any]] = []
        self._booking_seq = 0

    async def _respond(self, operation: str, argument: Any) -> None:
        self.calls.append((operation, argument))
        # Always yield so callers observe a real suspension point
        await asyncio.sleep(self.delay_seconds)

    def _page(
        self, city_code: str, check_in: date, check_out: date, start: int
    ) -> ApiResult:
        names = MOCK_CITIES[city_code][2] if city_code in MOCK_CITIES else []
        end = min(len(names), start + self.page_size)
        data = [
            build_hotel_offer(generate_hotel_offer(city_code, i, check_in, check_out))
            for i in range(start, end)
        ]
        next_token = None
        if end < len(names):
            next_token = f"{MOCK_TOKEN_PREFIX}/{city_code}/{check_in}/{check_out}/{end}"
        return ApiSuccess(data=data, next_token=next_token)

    async def search_locations(self, keyword: str, sub_type: str = "CITY") -> ApiResult:
        await self._respond("search_locations", keyword)
        if sub_type != "CITY":
            return ApiSuccess(data=[])

        needle = keyword.strip().upper()
        data = [
            build_location({
                "subType": "CITY",
                "name": name,
                "iataCode": code,
                "address": {"cityName": name, "countryCode": country},
            })
            for code, (name, country, _) in MOCK_CITIES.items()
            if needle and needle in name
        ]
        return ApiSuccess(data=data)

    async def hotel_offers_by_city(
        self, city_code: str, check_in: date, check_out: date
    ) -> ApiResult:
        await self._respond("hotel_offers_by_city", city_code)
        if check_out <= check_in:
            return ApiError(
                status=400, code=4926, title="INVALID DATE",
                detail="checkOutDate must be after checkInDate")
        return self._page(city_code, check_in, check_out, 0)

    async def next_page(self, token: str) -> ApiResult:
        await self._respond("next_page", token)
        if not token.startswith(MOCK_TOKEN_PREFIX + "/"):
            return ApiError(status=400, code=477, title="INVALID FORMAT", detail=token)
        try:
            city_code, check_in, check_out, start = token[len(MOCK_TOKEN_PREFIX) + 1:].split("/")
            return self._page(
                city_code, date.fromisoformat(check_in), date.fromisoformat(check_out), int(start))
        except ValueError:
            return ApiError(status=400, code=477, title="INVALID FORMAT", detail=token)

    async def hotel_offers_by_hotel(
        self, hotel_id: str, check_in: date, check_out: date
    ) -> ApiResult:
        await self._respond("hotel_offers_by_hotel", hotel_id)
        found = _find_hotel(hotel_id)
        if found is None:
            return ApiError(status=400, code=1257, title="INVALID PROPERTY CODE", detail=hotel_id)
        city_code, index, _ = found
        return ApiSuccess(
            data=build_hotel_offer(generate_hotel_offer(city_code, index, check_in, check_out)))

    async def hotel_offer(self, offer_id: str) -> ApiResult:
        await self._respond("hotel_offer", offer_id)
        parsed = _parse_room_offer_id(offer_id)
        found = _find_hotel(parsed[0]) if parsed else None
        if parsed is None or found is None:
            return ApiError(status=404, code=1137, title="OFFER NOT FOUND", detail=offer_id)

        _, check_in, check_out, _ = parsed
        city_code, index, _ = found
        raw = generate_hotel_offer(city_code, index, check_in, check_out)
        raw["offers"] = [o for o in raw["offers"] if o["id"] == offer_id]
        if not raw["offers"]:
            return ApiError(status=404, code=1137, title="OFFER NOT FOUND", detail=offer_id)
        return ApiSuccess(data=build_hotel_offer(raw))

    async def book(self, request: BookingRequest) -> ApiResult:
        await self._respond("book", request.offer_id)
        if _parse_room_offer_id(request.offer_id) is None:
            return ApiError(status=400, code=1137, title="OFFER NOT FOUND", detail=request.offer_id)
        if not request.guests or not request.payments:
            return ApiError(status=400, code=477, title="INVALID FORMAT", detail="guests and payments are required")

        self._booking_seq += 1
        return ApiSuccess(data=[
            build_confirmation({
                "type": "hotel-booking",
                "id": f"MOCK_{self._booking_seq:04d}",
                "providerConfirmationId": f"PC{self._booking_seq:06d}",
                "associatedRecords": [
                    {"reference": f"QVH{self._booking_seq:03d}", "originSystemCode": "GDS"},
                ],
            })
        ])
