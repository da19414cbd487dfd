# src/hotel_booking/core/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class Location:
    """A city returned by the location search."""

    name: str
    iata_code: str  # e.g. "PAR"
    sub_type: str = "CITY"
    country_code: Optional[str] = None


@dataclass(frozen=True)
class Hotel:
    """Hotel metadata attached to every hotel offer."""

    hotel_id: str
    name: str
    city_code: Optional[str] = None
    rating: Optional[str] = None  # e.g. "4" (stars)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address_lines: Tuple[str, ...] = ()


@dataclass(frozen=True)
class RoomOffer:
    """A priced, bookable room/rate combination."""

    offer_id: str
    check_in: Optional[date]
    check_out: Optional[date]
    total: float
    currency: str = "EUR"
    room_type: Optional[str] = None  # e.g. "A1K"
    description: Optional[str] = None
    adults: int = 1
    cancellation_deadline: Optional[str] = None
    payment_type: Optional[str] = None  # "guarantee" | "deposit" | "prepay"


@dataclass(frozen=True)
class HotelOffer:
    """A hotel plus its room offers, as returned by search, rate and price lookups."""

    hotel_id: str
    hotel: Hotel
    offers: Tuple[RoomOffer, ...] = ()
    available: bool = True

    def find_offer(self, offer_id: str) -> Optional[RoomOffer]:
        for o in self.offers:
            if o.offer_id == offer_id:
                return o
        return None


@dataclass(frozen=True)
class SearchResultPage:
    """
    The hotel offers accumulated during one search session.

    next_token is the opaque continuation handed back by the API;
    None means there is nothing more to fetch.
    """

    offers: Tuple[HotelOffer, ...] = ()
    next_token: Optional[str] = None

    def extended(self, more: List[HotelOffer], next_token: Optional[str]) -> "SearchResultPage":
        return SearchResultPage(offers=self.offers + tuple(more), next_token=next_token)


@dataclass(frozen=True)
class PriceConfirmation:
    offer_id: str
    total: float
    currency: str
    conditions: Tuple[str, ...] = ()

    @classmethod
    def from_hotel_offer(cls, hotel_offer: HotelOffer) -> "PriceConfirmation":
        """
        Build the confirmation from a price-lookup result.
        The price endpoint always answers with exactly one room offer.
        """
        if not hotel_offer.offers:
            raise ValueError(f"Hotel offer {hotel_offer.hotel_id} carries no room offer")

        room = hotel_offer.offers[0]
        conditions: List[str] = []
        if room.payment_type:
            conditions.append(f"Payment: {room.payment_type}")
        if room.cancellation_deadline:
            conditions.append(f"Free cancellation until {room.cancellation_deadline}")
        else:
            conditions.append("Non-refundable")

        return cls(
            offer_id=room.offer_id,
            total=room.total,
            currency=room.currency,
            conditions=tuple(conditions),
        )


@dataclass(frozen=True)
class Guest:
    first_name: str
    last_name: str
    phone: str
    email: str
    title: str = "MR"

    def to_payload(self) -> Dict[str, Any]:
        return {
            "name": {
                "title": self.title,
                "firstName": self.first_name,
                "lastName": self.last_name,
            },
            "contact": {"phone": self.phone, "email": self.email},
        }


@dataclass(frozen=True)
class PaymentMethod:
    method: str  # "creditCard"
    vendor_code: str  # e.g. "VI"
    card_number: str
    expiry_date: str  # "YYYY-MM"

    def to_payload(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "card": {
                "vendorCode": self.vendor_code,
                "cardNumber": self.card_number,
                "expiryDate": self.expiry_date,
            },
        }

    def __repr__(self) -> str:
        # Never print a full card number
        return (
            f"PaymentMethod(method={self.method!r}, vendor_code={self.vendor_code!r}, "
            f"card_number='****{self.card_number[-4:]}', expiry_date={self.expiry_date!r})"
        )


# Amadeus sandbox test card. This is the only payment the demo ever sends.
TEST_PAYMENT = PaymentMethod(
    method="creditCard",
    vendor_code="VI",
    card_number="4111111111111111",
    expiry_date="2030-01",
)


@dataclass(frozen=True)
class BookingRequest:
    offer_id: str
    guests: Tuple[Guest, ...]
    payments: Tuple[PaymentMethod, ...]

    def to_payload(self) -> Dict[str, Any]:
        return {
            "data": {
                "offerId": self.offer_id,
                "guests": [g.to_payload() for g in self.guests],
                "payments": [p.to_payload() for p in self.payments],
            }
        }


@dataclass(frozen=True)
class BookingConfirmation:
    """Server-assigned booking record. Terminal artifact of the workflow."""

    booking_id: str
    provider_confirmation_id: Optional[str] = None
    reference: Optional[str] = None  # associated record locator, when present
    raw: Optional[Dict[str, Any]] = field(default=None, compare=False, repr=False)
