# src/hotel_booking/core/labels.py

from __future__ import annotations

from typing import Optional

from hotel_booking.core.models import HotelOffer, Location, PriceConfirmation, RoomOffer


def format_price(total: float, currency: str) -> str:
    return f"{total:,.2f} {currency}"


def cheapest_room(hotel_offer: HotelOffer) -> Optional[RoomOffer]:
    if not hotel_offer.offers:
        return None
    return min(hotel_offer.offers, key=lambda o: o.total)


def format_location_label(location: Location) -> str:
    country = f", {location.country_code}" if location.country_code else ""
    return f"{location.iata_code} · {location.name.title()}{country}"


def format_hotel_label(hotel_offer: HotelOffer) -> str:
    """
    Human-readable label for the results list.
    Shows the star rating and the cheapest rate when known.
    """
    hotel = hotel_offer.hotel
    parts = [hotel.name or hotel_offer.hotel_id]
    if hotel.rating:
        parts.append("★" * int(hotel.rating) if hotel.rating.isdigit() else hotel.rating)

    cheapest = cheapest_room(hotel_offer)
    if cheapest:
        parts.append(f"from {format_price(cheapest.total, cheapest.currency)}")
    return " · ".join(parts)


def format_room_label(room: RoomOffer) -> str:
    desc = room.description or room.room_type or "Room"
    return f"{desc} · {room.adults} adult(s) · {format_price(room.total, room.currency)}"


def format_price_summary(price: PriceConfirmation) -> str:
    return f"{format_price(price.total, price.currency)} ({'; '.join(price.conditions)})"
