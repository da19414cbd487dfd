import pytest

from hotel_booking.providers.mock_provider import MockHotelProvider


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def mock_provider():
    return MockHotelProvider(page_size=2)
