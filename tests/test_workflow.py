import asyncio
from datetime import date

import pytest

from fakes import (
    PARIS,
    ScriptedProvider,
    confirmation,
    error,
    make_hotel_offer,
    ok,
)
from hotel_booking.core.models import TEST_PAYMENT, Guest, Location
from hotel_booking.core.results import Failure, Success
from hotel_booking.core.stages import NO_RESULTS_MESSAGE
from hotel_booking.core.workflow import BookingWorkflow, WorkflowError, WorkflowStep

CHECK_IN = date(2023, 6, 1)
CHECK_OUT = date(2023, 6, 3)

JANE = Guest(first_name="Jane", last_name="Doe", phone="555-0100", email="jane@x.com")


def paris_provider():
    h1 = make_hotel_offer("H1", "O1", "O2")
    h2 = make_hotel_offer("H2", "O3")
    return (
        ScriptedProvider()
        .script("search_locations", ok([PARIS]))
        .script("hotel_offers_by_city", ok([h1, h2]))
        .script("hotel_offers_by_hotel", ok(h1))
        .script("hotel_offer", ok(make_hotel_offer("H1", "O1")))
        .script("book", ok([confirmation("MOCK_0001")]))
    )


async def _at_offer_search(workflow):
    await workflow.search_locations("Paris")
    workflow.select_location(PARIS)


@pytest.mark.anyio
async def test_end_to_end_booking():
    provider = paris_provider()
    workflow = BookingWorkflow(provider)

    locations = await workflow.search_locations("Paris")
    assert locations.value == [PARIS]
    workflow.select_location(locations.value[0])
    assert workflow.current_step is WorkflowStep.OFFER_SEARCH

    offers = await workflow.search_offers(CHECK_IN, CHECK_OUT)
    assert [o.hotel_id for o in offers.value] == ["H1", "H2"]

    rates = await workflow.select_hotel(offers.value[0])
    assert workflow.current_step is WorkflowStep.RATE_VIEW
    room = rates.value.find_offer("O1")

    price = await workflow.select_offer(room)
    assert isinstance(price, Success)
    assert workflow.current_step is WorkflowStep.PRICE_CONFIRM
    assert workflow.context.price.offer_id == "O1"

    booked = await workflow.confirm_booking([JANE])
    assert workflow.current_step is WorkflowStep.DONE
    assert booked.value.booking_id
    assert workflow.context.confirmation == booked.value

    assert ("hotel_offers_by_city", "PAR", CHECK_IN, CHECK_OUT) in provider.calls
    assert ("hotel_offers_by_hotel", "H1", CHECK_IN, CHECK_OUT) in provider.calls
    assert ("hotel_offer", "O1") in provider.calls
    request = provider.calls[-1][1]
    assert request.offer_id == "O1"
    assert request.guests == (JANE,)
    assert request.payments == (TEST_PAYMENT,)


@pytest.mark.anyio
async def test_no_availability_does_not_advance():
    provider = (
        ScriptedProvider()
        .script("search_locations", ok([PARIS]))
        .script("hotel_offers_by_city", ok([]))
    )
    workflow = BookingWorkflow(provider)
    await _at_offer_search(workflow)

    result = await workflow.search_offers(CHECK_IN, CHECK_OUT)

    assert result == Failure(NO_RESULTS_MESSAGE)
    assert workflow.current_step is WorkflowStep.OFFER_SEARCH
    with pytest.raises(WorkflowError):
        await workflow.select_hotel(make_hotel_offer("H1", "O1"))
    assert workflow.current_step is WorkflowStep.OFFER_SEARCH


@pytest.mark.anyio
async def test_select_location_must_come_from_results():
    provider = ScriptedProvider().script("search_locations", error())
    workflow = BookingWorkflow(provider)

    with pytest.raises(WorkflowError):
        workflow.select_location(PARIS)

    await workflow.search_locations("Paris")
    with pytest.raises(WorkflowError):
        workflow.select_location(PARIS)
    assert workflow.current_step is WorkflowStep.LOCATION_SEARCH


@pytest.mark.anyio
async def test_unknown_location_is_refused():
    provider = ScriptedProvider().script("search_locations", ok([PARIS]))
    workflow = BookingWorkflow(provider)
    await workflow.search_locations("Paris")

    with pytest.raises(WorkflowError):
        workflow.select_location(Location(name="LONDON", iata_code="LON"))


@pytest.mark.anyio
async def test_steps_only_move_forward():
    workflow = BookingWorkflow(paris_provider())
    await _at_offer_search(workflow)

    with pytest.raises(WorkflowError):
        await workflow.search_locations("Rome")
    with pytest.raises(WorkflowError):
        await workflow.confirm_booking([JANE])


@pytest.mark.anyio
async def test_rate_failure_blocks_offer_selection_until_reload():
    h1 = make_hotel_offer("H1", "O1")
    provider = (
        ScriptedProvider()
        .script("search_locations", ok([PARIS]))
        .script("hotel_offers_by_city", ok([h1]))
        .script("hotel_offers_by_hotel", error(), ok(h1))
    )
    workflow = BookingWorkflow(provider)
    await _at_offer_search(workflow)
    await workflow.search_offers(CHECK_IN, CHECK_OUT)

    rates = await workflow.select_hotel(h1)
    assert isinstance(rates, Failure)
    assert workflow.rates.state.value.error_message

    with pytest.raises(WorkflowError):
        await workflow.select_offer(h1.offers[0])

    rates = await workflow.reload()
    assert rates == Success(h1)
    assert provider.count("hotel_offers_by_hotel") == 2


@pytest.mark.anyio
async def test_booking_failure_allows_retry():
    h1 = make_hotel_offer("H1", "O1")
    provider = (
        ScriptedProvider()
        .script("search_locations", ok([PARIS]))
        .script("hotel_offers_by_city", ok([h1]))
        .script("hotel_offers_by_hotel", ok(h1))
        .script("hotel_offer", ok(h1))
        .script("book", error(400, 3664), ok([confirmation("B1")]))
    )
    workflow = BookingWorkflow(provider)
    await _at_offer_search(workflow)
    await workflow.search_offers(CHECK_IN, CHECK_OUT)
    await workflow.select_hotel(h1)
    await workflow.select_offer(h1.offers[0])

    assert await workflow.confirm_booking([JANE]) == Failure("Booking failed")
    assert workflow.current_step is WorkflowStep.BOOKING_SUBMIT

    result = await workflow.confirm_booking([JANE])
    assert result.value.booking_id == "B1"
    assert workflow.current_step is WorkflowStep.DONE


@pytest.mark.anyio
async def test_second_submit_while_booking_is_refused():
    h1 = make_hotel_offer("H1", "O1")
    gate = asyncio.Event()
    provider = (
        ScriptedProvider()
        .script("search_locations", ok([PARIS]))
        .script("hotel_offers_by_city", ok([h1]))
        .script("hotel_offers_by_hotel", ok(h1))
        .script("hotel_offer", ok(h1))
        .script("book", gate, ok([confirmation("B1")]), ok([confirmation("B2")]))
    )
    workflow = BookingWorkflow(provider)
    await _at_offer_search(workflow)
    await workflow.search_offers(CHECK_IN, CHECK_OUT)
    await workflow.select_hotel(h1)
    await workflow.select_offer(h1.offers[0])

    first = asyncio.ensure_future(workflow.confirm_booking([JANE]))
    await asyncio.sleep(0)
    assert workflow.current_step is WorkflowStep.BOOKING_SUBMIT
    with pytest.raises(WorkflowError):
        await workflow.confirm_booking([JANE])

    gate.set()
    result = await first

    assert result.value.booking_id == "B1"
    assert provider.count("book") == 1
    assert workflow.context.confirmation.booking_id == "B1"
    assert workflow.current_step is WorkflowStep.DONE


@pytest.mark.anyio
async def test_hotel_cannot_be_picked_while_a_new_search_runs():
    h1 = make_hotel_offer("H1", "O1")
    h2 = make_hotel_offer("H2", "O2")
    later_in, later_out = date(2023, 7, 1), date(2023, 7, 4)
    gate = asyncio.Event()
    provider = (
        ScriptedProvider()
        .script("search_locations", ok([PARIS]))
        .script("hotel_offers_by_city", ok([h1]), gate, ok([h2]))
        .script("hotel_offers_by_hotel", ok(h2))
    )
    workflow = BookingWorkflow(provider)
    await _at_offer_search(workflow)
    await workflow.search_offers(CHECK_IN, CHECK_OUT)

    pending = asyncio.ensure_future(workflow.search_offers(later_in, later_out))
    await asyncio.sleep(0)
    assert workflow.context.check_in == CHECK_IN
    with pytest.raises(WorkflowError):
        await workflow.select_hotel(h1)
    assert workflow.current_step is WorkflowStep.OFFER_SEARCH

    gate.set()
    await pending
    assert (workflow.context.check_in, workflow.context.check_out) == (later_in, later_out)

    await workflow.select_hotel(h2)
    assert provider.calls[-1] == ("hotel_offers_by_hotel", "H2", later_in, later_out)


@pytest.mark.anyio
async def test_failed_search_does_not_record_dates():
    provider = (
        ScriptedProvider()
        .script("search_locations", ok([PARIS]))
        .script("hotel_offers_by_city", error(400, 4926, "INVALID DATE"))
    )
    workflow = BookingWorkflow(provider)
    await _at_offer_search(workflow)

    await workflow.search_offers(CHECK_OUT, CHECK_IN)

    assert workflow.context.check_in is None
    assert workflow.context.check_out is None


@pytest.mark.anyio
async def test_booking_requires_a_guest():
    workflow = BookingWorkflow(paris_provider())
    await _at_offer_search(workflow)
    offers = await workflow.search_offers(CHECK_IN, CHECK_OUT)
    rates = await workflow.select_hotel(offers.value[0])
    await workflow.select_offer(rates.value.offers[0])

    with pytest.raises(WorkflowError):
        await workflow.confirm_booking([])
    assert workflow.current_step is WorkflowStep.PRICE_CONFIRM


@pytest.mark.anyio
async def test_close_cancels_in_flight_request():
    gate = asyncio.Event()
    provider = ScriptedProvider().script("search_locations", gate, ok([PARIS]))
    workflow = BookingWorkflow(provider)

    task = workflow.scope.launch(workflow.search_locations("Paris"))
    await asyncio.sleep(0)
    assert workflow.locations.busy

    workflow.close()
    gate.set()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert workflow.locations.state.value.result is None
    with pytest.raises(WorkflowError):
        await workflow.search_locations("Paris")


@pytest.mark.anyio
async def test_mock_provider_full_flow(mock_provider):
    workflow = BookingWorkflow(mock_provider)

    locations = await workflow.search_locations("par")
    paris = next(loc for loc in locations.value if loc.iata_code == "PAR")
    workflow.select_location(paris)

    first = await workflow.search_offers(CHECK_IN, CHECK_OUT)
    assert len(first.value) == 2
    assert first.next_token is not None

    more = await workflow.load_more()
    assert [o.hotel_id for o in more.value] == ["HLPAR001", "HLPAR002", "HLPAR003"]
    assert more.next_token is None
    assert await workflow.load_more() is None

    rates = await workflow.select_hotel(more.value[2])
    room = rates.value.offers[1]
    await workflow.select_offer(room)
    assert workflow.context.price.total == room.total

    booked = await workflow.confirm_booking([JANE])
    assert booked.value.booking_id == "MOCK_0001"
    assert booked.value.reference == "QVH001"
