import asyncio
import logging
import os
from datetime import date, timedelta

import pandas as pd
import streamlit as st

from hotel_booking.core.labels import (
    format_hotel_label,
    format_location_label,
    format_price_summary,
    format_room_label,
)
from hotel_booking.core.models import TEST_PAYMENT, Guest
from hotel_booking.core.workflow import BookingWorkflow, WorkflowError, WorkflowStep
from hotel_booking.providers.amadeus_provider import AmadeusHotelProvider
from hotel_booking.providers.mock_provider import MockHotelProvider

logging.basicConfig(
    level=os.getenv("HOTEL_BOOKING_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("streamlit_app")

st.set_page_config(
    page_title="Hotel Booking",
    layout="wide",
)


def _new_workflow(use_live_api: bool) -> BookingWorkflow:
    if use_live_api:
        provider = AmadeusHotelProvider()
    else:
        provider = MockHotelProvider()
    return BookingWorkflow(provider)


def _run(workflow: BookingWorkflow, coro):
    """
    Run one user action to completion inside the workflow's scope.
    Streamlit reruns the script on every interaction, so each action
    gets its own short-lived event loop.
    """

    async def runner():
        task = workflow.scope.launch(coro)
        if task is None:
            return None
        return await task

    try:
        return asyncio.run(runner())
    except WorkflowError as e:
        st.error(str(e))
        return None


def _reset(use_live_api: bool) -> None:
    old = st.session_state.get("workflow")
    if old is not None:
        old.close()
    logger.info("New booking session (%s)", "live" if use_live_api else "offline")
    try:
        st.session_state["workflow"] = _new_workflow(use_live_api)
    except ValueError as e:
        # Missing Amadeus credentials
        st.session_state.pop("workflow", None)
        st.error(str(e))


def _show_failure(state) -> None:
    if state.failed:
        st.warning(state.error_message)


st.title("🏨 Hotel Booking (demo)")
st.write("Find a city, pick a hotel and a room, then book it with a test card.")

with st.sidebar:
    st.header("Session")

    use_live_api = st.checkbox(
        "Use live Amadeus API",
        value=False,
        help="Needs AMADEUS_CLIENT_ID and AMADEUS_CLIENT_SECRET. Offline mode uses mock data.",
    )

    if st.button("Start over") or "workflow" not in st.session_state \
            or st.session_state.get("live") != use_live_api:
        st.session_state["live"] = use_live_api
        _reset(use_live_api)

    workflow = st.session_state.get("workflow")
    if workflow is not None:
        st.caption(f"Step: {workflow.current_step.value.replace('_', ' ')}")
        ctx = workflow.context
        if ctx.city_code:
            st.caption(f"City: {ctx.city_code}")
        if ctx.check_in and ctx.check_out:
            st.caption(f"Stay: {ctx.check_in} → {ctx.check_out}")
        if ctx.hotel_id:
            st.caption(f"Hotel: {ctx.hotel_id}")

if workflow is None:
    st.stop()

step = workflow.current_step

# ---- 1. City ----
if step is WorkflowStep.LOCATION_SEARCH:
    st.subheader("Where are you going?")
    fragment = st.text_input("City", "Paris")
    if st.button("Search cities"):
        _run(workflow, workflow.search_locations(fragment))

    state = workflow.locations.state.value
    _show_failure(state)
    if state.succeeded:
        locations = state.value
        if not locations:
            st.info("No city matches this name.")
        for location in locations:
            if st.button(format_location_label(location), key=f"loc-{location.iata_code}"):
                workflow.select_location(location)
                st.rerun()

# ---- 2. Hotels ----
elif step is WorkflowStep.OFFER_SEARCH:
    st.subheader(f"Hotels in {workflow.context.location.name.title()}")

    today = date.today()
    check_in = st.date_input("Check-in", value=today + timedelta(days=7), min_value=today)
    check_out = st.date_input(
        "Check-out",
        value=check_in + timedelta(days=2),
        min_value=check_in,  # the API rejects a stay ending before it starts
    )
    if st.button("Search hotels"):
        _run(workflow, workflow.search_offers(check_in, check_out))

    state = workflow.offers.state.value
    _show_failure(state)

    page = workflow.offers.page
    if page is not None:
        results_df = pd.DataFrame(
            [
                {
                    "hotel_id": o.hotel_id,
                    "name": o.hotel.name,
                    "rating": o.hotel.rating,
                    "rooms": len(o.offers),
                }
                for o in page.offers
            ]
        )
        st.dataframe(results_df, width="stretch")

        for hotel_offer in page.offers:
            if st.button(format_hotel_label(hotel_offer), key=f"hotel-{hotel_offer.hotel_id}"):
                _run(workflow, workflow.select_hotel(hotel_offer))
                st.rerun()

        if workflow.offers.can_load_more and st.button("Load more"):
            _run(workflow, workflow.load_more())
            st.rerun()

# ---- 3. Rooms ----
elif step is WorkflowStep.RATE_VIEW:
    state = workflow.rates.state.value
    _show_failure(state)
    if state.failed and st.button("Retry"):
        _run(workflow, workflow.reload())
        st.rerun()

    if state.succeeded:
        hotel_offer = state.value
        st.subheader(hotel_offer.hotel.name)
        if hotel_offer.hotel.address_lines:
            st.caption(", ".join(hotel_offer.hotel.address_lines))
        for room in hotel_offer.offers:
            if st.button(format_room_label(room), key=f"room-{room.offer_id}"):
                _run(workflow, workflow.select_offer(room))
                st.rerun()

# ---- 4. Price & guest ----
elif step in (WorkflowStep.PRICE_CONFIRM, WorkflowStep.BOOKING_SUBMIT):
    state = workflow.price.state.value
    _show_failure(state)
    if state.failed and step is WorkflowStep.PRICE_CONFIRM and st.button("Retry"):
        _run(workflow, workflow.reload())
        st.rerun()

    price = workflow.context.price
    if price is not None:
        st.subheader("Confirmed price")
        st.metric(label=f"Offer {price.offer_id}", value=format_price_summary(price))

        with st.form("guest"):
            first_name = st.text_input("First name")
            last_name = st.text_input("Last name")
            phone = st.text_input("Phone")
            email = st.text_input("Email")
            st.caption(
                f"Paid with the test card ending in {TEST_PAYMENT.card_number[-4:]}. "
                "No real payment data is ever collected."
            )
            submitted = st.form_submit_button("Book")

        if submitted:
            if not all([first_name, last_name, phone, email]):
                st.warning("Please fill in every guest field.")
            else:
                guest = Guest(first_name=first_name, last_name=last_name, phone=phone, email=email)
                _run(workflow, workflow.confirm_booking([guest]))
                st.rerun()

        _show_failure(workflow.booking.state.value)

# ---- 5. Done ----
else:
    confirmation = workflow.context.confirmation
    st.success("Your booking is confirmed 🎉")
    st.metric(label="Booking id", value=confirmation.booking_id)
    if confirmation.provider_confirmation_id:
        st.caption(f"Hotel confirmation: {confirmation.provider_confirmation_id}")
    if confirmation.reference:
        st.caption(f"Reference: {confirmation.reference}")
