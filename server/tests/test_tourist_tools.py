"""
test_tourist_tools.py — Tourist ONE function-call handlers.

Handlers run against a RecordingSession, so results, queued cards and
navigations can be checked without a realtime connection.
"""

import pytest

from talkbridge.agent.plugins.tourist import catalog, itinerary, tools
from talkbridge.agent.plugins.tourist.plugin import TouristPlugin
from talkbridge.models import Place
from talkbridge.realtime.dispatcher import FunctionCallDispatcher, FunctionRegistry, ToolContext

from conftest import FakeAnalysis, RecordingSession, response_done, run_tool


@pytest.fixture
def session():
    return RecordingSession(TouristPlugin(), analysis=FakeAnalysis())


def _itin(session):
    return session.flags.get("itinerary")


def _handler(name):
    registry = FunctionRegistry()
    tools.register_tools(registry)
    return registry.get(name).handler


# ── Navigation & voice ─────────────────────────────────────────────────────────

@pytest.mark.parametrize("tool, screen, message", [
    ("navigate_home", "home", "Navigated to home screen"),
    ("navigate_explore", "explore", "Navigated to explore Thailand"),
    ("navigate_itinerary", "itinerary", "Navigated to itinerary"),
    ("navigate_stores", "offers", "Navigated to stores and offers"),
    ("navigate_loyalty", "loyalty", "Navigated to TrueCoins"),
])
async def test_navigation_tools(session, tool, screen, message):
    await run_tool(session, _handler(tool))
    assert session.navigations == [screen]
    assert session.outputs == [message]


async def test_navigate_translate_stays_on_screen(session):
    await run_tool(session, tools.navigate_translate)
    assert session.navigations == []
    assert "Translation mode active" in session.outputs[0]


async def test_pause_voice_sends_no_result(session):
    ctx = await run_tool(session, tools.pause_voice)
    assert session.paused
    assert session.results == []
    assert not ctx.result_sent


# ── Camera & translation ───────────────────────────────────────────────────────

async def test_take_photo_without_frame_opens_camera(session):
    await run_tool(session, tools.take_photo)
    assert session.flags.get("camera_open") is True
    assert session.outputs == [tools.PHOTO_FAILURE_RESULT]
    assert session.analysis.photo_calls == []


async def test_take_photo_sends_frame_for_analysis(session):
    session.flags.set("camera_frame", "data:image/jpeg;base64,AAAA")
    await run_tool(session, tools.take_photo, prompt="what is this?")
    assert session.analysis.photo_calls == [{"image": "data:image/jpeg;base64,AAAA", "prompt": "what is this?"}]
    assert session.outputs == ["A temple with golden roofs"]


async def test_take_photo_analysis_failure(session):
    session.analysis.fail = True
    session.flags.set("camera_frame", "data:image/jpeg;base64,AAAA")
    await run_tool(session, tools.take_photo)
    assert session.outputs == [tools.PHOTO_FAILURE_RESULT]


async def test_translate_uses_phrasebook_then_tags_language(session):
    await run_tool(session, tools.translate_text, text="Hello", from_lang="en", to_lang="th")
    await run_tool(session, tools.translate_text, text="Where is the pier?", to_lang="th")
    assert session.outputs[0] == f"The translation is: {catalog.PHRASEBOOK['hello']}"
    assert session.outputs[1] == "The translation is: [TH] Where is the pier?"


# ── Itinerary ──────────────────────────────────────────────────────────────────

async def test_itinerary_build_flow(session):
    await run_tool(session, tools.start_building_itinerary, destination="Chiang Mai", days=2)
    assert session.navigations == ["itinerary"]
    assert _itin(session)["is_building"] is True
    assert _itin(session)["destination"] == "Chiang Mai"

    await run_tool(session, tools.add_itinerary_step, day=0, slot="morning", name="Doi Suthep")
    await run_tool(session, tools.add_itinerary_step, day=1, slot="evening", name="Night Bazaar")
    assert session.outputs[-1] == "Added Night Bazaar to Day 2 evening"

    await run_tool(session, tools.finish_building_itinerary)
    days = _itin(session)["days"]
    assert len(days) == 2
    assert days[0]["morning"]["name"] == "Doi Suthep"
    assert days[1]["evening"]["name"] == "Night Bazaar"
    assert days[1]["morning"] is None
    assert _itin(session)["is_building"] is False

    await run_tool(session, tools.clear_itinerary)
    assert _itin(session)["days"] == []


async def test_itinerary_changes_reach_flag_listeners(make_session):
    session = make_session(TouristPlugin())
    pushed = []
    session.flags.subscribe(lambda key, value: pushed.append((key, value)))

    await session.dispatcher.handle_response_done(response_done(
        {"name": "start_building_itinerary", "arguments": {"destination": "Bangkok", "days": 1}},
        {"name": "add_itinerary_step", "arguments": {"day": 0, "slot": "morning", "name": "Wat Arun"}},
        {"name": "finish_building_itinerary"},
    ))

    plans = [value for key, value in pushed if key == "itinerary"]
    assert [p["is_building"] for p in plans] == [True, True, False]
    assert plans[1]["building_steps"][0]["activity"]["name"] == "Wat Arun"
    assert plans[-1]["days"][0]["morning"]["name"] == "Wat Arun"
    assert session.current_screen == "itinerary"


def test_fold_steps_fills_gaps_and_last_step_wins():
    steps = []
    itin = itinerary.empty_itinerary()
    steps.append(itinerary.add_step(itin, {"day": 2, "slot": "afternoon", "name": "A"}))
    steps.append(itinerary.add_step(itin, {"day": 2, "slot": "afternoon", "name": "B"}))
    steps.append(itinerary.add_step(itin, {"day": -3, "slot": "midnight", "name": "C"}))

    days = itinerary.fold_steps(steps)
    assert len(days) == 3
    assert days[1] == itinerary.empty_day()
    assert days[2]["afternoon"]["name"] == "B"
    assert days[0]["morning"]["name"] == "C"


# ── Visual cards ───────────────────────────────────────────────────────────────

async def test_show_offer_queues_card(session):
    await run_tool(session, tools.show_offer, offer_id="7eleven-coffee")
    card = session.visuals.flush()[0]
    assert card.kind == "offer"
    assert card.brand == "7-Eleven"
    assert session.outputs == ["Showed 7-Eleven Free All Cafe Coffee offer to user"]


async def test_unknown_offer(session):
    await run_tool(session, tools.show_offer, offer_id="nope")
    assert session.outputs == ["Offer not found"]
    assert len(session.visuals) == 0


async def test_show_map_computes_distance(session):
    await run_tool(
        session, tools.show_map,
        origin_lat=13.7465, origin_lng=100.5348, dest_lat=13.7500, dest_lng=100.4913, dest_name="Grand Palace",
    )
    card = session.visuals.flush()[0]
    assert card.origin.name == "Your location"
    assert 4.0 < card.distance_km < 5.5
    assert session.outputs == ["Showed directions from current location to Grand Palace"]


def test_straight_line_needs_coordinates():
    assert tools.straight_line_km(Place(name="a"), Place(name="b", lat=1, lng=1)) is None


async def test_show_currency_formats_result(session):
    await run_tool(session, tools.show_currency, amount=100, from_currency="USD", to_currency="THB", rate=35.5)
    card = session.visuals.flush()[0]
    assert card.result == "3550.00"
    assert session.outputs == ["Showed conversion: 100 USD = 3550.00 THB"]


async def test_currency_with_unreadable_arguments_still_answers(session):
    registry = FunctionRegistry()
    tools.register_tools(registry)
    dispatcher = FunctionCallDispatcher(registry, lambda call: ToolContext(call, session))

    await dispatcher.handle_response_done(response_done({"name": "show_currency", "arguments": "{not json"}))
    assert session.results == [("call_1", "show_currency failed: 'amount'")]
    assert len(session.visuals) == 0


async def test_show_transport_and_atm(session):
    await run_tool(session, tools.show_transport, line="BTS Sukhumvit", from_station="Siam", to_station="Asok", fare="฿44")
    await run_tool(
        session, tools.show_atm,
        bank_name="Kasikorn", location="Siam Paragon", fee="฿220", latitude=13.746, longitude=100.535,
    )
    transport_card, atm_card = session.visuals.flush()
    assert transport_card.line_color == "#5EC24D"
    assert atm_card.bank_color == "#1a5f9e"
    assert atm_card.has_exchange is False


async def test_bus_directions_keep_step_extras(session):
    await run_tool(
        session, tools.show_bus_directions,
        origin="Khao San", destination="Siam", fare="฿15", bus_number="Bus 15",
        steps=[
            {"instruction": "Walk to the stop", "action": "walk", "duration": "3 min"},
            {"instruction": "Ride 8 stops", "stops_count": 8},
            "not a step",
        ],
    )
    card = session.visuals.flush()[0]
    assert card.mode == "bus"
    assert card.fare == "฿15"
    assert card.details == {"bus_number": "Bus 15"}
    assert [s.id for s in card.steps] == [0, 1]
    assert card.steps[1].action == "bus"
    assert card.steps[0].model_dump()["duration"] == "3 min"
    assert session.outputs == ["Showed bus directions: Bus 15 from Khao San to Siam"]


async def test_taxi_directions_default_service(session):
    await run_tool(session, tools.show_taxi_directions, origin="A", destination="B", estimated_fare="฿150-200", steps=[])
    card = session.visuals.flush()[0]
    assert card.details == {"service": "Taxi"}
    assert card.fare == "฿150-200"


async def test_web_search_returns_summary(session):
    await run_tool(session, tools.web_search, query="best pad thai", location="Silom")
    assert session.analysis.searches == [{"query": "best pad thai", "location": "Silom"}]
    assert session.outputs == ["Results for best pad thai"]


# ── Registration ───────────────────────────────────────────────────────────────

def test_every_tool_registers_with_object_schema():
    registry = FunctionRegistry()
    TouristPlugin().register_tools(registry)
    assert len(registry.names()) == len(tools.TOOLS)
    for schema in registry.schemas():
        assert schema["parameters"]["type"] == "object"
        assert schema["description"]
