"""
tools.py — Function-call handlers for the Tourist ONE concierge.

Each handler receives a ToolContext, applies its side effect (screen
change, itinerary update, queued visual card) and reports a short result
text back to the model so it can speak about it.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from geopy.distance import geodesic

from talkbridge.agent.plugins.tourist import catalog, itinerary
from talkbridge.errors import UpstreamAnalysisError
from talkbridge.models import (
    AtmArtifact,
    CurrencyArtifact,
    DirectionsArtifact,
    DirectionStep,
    MapArtifact,
    OfferArtifact,
    Place,
    TransportArtifact,
)
from talkbridge.realtime.dispatcher import FunctionRegistry, ToolContext, ToolHandler

logger = logging.getLogger(__name__)

PHOTO_FAILURE_RESULT = "I had trouble analyzing the photo. Please try again."

PHOTO_PROMPT = """Analyze this photo taken by a tourist in Thailand:
1. IDENTIFY: What is in the photo? If it's a landmark/building/temple, name it specifically.
2. LOCATION: If you recognize the place, state WHERE it is (e.g., "This is Wat Arun, located on the west bank of the Chao Phraya River in Bangkok").
3. TRANSLATE: If there's Thai text, translate it to English.
4. HELPFUL INFO: Add useful context (opening hours, tips, nearby attractions).

Be conversational and helpful, like a friendly tour guide. Keep it concise but informative."""


def _itinerary(ctx: ToolContext) -> Dict[str, Any]:
    return ctx.flags.get("itinerary") or itinerary.empty_itinerary()


def _publish_itinerary(ctx: ToolContext, plan: Dict[str, Any]) -> None:
    # Flag listeners forward every change to the client's itinerary screen.
    ctx.flags.set("itinerary", plan)


# ── Voice control & navigation ────────────────────────────────────────────────

async def pause_voice(ctx: ToolContext) -> None:
    # No function result: a result would trigger another spoken reply.
    await ctx.pause()


def _navigator(screen: str, message: str) -> ToolHandler:
    async def _navigate(ctx: ToolContext) -> None:
        await ctx.navigate(screen)
        await ctx.send_result(message)
    return _navigate


async def navigate_translate(ctx: ToolContext) -> None:
    # Translation happens in the chat itself; the screen stays put.
    await ctx.send_result("Translation mode active. Just speak and I will translate for you!")


# ── Camera & translation ──────────────────────────────────────────────────────

async def open_camera(ctx: ToolContext) -> None:
    ctx.flags.set("camera_open", True)
    await ctx.send_result("Camera is now open. I can see what you see.")


async def take_photo(ctx: ToolContext) -> None:
    frame = ctx.flags.get("camera_frame")
    if not frame:
        logger.warning("[TouristTools] take_photo without a camera frame, opening camera")
        ctx.flags.set("camera_open", True)
        await ctx.send_result(PHOTO_FAILURE_RESULT)
        return
    if ctx.analysis is None:
        await ctx.send_result(PHOTO_FAILURE_RESULT)
        return
    try:
        result = await ctx.analysis.analyze_photo(frame, ctx.arguments.get("prompt") or PHOTO_PROMPT)
    except UpstreamAnalysisError as exc:
        logger.error(f"[TouristTools] photo analysis failed: {exc}")
        await ctx.send_result(PHOTO_FAILURE_RESULT)
        return
    await ctx.send_result(result or "Unable to analyze photo")


async def translate_text(ctx: ToolContext) -> None:
    args = ctx.arguments
    translated = catalog.translate(
        args.get("text") or "",
        args.get("from_lang") or "en",
        args.get("to_lang") or "th",
    )
    await ctx.send_result(f"The translation is: {translated}")


# ── Itinerary ─────────────────────────────────────────────────────────────────

async def start_building_itinerary(ctx: ToolContext) -> None:
    args = ctx.arguments
    plan = _itinerary(ctx)
    itinerary.start_building(plan, args.get("destination"), args.get("days"))
    _publish_itinerary(ctx, plan)
    await ctx.navigate("itinerary")
    await ctx.send_result(
        f"Started building {args.get('days') or 3}-day itinerary for {args.get('destination') or 'Thailand'}. "
        "Now add activities with add_itinerary_step."
    )


async def add_itinerary_step(ctx: ToolContext) -> None:
    plan = _itinerary(ctx)
    step = itinerary.add_step(plan, ctx.arguments)
    _publish_itinerary(ctx, plan)
    await ctx.send_result(f"Added {ctx.arguments.get('name')} to Day {step['day'] + 1} {step['slot']}")


async def finish_building_itinerary(ctx: ToolContext) -> None:
    plan = _itinerary(ctx)
    days = itinerary.finish_building(plan)
    _publish_itinerary(ctx, plan)
    logger.info("[TouristTools] itinerary finished with %d day(s)", len(days))
    await ctx.send_result("Itinerary is complete! Ask the user if they want to book anything.")


async def clear_itinerary(ctx: ToolContext) -> None:
    plan = _itinerary(ctx)
    itinerary.clear(plan)
    _publish_itinerary(ctx, plan)
    await ctx.send_result("Itinerary cleared")


# ── Visual cards ──────────────────────────────────────────────────────────────

async def show_offer(ctx: ToolContext) -> None:
    offer = catalog.get_offer(ctx.arguments.get("offer_id") or "")
    if offer is None:
        logger.warning("[TouristTools] unknown offer %r", ctx.arguments.get("offer_id"))
        await ctx.send_result("Offer not found")
        return
    ctx.enqueue_visual(OfferArtifact(**offer))
    await ctx.send_result(f"Showed {offer['brand']} {offer['title']} offer to user")


def straight_line_km(origin: Place, destination: Place) -> Optional[float]:
    if None in (origin.lat, origin.lng, destination.lat, destination.lng):
        return None
    return round(geodesic((origin.lat, origin.lng), (destination.lat, destination.lng)).km, 2)


async def show_map(ctx: ToolContext) -> None:
    args = ctx.arguments
    origin = Place(name=args.get("origin_name") or "Your location", lat=args.get("origin_lat"), lng=args.get("origin_lng"))
    destination = Place(name=args.get("dest_name") or "Destination", lat=args.get("dest_lat"), lng=args.get("dest_lng"))
    ctx.enqueue_visual(MapArtifact(
        origin=origin,
        destination=destination,
        transport=args.get("transport") or "walk",
        distance_km=straight_line_km(origin, destination),
    ))
    await ctx.send_result(
        f"Showed directions from {args.get('origin_name') or 'current location'} to {args.get('dest_name')}"
    )


async def show_currency(ctx: ToolContext) -> None:
    args = ctx.arguments
    amount, rate = args["amount"], args["rate"]
    result = f"{float(amount) * float(rate):.2f}"
    ctx.enqueue_visual(CurrencyArtifact(
        amount=amount,
        from_currency=args["from_currency"],
        to_currency=args["to_currency"],
        rate=rate,
        result=result,
    ))
    await ctx.send_result(f"Showed conversion: {amount} {args['from_currency']} = {result} {args['to_currency']}")


async def show_transport(ctx: ToolContext) -> None:
    args = ctx.arguments
    ctx.enqueue_visual(TransportArtifact(
        line=args["line"],
        line_color=args.get("line_color") or "#5EC24D",
        from_station=args["from_station"],
        to_station=args["to_station"],
        stations=args.get("stations_count"),
        duration=args.get("duration"),
        fare=args.get("fare"),
        direction=args.get("direction"),
    ))
    await ctx.send_result(f"Showed {args['line']} route from {args['from_station']} to {args['to_station']}")


async def show_atm(ctx: ToolContext) -> None:
    args = ctx.arguments
    ctx.enqueue_visual(AtmArtifact(
        bank=args["bank_name"],
        bank_color=args.get("bank_color") or "#1a5f9e",
        location=args["location"],
        fee=args.get("fee"),
        lat=args.get("latitude"),
        lng=args.get("longitude"),
        has_exchange=bool(args.get("has_exchange")),
        tip=args.get("tip"),
    ))
    await ctx.send_result(f"Showed {args['bank_name']} ATM at {args['location']}")


# ── Step-by-step directions ───────────────────────────────────────────────────

def build_steps(raw_steps: Any, default_action: str) -> List[DirectionStep]:
    steps: List[DirectionStep] = []
    for index, raw in enumerate(raw_steps or []):
        if not isinstance(raw, dict):
            continue
        extra = {k: v for k, v in raw.items() if k not in ("id", "instruction", "action") and v is not None}
        steps.append(DirectionStep(
            id=index,
            instruction=raw.get("instruction") or "",
            action=raw.get("action") or default_action,
            **extra,
        ))
    return steps


def _directions(mode: str, default_action: str, fare_key: Optional[str], detail_keys: Tuple[str, ...], defaults: Optional[Dict[str, Any]] = None):
    defaults = defaults or {}

    def _build(args: Dict[str, Any]) -> DirectionsArtifact:
        details = {key: args.get(key) or defaults.get(key) for key in detail_keys}
        return DirectionsArtifact(
            mode=mode,
            origin=args.get("origin") or "",
            destination=args.get("destination") or "",
            total_time=args.get("total_time"),
            total_distance=args.get("total_distance"),
            fare=args.get(fare_key) if fare_key else None,
            details={k: v for k, v in details.items() if v is not None},
            steps=build_steps(args.get("steps"), default_action),
        )

    return _build


_build_walk = _directions("walk", "walk", None, ())
_build_bus = _directions("bus", "bus", "fare", ("bus_number",))
_build_train = _directions("train", "train", "total_fare", ())
_build_boat = _directions("boat", "boat", "fare", ("boat_type",))
_build_taxi = _directions("taxi", "taxi", "estimated_fare", ("service", "notes"), {"service": "Taxi"})


async def show_walking_directions(ctx: ToolContext) -> None:
    args = ctx.arguments
    ctx.enqueue_visual(_build_walk(args))
    await ctx.send_result(f"Showed walking directions from {args.get('origin')} to {args.get('destination')}")


async def show_bus_directions(ctx: ToolContext) -> None:
    args = ctx.arguments
    ctx.enqueue_visual(_build_bus(args))
    await ctx.send_result(
        f"Showed bus directions: {args.get('bus_number') or 'Bus'} from {args.get('origin')} to {args.get('destination')}"
    )


async def show_train_directions(ctx: ToolContext) -> None:
    args = ctx.arguments
    ctx.enqueue_visual(_build_train(args))
    await ctx.send_result(f"Showed train directions from {args.get('origin')} to {args.get('destination')}")


async def show_boat_directions(ctx: ToolContext) -> None:
    args = ctx.arguments
    ctx.enqueue_visual(_build_boat(args))
    await ctx.send_result(f"Showed boat directions from {args.get('origin')} to {args.get('destination')}")


async def show_taxi_directions(ctx: ToolContext) -> None:
    args = ctx.arguments
    ctx.enqueue_visual(_build_taxi(args))
    await ctx.send_result(f"Showed taxi directions from {args.get('origin')} to {args.get('destination')}")


# ── Web search ────────────────────────────────────────────────────────────────

async def web_search(ctx: ToolContext) -> None:
    query = ctx.arguments.get("query") or ""
    if ctx.analysis is None or not query:
        await ctx.send_result("I cannot search the internet right now.")
        return
    found = await ctx.analysis.search(query, ctx.arguments.get("location"))
    await ctx.send_result(found.get("summary") or "No results found.")


# ── Schemas ───────────────────────────────────────────────────────────────────

_NO_ARGS: Dict[str, Any] = {"type": "object", "properties": {}}


def _object(properties: Dict[str, Any], required: Optional[List[str]] = None) -> Dict[str, Any]:
    schema: Dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


def _str(description: str = "") -> Dict[str, Any]:
    return {"type": "string", "description": description} if description else {"type": "string"}


def _num(description: str = "") -> Dict[str, Any]:
    return {"type": "number", "description": description} if description else {"type": "number"}


def _route(step_properties: Dict[str, Any], **top: Dict[str, Any]) -> Dict[str, Any]:
    step = _object({"instruction": _str(), **step_properties}, ["instruction", "action"])
    properties = {
        "origin": _str("Starting location"),
        "destination": _str("End location"),
        "total_time": _str("Total journey time"),
        **top,
        "steps": {"type": "array", "items": step},
    }
    return _object(properties, ["origin", "destination", "steps"])


TOOLS: List[Tuple[str, ToolHandler, str, Dict[str, Any]]] = [
    ("pause_voice", pause_voice,
     'Pause the voice assistant immediately. Use when user says "pause", "stop", "mute", "be quiet", '
     "or wants you to stop talking.", _NO_ARGS),
    ("navigate_home", _navigator("home", "Navigated to home screen"), "Navigate to the home screen", _NO_ARGS),
    ("navigate_explore", _navigator("explore", "Navigated to explore Thailand"),
     "Navigate to explore Thailand screen to find places and attractions", _NO_ARGS),
    ("navigate_itinerary", _navigator("itinerary", "Navigated to itinerary"),
     "Navigate to the itinerary/trip planning screen", _NO_ARGS),
    ("navigate_translate", navigate_translate, "Navigate to the live translation screen", _NO_ARGS),
    ("navigate_stores", _navigator("offers", "Navigated to stores and offers"),
     "Navigate to stores and offers screen", _NO_ARGS),
    ("navigate_loyalty", _navigator("loyalty", "Navigated to TrueCoins"), "Navigate to TrueCoins loyalty hub", _NO_ARGS),
    ("take_photo", take_photo,
     'Take a photo and analyze what the camera sees. Use for: "what is this", "where am I", "take a photo", '
     '"look at this", "translate this sign", "identify this building".',
     _object({"prompt": _str("What to analyze (e.g., \"identify this landmark and tell me where it is\")")})),
    ("translate_text", translate_text, "Translate text between English and Thai",
     _object({
         "text": _str("Text to translate"),
         "from_lang": _str("Source language (en or th)"),
         "to_lang": _str("Target language (en or th)"),
     }, ["text"])),
    ("open_camera", open_camera, "Open camera preview for live view", _NO_ARGS),
    ("start_building_itinerary", start_building_itinerary,
     "Start building a new itinerary. Call this FIRST when user asks to plan a trip.",
     _object({
         "destination": _str("City or area (e.g., Bangkok, Phuket)"),
         "days": _num("Number of days for the trip"),
     })),
    ("add_itinerary_step", add_itinerary_step,
     "Add one activity/place to the itinerary. Call this for EACH activity after start_building_itinerary.",
     _object({
         "day": _num("Day number (0 = Day 1, 1 = Day 2, etc.)"),
         "slot": _str("Time slot: morning, afternoon, or evening"),
         "name": _str("Name of the place or activity"),
         "description": _str("Brief description"),
         "type": _str("Type: Temple, Beach, Market, Restaurant, etc."),
         "duration": _str("Estimated duration (e.g., 2 hours)"),
         "price": _str("Approximate cost (e.g., 500 THB or Free)"),
     }, ["day", "slot", "name"])),
    ("finish_building_itinerary", finish_building_itinerary,
     "Complete the itinerary building. Call this AFTER adding all steps.", _NO_ARGS),
    ("clear_itinerary", clear_itinerary, "Clear the current itinerary to start fresh", _NO_ARGS),
    ("show_offer", show_offer,
     "ALWAYS display offer card when mentioning CP Group brands (7-Eleven, Chester's, Five Star, True, Lotus's). "
     "Call this immediately after mentioning any offer!",
     _object({"offer_id": _str("CP Group offer IDs: " + ", ".join(catalog.OFFERS))}, ["offer_id"])),
    ("show_map", show_map,
     "Display an interactive map with directions from origin to destination.",
     _object({
         "origin_lat": _num("Latitude of starting point"),
         "origin_lng": _num("Longitude of starting point"),
         "origin_name": _str('Name of starting point (e.g., "Your location", "Lumpini Park")'),
         "dest_lat": _num("Latitude of destination"),
         "dest_lng": _num("Longitude of destination"),
         "dest_name": _str("Name of destination"),
         "transport": _str("Transport mode: walk, transit, drive. Default walk."),
     }, ["origin_lat", "origin_lng", "dest_lat", "dest_lng", "dest_name"])),
    ("show_currency", show_currency,
     'Display currency conversion card. Use when user asks about money exchange or "how much is X baht".',
     _object({
         "amount": _num("Amount to convert"),
         "from_currency": _str("Source currency code (THB, USD, EUR, GBP, SGD, CHF, JPY, CNY, AUD)"),
         "to_currency": _str("Target currency code"),
         "rate": _num("Exchange rate (1 from_currency = X to_currency)"),
     }, ["amount", "from_currency", "to_currency", "rate"])),
    ("show_transport", show_transport,
     "Display BTS/MRT train route card. Use when user asks about trains, metro, BTS or MRT.",
     _object({
         "line": _str("Line name: BTS Sukhumvit, BTS Silom, MRT Blue, MRT Purple, Airport Rail Link"),
         "line_color": _str("Color code: #5EC24D (BTS), #0066B3 (MRT blue), #800080 (MRT purple), #E31937 (ARL)"),
         "from_station": _str("Departure station name"),
         "to_station": _str("Arrival station name"),
         "stations_count": _num("Number of stations"),
         "duration": _str('Estimated travel time (e.g., "15 mins")'),
         "fare": _str('Fare in THB (e.g., "฿44")'),
         "direction": _str("Direction/terminus"),
     }, ["line", "from_station", "to_station", "fare"])),
    ("show_atm", show_atm,
     "Display ATM finder card with bank info. Use when user asks about ATMs, cash withdrawal, or where to get money.",
     _object({
         "bank_name": _str("Bank name (e.g., Bangkok Bank, Kasikorn, SCB, Krungsri)"),
         "bank_color": _str("Bank brand color"),
         "location": _str("ATM location description"),
         "fee": _str("Foreign card fee (usually ฿220)"),
         "latitude": _num("ATM latitude"),
         "longitude": _num("ATM longitude"),
         "has_exchange": {"type": "boolean", "description": "Has currency exchange nearby"},
         "tip": _str("Helpful tip about this ATM/bank"),
     }, ["bank_name", "location", "fee", "latitude", "longitude"])),
    ("show_walking_directions", show_walking_directions,
     "Display a visual step-by-step walking path with icons. Use for SHORT walks under 10 min.",
     _route(
         {
             "action": _str("start, walk, continue, turn_left, turn_right, cross, stairs_up, stairs_down, "
                            "elevator, landmark, arrive"),
             "road": _str(), "landmark": _str(), "side": _str("left or right"),
             "duration": _str(), "distance": _str(),
         },
         total_distance=_str('Total distance (e.g., "400m")'),
     )),
    ("show_bus_directions", show_bus_directions,
     "Display visual bus route directions. Use when user asks about taking a bus.",
     _route(
         {
             "action": _str("start, walk, bus_stop, bus_board, bus, bus_alight, transfer, arrive"),
             "bus_number": _str("Bus number for this step"), "stop_name": _str("Bus stop name"),
             "stops_count": _num("Number of stops to ride"), "duration": _str(),
             "wait_time": _str("Expected wait time"),
         },
         fare=_str('Bus fare (e.g., "฿15")'),
         bus_number=_str('Bus number/route (e.g., "Bus 73", "A1 Airport Bus")'),
     )),
    ("show_train_directions", show_train_directions,
     "Display visual BTS/MRT/train route directions. Use when user asks about taking BTS, MRT, or Airport Rail Link.",
     _route(
         {
             "action": _str("start, walk, bts, mrt, arl, train_board, train_alight, transfer, arrive"),
             "line": _str("Line name"), "line_color": _str("Line color"), "station": _str("Station name"),
             "direction": _str("Train direction/terminus"), "stops_count": _num("Number of stops"),
             "duration": _str(), "fare": _str(),
         },
         total_fare=_str('Total fare (e.g., "฿44")'),
     )),
    ("show_boat_directions", show_boat_directions,
     "Display visual boat/ferry route directions. Use for Chao Phraya Express Boat, river taxi, or cross-river ferry.",
     _route(
         {
             "action": _str("start, walk, pier, boat_board, boat, exit_boat, ferry, arrive"),
             "pier_name": _str("Pier name (e.g., Sathorn, Tha Tien)"), "pier_code": _str("Pier code (e.g., N8, S1)"),
             "boat_flag": _str("Boat flag color (Orange, Yellow, Green, Tourist Blue)"),
             "stops_count": _num(), "duration": _str(), "wait_time": _str(),
         },
         fare=_str("Boat fare"),
         boat_type=_str("Type: Express Boat, Tourist Boat, Cross-river Ferry"),
     )),
    ("show_taxi_directions", show_taxi_directions,
     "Display taxi/Grab/Bolt ride directions. Use when user asks about taking a taxi or rideshare.",
     _route(
         {
             "action": _str("start, walk, pickup, taxi, grab, traffic, tollway, highway, dropoff, arrive"),
             "road": _str("Major road name"), "traffic": _str("Traffic condition (light, moderate, heavy)"),
             "toll_cost": _str("Toll fee if applicable"), "duration": _str(), "distance": _str(),
         },
         estimated_fare=_str('Estimated fare range (e.g., "฿150-200")'),
         service=_str("Service type: Taxi, Grab, Bolt"),
         notes=_str("Tips about traffic, meter, etc."),
     )),
    ("web_search", web_search,
     "Search the web for current information about places, businesses, prices or opening hours in Thailand.",
     _object({
         "query": _str("What to search for"),
         "location": _str("Area to search around (default Bangkok, Thailand)"),
     }, ["query"])),
]


def register_tools(registry: FunctionRegistry) -> None:
    for name, handler, description, parameters in TOOLS:
        registry.register(name, handler, description, parameters)
