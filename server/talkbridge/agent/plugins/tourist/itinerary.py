"""
itinerary.py — Voice-built trip plan.

The assistant streams a plan as a series of steps (start, add, add, ...,
finish). Steps are collected while building and folded into the
day-by-slot grid the itinerary screen renders once the plan is finished.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

SLOTS = ("morning", "afternoon", "evening")
DEFAULT_DESTINATION = "Bangkok"
DEFAULT_TRIP_LENGTH = 3


def empty_itinerary() -> Dict[str, Any]:
    return {
        "days": [],
        "trip_length": DEFAULT_TRIP_LENGTH,
        "destination": DEFAULT_DESTINATION,
        "is_building": False,
        "building_steps": [],
    }


def empty_day() -> Dict[str, Optional[Dict[str, Any]]]:
    return {slot: None for slot in SLOTS}


def start_building(itinerary: Dict[str, Any], destination: Optional[str] = None, days: Optional[int] = None) -> None:
    itinerary["is_building"] = True
    itinerary["building_steps"] = []
    if destination:
        itinerary["destination"] = destination
    if days:
        itinerary["trip_length"] = int(days)


def add_step(itinerary: Dict[str, Any], args: Dict[str, Any]) -> Dict[str, Any]:
    """Record one activity. Returns the stored step."""
    slot = args.get("slot") or "morning"
    if slot not in SLOTS:
        slot = "morning"
    step = {
        "day": max(0, int(args.get("day") or 0)),
        "slot": slot,
        "activity": {
            "name": args.get("name"),
            "description": args.get("description"),
            "type": args.get("type"),
            "duration": args.get("duration"),
            "price": args.get("price"),
        },
    }
    itinerary.setdefault("building_steps", []).append(step)
    return step


def fold_steps(steps: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Turn the step list into one {morning, afternoon, evening} entry per day; later steps win a slot."""
    if not steps:
        return []
    last_day = max(step["day"] for step in steps)
    days = [empty_day() for _ in range(last_day + 1)]
    for step in steps:
        days[step["day"]][step["slot"]] = step["activity"]
    return days


def finish_building(itinerary: Dict[str, Any]) -> List[Dict[str, Any]]:
    itinerary["days"] = fold_steps(itinerary.get("building_steps") or [])
    itinerary["building_steps"] = []
    itinerary["is_building"] = False
    return itinerary["days"]


def clear(itinerary: Dict[str, Any]) -> None:
    itinerary["days"] = []
    itinerary["building_steps"] = []
    itinerary["is_building"] = False
