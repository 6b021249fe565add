"""
catalog.py — Static content for the Tourist ONE concierge.

Partner offers shown as voucher cards and the demo phrasebook used by
translate_text.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

OFFERS: Dict[str, Dict[str, Any]] = {
    "7eleven-coffee": {
        "brand": "7-Eleven",
        "title": "Free All Cafe Coffee",
        "description": "Any Americano, Latte or Cappuccino - hot or iced! Free with ฿50+ spend",
        "cost": 30,
        "type": "coins",
        "color": "#00843D",
        "locations": "13,000+ stores across Thailand",
    },
    "7eleven-snack": {
        "brand": "7-Eleven",
        "title": "Snack Bundle",
        "description": "Free drink + snack combo. Perfect for day trips!",
        "cost": 0,
        "type": "free",
        "color": "#00843D",
        "locations": "Every corner in Bangkok",
    },
    "7eleven-readymeals": {
        "brand": "7-Eleven",
        "title": "Ready Meal Deal",
        "description": "Buy 2 CP ready meals, get 1 free. Fresh & delicious!",
        "cost": 20,
        "type": "coins",
        "color": "#00843D",
        "locations": "24/7 availability",
    },
    "chesters": {
        "brand": "Chester's Grill",
        "title": "Free Meal Upgrade",
        "description": "Upgrade to large set with extra chicken - free!",
        "cost": 0,
        "type": "free",
        "color": "#FF6B00",
        "locations": "500+ locations including malls & airports",
    },
    "fivestar": {
        "brand": "Five Star Chicken",
        "title": "Family Bucket Deal",
        "description": "8pc chicken bucket + 2 sides for price of 6pc",
        "cost": 50,
        "type": "coins",
        "color": "#FFD700",
        "locations": "Major malls & transit hubs",
    },
    "cpfresh": {
        "brand": "CP Fresh Mart",
        "title": "20% Off Fresh Produce",
        "description": "Discount on fruits, vegetables & CP meats",
        "cost": 35,
        "type": "coins",
        "color": "#4CAF50",
        "locations": "Premium supermarket chain",
    },
    "lotus": {
        "brand": "Lotus's",
        "title": "฿100 Shopping Voucher",
        "description": "Spend ฿500+, get ฿100 off. Thailand's largest hypermarket",
        "cost": 60,
        "type": "coins",
        "color": "#00BCD4",
        "locations": "2,000+ stores nationwide",
    },
    "true-data": {
        "brand": "True Mobile",
        "title": "1GB Data Bonus",
        "description": "Extra 1GB 5G data for 24 hours. Stream & navigate freely!",
        "cost": 25,
        "type": "coins",
        "color": "#E31937",
        "locations": "Works everywhere with True coverage",
    },
    "truemoney": {
        "brand": "True Money",
        "title": "฿50 Cashback",
        "description": "฿50 back on first payment. Use at street vendors & markets!",
        "cost": 0,
        "type": "free",
        "color": "#FF6F00",
        "locations": "Accepted at 100,000+ merchants",
    },
    "truevisions": {
        "brand": "True ID",
        "title": "Free Premium Content",
        "description": "7 days of True ID Premium - movies, series, live sports",
        "cost": 40,
        "type": "coins",
        "color": "#9C27B0",
        "locations": "Stream anywhere in Thailand",
    },
    "airport-fasttrack": {
        "brand": "True Tourist",
        "title": "Airport Fast Track",
        "description": "Skip immigration queues at BKK & DMK. True SIM exclusive!",
        "cost": 100,
        "type": "coins",
        "color": "#003D7C",
        "locations": "Suvarnabhumi & Don Mueang airports",
    },
}


def get_offer(offer_id: str) -> Optional[Dict[str, Any]]:
    offer = OFFERS.get(offer_id)
    if offer is None:
        return None
    return {"offer_id": offer_id, **offer}


# Demo phrasebook; anything else is echoed with a language tag.
PHRASEBOOK: Dict[str, str] = {
    "hello": "สวัสดี",
    "thank you": "ขอบคุณ",
    "how much": "เท่าไหร่",
    "where is": "อยู่ที่ไหน",
}


def translate(text: str, from_lang: str = "en", to_lang: str = "th") -> str:
    return PHRASEBOOK.get(text.lower()) or f"[{to_lang.upper()}] {text}"
