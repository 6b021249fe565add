from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def short_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:10]}"


# ── Client WebSocket envelope ─────────────────────────────────────────────────

class WebSocketMessage(BaseModel):
    type: str
    ts: str = Field(default_factory=now_iso)
    sessionId: str
    payload: Optional[Dict[str, Any]] = None


# ── Conversation ──────────────────────────────────────────────────────────────

class Speaker(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class TranscriptEvent(BaseModel):
    """One finished utterance as reported by the realtime transport."""

    model_config = ConfigDict(frozen=True)

    speaker: Speaker
    text: str
    item_id: Optional[str] = None
    timestamp: str = Field(default_factory=now_iso)


class FunctionCallRequest(BaseModel):
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    call_id: Optional[str] = None


class FunctionCallResult(BaseModel):
    call_id: str
    output: str

    def as_item(self) -> Dict[str, Any]:
        """The conversation item that hands this result back to the model."""
        return {"type": "function_call_output", "call_id": self.call_id, "output": self.output}


# ── Visual artifacts ──────────────────────────────────────────────────────────
#
# Created by function-call handlers and held back until the paired assistant
# reply commits. The client renders each kind as a card.

class _Artifact(BaseModel):
    id: str = ""
    timestamp: str = Field(default_factory=now_iso)

    def model_post_init(self, context: Any, /) -> None:
        if not self.id:
            self.id = short_id(getattr(self, "kind", "visual"))


class OfferArtifact(_Artifact):
    kind: Literal["offer"] = "offer"
    offer_id: str
    brand: str
    title: str
    description: str = ""
    cost: int = 0
    type: str = "free"
    color: Optional[str] = None
    locations: Optional[str] = None


class Place(BaseModel):
    name: str
    lat: Optional[float] = None
    lng: Optional[float] = None


class MapArtifact(_Artifact):
    kind: Literal["map"] = "map"
    origin: Place
    destination: Place
    transport: str = "walk"
    distance_km: Optional[float] = None


class CurrencyArtifact(_Artifact):
    kind: Literal["currency"] = "currency"
    amount: float
    from_currency: str
    to_currency: str
    rate: float
    result: str


class TransportArtifact(_Artifact):
    kind: Literal["transport"] = "transport"
    line: str
    line_color: str = "#5EC24D"
    from_station: str
    to_station: str
    stations: Optional[int] = None
    duration: Optional[str] = None
    fare: Optional[str] = None
    direction: Optional[str] = None


class AtmArtifact(_Artifact):
    kind: Literal["atm"] = "atm"
    bank: str
    bank_color: str = "#1a5f9e"
    location: str
    fee: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    has_exchange: bool = False
    tip: Optional[str] = None


class DirectionStep(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    instruction: str
    action: str


class DirectionsArtifact(_Artifact):
    kind: Literal["directions"] = "directions"
    mode: Literal["walk", "bus", "train", "boat", "taxi"]
    origin: str
    destination: str
    total_time: Optional[str] = None
    total_distance: Optional[str] = None
    fare: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    steps: List[DirectionStep] = Field(default_factory=list)


VisualArtifact = Annotated[
    Union[
        OfferArtifact,
        MapArtifact,
        CurrencyArtifact,
        TransportArtifact,
        AtmArtifact,
        DirectionsArtifact,
    ],
    Field(discriminator="kind"),
]


class ChatMessage(BaseModel):
    """Display entry: either a chat bubble (user/assistant) or a visual card."""

    id: str = Field(default_factory=lambda: short_id("msg"))
    role: Literal["user", "assistant", "visual"]
    text: Optional[str] = None
    artifact: Optional[VisualArtifact] = None
    timestamp: str = Field(default_factory=now_iso)

    @property
    def is_visual(self) -> bool:
        return self.role == "visual"
