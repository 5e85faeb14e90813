"""Request/response schemas for raid endpoints.

Request bodies are parsed with ``parse_body`` into ``Ok``/``Err`` before
any gate logic runs, so a malformed body is a ``ValidationError`` (400)
rather than a framework 422.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

T = TypeVar("T", bound=BaseModel)


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    reason: str


def parse_body(model: type[T], payload: Any) -> Ok[T] | Err:  # noqa: ANN401
    """Validate a decoded JSON body against ``model``."""
    if not isinstance(payload, dict):
        return Err("Request body must be a JSON object")
    try:
        return Ok(model.model_validate(payload))
    except PydanticValidationError as e:
        first = e.errors()[0]
        field_name = ".".join(str(p) for p in first["loc"]) or "body"
        return Err(f"Invalid {field_name}: {first['msg']}")


# --- Requests ---


class _Strict(BaseModel):
    model_config = ConfigDict(extra="ignore", strict=True)


class PreviewRequest(_Strict):
    target_login: str = Field(..., min_length=1, max_length=64)


class ExecuteRequest(_Strict):
    target_login: str = Field(..., min_length=1, max_length=64)
    boost_purchase_id: int | None = Field(None, ge=1)
    vehicle_id: str | None = Field(None, min_length=1, max_length=64)


class LoadoutRequest(_Strict):
    vehicle: str | None = Field(None, min_length=1, max_length=64)
    tag_style: str | None = Field(None, min_length=1, max_length=64)


# --- Responses ---


class BoostOption(BaseModel):
    purchase_id: int
    item_id: str
    name: str
    bonus: int


class VehicleOption(BaseModel):
    item_id: str
    name: str
    emoji: str


class RaidPreviewResponse(BaseModel):
    can_raid: bool
    raids_today: int
    raids_max: int
    target_raided_this_week: bool
    attack_estimate: Literal["weak", "medium", "strong"]
    defense_estimate: Literal["weak", "medium", "strong"]
    attack_score: int
    defense_score: int
    attack_breakdown: dict[str, int | str]
    defense_breakdown: dict[str, int | str]
    attacker_slug: str
    attacker_avatar: str | None = None
    defender_slug: str
    defender_avatar: str | None = None
    defender_building_height: float
    available_boosts: list[BoostOption] = []
    available_vehicles: list[VehicleOption] = []
    vehicle: str


class RaidParticipant(BaseModel):
    slug: str
    avatar: str | None = None
    # Filled in by the client from its building geometry
    position: tuple[float, float, float] = (0.0, 0.0, 0.0)
    height: float = 0.0


class RaidExecuteResponse(BaseModel):
    raid_id: str
    success: bool
    attack_score: int
    defense_score: int
    attack_breakdown: dict[str, int | str]
    defense_breakdown: dict[str, int | str]
    attacker: RaidParticipant
    defender: RaidParticipant
    xp_earned: int
    new_raid_xp: int
    new_title: str | None = None
    new_achievements: list[str] = []
    vehicle: str
    tag_style: str


class LoadoutResponse(BaseModel):
    vehicle: str
    tag_style: str


class RaidHistoryEntry(BaseModel):
    id: str
    attacker_login: str
    defender_login: str
    success: bool
    created_at: datetime


class ActiveRaidTag(BaseModel):
    attacker_login: str
    tag_style: str
    expires_at: datetime


class RaidHistoryResponse(BaseModel):
    raids: list[RaidHistoryEntry]
    total: int
    active_tag: ActiveRaidTag | None = None
