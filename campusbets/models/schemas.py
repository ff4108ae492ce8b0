from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

SIDES = ("yes", "no")
RESOLUTIONS = ("unresolved", "yes", "no")


def normalize_side(value: str) -> str:
    side = str(value).strip().lower()
    if side not in SIDES:
        raise ValueError("side must be yes or no")
    return side


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Pool(BaseModel):
    """Cumulative stake on each side of one market at a point in time."""

    model_config = ConfigDict(frozen=True)

    yes: int = Field(default=0, ge=0)
    no: int = Field(default=0, ge=0)

    @property
    def total(self) -> int:
        return self.yes + self.no

    def stake(self, side: str) -> int:
        return self.yes if normalize_side(side) == "yes" else self.no

    def opposing(self, side: str) -> int:
        return self.no if normalize_side(side) == "yes" else self.yes


class Market(BaseModel):
    id: str
    headline: str
    yes_stake: int = Field(default=0, ge=0)
    no_stake: int = Field(default=0, ge=0)
    created_at: datetime
    expires_at: datetime
    created_by: str
    resolution: str = "unresolved"
    tags: List[str] = Field(default_factory=list)

    @field_validator("created_at", "expires_at")
    @classmethod
    def _tz_aware(cls, v: datetime):
        return _aware(v)

    @field_validator("expires_at")
    @classmethod
    def expires_after_created(cls, v: datetime, info: ValidationInfo):
        created = info.data.get("created_at")
        if created is not None and v < created:
            raise ValueError("expires_at must not precede created_at")
        return v

    @field_validator("resolution")
    @classmethod
    def known_resolution(cls, v: str):
        value = v.lower()
        if value not in RESOLUTIONS:
            raise ValueError("resolution must be unresolved, yes or no")
        return value

    @property
    def pool(self) -> Pool:
        return Pool(yes=self.yes_stake, no=self.no_stake)

    @property
    def resolved(self) -> bool:
        return self.resolution != "unresolved"

    def is_open(self, now: Optional[datetime] = None) -> bool:
        """Only unresolved, unexpired markets take wagers."""
        now = _aware(now or datetime.now(timezone.utc))
        return not self.resolved and now < self.expires_at


class Wager(BaseModel):
    id: Optional[str] = None
    market_id: str
    user_id: str
    side: str  # "yes" or "no"
    amount: int = Field(ge=1)
    created_at: datetime

    @field_validator("side")
    @classmethod
    def side_lower(cls, v: str):
        return normalize_side(v)


class Profile(BaseModel):
    id: str
    email: Optional[str] = None
    balance: int = Field(ge=0)
    created_at: datetime


class Session(BaseModel):
    access_token: str
    refresh_token: str
    expires_at: datetime
    user_id: str
    email: Optional[str] = None

    @field_validator("expires_at")
    @classmethod
    def _tz_aware(cls, v: datetime):
        return _aware(v)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = _aware(now or datetime.now(timezone.utc))
        return now >= self.expires_at
