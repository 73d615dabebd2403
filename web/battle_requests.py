from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UserAddressRequest(BaseModel):
    """Request body identifying a participant by wallet address."""

    model_config = ConfigDict(populate_by_name=True)

    user_address: str = Field(alias="userAddress", min_length=1)

    @field_validator("user_address")
    @classmethod
    def strip_address(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("User address is required")
        return v


class SubmitCastRequest(UserAddressRequest):
    """Request model for submitting an argument."""

    content: str
    side: str


class LikeCastRequest(UserAddressRequest):
    """Request model for toggling a like."""

    cast_id: str = Field(alias="castId", min_length=1)


class BattleConfigUpdateRequest(BaseModel):
    """Partial battle settings update (camelCase or snake_case keys)."""

    model_config = ConfigDict(populate_by_name=True)

    battle_duration_hours: float | None = Field(default=None, alias="battleDurationHours")
    max_participants: int | None = Field(default=None, alias="maxParticipants")
    enabled: bool | None = None
    winner_points: int | None = Field(default=None, alias="winnerPoints")
    participation_points: int | None = Field(default=None, alias="participationPoints")

    def to_settings_changes(self) -> dict[str, Any]:
        changes: dict[str, Any] = {}
        if self.battle_duration_hours is not None:
            changes["duration_hours"] = self.battle_duration_hours
        if self.max_participants is not None:
            changes["max_participants"] = self.max_participants
        if self.enabled is not None:
            changes["enabled"] = self.enabled
        if self.winner_points is not None:
            changes["winner_points"] = self.winner_points
        if self.participation_points is not None:
            changes["participation_points"] = self.participation_points
        return changes
