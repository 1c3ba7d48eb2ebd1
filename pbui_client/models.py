"""Request models for PBUI REST calls.

Pydantic models validate caller input before anything is sent; use
:func:`validate_request` to get the library's ``ValidationError`` instead of
pydantic's.
"""

from __future__ import annotations

import math
from typing import Any, Literal, TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ValidationError

SLUG_PATTERN = r"^[a-z0-9_-]+$"

MapDifficulty = Literal["Easy", "Normal", "Hard", "Expert", "ExpertPlus"]

_ModelT = TypeVar("_ModelT", bound=BaseModel)


class StateUpdate(BaseModel):
    """Body of ``POST /update``."""

    song_states: dict[str, Any]
    current_flow_step: int | float

    @field_validator("song_states", mode="before")
    @classmethod
    def _non_empty(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            raise ValueError("Invalid song_states: must be a mapping")
        if not value:
            raise ValueError("song_states should not be empty")
        return value

    @field_validator("current_flow_step", mode="before")
    @classmethod
    def _finite_number(cls, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("Invalid flow step: must be a number")
        if not math.isfinite(value):
            raise ValueError("Invalid flow step: must be finite")
        return value


class TournamentCreate(BaseModel):
    """Body of ``POST /createTournament``."""

    name: str = Field(min_length=1)
    slug: str = Field(pattern=SLUG_PATTERN)


class PoolCreate(BaseModel):
    """Body of ``POST /createTournament?pool=true``."""

    model_config = ConfigDict(populate_by_name=True)

    tourney_id: int = Field(alias="tourneyId", gt=0)
    pool_name: str = Field(alias="poolName", min_length=1)


class MapCreate(BaseModel):
    """Body of ``POST /createTournament?map=true``."""

    model_config = ConfigDict(populate_by_name=True)

    pool_id: int = Field(alias="poolId", gt=0)
    hash: str = Field(min_length=1)
    diff: MapDifficulty


def validate_request(model: type[_ModelT], data: Any) -> _ModelT:
    """Validate ``data`` against ``model``.

    Raises:
        ValidationError: If the input does not satisfy the model
    """
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as err:
        details = "; ".join(
            f"{'.'.join(str(loc) for loc in e['loc']) or 'value'}: {e['msg']}"
            for e in err.errors()
        )
        raise ValidationError(f"Invalid {model.__name__}: {details}") from err
