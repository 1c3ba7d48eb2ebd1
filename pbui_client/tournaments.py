"""Tournament, pool and map endpoints."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

from .errors import ValidationError
from .models import (
    SLUG_PATTERN,
    MapCreate,
    PoolCreate,
    TournamentCreate,
    validate_request,
)

if TYPE_CHECKING:
    from pydantic import BaseModel

    from .http import PbuiHttpClient

_LOGGER = logging.getLogger(__name__)

_SLUG_RE = re.compile(SLUG_PATTERN)
_NUMERIC_RE = re.compile(r"^[0-9]+$")

# element name -> (request model, endpoint, label for logs)
_CREATE_TARGETS: dict[str, tuple[type[BaseModel], str, str]] = {
    "tournament": (TournamentCreate, "/createTournament", "tournament"),
    "tourney": (TournamentCreate, "/createTournament", "tournament"),
    "pool": (PoolCreate, "/createTournament?pool=true", "tournament pool"),
    "map": (MapCreate, "/createTournament?map=true", "pool map"),
}


def _query(params: str | Mapping[str, Any]) -> str:
    if not params:
        return ""
    if isinstance(params, Mapping):
        return f"?{urlencode(params)}"
    return f"?{params.lstrip('?')}"


class Tournaments:
    """Read and create tournaments, pools and pool maps."""

    def __init__(self, http: PbuiHttpClient) -> None:
        self._http = http

    async def get(
        self,
        tournament_id: str | int = "",
        params: str | Mapping[str, Any] = "",
        log_response: bool = False,
    ) -> Any:
        """Fetch all tournaments, or one by numeric id or slug.

        Args:
            tournament_id: Numeric id or slug; empty lists every tournament
            params: Query string or mapping, only together with an id
            log_response: Log the decoded response at INFO level

        Raises:
            ValidationError: Params without an id, or an id that is neither
                numeric nor a valid slug
        """
        tournament_id = str(tournament_id)
        if not tournament_id:
            if params:
                raise ValidationError(
                    "You cannot specify parameters without specifying tournament_id"
                )
            endpoint = "/getTournaments"
        elif _NUMERIC_RE.match(tournament_id):
            endpoint = f"/getTournaments/{tournament_id}{_query(params)}"
        elif _SLUG_RE.match(tournament_id):
            endpoint = f"/getTournaments/slug/{tournament_id}{_query(params)}"
        else:
            raise ValidationError(
                f"tournament_id {tournament_id!r} is not a valid numerical id or slug"
            )

        data = await self._http.fetch_data(endpoint)
        if log_response:
            _LOGGER.info("Response from %s: %s", endpoint, data)
        return data

    async def get_pool(self, pool_id: str | int) -> Any:
        """Fetch a map pool by numeric id."""
        pool_id = str(pool_id)
        if not pool_id:
            raise ValidationError("Pool ID not provided")
        if not _NUMERIC_RE.match(pool_id):
            raise ValidationError("Pool ID must only contain numbers")
        return await self._http.fetch_data(f"/getPool/{pool_id}")

    async def create(
        self,
        element: str = "tournament",
        info: Mapping[str, Any] | None = None,
        auth_token: str | None = None,
    ) -> Any:
        """Create a tournament, a pool in a tournament, or a map in a pool.

        Args:
            element: "tournament" (or "tourney"), "pool" or "map"
            info: Fields for the element:
                tournament: name, slug
                pool: tourney_id, pool_name
                map: pool_id, hash, diff
            auth_token: Token overriding the configured one

        Returns:
            Decoded server response

        Raises:
            ValidationError: Unknown element, or missing/invalid fields
        """
        target = _CREATE_TARGETS.get(element)
        if target is None:
            raise ValidationError(f"Unknown element to create: {element!r}")
        if not info:
            raise ValidationError("Info must be provided on the element being created")

        model, endpoint, label = target
        body = validate_request(model, dict(info))
        data = await self._http.fetch_data(
            endpoint,
            "POST",
            body.model_dump(by_alias=True),
            auth=True,
            auth_token=auth_token,
        )

        if isinstance(data, Mapping) and data.get("status") == "success":
            _LOGGER.info("Successfully created %s", label)
        else:
            _LOGGER.error("Failed to create %s: %s", label, data)
        return data
