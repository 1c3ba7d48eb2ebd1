"""HTTP client for PBUI REST endpoints."""

from __future__ import annotations

import json
import logging
from typing import IO, TYPE_CHECKING, Any

import aiohttp
import defusedxml
from defusedxml import ElementTree as etree

from .errors import (
    HttpError,
    PbuiConnectionError,
    PbuiTimeout,
    ResponseDecodeError,
    UnsupportedContentTypeError,
)

if TYPE_CHECKING:
    from .settings import PbuiSettings

_LOGGER = logging.getLogger(__name__)

CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_XML = "xml"
CONTENT_TYPE_TEXT = "text/"


class PbuiHttpClient:
    """HTTP client wrapper for PBUI REST endpoints.

    The base URL and auth token are read from the owning client's settings
    on every call, so updating them takes effect for the next request.
    """

    def __init__(
        self,
        settings: PbuiSettings,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._settings = settings
        self._session = session
        self._owns_session = session is None

    def _url(self, endpoint: str) -> str:
        return f"{self._settings.api_base}{endpoint}"

    def _auth_headers(self, token: str | None = None) -> dict[str, str]:
        token = token if token is not None else self._settings.auth_token
        if not token:
            return {}
        return {"Authorization": f"Bearer {token}"}

    def _timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=self._settings.request_timeout)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def fetch_data(
        self,
        endpoint: str,
        method: str = "GET",
        body: dict[str, Any] | None = None,
        *,
        auth: bool = False,
        auth_token: str | None = None,
    ) -> Any:
        """Call ``endpoint`` and decode the response by content type.

        Args:
            endpoint: Path relative to the API base, with a leading /
            method: HTTP method
            body: JSON body, omitted when None
            auth: Attach the bearer token (privileged calls)
            auth_token: Token overriding the configured one

        Raises:
            HttpError: Non-2xx status
            UnsupportedContentTypeError: Response type is not JSON, XML or text
            PbuiTimeout: Request timed out
            PbuiConnectionError: Network request failed
        """
        headers = {"Content-Type": CONTENT_TYPE_JSON}
        if auth:
            headers.update(self._auth_headers(auth_token))

        kwargs: dict[str, Any] = {"headers": headers, "timeout": self._timeout()}
        if body is not None:
            kwargs["json"] = body

        try:
            async with self._get_session().request(
                method, self._url(endpoint), **kwargs
            ) as resp:
                if resp.status >= 400:
                    _LOGGER.error("Failed to fetch %s (status %d)", endpoint, resp.status)
                    raise HttpError(resp.status, f"HTTP error! Status: {resp.status}")
                return await self.decode_response(resp)
        except TimeoutError as err:
            raise PbuiTimeout(f"Request to {endpoint} timed out") from err
        except aiohttp.ClientError as err:
            raise PbuiConnectionError(f"Request to {endpoint} failed") from err

    @staticmethod
    async def decode_response(resp: aiohttp.ClientResponse) -> Any:
        """Decode a response body according to its declared content type."""
        content_type = resp.headers.get("Content-Type", "")
        if CONTENT_TYPE_JSON in content_type:
            try:
                return await resp.json(content_type=None)
            except json.JSONDecodeError as err:
                raise ResponseDecodeError("Malformed JSON response") from err
        if CONTENT_TYPE_XML in content_type:
            text = await resp.text()
            try:
                return etree.fromstring(text, forbid_dtd=True)
            except etree.ParseError as err:
                raise ResponseDecodeError(f"Error parsing XML: {err}") from err
            except defusedxml.DefusedXmlException as err:
                raise ResponseDecodeError(f"Rejected XML response: {err}") from err
        if content_type.startswith(CONTENT_TYPE_TEXT):
            return await resp.text()
        raise UnsupportedContentTypeError(content_type)

    async def upload(
        self,
        file: bytes | IO[bytes],
        filename: str,
        *,
        auth_token: str | None = None,
    ) -> str:
        """Upload a file to /upload and return its public URL."""
        form = aiohttp.FormData()
        form.add_field("file", file, filename=filename)

        try:
            async with self._get_session().post(
                self._url("/upload"),
                data=form,
                headers=self._auth_headers(auth_token),
                timeout=self._timeout(),
            ) as resp:
                try:
                    data = await resp.json(content_type=None)
                except json.JSONDecodeError:
                    data = None
                if not isinstance(data, dict):
                    data = {}
                if resp.status >= 400 or data.get("status") != "success":
                    raise HttpError(resp.status, data.get("error") or "Upload failed")
                return data["url"]
        except TimeoutError as err:
            raise PbuiTimeout("Upload request timed out") from err
        except aiohttp.ClientError as err:
            raise PbuiConnectionError("Upload request failed") from err
