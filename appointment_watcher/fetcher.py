"""
HTTP client for the embassy booking page.

One POST per check. Every call carries a fresh ASP.NET session id so the site
never serves a cached or throttled session back to us.
"""

from __future__ import annotations

import asyncio
import logging
import random
import string
import time
from dataclasses import dataclass
from typing import Optional

import httpx

from .config import TargetConfig

logger = logging.getLogger(__name__)


# Mirrors a desktop Chrome form submission on the booking page
BROWSER_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "Connection": "keep-alive",
    "Content-Type": "application/x-www-form-urlencoded",
    "Origin": "https://appointment.bmeia.gv.at",
    "Referer": "https://appointment.bmeia.gv.at/",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "same-origin",
    "Sec-Fetch-User": "?1",
    "Upgrade-Insecure-Requests": "1",
    "User-Agent": (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/135.0.0.0 Safari/537.36"
    ),
    "sec-ch-ua": '"Google Chrome";v="135", "Not-A.Brand";v="8", "Chromium";v="135"',
    "sec-ch-ua-mobile": "?0",
    "sec-ch-ua-platform": '"Linux"',
    "Accept-Encoding": "gzip, deflate",
}


class FetchError(RuntimeError):
    """The booking page could not be retrieved or returned nothing usable."""


class NetworkError(FetchError):
    """Transport-level failure: refused, DNS, reset, no response."""


class FetchTimeoutError(FetchError, TimeoutError):
    """The request did not finish within the hard timeout."""


@dataclass(frozen=True)
class FetchResponse:
    status_code: int
    text: str
    redirect_location: Optional[str] = None

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.status_code < 400


def new_session_id() -> str:
    """Random, timestamp-suffixed ASP.NET session id."""
    alphabet = string.ascii_lowercase + string.digits
    return "s" + "".join(random.choices(alphabet, k=13)) + str(int(time.time() * 1000))


class FetchClient:
    """Posts the calendar form and returns the raw response body."""

    def __init__(self, target: TargetConfig, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.target = target
        self._transport = transport

    def _form(self) -> dict[str, str]:
        return {
            "fromSpecificInfo": "True",
            "Language": "en",
            "Office": self.target.office,
            "CalendarId": self.target.calendar_id,
            "PersonCount": str(self.target.person_count),
            "Command": self.target.command,
        }

    def _headers(self) -> dict[str, str]:
        headers = dict(BROWSER_HEADERS)
        headers["Cookie"] = f"AspxAutoDetectCookieSupport=1; ASP.NET_SessionId={new_session_id()}"
        return headers

    async def _post(self) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=self.target.request_timeout,
            follow_redirects=False,
            transport=self._transport,
        ) as client:
            return await client.post(self.target.url, data=self._form(), headers=self._headers())

    async def fetch_availability(self) -> FetchResponse:
        logger.info("Sending request to %s (office=%s)", self.target.url, self.target.office)
        try:
            response = await asyncio.wait_for(self._post(), timeout=self.target.request_timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise FetchTimeoutError(
                f"Request timed out after {self.target.request_timeout:.0f} seconds"
            ) from e
        except httpx.TransportError as e:
            raise NetworkError(f"Error making request: {type(e).__name__}: {e}") from e

        logger.info("Response status: %s %s", response.status_code, response.reason_phrase)

        location = response.headers.get("Location")
        if response.is_redirect:
            logger.warning("Booking page redirected to %s; not following", location)
        elif response.status_code >= 400:
            # The page sometimes carries the calendar even on error statuses
            logger.error("Server returned error status %s", response.status_code)

        if not response.text:
            raise FetchError(f"Empty response from server (HTTP {response.status_code})")

        return FetchResponse(status_code=response.status_code, text=response.text, redirect_location=location)


__all__ = [
    "FetchClient",
    "FetchResponse",
    "FetchError",
    "NetworkError",
    "FetchTimeoutError",
    "BROWSER_HEADERS",
    "new_session_id",
]
