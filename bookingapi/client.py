import logging
import threading
import time
from typing import Any, Mapping, Optional, Tuple

import httpx
from cachetools import TTLCache
from fastapi import Request

from bookingapi.config import config
from bookingapi.errors import APIError

logger = logging.getLogger(__name__)


class ResponseCache:
    """In-memory cache for catalog responses with a fixed time to live."""

    def __init__(self, ttl: int, maxsize: int = config.CACHE_MAX_ENTRIES, timer=time.monotonic):
        self.ttl = ttl
        self._entries: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl, timer=timer)
        self._lock = threading.Lock()

    def get(self, key: Tuple) -> Optional[httpx.Response]:
        with self._lock:
            response = self._entries.get(key)
        if response is None:
            logger.debug(f"Cache MISS: {key}")
        else:
            logger.debug(f"Cache HIT: {key}")
        return response

    def set(self, key: Tuple, response: httpx.Response) -> None:
        with self._lock:
            self._entries[key] = response

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class BookingAPIClient:
    """Client for the samedi Booking API.

    Every request carries the app's ``client_id``. Successful catalog reads are
    cached; availability and bookings always go to the API.
    """

    def __init__(
        self,
        base_url: str = config.BOOKING_API_URL,
        client_id: Optional[str] = config.CLIENT_ID,
        timeout: float = config.REQUEST_TIMEOUT,
        cache_ttl: int = config.CACHE_TTL_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id
        self.cache = ResponseCache(cache_ttl)
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/",
            params={"client_id": client_id} if client_id else None,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def get(self, path: str, params: Optional[Mapping[str, Any]] = None, cache: bool = True) -> httpx.Response:
        params = dict(params or {})
        key = (path, tuple(sorted((k, str(v)) for k, v in params.items())))
        if cache:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        try:
            response = await self._http.get(path, params=params)
        except httpx.TimeoutException as e:
            raise APIError("Connection timed out") from e
        except httpx.HTTPError as e:
            raise APIError(f"Connection failed: {e}") from e

        if cache and response.is_success:
            self.cache.set(key, response)
        if not response.is_success:
            logger.warning(f"GET {path} returned {response.status_code}")
        return response

    async def post(
        self,
        path: str,
        json: Optional[Any] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> httpx.Response:
        try:
            response = await self._http.post(path, json=json, headers=headers)
        except httpx.TimeoutException as e:
            raise APIError("Connection timed out") from e
        except httpx.HTTPError as e:
            raise APIError(f"Connection failed: {e}") from e

        if not response.is_success:
            logger.warning(f"POST {path} returned {response.status_code}")
        return response


def get_booking_client(request: Request) -> BookingAPIClient:
    return request.app.state.booking_client
