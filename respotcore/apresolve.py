"""Looking up an access point to connect to."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable
from urllib.parse import urlsplit

import aiohttp

log = logging.getLogger(__name__)

APRESOLVE_ENDPOINT = "http://apresolve.spotify.com:80"
AP_FALLBACK = "ap.spotify.com:443"
_DEFAULT_PORT = 443


def _port_of(ap: str) -> int | None:
    try:
        return urlsplit("//" + ap).port
    except ValueError:
        return None


def select_access_point(
    ap_list: Iterable[str],
    ap_port: int | None = None,
    proxy: str | None = None,
) -> str:
    """Pick an access point; with a port or proxy given it must use that port (443 by default)."""
    if ap_port is not None or proxy is not None:
        port = ap_port if ap_port is not None else _DEFAULT_PORT
        for ap in ap_list:
            if _port_of(ap) == port:
                return ap
    else:
        for ap in ap_list:
            return ap
    raise ValueError("empty AP List")


async def try_apresolve(proxy: str | None = None, ap_port: int | None = None) -> str:
    """Ask the resolver service for an access point; errors are raised."""
    async with aiohttp.ClientSession() as session:
        async with session.get(APRESOLVE_ENDPOINT, proxy=proxy) as response:
            data = await response.json(content_type=None)

    ap_list = data.get("ap_list") if isinstance(data, dict) else None
    if not isinstance(ap_list, list) or not all(isinstance(ap, str) for ap in ap_list):
        raise ValueError("invalid access point resolver response")
    return select_access_point(ap_list, ap_port, proxy)


async def apresolve(proxy: str | None = None, ap_port: int | None = None) -> str:
    """Resolve an access point, falling back to a fixed one on any failure."""
    try:
        return await try_apresolve(proxy, ap_port)
    except (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError) as exc:
        log.warning("Failed to resolve Access Point: %s", exc)
        log.warning('Using fallback "%s"', AP_FALLBACK)
        return AP_FALLBACK