"""Shared HTTP helpers for enrichment sources."""

from __future__ import annotations

from typing import Any

import httpx

DEFAULT_TIMEOUT = 10.0
USER_AGENT = "solana-buy-tracker/0.1"


class SourceError(Exception):
    """Raised when an external data source fails or returns a malformed body."""


def create_http_client(timeout: float = DEFAULT_TIMEOUT) -> httpx.AsyncClient:
    """Create the httpx client shared by enrichment sources."""
    return httpx.AsyncClient(
        timeout=timeout,
        headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
        follow_redirects=True,
    )


async def get_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    params: dict[str, str] | None = None,
) -> Any:
    """GET a URL and decode its JSON body.

    Raises:
        SourceError: On transport errors, HTTP error statuses or a body
            that is not valid JSON.
    """
    try:
        response = await client.get(url, params=params)
        response.raise_for_status()
    except httpx.HTTPError as e:
        raise SourceError(f"GET {url} failed: {e}") from e

    try:
        return response.json()
    except ValueError as e:
        raise SourceError(f"GET {url} returned a non-JSON body") from e
