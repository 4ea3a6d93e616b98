from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..utils import read_env

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)
DEFAULT_TIMEOUT = 25.0


class FetchError(RuntimeError):
    """A source could not be fetched or parsed as a whole."""

    def __init__(self, source: str, detail: str) -> None:
        super().__init__(f"{source}: {detail}")
        self.source = source
        self.detail = detail


def build_client(config: dict) -> httpx.Client:
    http_cfg = config.get("http", {}) or {}
    user_agent = read_env("FIXTURE_SYNC_USER_AGENT") or http_cfg.get("user_agent") or DEFAULT_USER_AGENT
    timeout = float(http_cfg.get("timeout", DEFAULT_TIMEOUT))
    return httpx.Client(headers={"User-Agent": user_agent}, timeout=timeout, follow_redirects=True)


@retry(
    retry=retry_if_exception_type(httpx.TransportError),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
    stop=stop_after_attempt(3),
    reraise=True,
)
def _get(client: httpx.Client, url: str) -> httpx.Response:
    return client.get(url)


def get_html(client: httpx.Client, url: str) -> str:
    """GET ``url`` and return the body; a non-2xx status raises ``httpx.HTTPStatusError``."""
    resp = _get(client, url)
    resp.raise_for_status()
    return resp.text


@dataclass
class FetchTask:
    """One page fetch, run against a shared client by the pipeline's worker pool."""

    source: str  # "federation" | "league" | "verification"
    label: str
    run: Callable[[httpx.Client], List[Any]]
