"""Shared browser utilities: resource blocking, probe races and the connectivity check."""

import asyncio
from collections.abc import Awaitable, Iterable
from typing import TypeVar

from playwright.async_api import Page, Route

from registerer.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")

# Stylesheets stay enabled so that PDF captures remain readable.
BLOCKED_RESOURCE_TYPES: frozenset[str] = frozenset({"image", "font", "media"})


async def configure_page(page: Page, *, timeout_ms: int, load_timeout_ms: int) -> None:
    """Set up a Playwright page for the polling and registration flows.

    Blocks images, fonts and media to cut page load time on every reload,
    bounds element waits by ``timeout_ms`` and navigations by ``load_timeout_ms``.

    Args:
        page: Playwright Page instance.
        timeout_ms: Navigation timeout from the timing policy.
        load_timeout_ms: Page load timeout from the timing policy.
    """

    async def _block_resources(route: Route) -> None:
        if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
            await route.abort()
        else:
            await route.continue_()

    await page.route("**/*", _block_resources)
    page.set_default_timeout(timeout_ms)
    page.set_default_navigation_timeout(load_timeout_ms)


async def first_success(probes: Iterable[Awaitable[T]]) -> T:
    """Run all probes concurrently and return the first result that does not raise.

    Failures of the other probes are discarded. Probes still pending once a
    winner is known are cancelled.

    Raises:
        LookupError: If every probe failed (the last failure is chained).
        ValueError: If no probes were given.
    """
    tasks = [asyncio.ensure_future(probe) for probe in probes]
    if not tasks:
        raise ValueError("first_success() needs at least one probe")

    last_error: BaseException | None = None
    try:
        for next_done in asyncio.as_completed(tasks):
            try:
                return await next_done
            except Exception as exc:
                last_error = exc
        raise LookupError(f"none of {len(tasks)} probes succeeded") from last_error
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


async def internet_connected(host: str = "google.com") -> bool:
    """Resolve ``host`` to decide whether the network is reachable."""
    loop = asyncio.get_running_loop()
    try:
        await loop.getaddrinfo(host, 443)
    # UnicodeError: a host label the IDNA codec rejects, e.g. over 63 characters.
    except (OSError, UnicodeError) as exc:
        log.debug("dns_lookup_failed", host=host, error=str(exc))
        return False
    return True
