"""Register for a Minerva course section as soon as a seat opens.

Polls Visual Schedule Builder for an open seat, then logs in to Minerva and
submits the CRN on Quick Add/Drop, retrying through logouts, timeouts and
network loss until registered or a fatal condition is reached.

Run with: minerva-register
Debug:    minerva-register --headed --verbose
Env file: minerva-register --env-file config/fall.env

Exit codes:
  0 = registered
  1 = fatal error (credentials, exhausted registrations, error limit, browser)
  2 = invalid configuration
  130 = stopped by SIGINT/SIGTERM before registering
"""

import argparse
import asyncio
import signal
import sys
from collections.abc import Awaitable
from functools import partial

import requests
from dotenv import load_dotenv
from pydantic import ValidationError

from registerer.artifacts import ArtifactStore
from registerer.config import RegistererConfig, get_config
from registerer.errors import ClassifiedError
from registerer.logging import get_logger, setup_logging
from registerer.notify import EmailNotifier, NotificationError
from registerer.orchestrator import RegistrationOrchestrator
from registerer.pages.availability import AvailabilitySession
from registerer.pages.portal import PortalSession
from registerer.utils import internet_connected

log = get_logger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_CONFIG = 2
EXIT_STOPPED = 130


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments using argparse."""
    parser = argparse.ArgumentParser(
        description="Register for a Minerva course section as soon as a seat opens.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--env-file",
        type=str,
        default=".env",
        help="Environment file with credentials and target (default: .env).",
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Launch browser in headed mode (visible window).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log at DEBUG level.",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Output logs as JSON lines.",
    )
    return parser.parse_args(argv)


def build_orchestrator(
    config: RegistererConfig, *, headless: bool
) -> RegistrationOrchestrator:
    """Wire the sessions, artifact store and connectivity check from ``config``."""
    timing = config.timing()
    portal = PortalSession(
        config.minerva_url,
        timeout_ms=timing.navigation_timeout_ms,
        load_timeout_ms=timing.load_timeout_ms,
        headless=headless,
        submit_probe_count=config.submit_probe_count,
    )
    availability = AvailabilitySession(
        config.vsb_url,
        timeout_ms=timing.navigation_timeout_ms,
        load_timeout_ms=timing.load_timeout_ms,
        headless=headless,
    )
    return RegistrationOrchestrator(
        portal=portal,
        availability=availability,
        artifacts=ArtifactStore(config.artifact_dir),
        credentials=config.credentials(),
        target=config.target(),
        timing=timing,
        connectivity=partial(internet_connected, config.probe_host),
    )


def build_notifier(config: RegistererConfig) -> EmailNotifier:
    return EmailNotifier(
        enabled=config.sendgrid_enabled,
        api_key=config.sendgrid_api_key.get_secret_value(),
        to_email=config.notify_to_email,
        from_email=config.notify_from_email,
    )


async def _notify(send: Awaitable[bool]) -> None:
    """Await a notification; a failed delivery is logged, never raised."""
    try:
        await send
    except (NotificationError, requests.RequestException) as e:
        log.error("notification_failed", error=str(e))


async def run(
    orchestrator: RegistrationOrchestrator, notifier: EmailNotifier
) -> int:
    """Run the orchestrator to completion and notify. Returns the exit code."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, orchestrator.stop)
        except NotImplementedError:
            # add_signal_handler is unavailable on Windows event loops
            pass

    try:
        registered = await orchestrator.run()
    except ClassifiedError as error:
        print(f"\n{error.diagnostics}", file=sys.stderr)
        log.error(
            "registerer_failed",
            kind=error.kind.value,
            **orchestrator.counters.model_dump(),
        )
        await _notify(notifier.send_failure(error))
        return EXIT_FATAL

    if not registered:
        log.warning("registerer_stopped", **orchestrator.counters.model_dump())
        return EXIT_STOPPED

    log.info("registered", crn=orchestrator.target.crn)
    await _notify(notifier.send_success(orchestrator.target.crn))
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    load_dotenv(args.env_file)

    try:
        config = get_config()
    except ValidationError as e:
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        return EXIT_CONFIG

    setup_logging(
        json_output=args.log_json or config.log_json,
        log_level="DEBUG" if args.verbose else config.log_level,
    )

    missing = config.missing_fields()
    if missing:
        for name in missing:
            log.error("config_missing", setting=name)
        return EXIT_CONFIG

    log.info(
        "registerer_starting",
        username=config.minerva_user,
        term=config.term_label or config.term,
        crn=config.crn,
        seconds_between_attempts=config.seconds_between_attempts,
        max_attempts_per_login=config.max_attempts_per_login,
        errors_tolerated=config.errors_tolerated,
    )

    orchestrator = build_orchestrator(config, headless=config.headless and not args.headed)
    try:
        return asyncio.run(run(orchestrator, build_notifier(config)))
    except KeyboardInterrupt:
        return EXIT_STOPPED


if __name__ == "__main__":
    sys.exit(main())
