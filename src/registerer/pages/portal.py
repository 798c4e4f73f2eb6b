"""PortalSession - login and Quick Add/Drop registration on Minerva.

Page flow (Banner self-service):
  login page  -> #mcg_un / #mcg_pw / #mcg_un_submit
  main menu   -> "Student" link (menuplaintable row 2)
  student     -> "Registration" link (menuplaintable row 3)
  registration-> "Quick Add or Drop Course Sections" (menuplaintable row 3)
  select term -> select#term_id + submit
  add/drop    -> input#crn_id1 + one of several submit inputs

The add/drop submit input moves between positions in the form when the
rate-limiter is active, so its position is probed (see submit_registration).

Failures are not classified here. Conditions the page reports are raised as
PortalError signals; expired waits propagate as Playwright timeouts.
"""

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from registerer.errors import (
    CredentialsRejectedError,
    RegistrationLimitError,
    SubmitControlNotFoundError,
)
from registerer.logging import get_logger
from registerer.models import Credentials
from registerer.session import LOAD_TIMEOUT_MS, BrowserSession
from registerer.utils import first_success

log = get_logger(__name__)

_MENU = "body > div.pagebodydiv > table.menuplaintable > tbody"

SELECTORS: dict[str, str] = {
    "USERNAME": "#mcg_un",
    "PASSWORD": "#mcg_pw",
    "LOGIN_BUTTON": "#mcg_un_submit",
    "BREAK_IN": "body > div.pagebodydiv > table:nth-child(3) > tbody > tr > td:nth-child(2) > span",
    "STUDENT_MENU": f"{_MENU} > tr:nth-child(2) > td:nth-child(2) > a",
    "REGISTRATION_MENU": f"{_MENU} > tr:nth-child(3) > td:nth-child(2) > a",
    "QUICK_ADD_COURSE": f"{_MENU} > tr:nth-child(3) > td:nth-child(2) > a",
    "SELECT_TERM": "#term_id",
    "SUBMIT_TERM": "body > div.pagebodydiv > form > input[type=submit]",
    "CRN": "#crn_id1",
    "CRN_SUBMIT": "body > div.pagebodydiv > form > input[type=submit]:nth-child({index})",
    "REGISTRATION_ERRORS": "body > div.pagebodydiv > form > table.datadisplaytable",
    "REGISTRATION_LIMIT_ERROR": (
        "body > div.pagebodydiv > div.infotextdiv > table > tbody > tr > td:nth-child(2) > span"
    ),
}


class PortalSession(BrowserSession):
    """Minerva session: login, traverse to Quick Add/Drop, submit a CRN."""

    service = "portal"

    def __init__(
        self,
        url: str,
        *,
        timeout_ms: int,
        load_timeout_ms: int = LOAD_TIMEOUT_MS,
        headless: bool = True,
        submit_probe_count: int = 100,
    ) -> None:
        super().__init__(
            url, timeout_ms=timeout_ms, load_timeout_ms=load_timeout_ms, headless=headless
        )
        self.submit_probe_count = submit_probe_count

    async def login(self, credentials: Credentials) -> None:
        """Submit credentials on the login page and verify the main menu is shown.

        Raises:
            CredentialsRejectedError: If no navigation follows the submit within
                the navigation timeout, or the login form is still shown
                afterwards, or the main menu is missing.
        """
        page = self.page
        await page.locator(SELECTORS["USERNAME"]).fill(credentials.username)
        await page.locator(SELECTORS["PASSWORD"]).fill(
            credentials.password.get_secret_value()
        )

        try:
            async with page.expect_navigation(timeout=self.timeout_ms):
                await page.locator(SELECTORS["LOGIN_BUTTON"]).click()
        except PlaywrightTimeoutError as e:
            raise CredentialsRejectedError("Incorrect credentials.") from e

        if await page.locator(SELECTORS["USERNAME"]).count() > 0:
            raise CredentialsRejectedError("Unsuccessful login.")
        if await page.locator(SELECTORS["STUDENT_MENU"]).count() == 0:
            raise CredentialsRejectedError("Not in main menu after login.")

        log.info("portal_logged_in", username=credentials.username)

    async def goto_registration_area(self, term: str) -> None:
        """Traverse Student > Registration > Quick Add/Drop and select ``term``."""
        await self._follow(SELECTORS["STUDENT_MENU"], SELECTORS["REGISTRATION_MENU"])
        await self._follow(SELECTORS["REGISTRATION_MENU"], SELECTORS["QUICK_ADD_COURSE"])
        await self._follow(SELECTORS["QUICK_ADD_COURSE"], SELECTORS["SELECT_TERM"])

        await self.page.locator(SELECTORS["SELECT_TERM"]).select_option(term)
        await self._follow(SELECTORS["SUBMIT_TERM"], SELECTORS["CRN"])
        log.info("registration_page_reached", term=term)

    async def submit_registration(self, crn: str) -> bool:
        """Enter ``crn`` on the add/drop form and submit it.

        Returns:
            True if the portal accepted the registration, False if it answered
            with its registration errors table (e.g. section full).

        Raises:
            SubmitControlNotFoundError: If no candidate submit input appears.
            RegistrationLimitError: If the portal reports exhausted attempts.
            PlaywrightTimeoutError: If the form does not come back after submit.
        """
        page = self.page
        await page.locator(SELECTORS["CRN"]).fill(crn)

        submit = await self._find_submit_selector()
        async with page.expect_navigation(timeout=self.load_timeout_ms):
            await page.locator(submit).click()

        try:
            await page.locator(SELECTORS["CRN"]).wait_for(
                state="visible", timeout=self.timeout_ms
            )
        except PlaywrightTimeoutError:
            if await page.locator(SELECTORS["REGISTRATION_LIMIT_ERROR"]).count() > 0:
                raise RegistrationLimitError("Registrations exceeded.")
            raise

        if await page.locator(SELECTORS["REGISTRATION_ERRORS"]).count() > 0:
            log.info("registration_rejected", crn=crn)
            return False

        log.info("registration_accepted", crn=crn)
        return True

    async def detect_logged_out(self) -> bool:
        """Check whether the session was kicked back to login or the break-in page.

        Both pages are probed concurrently under the navigation timeout; the
        session counts as logged out if either appears.
        """
        page = self.page
        try:
            await page.wait_for_load_state("load", timeout=self.timeout_ms)
        except PlaywrightTimeoutError:
            pass

        probes = [
            self._probe(SELECTORS["BREAK_IN"]),
            self._probe(SELECTORS["USERNAME"]),
        ]
        try:
            found = await first_success(probes)
        except LookupError:
            return False

        log.warning("portal_logged_out", marker=found)
        return True

    async def _find_submit_selector(self) -> str:
        """Race all candidate submit positions and return the first that appears."""
        candidates = [
            SELECTORS["CRN_SUBMIT"].format(index=i)
            for i in range(self.submit_probe_count)
        ]
        try:
            return await first_success(self._probe(c) for c in candidates)
        except LookupError as e:
            raise SubmitControlNotFoundError(
                "Submit registration button not found."
            ) from e

    async def _probe(self, selector: str) -> str:
        await self.page.locator(selector).first.wait_for(
            state="visible", timeout=self.timeout_ms
        )
        return selector

    async def _follow(self, link: str, expected: str) -> None:
        """Click ``link`` and wait for ``expected`` on the page it leads to."""
        page = self.page
        async with page.expect_navigation(timeout=self.load_timeout_ms):
            await page.locator(link).click()
        await page.locator(expected).wait_for(state="visible", timeout=self.timeout_ms)
