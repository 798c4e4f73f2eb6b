"""AvailabilitySession - seat availability on Visual Schedule Builder (VSB).

VSB needs no login. The flow is: accept the two welcome screens, pick the
term, search the course, then keep reloading the results and reading the
seat text of the course row. A row whose seat text contains "full" has no
open seat.
"""

from registerer.logging import get_logger
from registerer.session import BrowserSession

log = get_logger(__name__)

# Row of the selection table that holds the searched section.
COURSE_ROW = 3

FULL_SENTINEL = "full"

SELECTORS: dict[str, str] = {
    "CONTINUE_WELCOME": "#welcomeContinue",
    "CONTINUE_TERMS": "#termsContinue",
    "SELECT_TERM": "#term_{term}",
    "SEARCH_COURSE": "#code_number",
    "SUBMIT_COURSE_SEARCH": "#addCourseButton",
    "COURSE_INFO": "table.selection_table > tbody > tr:nth-child({index})",
    "COURSE_SEATS": "table.selection_table > tbody > tr:nth-child({index}) .seatText",
}


class AvailabilitySession(BrowserSession):
    """VSB session used to poll a course section for an open seat."""

    service = "availability"

    async def goto_home(self) -> None:
        """Click through the welcome screens to the course search page."""
        page = self.page
        await page.locator(SELECTORS["CONTINUE_WELCOME"]).wait_for(state="visible")
        async with page.expect_navigation(timeout=self.load_timeout_ms):
            await page.locator(SELECTORS["CONTINUE_WELCOME"]).click()

        await page.locator(SELECTORS["CONTINUE_TERMS"]).wait_for(state="visible")
        await page.locator(SELECTORS["CONTINUE_TERMS"]).click()

    async def select_term(self, term: str) -> None:
        term_radio = self.page.locator(SELECTORS["SELECT_TERM"].format(term=term))
        await term_radio.wait_for(state="visible")
        await term_radio.click()

    async def select_course(self, course: str) -> None:
        """Search ``course`` and wait until its row is listed."""
        page = self.page
        search = page.locator(SELECTORS["SEARCH_COURSE"])
        await search.wait_for(state="visible")
        await search.fill(course)

        await page.locator(SELECTORS["SUBMIT_COURSE_SEARCH"]).wait_for(state="visible")
        await page.locator(SELECTORS["SUBMIT_COURSE_SEARCH"]).click()

        await self._course_info().wait_for(state="visible")
        log.info("availability_course_selected", course=course)

    async def has_available_seat(self) -> bool:
        """Reload the results and check the course row for an open seat.

        The seat text is tested for the case-sensitive "full" sentinel; a row
        without seat text counts as unavailable.
        """
        page = self.page
        await page.reload(wait_until="networkidle", timeout=self.load_timeout_ms)
        await self._course_info().wait_for(state="visible")

        seats = page.locator(SELECTORS["COURSE_SEATS"].format(index=COURSE_ROW))
        text = await seats.first.text_content()
        available = text is not None and FULL_SENTINEL not in text
        log.debug("seat_text", text=text, available=available)
        return available

    def _course_info(self):
        return self.page.locator(SELECTORS["COURSE_INFO"].format(index=COURSE_ROW))
