"""
Browser flow that pulls "schools attended" data from Locrating.

Steps: restore or establish the member session, open the catchment map,
dismiss modals, find the lookup coordinate, embed the attended-schools
plugin for that coordinate and capture the API response it triggers.
"""

import asyncio
import logging
import re
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Set

from playwright.async_api import (
    BrowserContext,
    Error as PlaywrightError,
    Frame,
    Page,
    Response,
    async_playwright,
)

from models.constants import (
    LOCATION_POLL_INTERVAL,
    LOCATION_POLL_ITERATIONS,
    MIN_ATTENDANCE_BODY_BYTES,
)
from models.errors import ConfigurationMissingError, MalformedResponseError
from models.property import Coordinates
from models.schools import AttendedSchoolsResult

from .location import SETTLE_SECONDS, LocationSignal, LocationSignalRace, as_latlng, parse_nominatim_body
from .parser import parse_attended_schools_response
from .session import SessionManager

logger = logging.getLogger(__name__)

CATCHMENT_URL = "https://www.locrating.com/school_catchment_areas.aspx"
MAP_FRAME_PATTERN = re.compile(r"schoolsmap_osm")
ATTENDED_API_MARKER = "GetAttendedSchools_plugin"
GEOCODER_MARKER = "nominatim"

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
VIEWPORT = {"width": 1440, "height": 900}

MODAL_CLOSE = '.modal.show .close, .modal.show button[data-dismiss="modal"], .modal.show .btn-close'
SEARCH_INPUT = "#mapsearch"
MARKER_TOGGLE = 'input[name="addpintomapaftersearch"]'

OPEN_SIDEBAR_JS = """() => {
    const sidebar = document.querySelector('.ui.sidebar');
    if (sidebar) { sidebar.classList.add('visible'); sidebar.style.display = 'block'; }
}"""

MAP_CENTER_JS = """() => {
    try { const c = map.getCenter(); return {lat: c.lat, lng: c.lng}; } catch (e) { return null; }
}"""

PROBE_JS = """() => {
    const out = {marker: null, center: null};
    try {
        if (typeof homeMarker !== 'undefined' && homeMarker) {
            const p = homeMarker.getLatLng();
            out.marker = {lat: p.lat, lng: p.lng};
        }
    } catch (e) {}
    try { const c = map.getCenter(); out.center = {lat: c.lat, lng: c.lng}; } catch (e) {}
    return out;
}"""

SEARCH_FALLBACK_JS = """(address) => {
    const input = document.getElementById('mapsearch');
    if (input) { input.value = address; }
    const button = document.getElementById('innerSearchButton');
    if (button) { button.click(); }
}"""

EMBED_ATTENDED_FRAME_JS = """({lat, lng}) => {
    const frame = document.createElement('iframe');
    frame.id = 'test_attended_frame';
    frame.src = `/html5/plugin/attended_schools.aspx?lat=${lat}&lng=${lng}`;
    frame.style.width = '800px';
    frame.style.height = '600px';
    document.body.appendChild(frame);
}"""


class ResponseCapture:
    """
    Context-wide response listener.

    Feeds geocoder hits into the active location race and keeps the
    first attended-schools API body that is large enough to be real.
    """

    def __init__(self, min_body_bytes: int = MIN_ATTENDANCE_BODY_BYTES):
        self.min_body_bytes = min_body_bytes
        self.race: Optional[LocationSignalRace] = None
        self.attended_body: Optional[str] = None
        self._tasks: Set[asyncio.Future] = set()

    def on_response(self, response: Response) -> None:
        url = response.url
        if GEOCODER_MARKER not in url and ATTENDED_API_MARKER not in url:
            return
        task = asyncio.ensure_future(self._read(response))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _read(self, response: Response) -> None:
        try:
            body = await response.text()
        except PlaywrightError as e:
            logger.debug(f"Could not read body of {response.url}: {e}")
            return

        if GEOCODER_MARKER in response.url:
            position = parse_nominatim_body(body)
            if position is not None and self.race is not None:
                self.race.offer_geocode(*position)
        elif self.attended_body is None:
            if len(body) > self.min_body_bytes:
                logger.info(f"Captured attended schools response ({len(body)} bytes)")
                self.attended_body = body
            else:
                logger.debug(f"Ignoring short attended schools response ({len(body)} bytes)")


class AttendedSchoolsScraper:
    """
    Runs the Locrating browser flow for one address at a time.

    Every failure comes back as ``AttendedSchoolsResult.failure(...)``;
    nothing is raised to the caller.

    Args:
        session: Cookie/login manager
        headless: Run Chromium headless
        debug_dir: Where screenshots and the raw API body are written
        poll_iterations: Location polling budget
        poll_interval: Seconds between location polls
        response_wait: Seconds to wait for the attended-schools API call
        sleep: Injectable sleep for tests
    """

    def __init__(
        self,
        session: SessionManager,
        headless: bool = True,
        debug_dir: Path = Path("debug"),
        poll_iterations: int = LOCATION_POLL_ITERATIONS,
        poll_interval: float = LOCATION_POLL_INTERVAL,
        response_wait: int = 20,
        sleep: Callable[[float], Any] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session = session
        self.headless = headless
        self.debug_dir = Path(debug_dir)
        self.poll_iterations = poll_iterations
        self.poll_interval = poll_interval
        self.response_wait = response_wait
        self._sleep = sleep
        self._clock = clock
        self._started = clock()

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "AttendedSchoolsScraper":
        schools = config.get("schools", {})
        return cls(
            session=SessionManager.from_config(config),
            headless=schools.get("headless", True),
            debug_dir=Path(schools.get("debug_dir", "debug")),
            poll_iterations=schools.get("poll_iterations", LOCATION_POLL_ITERATIONS),
            poll_interval=schools.get("poll_interval", LOCATION_POLL_INTERVAL),
        )

    def _step(self, message: str) -> None:
        logger.info(f"[{self._clock() - self._started:.1f}s] {message}")

    async def scrape(self, address: str, coordinates: Optional[Coordinates] = None) -> AttendedSchoolsResult:
        """
        Launch a browser and run the whole flow.

        Args:
            address: Free-text property address typed into the map search
            coordinates: Trusted coordinates; when given, the map search is skipped

        Returns:
            AttendedSchoolsResult, successful or carrying an error message
        """
        self._started = self._clock()
        self._step(f"Attended schools lookup for \"{address}\"")
        try:
            async with async_playwright() as p:
                browser = await p.chromium.launch(headless=self.headless)
                try:
                    context = await browser.new_context(
                        user_agent=USER_AGENT, viewport=VIEWPORT, locale="en-GB"
                    )
                    return await self.run_in_context(context, address, coordinates)
                finally:
                    await browser.close()
                    self._step("Browser closed")
        except Exception as e:
            logger.error(f"Locrating scrape failed: {e}")
            return AttendedSchoolsResult.failure(f"Locrating scrape failed: {e}")

    async def run_in_context(
        self,
        context: BrowserContext,
        address: str,
        coordinates: Optional[Coordinates] = None,
    ) -> AttendedSchoolsResult:
        """Flow body against an already created browser context."""
        try:
            if not await self.session.ensure_session(context):
                return AttendedSchoolsResult.failure("Locrating login failed")
        except ConfigurationMissingError as e:
            logger.error(str(e))
            return AttendedSchoolsResult.failure(str(e))
        self._step("Session ready")

        capture = ResponseCapture()
        context.on("response", capture.on_response)
        page = await context.new_page()
        try:
            return await self._lookup(page, address, coordinates, capture)
        except PlaywrightError as e:
            await self._screenshot(page, "locrating-error.png")
            logger.error(f"Locrating scrape failed: {e}")
            return AttendedSchoolsResult.failure(f"Locrating scrape failed: {e}")
        finally:
            await self.session.save_cookies(context)

    async def _lookup(
        self,
        page: Page,
        address: str,
        coordinates: Optional[Coordinates],
        capture: ResponseCapture,
    ) -> AttendedSchoolsResult:
        self._step("Opening catchment map")
        await page.goto(CATCHMENT_URL, wait_until="domcontentloaded", timeout=60000)
        await self._sleep(5)

        frame = page.frame(url=MAP_FRAME_PATTERN)
        if frame is None:
            await self._screenshot(page, "locrating-no-iframe.png")
            return AttendedSchoolsResult.failure("Could not find map iframe on Locrating page")

        await self._dismiss_modals(page, frame)

        if coordinates is not None:
            lat, lng = coordinates.latitude, coordinates.longitude
            self._step(f"Using supplied coordinates {lat}, {lng}")
        else:
            signal = await self._locate(frame, address, capture)
            if signal is None:
                await self._screenshot(page, "locrating-geocode-failed.png")
                return AttendedSchoolsResult.failure(
                    f'Locrating geocode failed for address "{address}". '
                    "The address may not be recognised."
                )
            lat, lng = signal.lat, signal.lng
            await self._sleep(SETTLE_SECONDS[signal.source])

        self._step(f"Requesting attended schools for {lat}, {lng}")
        await page.evaluate(EMBED_ATTENDED_FRAME_JS, {"lat": lat, "lng": lng})
        body = await self._wait_for_capture(capture)
        if body is None:
            await self._screenshot(page, "locrating-no-data.png")
            return AttendedSchoolsResult.failure(
                "No attended schools data received from Locrating API", lat=lat, lng=lng
            )

        self._write_debug("attended-schools-raw.json", body)
        try:
            parsed = parse_attended_schools_response(body)
        except MalformedResponseError as e:
            logger.error(f"Attended schools parse error: {e}")
            return AttendedSchoolsResult.failure(
                "Failed to parse attended schools data from API response", lat=lat, lng=lng
            )

        self._step(
            f"Parsed {len(parsed.primary_schools)} primary and "
            f"{len(parsed.secondary_schools)} secondary schools for {parsed.area_name}"
        )
        return AttendedSchoolsResult(
            success=True,
            area_name=parsed.area_name,
            lat=lat,
            lng=lng,
            primary_schools=parsed.primary_schools,
            secondary_schools=parsed.secondary_schools,
        )

    async def _dismiss_modals(self, page: Page, frame: Frame) -> None:
        close = await page.query_selector(MODAL_CLOSE)
        if close is not None:
            try:
                await close.click(timeout=2000)
                self._step("Dismissed modal")
            except PlaywrightError as e:
                logger.debug(f"Modal close click failed: {e}")
        try:
            await frame.click("body", timeout=2000)
        except PlaywrightError as e:
            logger.debug(f"Map frame focus click failed: {e}")
        await page.keyboard.press("Escape")
        await self._sleep(2)

    async def _locate(
        self, frame: Frame, address: str, capture: ResponseCapture
    ) -> Optional[LocationSignal]:
        self._step("Searching the map for the address")
        await frame.evaluate(OPEN_SIDEBAR_JS)
        await self._sleep(1)

        toggle = await frame.query_selector(MARKER_TOGGLE)
        if toggle is not None and not await toggle.is_checked():
            await toggle.check()

        start_center = as_latlng(await frame.evaluate(MAP_CENTER_JS))
        race = LocationSignalRace(
            probe=lambda: frame.evaluate(PROBE_JS),
            iterations=self.poll_iterations,
            interval=self.poll_interval,
            sleep=self._sleep,
        )
        capture.race = race
        try:
            await self._submit_search(frame, address)
            return await race.run(start_center)
        finally:
            capture.race = None

    async def _submit_search(self, frame: Frame, address: str) -> None:
        search = await frame.query_selector(SEARCH_INPUT)
        if search is None:
            logger.info("Search box not found, using search button fallback")
            await frame.evaluate(SEARCH_FALLBACK_JS, address)
            return
        await search.click()
        await search.fill(address)
        await search.press("Enter")

    async def _wait_for_capture(self, capture: ResponseCapture) -> Optional[str]:
        for _ in range(self.response_wait):
            await self._sleep(1)
            if capture.attended_body is not None:
                break
        return capture.attended_body

    async def _screenshot(self, page: Page, name: str) -> None:
        path = self.debug_dir / name
        try:
            self.debug_dir.mkdir(parents=True, exist_ok=True)
            await page.screenshot(path=str(path), full_page=True)
            logger.info(f"Saved screenshot {path}")
        except (OSError, PlaywrightError) as e:
            logger.warning(f"Screenshot {name} failed: {e}")

    def _write_debug(self, name: str, content: str) -> None:
        path = self.debug_dir / name
        try:
            self.debug_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            logger.warning(f"Could not write {path}: {e}")
