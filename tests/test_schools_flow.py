"""Tests for the Locrating session and attended-schools browser flow, using fake Playwright objects."""

import sys
from pathlib import Path

# Add parent directory to path to import project modules
sys.path.insert(0, str(Path(__file__).parent.parent))

import asyncio
import json

import pytest
from playwright.async_api import Error as PlaywrightError

from models.errors import ConfigurationMissingError
from models.property import Coordinates
from schools.flow import (
    ATTENDED_API_MARKER,
    EMBED_ATTENDED_FRAME_JS,
    MAP_CENTER_JS,
    PROBE_JS,
    AttendedSchoolsScraper,
    ResponseCapture,
)
from schools.session import (
    ERROR_BANNER,
    LOGIN_URL,
    PASSWORD_FIELD,
    SESSION_CHECK_URL,
    SessionManager,
    is_authenticated_body,
)

ATTENDED_URL = f"https://www.locrating.com/html5/plugin/{ATTENDED_API_MARKER}.ashx?lat=51.5"
NOMINATIM_URL = "https://nominatim.openstreetmap.org/search?q=10+downing+street"


def attended_body(area="Westminster 018A"):
    primary = [
        {
            "Urn": "100001",
            "Percentage": 55.0,
            "School": {"Name": "St Peter's Eaton Square", "OfstedRatingNumber": "1", "Lat": 51.49, "Lng": -0.15},
        }
    ]
    secondary = [
        {
            "Urn": "200002",
            "Percentage": 21.5,
            "School": {"Name": "Grey Coat Hospital", "OfstedRatingNumber": "2", "Lat": 51.497, "Lng": -0.135},
        }
    ]
    script = "showAttendedSchoolsData('{}', '{}', '{}')".format(
        area, json.dumps(primary).replace("'", ""), json.dumps(secondary)
    )
    return json.dumps({"d": script})


class FakeResponse:
    def __init__(self, url, body):
        self.url = url
        self._body = body

    async def text(self):
        return self._body


class FakeRequest:
    def __init__(self, body=None, error=None):
        self.body = body
        self.error = error
        self.calls = []

    async def get(self, url, timeout=None):
        self.calls.append(url)
        if self.error:
            raise self.error
        return FakeResponse(url, self.body)


class FakeElement:
    def __init__(self, page, name):
        self.page = page
        self.name = name
        self.checked = False

    async def click(self, timeout=None):
        self.page.actions.append(("click", self.name))

    async def fill(self, value):
        self.page.actions.append(("fill", self.name, value))

    async def press(self, key):
        self.page.actions.append(("press", self.name, key))
        if self.page.on_search:
            self.page.on_search()

    async def is_checked(self):
        return self.checked

    async def check(self):
        self.checked = True

    async def text_content(self):
        return "Invalid password"


class FakeKeyboard:
    def __init__(self, page):
        self.page = page

    async def press(self, key):
        self.page.actions.append(("key", key))


class FakeNavigation:
    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeFrame:
    def __init__(self, page, probe_states=None, has_search=True):
        self.page = page
        self.probe_states = probe_states or [{"marker": None, "center": None}]
        self.has_search = has_search
        self.probes = 0

    async def click(self, selector, timeout=None):
        self.page.actions.append(("frame_click", selector))

    async def query_selector(self, selector):
        if selector == "#mapsearch" and self.has_search:
            return FakeElement(self.page, "search")
        return None

    async def evaluate(self, script, arg=None):
        if script == MAP_CENTER_JS:
            return {"lat": 51.5, "lng": -0.12}
        if script == PROBE_JS:
            state = self.probe_states[min(self.probes, len(self.probe_states) - 1)]
            self.probes += 1
            return state
        self.page.actions.append(("frame_eval", arg))
        return None


class FakePage:
    def __init__(self, context, frame_present=True, probe_states=None, login_error=False, stay_on_login=False):
        self.context = context
        self.actions = []
        self.url = "about:blank"
        self.keyboard = FakeKeyboard(self)
        self.login_error = login_error
        self.stay_on_login = stay_on_login
        self.frame_present = frame_present
        self.map_frame = FakeFrame(self, probe_states)
        self.on_search = None
        self.closed = False
        self.screenshots = []

    async def goto(self, url, wait_until=None, timeout=None):
        self.actions.append(("goto", url))
        self.url = url

    def frame(self, url=None):
        return self.map_frame if self.frame_present else None

    async def query_selector(self, selector):
        if selector == ERROR_BANNER and self.login_error:
            return FakeElement(self, "banner")
        if selector == PASSWORD_FIELD and self.stay_on_login:
            return FakeElement(self, "password")
        return None

    async def fill(self, selector, value):
        self.actions.append(("fill", selector, value))

    async def click(self, selector, timeout=None):
        self.actions.append(("click", selector))
        self.context.login_submissions += 1
        if not self.stay_on_login:
            self.url = "https://members.locrating.com/members/member"

    def expect_navigation(self, wait_until=None, timeout=None):
        return FakeNavigation()

    async def wait_for_timeout(self, ms):
        return None

    async def evaluate(self, script, arg=None):
        self.actions.append(("evaluate", arg))
        if script == EMBED_ATTENDED_FRAME_JS and self.context.api_body is not None:
            self.context.emit(FakeResponse(ATTENDED_URL, self.context.api_body))

    async def screenshot(self, path=None, full_page=False):
        self.screenshots.append(Path(path).name)

    async def close(self):
        self.closed = True


class FakeContext:
    """BrowserContext stand-in recording cookies, pages and login submissions."""

    def __init__(self, session_body="Please log in", api_body=None, page_kwargs=None, request_error=None):
        self.request = FakeRequest(session_body, request_error)
        self.api_body = api_body
        self.page_kwargs = page_kwargs or {}
        self.pages = []
        self.added_cookies = []
        self.handlers = []
        self.login_submissions = 0

    async def add_cookies(self, cookies):
        self.added_cookies.extend(cookies)

    async def cookies(self, urls=None):
        return [{"name": "PHPSESSID", "value": "abc", "domain": ".locrating.com", "path": "/"}]

    async def new_page(self):
        page = FakePage(self, **self.page_kwargs)
        self.pages.append(page)
        return page

    def on(self, event, handler):
        self.handlers.append((event, handler))

    def emit(self, response):
        for event, handler in self.handlers:
            if event == "response":
                handler(response)


async def fake_sleep(seconds):
    # Lets listener tasks scheduled with ensure_future run
    await asyncio.sleep(0)


def session(tmp_path, email="buyer@example.com", password="hunter2"):
    return SessionManager(email, password, tmp_path / "cookies.json")


def scraper(tmp_path, manager=None, **kwargs):
    kwargs.setdefault("poll_iterations", 5)
    kwargs.setdefault("response_wait", 3)
    return AttendedSchoolsScraper(
        manager or session(tmp_path), debug_dir=tmp_path / "debug", sleep=fake_sleep, **kwargs
    )


class TestSessionManager:
    """Test session reuse, login and cookie persistence."""

    def test_authenticated_body_markers(self):
        assert is_authenticated_body("Welcome back, Jo")
        assert is_authenticated_body('{"Status:1"}')
        assert not is_authenticated_body("Please log in")

    def test_live_session_skips_login(self, tmp_path):
        context = FakeContext(session_body="<p>Welcome, member</p>")
        manager = session(tmp_path)

        assert asyncio.run(manager.ensure_session(context)) is True
        assert manager.login_attempts == 0
        assert context.login_submissions == 0
        assert context.pages == []
        assert context.request.calls == [SESSION_CHECK_URL]

    def test_stored_cookies_are_restored(self, tmp_path):
        manager = session(tmp_path)
        manager.cookies_path.write_text(json.dumps([{"name": "a", "value": "1", "url": "https://www.locrating.com"}]))
        context = FakeContext(session_body="Welcome")

        asyncio.run(manager.ensure_session(context))
        assert context.added_cookies[0]["name"] == "a"

    def test_unreadable_cookie_file_ignored(self, tmp_path):
        manager = session(tmp_path)
        manager.cookies_path.write_text("{not json")
        assert manager.load_cookies() == []

    def test_expired_session_logs_in_and_saves_cookies(self, tmp_path):
        context = FakeContext(session_body="Please log in")
        manager = session(tmp_path)

        assert asyncio.run(manager.ensure_session(context)) is True
        assert manager.login_attempts == 1
        page = context.pages[0]
        assert ("goto", LOGIN_URL) in page.actions
        assert ("fill", PASSWORD_FIELD, "hunter2") in page.actions
        assert page.closed
        saved = json.loads(manager.cookies_path.read_text())
        assert saved[0]["name"] == "PHPSESSID"

    def test_rejected_login(self, tmp_path):
        context = FakeContext(page_kwargs={"login_error": True})
        manager = session(tmp_path)
        assert asyncio.run(manager.ensure_session(context)) is False
        assert not manager.cookies_path.exists()

    def test_login_that_stays_on_form(self, tmp_path):
        context = FakeContext(page_kwargs={"stay_on_login": True})
        assert asyncio.run(session(tmp_path).ensure_session(context)) is False

    def test_probe_error_counts_as_logged_out(self, tmp_path):
        context = FakeContext(request_error=PlaywrightError("net::ERR_CONNECTION_RESET"))
        manager = session(tmp_path)
        assert asyncio.run(manager.is_authenticated(context)) is False

    def test_missing_credentials(self, tmp_path):
        context = FakeContext()
        with pytest.raises(ConfigurationMissingError):
            asyncio.run(session(tmp_path, email=None).ensure_session(context))

    def test_from_config_falls_back_to_env(self, monkeypatch):
        monkeypatch.setenv("LOCRATING_EMAIL", "env@example.com")
        monkeypatch.setenv("LOCRATING_PASSWORD", "pw")
        manager = SessionManager.from_config({"schools": {"cookies_path": "c.json"}})
        assert manager.email == "env@example.com"
        assert manager.cookies_path == Path("c.json")


class TestResponseCapture:
    def test_short_attended_body_ignored(self):
        capture = ResponseCapture(min_body_bytes=200)

        async def run():
            capture.on_response(FakeResponse(ATTENDED_URL, "{}"))
            await asyncio.sleep(0)

        asyncio.run(run())
        assert capture.attended_body is None

    def test_unrelated_urls_ignored(self):
        capture = ResponseCapture()

        async def run():
            capture.on_response(FakeResponse("https://www.locrating.com/style.css", "x" * 500))
            await asyncio.sleep(0)

        asyncio.run(run())
        assert capture.attended_body is None


class TestAttendedSchoolsFlow:
    """Test the map flow against a fake browser context."""

    def test_known_coordinates_skip_search(self, tmp_path):
        context = FakeContext(session_body="Welcome", api_body=attended_body())
        flow = scraper(tmp_path)

        result = asyncio.run(
            flow.run_in_context(context, "10 Downing Street", Coordinates(latitude=51.5034, longitude=-0.1276))
        )

        assert result.success, result.error
        assert result.area_name == "Westminster 018A"
        assert (result.lat, result.lng) == (51.5034, -0.1276)
        assert result.primary_schools[0].ofsted_rating == "Outstanding"
        assert result.secondary_schools[0].name == "Grey Coat Hospital"
        page = context.pages[0]
        assert page.map_frame.probes == 0
        assert ("evaluate", {"lat": 51.5034, "lng": -0.1276}) in page.actions
        assert (tmp_path / "debug" / "attended-schools-raw.json").exists()
        assert (tmp_path / "cookies.json").exists()

    def test_search_uses_marker_position(self, tmp_path):
        context = FakeContext(
            session_body="Welcome",
            api_body=attended_body(),
            page_kwargs={"probe_states": [{"marker": {"lat": 51.5033, "lng": -0.1277}, "center": None}]},
        )
        result = asyncio.run(scraper(tmp_path).run_in_context(context, "10 Downing Street"))

        assert result.success
        assert (result.lat, result.lng) == (51.5033, -0.1277)
        page = context.pages[0]
        assert ("fill", "search", "10 Downing Street") in page.actions
        assert ("press", "search", "Enter") in page.actions

    def test_intercepted_geocode_wins(self, tmp_path):
        context = FakeContext(session_body="Welcome", api_body=attended_body())
        flow = scraper(tmp_path)

        async def run():
            original_new_page = context.new_page

            async def new_page():
                page = await original_new_page()
                page.on_search = lambda: context.emit(
                    FakeResponse(NOMINATIM_URL, '[{"lat": "51.5035", "lon": "-0.1275"}]')
                )
                return page

            context.new_page = new_page
            return await flow.run_in_context(context, "10 Downing Street")

        result = asyncio.run(run())
        assert result.success
        assert (result.lat, result.lng) == (51.5035, -0.1275)

    def test_search_fallback_without_search_box(self, tmp_path):
        context = FakeContext(
            session_body="Welcome",
            api_body=attended_body(),
            page_kwargs={"probe_states": [{"marker": {"lat": 51.5, "lng": -0.1}, "center": None}]},
        )

        async def run():
            original_new_page = context.new_page

            async def new_page():
                page = await original_new_page()
                page.map_frame.has_search = False
                return page

            context.new_page = new_page
            return await scraper(tmp_path).run_in_context(context, "1 High Street")

        result = asyncio.run(run())
        assert result.success
        assert ("frame_eval", "1 High Street") in context.pages[0].actions

    def test_geocode_failure(self, tmp_path):
        context = FakeContext(session_body="Welcome", api_body=attended_body())
        result = asyncio.run(scraper(tmp_path).run_in_context(context, "Nowhere Lane"))

        assert not result.success
        assert 'Locrating geocode failed for address "Nowhere Lane"' in result.error
        assert "locrating-geocode-failed.png" in context.pages[0].screenshots

    def test_missing_iframe(self, tmp_path):
        context = FakeContext(session_body="Welcome", page_kwargs={"frame_present": False})
        result = asyncio.run(scraper(tmp_path).run_in_context(context, "1 High Street"))
        assert result.error == "Could not find map iframe on Locrating page"

    def test_no_api_response(self, tmp_path):
        context = FakeContext(session_body="Welcome", api_body=None)
        result = asyncio.run(
            scraper(tmp_path).run_in_context(context, "1 High Street", Coordinates(latitude=52.0, longitude=-1.0))
        )
        assert result.error == "No attended schools data received from Locrating API"
        assert (result.lat, result.lng) == (52.0, -1.0)

    def test_unparseable_api_response(self, tmp_path):
        context = FakeContext(session_body="Welcome", api_body=json.dumps({"d": "x" * 400}))
        result = asyncio.run(
            scraper(tmp_path).run_in_context(context, "1 High Street", Coordinates(latitude=52.0, longitude=-1.0))
        )
        assert result.error == "Failed to parse attended schools data from API response"

    def test_login_failure(self, tmp_path):
        context = FakeContext(page_kwargs={"login_error": True})
        result = asyncio.run(scraper(tmp_path).run_in_context(context, "1 High Street"))
        assert result.error == "Locrating login failed"

    def test_missing_credentials_is_a_failure_result(self, tmp_path):
        context = FakeContext()
        result = asyncio.run(
            scraper(tmp_path, manager=session(tmp_path, password=None)).run_in_context(context, "1 High Street")
        )
        assert not result.success
        assert "LOCRATING_EMAIL" in result.error
