"""Locrating member session: cookie persistence, session probe and login."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from playwright.async_api import BrowserContext, Error as PlaywrightError, Page

from models.errors import ConfigurationMissingError

logger = logging.getLogger(__name__)

LOGIN_URL = "https://members.locrating.com/members/login"
SESSION_CHECK_URL = "https://members.locrating.com/members/page/is_logged_in"
COOKIE_DOMAINS = ("https://www.locrating.com", "https://members.locrating.com")

# Any of these in the probe body means the session is live
AUTHENTICATED_MARKERS = ("Welcome", "Status:1", "true", "logged_in", '"ok"')

EMAIL_FIELD = 'input[name="amember_login"]'
PASSWORD_FIELD = 'input[name="amember_pass"]'
REMEMBER_FIELD = 'input[name="remember_login"]'
SUBMIT_BUTTON = 'form.am-login-form-form input[type="submit"]'
ERROR_BANNER = ".am-errors, .errors, .error, .alert-danger, .am-form-error"


def is_authenticated_body(body: str) -> bool:
    return any(marker in body for marker in AUTHENTICATED_MARKERS)


class SessionManager:
    """
    Keeps a logged-in Locrating session across browser launches.

    Args:
        email: Member login
        password: Member password
        cookies_path: JSON file the context cookies are stored in
        check_timeout: Session probe timeout in seconds
    """

    def __init__(
        self,
        email: Optional[str],
        password: Optional[str],
        cookies_path: Path,
        check_timeout: float = 15.0,
    ):
        self.email = email
        self.password = password
        self.cookies_path = Path(cookies_path)
        self.check_timeout = check_timeout
        self.login_attempts = 0

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "SessionManager":
        schools = config.get("schools", {})
        return cls(
            email=schools.get("email") or os.environ.get("LOCRATING_EMAIL"),
            password=schools.get("password") or os.environ.get("LOCRATING_PASSWORD"),
            cookies_path=Path(schools.get("cookies_path", ".locrating-cookies.json")),
        )

    def load_cookies(self) -> List[Dict[str, Any]]:
        if not self.cookies_path.exists():
            return []
        try:
            with open(self.cookies_path, "r", encoding="utf-8") as f:
                cookies = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable cookie file {self.cookies_path}: {e}")
            return []
        return cookies if isinstance(cookies, list) else []

    async def restore(self, context: BrowserContext) -> int:
        """Replay stored cookies into ``context``; returns how many were added."""
        cookies = self.load_cookies()
        if cookies:
            await context.add_cookies(cookies)
            logger.info(f"Restored {len(cookies)} session cookies")
        return len(cookies)

    async def save_cookies(self, context: BrowserContext) -> None:
        """Persist cookies for both Locrating domains. Failures only log."""
        try:
            cookies = await context.cookies(list(COOKIE_DOMAINS))
            self.cookies_path.parent.mkdir(parents=True, exist_ok=True)
            temp_path = self.cookies_path.with_suffix(".tmp")
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(cookies, f, indent=2)
            temp_path.replace(self.cookies_path)
            logger.debug(f"Saved {len(cookies)} cookies to {self.cookies_path}")
        except (OSError, PlaywrightError) as e:
            logger.warning(f"Could not save session cookies: {e}")

    async def is_authenticated(self, context: BrowserContext) -> bool:
        """Probe the members area. Request errors count as logged out."""
        try:
            response = await context.request.get(SESSION_CHECK_URL, timeout=self.check_timeout * 1000)
            body = await response.text()
        except PlaywrightError as e:
            logger.info(f"Session check failed, treating as logged out: {e}")
            return False

        authenticated = is_authenticated_body(body)
        logger.info(f"Session check: {'authenticated' if authenticated else 'not authenticated'}")
        return authenticated

    async def login(self, page: Page) -> bool:
        """
        Submit the member login form.

        Returns:
            True when the browser left the login form without an error banner

        Raises:
            ConfigurationMissingError: If no credentials are configured
        """
        if not self.email or not self.password:
            raise ConfigurationMissingError(
                "Locrating credentials missing: set LOCRATING_EMAIL and LOCRATING_PASSWORD"
            )

        self.login_attempts += 1
        logger.info("Logging in to Locrating")
        await page.goto(LOGIN_URL, wait_until="domcontentloaded", timeout=30000)
        await page.fill(EMAIL_FIELD, self.email)
        await page.fill(PASSWORD_FIELD, self.password)

        remember = await page.query_selector(REMEMBER_FIELD)
        if remember is not None:
            await remember.check()

        async with page.expect_navigation(wait_until="domcontentloaded", timeout=30000):
            await page.click(SUBMIT_BUTTON)
        await page.wait_for_timeout(2000)

        banner = await page.query_selector(ERROR_BANNER)
        if banner is not None:
            message = (await banner.text_content() or "").strip()
            logger.error(f"Locrating login rejected: {message}")
            return False

        if "/login" in page.url and await page.query_selector(PASSWORD_FIELD) is not None:
            logger.error("Locrating login did not leave the login form")
            return False

        logger.info("Locrating login succeeded")
        return True

    async def ensure_session(self, context: BrowserContext) -> bool:
        """Reuse the stored session when it is live, otherwise log in fresh."""
        await self.restore(context)
        if await self.is_authenticated(context):
            return True

        page = await context.new_page()
        try:
            if not await self.login(page):
                return False
        finally:
            await page.close()

        await self.save_cookies(context)
        return True
