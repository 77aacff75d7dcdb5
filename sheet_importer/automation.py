"""Browser session that drives the automation target's forms with Playwright."""

from __future__ import annotations

import enum
import logging
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page, async_playwright
from pydantic import BaseModel

from sheet_importer.errors import (
    AuthenticationError,
    AutomationError,
    LaunchError,
    NavigationError,
)
from sheet_importer.models import MappedRow, SubmitResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
VIEWPORT = {"width": 1920, "height": 1080}
LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
]
LOGIN_FORM_TIMEOUT_MS = 10000

USERNAME_LOCATORS = ['input[name="username"]', 'input[name="email"]', 'input[type="email"]']
PASSWORD_LOCATORS = ['input[name="password"]', 'input[type="password"]']
SUBMIT_LOCATORS = ['button[type="submit"]', 'input[type="submit"]']
LOGGED_IN_INDICATORS = [
    'a[href*="logout"]',
    'a[href*="profile"]',
    ".user-menu",
    ".dashboard",
    "[data-user]",
]
SUCCESS_INDICATORS = [
    ".success-message",
    ".alert-success",
    '[data-status="success"]',
    "text=Successfully",
    "text=created",
    "text=added",
]


class SessionState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    LAUNCHED = "launched"
    AUTHENTICATED = "authenticated"
    NAVIGATING = "navigating"
    SUBMITTING = "submitting"
    CLOSED = "closed"


class Credentials(BaseModel):
    login_url: str
    username: str
    password: str


async def resolve_first(
    candidates: Sequence[T], probe: Callable[[T], Awaitable[Optional[Any]]]
) -> Optional[Any]:
    """Return the first non-None ``probe(candidate)``, trying candidates in order.

    A probe that raises counts as no match.
    """
    for candidate in candidates:
        try:
            result = await probe(candidate)
        except Exception as e:
            logger.debug("[BROWSER] Probe failed for %r: %s", candidate, e)
            continue
        if result is not None:
            return result
    return None


class AutomationSession:
    """One browser context logged into the automation target.

    ``UNINITIALIZED -> LAUNCHED -> AUTHENTICATED -> (NAVIGATING <-> SUBMITTING) -> CLOSED``
    """

    def __init__(
        self,
        credentials: Optional[Credentials] = None,
        headless: bool = True,
        timeout_ms: int = 30000,
        screenshot_dir: Optional[str] = None,
    ) -> None:
        self.credentials = credentials
        self.headless = headless
        self.timeout_ms = timeout_ms
        self.screenshot_dir = screenshot_dir
        self.state = SessionState.UNINITIALIZED

        self._playwright = None
        self._browser = None
        self._context = None
        self.page: Optional[Page] = None

    @property
    def is_authenticated(self) -> bool:
        return self.state in (
            SessionState.AUTHENTICATED,
            SessionState.NAVIGATING,
            SessionState.SUBMITTING,
        )

    def _require_open(self) -> None:
        if self.state == SessionState.CLOSED:
            raise AutomationError("Browser session is closed")

    async def _first_locator(self, selectors: Sequence[str]) -> Optional[Locator]:
        async def probe(selector: str) -> Optional[Locator]:
            locator = self.page.locator(selector)
            if await locator.count() > 0:
                return locator.first
            return None

        return await resolve_first(selectors, probe)

    # -- Lifecycle -------------------------------------------------------------
    async def launch(self) -> None:
        self._require_open()
        if self.page is not None:
            return
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless, args=LAUNCH_ARGS
            )
            self._context = await self._browser.new_context(user_agent=USER_AGENT, viewport=VIEWPORT)
            self.page = await self._context.new_page()
            self.page.set_default_timeout(self.timeout_ms)
        except PlaywrightError as e:
            logger.error("[BROWSER] Failed to launch browser: %s", e)
            await self.close()
            raise LaunchError(f"Failed to launch browser: {e}") from e
        self.state = SessionState.LAUNCHED
        logger.info("[BROWSER] Browser launched (headless=%s)", self.headless)

    async def authenticate(self, credentials: Optional[Credentials] = None) -> None:
        """Log in. Either a logged-in indicator is found or AuthenticationError is raised."""
        credentials = credentials or self.credentials
        if credentials is None:
            raise AuthenticationError("No credentials configured for the automation target")
        self.credentials = credentials
        if self.page is None:
            await self.launch()

        logger.info("[BROWSER] Logging in at %s", credentials.login_url)
        try:
            await self.page.goto(credentials.login_url)
            await self.page.wait_for_selector(", ".join(USERNAME_LOCATORS), timeout=LOGIN_FORM_TIMEOUT_MS)

            username = await self._first_locator(USERNAME_LOCATORS)
            password = await self._first_locator(PASSWORD_LOCATORS)
            if username is None or password is None:
                raise AuthenticationError("Login form elements not found")

            await username.fill(credentials.username)
            await password.fill(credentials.password)

            submit = await self._first_locator(SUBMIT_LOCATORS)
            if submit is not None:
                await submit.click()
            else:
                await self.page.keyboard.press("Enter")

            await self.page.wait_for_load_state("networkidle")
            indicator = await self._first_locator(LOGGED_IN_INDICATORS)
        except PlaywrightError as e:
            self.state = SessionState.LAUNCHED
            raise AuthenticationError(f"Login failed: {e}") from e

        if indicator is None:
            self.state = SessionState.LAUNCHED
            raise AuthenticationError("Login failed - check credentials")

        self.state = SessionState.AUTHENTICATED
        logger.info("[BROWSER] Logged in")

    async def navigate_to(self, url: str) -> None:
        self._require_open()
        if not self.is_authenticated:
            await self.authenticate()

        self.state = SessionState.NAVIGATING
        logger.info("[BROWSER] Navigating to %s", url)
        try:
            await self.page.goto(url)
            await self.page.wait_for_load_state("networkidle")
        except PlaywrightError as e:
            raise NavigationError(f"Failed to navigate to {url}: {e}") from e

    async def submit_row(self, row: MappedRow, locator_table: dict[str, list[str]]) -> SubmitResult:
        """Fill and submit the current form for ``row``.

        Fields that cannot be filled are skipped. Returns a failed SubmitResult
        when no success indicator appears; raises AutomationError when the
        browser itself fails.
        """
        self._require_open()
        if not self.is_authenticated:
            raise AutomationError("Cannot submit before authenticating")

        self.state = SessionState.SUBMITTING
        filled = 0
        for field, selectors in locator_table.items():
            value = row.get(field)
            if value is None:
                continue
            element = await self._first_locator(selectors)
            if element is None:
                logger.warning("[BROWSER] Row %d: no form element for field '%s'", row.row_number, field)
                continue
            try:
                await element.clear()
                await element.fill(str(value))
                filled += 1
            except PlaywrightError as e:
                logger.warning("[BROWSER] Row %d: failed to fill '%s': %s", row.row_number, field, e)

        logger.debug("[BROWSER] Row %d: filled %d fields", row.row_number, filled)

        try:
            submit = await self._first_locator(SUBMIT_LOCATORS)
            if submit is None:
                raise AutomationError("Submit button not found")
            await submit.click()
            await self.page.wait_for_load_state("networkidle")
            indicator = await self._first_locator(SUCCESS_INDICATORS)
        except PlaywrightError as e:
            raise AutomationError(f"Form submission failed: {e}") from e
        finally:
            self.state = SessionState.NAVIGATING

        if indicator is None:
            return SubmitResult(success=False, reason="no success indicator")
        return SubmitResult(success=True)

    async def take_screenshot(self, name: str) -> Optional[str]:
        """Save a full-page screenshot for debugging. Never raises."""
        if self.page is None or not self.screenshot_dir:
            return None
        try:
            directory = Path(self.screenshot_dir)
            directory.mkdir(parents=True, exist_ok=True)
            path = directory / f"{name}-{int(time.time())}.png"
            await self.page.screenshot(path=str(path), full_page=True)
            logger.info("[BROWSER] Screenshot saved: %s", path)
            return str(path)
        except Exception as e:
            logger.warning("[BROWSER] Failed to take screenshot: %s", e)
            return None

    async def close(self) -> None:
        """Release all browser resources. Safe to call repeatedly; never raises."""
        for name in ("page", "_context", "_browser"):
            resource = getattr(self, name)
            if resource is None:
                continue
            setattr(self, name, None)
            try:
                await resource.close()
            except Exception as e:
                logger.warning("[BROWSER] Error closing %s: %s", name.lstrip("_"), e)

        if self._playwright is not None:
            driver, self._playwright = self._playwright, None
            try:
                await driver.stop()
            except Exception as e:
                logger.warning("[BROWSER] Error stopping playwright: %s", e)

        if self.state != SessionState.CLOSED:
            logger.info("[BROWSER] Browser session closed")
        self.state = SessionState.CLOSED

    async def __aenter__(self) -> "AutomationSession":
        await self.launch()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
