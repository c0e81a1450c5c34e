"""
Automation service: owns the browser and ties the components together.

Lifecycle:
    service = AutomationService(BridgeConfig.from_env())
    await service.launch()                   # browser up, signed in
    chat_id, result = await service.chat("Hello")
    await service.shutdown_and_close_all()   # drain, close tabs, close browser
"""

import asyncio
import logging
from typing import Optional, Tuple, Dict, Any

from playwright.async_api import async_playwright, Error as PlaywrightError

from . import __version__
from .config import BridgeConfig
from .driver import AutomationDriver
from .errors import InvalidRequest, LoginFailed
from .models import PromptResult, Session, resolve_model
from .sessions import SessionStore
from .single_flight import SingleFlight
from .site import SiteAdapter, VeniceSiteAdapter

logger = logging.getLogger(__name__)


LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--start-maximized",
    "--no-first-run",
    "--no-default-browser-check",
    "--disable-extensions",
    "--disable-popup-blocking",
    "--disable-notifications",
    "--disable-infobars",
    "--disable-session-crashed-bubble",
    "--window-size=800,600",
]


class AutomationService:
    """Process-wide owner of the browser, the session store and the single-flight registry."""

    def __init__(self, config: BridgeConfig, adapter: Optional[SiteAdapter] = None):
        self.config = config
        self.adapter = adapter or VeniceSiteAdapter(config.base_url)
        self.driver = AutomationDriver(self.adapter, config)
        self.single_flight = SingleFlight(
            stale_after=config.stale_request_ms / 1000,
            sweep_interval=config.sweep_interval_ms / 1000,
        )
        self.sessions: Optional[SessionStore] = None

        self._playwright = None
        self._context = None
        self._page = None  # primary tab, used for login
        self._limiter = asyncio.Semaphore(max(1, config.max_concurrent_prompts))
        self._login_lock = asyncio.Lock()

    @property
    def is_ready(self) -> bool:
        return self.sessions is not None

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    async def launch(self) -> None:
        """
        Start the browser with the persistent profile and make sure we are
        signed in. Raises LoginFailed if signing in fails; the browser is
        closed again in that case.
        """
        if self.is_ready:
            return

        launch_options: Dict[str, Any] = {
            "user_data_dir": str(self.config.user_data_dir),
            "headless": self.config.headless,
            "args": LAUNCH_ARGS,
            "viewport": {"width": 800, "height": 600},
            "device_scale_factor": 1,
            "is_mobile": False,
            "has_touch": False,
            "ignore_default_args": ["--enable-automation"],
        }
        if self.config.executable_path:
            logger.info(f"Using custom executable path: {self.config.executable_path}")
            launch_options["executable_path"] = self.config.executable_path

        self.config.user_data_dir.mkdir(parents=True, exist_ok=True)
        self._playwright = await async_playwright().start()
        try:
            self._context = await self._playwright.chromium.launch_persistent_context(**launch_options)
            logger.info("Browser launched successfully")

            # Tabs restored from the profile are closed once our own tab exists
            restored = list(self._context.pages)
            self._page = await self._context.new_page()
            self._page.set_default_navigation_timeout(self.config.navigation_timeout_ms)
            for page in restored:
                await page.close()

            await self.ensure_logged_in(self._page)
        except BaseException:
            await self._close_browser()
            raise

        self.bind_context(self._context)

    def bind_context(self, context: Any) -> None:
        """Attach an open browser context and start background housekeeping."""
        self._context = context
        self.sessions = SessionStore(context, self.adapter, self.config)
        self.single_flight.start_sweeper()

    async def shutdown_and_close_all(self) -> None:
        """Drain in-flight prompts, close every tab and the browser."""
        logger.info("Shutting down...")
        await self.single_flight.stop_sweeper()

        cancelled = await self.single_flight.drain(self.config.shutdown_grace_ms / 1000)
        if cancelled:
            logger.warning(f"Cancelled {cancelled} request(s) still running at shutdown")

        if self.sessions is not None:
            await self.sessions.close_all()
            self.sessions = None

        await self._close_browser()
        logger.info("Shutdown complete")

    async def _close_browser(self) -> None:
        if self._context is not None:
            logger.debug("Closing browser")
            try:
                await self._context.close()
            except PlaywrightError as exc:
                logger.error(f"Error closing browser: {exc}")
            self._context = None
            self._page = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    # -----------------------------------------------------------------------
    # Login
    # -----------------------------------------------------------------------

    async def ensure_logged_in(self, page: Any) -> None:
        """Sign in on ``page`` unless the account button shows a signed-in user."""
        async with self._login_lock:
            try:
                await page.goto(self.adapter.chat_url(), wait_until="networkidle")
            except PlaywrightError as exc:
                raise LoginFailed(f"Could not open {self.adapter.chat_url()}: {exc}") from exc

            label = await self.adapter.read_account_label(page, self.config.login_wait_ms)
            if label and not self.adapter.is_guest_label(label):
                logger.info("Already logged in")
                return

            logger.info("Not logged in or error checking login status")
            await self._login(page)

    async def _login(self, page: Any) -> None:
        if not self.config.has_credentials:
            raise LoginFailed("LOGIN_EMAIL and LOGIN_PASSWORD must be set to sign in")

        logger.info("Logging in...")
        try:
            await self.adapter.login(
                page,
                self.config.login_email,
                self.config.login_password,
                self.config.navigation_timeout_ms,
            )
        except PlaywrightError as exc:
            raise LoginFailed(f"Login failed: {exc}") from exc
        logger.info("Login successful")

    async def _ensure_session_signed_in(self, session: Session) -> None:
        if not await self.adapter.is_signed_out(session.page):
            return

        logger.warning(f"Tab for chat {session.conversation_id} is signed out, logging in again")
        async with self._login_lock:
            await self._login(self._page or session.page)
        try:
            await session.page.goto(
                self.adapter.chat_url(session.conversation_id),
                wait_until="networkidle",
                timeout=self.config.extended_timeout_ms,
            )
        except PlaywrightError as exc:
            raise LoginFailed(f"Could not reopen chat {session.conversation_id} after login: {exc}") from exc

    # -----------------------------------------------------------------------
    # Requests
    # -----------------------------------------------------------------------

    async def chat(
        self,
        prompt: Optional[str],
        context_id: Optional[str] = None,
        model: Optional[str] = None,
    ) -> Tuple[str, PromptResult]:
        """
        Send ``prompt`` to the conversation ``context_id`` (new one if None).

        Returns:
            (conversation id, PromptResult). The id differs from ``context_id``
            when a new conversation had to be started.
        """
        if not prompt:
            raise InvalidRequest("No prompt provided")
        model_id = resolve_model(model)

        sessions = self.sessions
        if sessions is None:
            raise RuntimeError("Browser not initialized")

        logger.debug("Finding or creating chat session")
        session = await sessions.find_or_create(context_id)
        logger.debug(f"Chat session ready: {session.conversation_id}")

        async def work() -> PromptResult:
            async with self._limiter:
                return await self.driver.send_prompt(session.page, prompt, model_id)

        # Busy from here on: the idle closer must leave the tab alone while
        # this request re-logs in or queues for a prompt slot.
        sessions.mark_busy(session)
        try:
            await self._ensure_session_signed_in(session)
            result = await self.single_flight.run_exclusive(session.conversation_id, work)
        finally:
            sessions.mark_idle(session)
        return session.conversation_id, result

    def describe(self) -> Dict[str, Any]:
        return {
            "status": "ok",
            "version": __version__,
            "browser_ready": self.is_ready,
            "open_sessions": len(self.sessions) if self.sessions is not None else 0,
            "pending_requests": len(self.single_flight),
        }
