"""
Session store: one browser tab per Venice conversation.

Tabs are found by conversation id (the last segment of the tab's URL),
created on demand, and closed after an idle window.
"""

import asyncio
import logging
import time
from typing import Optional, Dict, Any, List

from playwright.async_api import Error as PlaywrightError

from .config import BridgeConfig
from .errors import NavigationFailed
from .models import Session
from .site import SiteAdapter

logger = logging.getLogger(__name__)

# How often a due session that is still busy is re-checked (seconds)
BUSY_RECHECK_INTERVAL = 5.0


class SessionStore:
    """Tracks live conversation tabs inside one browser context."""

    def __init__(self, context: Any, adapter: SiteAdapter, config: BridgeConfig):
        self.context = context
        self.adapter = adapter
        self.config = config
        self._sessions: Dict[str, Session] = {}
        self._closers: Dict[Session, asyncio.Task] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len([s for s in self._sessions.values() if not s.is_closed])

    @property
    def idle_seconds(self) -> float:
        return self.config.session_idle_ms / 1000

    def get(self, conversation_id: str) -> Optional[Session]:
        session = self._sessions.get(conversation_id)
        if session is not None and session.is_closed:
            self._cancel_closer(session)
            self._forget(session)
            return None
        return session

    def sessions(self) -> List[Session]:
        return [s for s in self._sessions.values() if not s.is_closed]

    async def find_or_create(self, conversation_id: Optional[str] = None) -> Session:
        """
        Return the tab for ``conversation_id``, opening one if needed.

        With no id (or an id Venice no longer knows) a new conversation is
        started and the returned session carries its fresh id.
        """
        if not conversation_id:
            return await self._create(None)

        lock = self._locks.setdefault(conversation_id, asyncio.Lock())
        async with lock:
            session = await self._find_open(conversation_id)
            if session is not None:
                logger.debug(f"Found existing tab for chat {conversation_id}")
                await session.page.bring_to_front()
                return session
            return await self._create(conversation_id)

    async def _find_open(self, conversation_id: str) -> Optional[Session]:
        session = self.get(conversation_id)
        if session is not None:
            return session

        # Tabs we do not track yet, e.g. left open by an earlier run
        tracked = {id(s.page) for s in self._sessions.values()}
        for page in self.context.pages:
            if page.is_closed() or id(page) in tracked:
                continue
            url = page.url
            if self.adapter.is_chat_root(url):
                continue
            if self.adapter.conversation_id_from_url(url) == conversation_id:
                logger.debug(f"Adopting untracked tab for chat {conversation_id}")
                return await self._track(Session(conversation_id=conversation_id, page=page))
        return None

    async def _create(self, conversation_id: Optional[str]) -> Session:
        logger.debug(f"Creating new tab for chat {conversation_id or 'new'}")
        timeout = self.config.extended_timeout_ms
        page = await self.context.new_page()
        page.set_default_navigation_timeout(timeout)

        try:
            await page.goto(self.adapter.chat_url(conversation_id), wait_until="networkidle", timeout=timeout)

            should_create = not conversation_id
            if conversation_id and self.adapter.is_chat_root(page.url):
                logger.info(f"Context ID {conversation_id} not recognized, will create new chat")
                should_create = True

            if should_create:
                await self.adapter.start_new_conversation(page, timeout)
        except PlaywrightError as exc:
            logger.error(f"Navigation failed for chat {conversation_id or 'new'}: {exc}")
            await self._close_page(page)
            raise NavigationFailed(str(exc)) from exc

        new_id = self.adapter.conversation_id_from_url(page.url)
        if not new_id or self.adapter.is_chat_root(page.url):
            await self._close_page(page)
            raise NavigationFailed(f"No conversation id in URL {page.url}")

        return await self._track(Session(conversation_id=new_id, page=page))

    async def _track(self, session: Session) -> Session:
        session.touch(self.idle_seconds)
        previous = self._sessions.get(session.conversation_id)
        if previous is not None and previous is not session:
            # Only one tab per conversation: the newer one wins
            logger.warning(f"Replacing tab for chat {session.conversation_id}")
            self._cancel_closer(previous)
            self._forget(previous)
            if previous.page is not session.page:
                await self._close_page(previous.page)
        self._sessions[session.conversation_id] = session
        self._closers[session] = asyncio.create_task(self._close_when_idle(session))
        return session

    async def _close_when_idle(self, session: Session) -> None:
        while True:
            remaining = session.idle_deadline - time.monotonic()
            if remaining > 0:
                await asyncio.sleep(remaining)
                continue
            if session.in_use:
                await asyncio.sleep(BUSY_RECHECK_INTERVAL)
                continue
            break

        self._closers.pop(session, None)
        if not session.is_closed:
            logger.info(f"Closing inactive tab for chat {session.conversation_id}")
        await self.close(session)

    def mark_busy(self, session: Session) -> None:
        session.in_use += 1
        self._on_activity(session)

    def mark_idle(self, session: Session) -> None:
        session.in_use = max(0, session.in_use - 1)
        self._on_activity(session)

    def _on_activity(self, session: Session) -> None:
        if self.config.renew_session_on_activity:
            session.touch(self.idle_seconds)
        else:
            session.touch()

    async def close(self, session: Session) -> None:
        self._cancel_closer(session)
        self._forget(session)
        await self._close_page(session.page)

    async def close_all(self) -> None:
        for session in list(self._sessions.values()):
            await self.close(session)
        for session in list(self._closers):
            self._cancel_closer(session)
        self._locks.clear()

    def _forget(self, session: Session) -> None:
        if self._sessions.get(session.conversation_id) is session:
            del self._sessions[session.conversation_id]
        lock = self._locks.get(session.conversation_id)
        if lock is not None and not lock.locked():
            del self._locks[session.conversation_id]

    def _cancel_closer(self, session: Session) -> None:
        closer = self._closers.pop(session, None)
        if closer is not None and closer is not asyncio.current_task():
            closer.cancel()

    async def _close_page(self, page: Any) -> None:
        try:
            if not page.is_closed():
                await page.close()
        except PlaywrightError as exc:
            logger.error(f"Error closing tab: {exc}")
