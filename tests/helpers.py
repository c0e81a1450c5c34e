"""Test doubles for the bridge test suite.

FakePage / FakeContext stand in for Playwright's Page / BrowserContext and
FakeAdapter for the Venice site adapter, so nothing here starts a browser.
"""

import asyncio
from typing import Optional, Callable, Dict, List

from venice_ai_bridge.models import Reference
from venice_ai_bridge.site import SiteAdapter

BASE_URL = "https://venice.test"


class FakePage:
    def __init__(self, router: Optional[Callable[[str], str]] = None, url: str = "about:blank"):
        self.url = url
        self.router = router or (lambda target: target)
        self.goto_calls: List[str] = []
        self.front_calls = 0
        self.closed = False
        self.default_navigation_timeout = None
        self.goto_error: Optional[Exception] = None

    async def goto(self, url, wait_until=None, timeout=None):
        self.goto_calls.append(url)
        if self.goto_error is not None:
            raise self.goto_error
        self.url = self.router(url)

    async def bring_to_front(self):
        self.front_calls += 1

    def set_default_navigation_timeout(self, timeout):
        self.default_navigation_timeout = timeout

    def is_closed(self):
        return self.closed

    async def close(self):
        self.closed = True


class FakeContext:
    def __init__(self, router: Optional[Callable[[str], str]] = None):
        self.router = router
        self.pages: List[FakePage] = []
        self.page_error: Optional[Exception] = None
        self.closed = False

    async def new_page(self):
        page = FakePage(self.router)
        if self.page_error is not None:
            page.goto_error = self.page_error
        self.pages.append(page)
        return page

    async def close(self):
        for page in self.pages:
            page.closed = True
        self.closed = True

    @property
    def navigation_count(self) -> int:
        return sum(len(p.goto_calls) for p in self.pages)


class FakeAdapter(SiteAdapter):
    """Scriptable adapter that records every call in ``events``."""

    def __init__(self):
        self.events: List[str] = []
        self.new_chat_counter = 0
        self.new_chat_error: Optional[Exception] = None

        self.account_label: Optional[str] = "jane@example.com"
        self.signed_out = False
        self.logins: List[str] = []
        self.login_error: Optional[Exception] = None

        self.indicator = "Hermes 2 Theta Web"
        self.indicator_error: Optional[Exception] = None
        self.picker_sticks = False
        self.select_error: Optional[Exception] = None

        self.typed_override: Optional[str] = None
        self.submit_error: Optional[Exception] = None
        self.hang_response = False
        self.reply_html: Optional[str] = "<p>Hello <strong>there</strong></p>"
        self.reply_refs: List[Reference] = []
        self.extract_error: Optional[Exception] = None
        self.submitted_on_closed: List[bool] = []
        self.delay = 0.0

        self._reply_futures: Dict[int, asyncio.Future] = {}

    # URLs

    def chat_url(self, conversation_id=None):
        if conversation_id:
            return f"{BASE_URL}/chat/{conversation_id}"
        return f"{BASE_URL}/chat"

    def sign_in_url(self):
        return f"{BASE_URL}/sign-in"

    def is_chat_root(self, url):
        return url.rstrip("/") == self.chat_url()

    # Session setup

    async def start_new_conversation(self, page, timeout):
        self.events.append("new_chat")
        if self.new_chat_error is not None:
            raise self.new_chat_error
        self.new_chat_counter += 1
        page.url = self.chat_url(f"new-{self.new_chat_counter}")

    async def read_account_label(self, page, timeout):
        self.events.append("read_account")
        return self.account_label

    async def is_signed_out(self, page):
        return self.signed_out

    async def login(self, page, email, password, timeout):
        self.events.append("login")
        if self.login_error is not None:
            raise self.login_error
        self.logins.append(email)
        self.signed_out = False

    # Prompt protocol

    async def read_model_indicator(self, page, timeout):
        self.events.append("read_model")
        if self.indicator_error is not None:
            raise self.indicator_error
        return self.indicator

    async def select_model(self, page, model_id, timeout):
        self.events.append(f"select_model:{model_id}")
        if self.select_error is not None:
            raise self.select_error
        if not self.picker_sticks:
            self.indicator = model_id.replace("-", " ").title()

    async def enter_prompt(self, page, prompt, timeout):
        self.events.append("enter_prompt")
        return self.typed_override if self.typed_override is not None else prompt

    def listen_for_reply(self, page):
        self.events.append("listen")
        future = asyncio.get_running_loop().create_future()
        self._reply_futures[id(page)] = future
        return future

    async def submit(self, page, timeout):
        self.events.append("submit")
        self.submitted_on_closed.append(page.is_closed())
        if self.submit_error is not None:
            raise self.submit_error
        if self.delay:
            await asyncio.sleep(self.delay)
        future = self._reply_futures.pop(id(page), None)
        if future is not None and not self.hang_response and not future.done():
            future.set_result('{"ok": true}')

    async def wait_for_assistant_message(self, page, timeout):
        self.events.append("wait_assistant")

    async def extract_reply(self, page):
        self.events.append("extract")
        if self.extract_error is not None:
            raise self.extract_error
        return self.reply_html, list(self.reply_refs)
