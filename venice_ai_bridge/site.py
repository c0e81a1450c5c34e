"""
Venice site adapter.

Everything that depends on Venice's markup, URLs or network endpoints lives
here. The automation driver and session store only talk to a ``SiteAdapter``
so they can run against a fake one in tests.

The selectors below follow Venice's current (unversioned) front-end and will
break whenever the site changes its markup.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional, List, Tuple
from urllib.parse import urlparse

from playwright.async_api import Page, Response, Error as PlaywrightError, TimeoutError as PlaywrightTimeout

from .models import Reference

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Selectors
# ---------------------------------------------------------------------------

ACCOUNT_LABEL_SELECTOR = (
    "body > div.css-wi1irr > div.css-6o8pp7 > div.css-e8h8zp > div > div.css-oc1j8r"
    " > button.chakra-button.css-1rz9yxu > div > div > div > p"
)
GUEST_LABEL = "Venice Guest"

IDENTIFIER_SELECTOR = "#identifier"
IDENTIFIER_SUBMIT_SELECTOR = (
    "body > div.chakra-stack.css-165casq > div > div > div > div"
    " > div.chakra-card__body.css-2f8ovt > form > div > div.css-8atqhb > button"
)
PASSWORD_SELECTOR = "#password"
PASSWORD_SUBMIT_SELECTOR = (
    "body > div.chakra-stack.css-165casq > div > div > div > div"
    " > div.chakra-card__body.css-2f8ovt > form > button"
)

NEW_CHAT_SELECTOR = (
    "body > div.css-wi1irr > div.css-6o8pp7 > div.css-135z2h5 > div > div > button:nth-child(1)"
)

PROMPT_INPUT_SELECTOR = 'textarea[placeholder="Ask a question..."]'
SUBMIT_BUTTON_SELECTOR = 'button[data-testid="chatInputSubmitButton"]'
MODEL_BUTTON_SELECTOR = "#menu-button-\\:rj\\:"
MODEL_LIST_SELECTOR = "#menu-list-\\:rj\\:"

ASSISTANT_MESSAGE_SELECTOR = ".assistant"

INFERENCE_ENDPOINT = "/api/inference/chat"

_MODEL_LIST_CLOSED_JS = """
(selector) => {
    const list = document.querySelector(selector);
    return !list || window.getComputedStyle(list).visibility === 'hidden';
}
"""

_EXTRACT_REPLY_JS = """
() => {
    const assistantDivs = document.querySelectorAll('.assistant');
    if (assistantDivs.length === 0) {
        return { content: null, references: [] };
    }
    const last = assistantDivs[assistantDivs.length - 1];
    const main = last.querySelector('.prose');
    const refsBlock = last.querySelector('.chakra-stack');
    let references = [];
    if (refsBlock) {
        references = Array.from(refsBlock.querySelectorAll('a')).map((a) => {
            const sup = a.querySelector('sup');
            const label = a.querySelector('.chakra-text');
            return {
                number: sup ? sup.textContent : '',
                text: label ? label.textContent : '',
                url: a.href,
            };
        });
    }
    return { content: main ? main.innerHTML : null, references: references };
}
"""


class SiteAdapter(ABC):
    """Site-specific operations the driver and session store rely on."""

    # URLs -----------------------------------------------------------------

    @abstractmethod
    def chat_url(self, conversation_id: Optional[str] = None) -> str:
        """URL of the chat root, or of one conversation."""

    @abstractmethod
    def sign_in_url(self) -> str:
        ...

    @abstractmethod
    def is_chat_root(self, url: str) -> bool:
        """True when ``url`` is the bare chat page (no conversation open)."""

    def conversation_id_from_url(self, url: str) -> str:
        """Conversation id = last path segment of the URL."""
        path = urlparse(url).path.rstrip("/")
        return path.split("/")[-1]

    # Session setup ----------------------------------------------------------

    @abstractmethod
    async def start_new_conversation(self, page: Page, timeout: float) -> None:
        """Click "new chat" and wait for the navigation it triggers."""

    @abstractmethod
    async def read_account_label(self, page: Page, timeout: float) -> Optional[str]:
        """Text of the account button, or None if it did not appear."""

    def is_guest_label(self, label: str) -> bool:
        return GUEST_LABEL in label

    @abstractmethod
    async def is_signed_out(self, page: Page) -> bool:
        """Cheap check, without waiting, for a signed-out page."""

    @abstractmethod
    async def login(self, page: Page, email: str, password: str, timeout: float) -> None:
        ...

    # Prompt protocol --------------------------------------------------------

    @abstractmethod
    async def read_model_indicator(self, page: Page, timeout: float) -> str:
        ...

    @abstractmethod
    async def select_model(self, page: Page, model_id: str, timeout: float) -> None:
        """Open the model picker, click ``model_id`` and wait for the picker to close."""

    @abstractmethod
    async def enter_prompt(self, page: Page, prompt: str, timeout: float) -> str:
        """Type ``prompt`` into a cleared input and return the input's value."""

    @abstractmethod
    def listen_for_reply(self, page: Page) -> "asyncio.Future[str]":
        """Start capturing the inference response. Must be called before ``submit``."""

    @abstractmethod
    async def submit(self, page: Page, timeout: float) -> None:
        ...

    @abstractmethod
    async def wait_for_assistant_message(self, page: Page, timeout: float) -> None:
        ...

    @abstractmethod
    async def extract_reply(self, page: Page) -> Tuple[Optional[str], List[Reference]]:
        """HTML of the last assistant message and its citations."""


class VeniceSiteAdapter(SiteAdapter):
    """Playwright implementation against venice.ai."""

    def __init__(self, base_url: str = "https://venice.ai"):
        self.base_url = base_url.rstrip("/")

    def chat_url(self, conversation_id: Optional[str] = None) -> str:
        if conversation_id:
            return f"{self.base_url}/chat/{conversation_id}"
        return f"{self.base_url}/chat"

    def sign_in_url(self) -> str:
        return f"{self.base_url}/sign-in"

    def is_chat_root(self, url: str) -> bool:
        return url.rstrip("/") == self.chat_url()

    async def start_new_conversation(self, page: Page, timeout: float) -> None:
        await page.wait_for_selector(NEW_CHAT_SELECTOR, timeout=timeout)
        async with page.expect_navigation(wait_until="networkidle", timeout=timeout):
            await page.click(NEW_CHAT_SELECTOR)

    async def read_account_label(self, page: Page, timeout: float) -> Optional[str]:
        try:
            await page.wait_for_selector(ACCOUNT_LABEL_SELECTOR, timeout=timeout)
        except PlaywrightTimeout:
            return None
        return await page.text_content(ACCOUNT_LABEL_SELECTOR)

    async def is_signed_out(self, page: Page) -> bool:
        if urlparse(page.url).path.startswith("/sign-in"):
            return True
        label = await page.query_selector(ACCOUNT_LABEL_SELECTOR)
        if label is None:
            return False
        text = await label.text_content()
        return bool(text) and self.is_guest_label(text)

    async def login(self, page: Page, email: str, password: str, timeout: float) -> None:
        await page.goto(self.sign_in_url(), wait_until="networkidle", timeout=timeout)

        await page.wait_for_selector(IDENTIFIER_SELECTOR, timeout=timeout)
        await page.type(IDENTIFIER_SELECTOR, email)
        await page.click(IDENTIFIER_SUBMIT_SELECTOR)

        await page.wait_for_selector(PASSWORD_SELECTOR, timeout=timeout)
        await page.type(PASSWORD_SELECTOR, password)
        async with page.expect_navigation(wait_until="networkidle", timeout=timeout):
            await page.click(PASSWORD_SUBMIT_SELECTOR)

    async def read_model_indicator(self, page: Page, timeout: float) -> str:
        return await page.text_content(MODEL_BUTTON_SELECTOR, timeout=timeout) or ""

    async def select_model(self, page: Page, model_id: str, timeout: float) -> None:
        await page.click(MODEL_BUTTON_SELECTOR)
        logger.debug("Clicked model dropdown button to open")

        await page.wait_for_selector(MODEL_LIST_SELECTOR, state="visible", timeout=timeout)
        logger.debug("Dropdown menu is now visible")

        option = f'{MODEL_LIST_SELECTOR} button[value="{model_id}"]'
        await page.wait_for_selector(option, state="visible", timeout=timeout)
        await page.click(option)
        logger.debug(f"Clicked on model option: {model_id}")

        await page.wait_for_function(_MODEL_LIST_CLOSED_JS, arg=MODEL_LIST_SELECTOR, timeout=timeout)
        logger.debug("Dropdown menu is now closed")

    async def enter_prompt(self, page: Page, prompt: str, timeout: float) -> str:
        await page.wait_for_selector(PROMPT_INPUT_SELECTOR, state="visible", timeout=timeout)
        await page.focus(PROMPT_INPUT_SELECTOR)
        await page.fill(PROMPT_INPUT_SELECTOR, "")
        await page.keyboard.type(prompt)
        return await page.input_value(PROMPT_INPUT_SELECTOR)

    def listen_for_reply(self, page: Page) -> "asyncio.Future[str]":
        future = asyncio.get_running_loop().create_future()

        async def on_response(response: Response) -> None:
            if future.done():
                return
            if INFERENCE_ENDPOINT not in response.url or response.request.method != "POST":
                return
            try:
                body = await response.text()
            except PlaywrightError as exc:
                if not future.done():
                    future.set_exception(exc)
                return
            if not future.done():
                future.set_result(body)

        page.on("response", on_response)
        future.add_done_callback(lambda _: page.remove_listener("response", on_response))
        return future

    async def submit(self, page: Page, timeout: float) -> None:
        await page.wait_for_selector(
            f"{SUBMIT_BUTTON_SELECTOR}:not(:disabled)", state="visible", timeout=timeout
        )
        await page.click(SUBMIT_BUTTON_SELECTOR)

    async def wait_for_assistant_message(self, page: Page, timeout: float) -> None:
        await page.wait_for_selector(ASSISTANT_MESSAGE_SELECTOR, timeout=timeout)

    async def extract_reply(self, page: Page) -> Tuple[Optional[str], List[Reference]]:
        data = await page.evaluate(_EXTRACT_REPLY_JS)
        references = [
            Reference(
                number=(ref.get("number") or "").strip(),
                text=(ref.get("text") or "").strip(),
                url=ref.get("url") or "",
            )
            for ref in data.get("references") or []
        ]
        return data.get("content"), references
