"""
Automation driver: one prompt in, one Markdown reply out.

The steps run strictly in order against a single tab:

    validate model -> ensure model selected -> enter prompt
    -> submit and await the inference response -> extract -> transform

No step is retried. Any wait that runs out raises ``ElementTimeout``; any other
browser error raises ``PageInteractionFailed``.
"""

import asyncio
import logging
from contextlib import contextmanager
from typing import Any

from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeout

from .config import BridgeConfig
from .errors import (
    ElementTimeout,
    InvalidRequest,
    ModelSelectionFailed,
    PageInteractionFailed,
    PromptEntryFailed,
)
from .markdown import transform_reply
from .models import AVAILABLE_MODELS, PromptResult, model_matches
from .site import SiteAdapter

logger = logging.getLogger(__name__)


@contextmanager
def _waiting_for(what: str):
    try:
        yield
    except (PlaywrightTimeout, asyncio.TimeoutError) as exc:
        raise ElementTimeout(f"Timed out waiting for {what}: {exc}") from exc
    except PlaywrightError as exc:
        raise PageInteractionFailed(f"Browser error while waiting for {what}: {exc}") from exc


class AutomationDriver:
    """Runs the send-prompt-and-extract protocol on a page."""

    def __init__(self, adapter: SiteAdapter, config: BridgeConfig):
        self.adapter = adapter
        self.config = config

    async def send_prompt(self, page: Any, prompt: str, model_id: str) -> PromptResult:
        """
        Send ``prompt`` on ``page`` using the internal model id ``model_id``.

        Args:
            page: Playwright page showing the conversation.
            prompt: Text to type, submitted as-is.
            model_id: One of the values of ``AVAILABLE_MODELS``.

        Returns:
            PromptResult with the Markdown reply and its references.
        """
        if model_id not in AVAILABLE_MODELS.values():
            raise InvalidRequest(
                f"Invalid model: {model_id}. Must be one of {', '.join(AVAILABLE_MODELS.values())}"
            )

        await self.ensure_model(page, model_id)
        await self.enter_prompt(page, prompt)
        await self.submit_and_wait(page)

        with _waiting_for("the reply content"):
            html, references = await self.adapter.extract_reply(page)
        logger.debug(f"RESPONSE: {html}")
        logger.debug(f"REFERENCES: {references}")

        converted = transform_reply(html, references)
        return PromptResult(
            response=converted.markdown,
            references=list(references),
            references_markdown=converted.references_markdown,
        )

    async def ensure_model(self, page: Any, model_id: str) -> None:
        logger.debug(f"Checking current model and selecting if necessary: {model_id}")
        indicator = await self._read_model_indicator(page)
        if model_matches(indicator, model_id):
            logger.debug("Desired model is already selected")
            return

        logger.debug("Need to change the model")
        with _waiting_for("the model picker"):
            await self.adapter.select_model(page, model_id, self.config.extended_timeout_ms)

        indicator = await self._read_model_indicator(page)
        if model_matches(indicator, model_id):
            logger.debug("Model selection confirmed")
            return

        message = f"Failed to select the correct model: {model_id} (picker shows {indicator!r})"
        if self.config.strict_model_check:
            raise ModelSelectionFailed(message)
        logger.warning(message)

    async def _read_model_indicator(self, page: Any) -> str:
        with _waiting_for("the model indicator"):
            return await self.adapter.read_model_indicator(page, self.config.navigation_timeout_ms)

    async def enter_prompt(self, page: Any, prompt: str) -> None:
        logger.debug("Typing prompt into textarea")
        with _waiting_for("the prompt input"):
            entered = await self.adapter.enter_prompt(page, prompt, self.config.navigation_timeout_ms)
        logger.debug(f"Text in textarea: {entered}")

        if entered != prompt:
            raise PromptEntryFailed("Prompt was not correctly entered into the textarea")

    async def submit_and_wait(self, page: Any) -> str:
        """Click submit and wait for both the inference response and the rendered reply."""
        # Listen first: the response can land before click() returns.
        reply = self.adapter.listen_for_reply(page)
        try:
            with _waiting_for("the send button"):
                await self.adapter.submit(page, self.config.navigation_timeout_ms)
            logger.debug("Clicked send button")

            with _waiting_for("the inference response"):
                if self.config.response_timeout_ms > 0:
                    body = await asyncio.wait_for(reply, self.config.response_timeout_ms / 1000)
                else:
                    body = await reply
        finally:
            if not reply.done():
                reply.cancel()

        logger.debug("Waiting for assistant response in UI")
        with _waiting_for("the assistant reply"):
            await self.adapter.wait_for_assistant_message(page, self.config.navigation_timeout_ms)
        logger.debug("Assistant response appeared in UI")
        return body
