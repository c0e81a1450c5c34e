"""Conversion of captured assistant replies into Markdown."""

from dataclasses import dataclass
from typing import Optional, Iterable

from markdownify import markdownify as md

from .models import Reference


@dataclass(frozen=True)
class ConvertedReply:
    markdown: str
    references_markdown: str


def html_to_markdown(html: Optional[str]) -> str:
    """Convert an HTML fragment to trimmed Markdown. ``None`` gives ``""``."""
    if not html:
        return ""
    return md(html, heading_style="ATX", bullets="*").strip()


def references_to_markdown(references: Iterable[Reference]) -> str:
    """Render citations as a numbered Markdown list, keeping their order."""
    return "\n".join(f"{ref.number}. [{ref.text}]({ref.url})" for ref in references)


def transform_reply(html: Optional[str], references: Optional[Iterable[Reference]]) -> ConvertedReply:
    return ConvertedReply(
        markdown=html_to_markdown(html),
        references_markdown=references_to_markdown(references or []),
    )
