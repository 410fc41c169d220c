"""Markdown rendering for question text and explanations.

Question sets are pasted as markdown (code spans, lists, tables are common in
technical exams). The API returns HTML fragments next to the raw text so
clients can display them without bundling their own markdown parser.
Math is left untouched for client-side MathJax/KaTeX.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from markdown_it import MarkdownIt


@dataclass(slots=True)
class MarkdownRenderer:
    """Converts markdown into HTML fragments."""

    enable_html: bool = False
    _markdown: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._markdown = (
            MarkdownIt("commonmark", {"html": self.enable_html})
            .enable("table")
            .enable("strikethrough")
        )

    def render_fragment(self, markdown_text: str) -> str:
        """Render a markdown string into an HTML fragment."""

        sanitized = markdown_text.strip() if markdown_text else ""
        if not sanitized:
            return ""
        return self._markdown.render(sanitized)

    def render_optional(self, markdown_text: str | None) -> str | None:
        if not markdown_text:
            return None
        return self.render_fragment(markdown_text)


renderer = MarkdownRenderer()
# MarkdownIt is safe for concurrent read-only renders, so FastAPI worker
# threads share this instance.
