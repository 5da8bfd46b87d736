"""Renderer for the small Markdown dialect the summary prompts ask for.

Supported: ``##``/``###`` headings, ``**bold**``, ``*italic*``, ``-``/``*``
bullets, ``N.`` ordered items nested in 2-space steps, and blank-line separated
paragraphs. Anything else is rendered as paragraph text.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from typing import List

_HEADING_RE = re.compile(r"^(#{2,3})\s+(.*)$")
_LIST_ITEM_RE = re.compile(r"^([ \t]*)([-*]|\d+\.)\s+(.*)$")
_BOLD_RE = re.compile(r"\*\*(.+?)\*\*")
_ITALIC_RE = re.compile(r"\*(.+?)\*")

INDENT_STEP = 2


@dataclass(slots=True)
class _OpenList:
    tag: str
    level: int
    item_open: bool = False


@dataclass(slots=True)
class RenderState:
    """Transient state of a single :func:`render_markdown` pass."""

    output: List[str] = field(default_factory=list)
    pending_paragraph: str = ""
    open_lists: List[_OpenList] = field(default_factory=list)

    def flush_paragraph(self) -> None:
        if self.pending_paragraph:
            self.output.append(f"<p>{self.pending_paragraph}</p>")
            self.pending_paragraph = ""

    def close_list(self) -> None:
        current = self.open_lists.pop()
        if current.item_open:
            self.output.append("</li>")
        self.output.append(f"</{current.tag}>")

    def close_lists_deeper_than(self, level: int) -> None:
        while self.open_lists and self.open_lists[-1].level > level:
            self.close_list()

    def close_all_lists(self) -> None:
        while self.open_lists:
            self.close_list()

    def add_item(self, tag: str, level: int, content: str) -> None:
        self.close_lists_deeper_than(level)
        top = self.open_lists[-1] if self.open_lists else None
        if top is not None and top.level == level:
            # Same level keeps the list open even when the marker kind differs.
            if top.item_open:
                self.output.append("</li>")
        else:
            top = _OpenList(tag=tag, level=level)
            self.output.append(f"<{tag}>")
            self.open_lists.append(top)
        self.output.append(f"<li>{content}")
        top.item_open = True


def render_inline(text: str) -> str:
    """Escape ``text`` and apply bold then italic markers."""

    escaped = html.escape(text, quote=False)
    escaped = _BOLD_RE.sub(r"<strong>\1</strong>", escaped)
    return _ITALIC_RE.sub(r"<em>\1</em>", escaped)


def _indent_level(indent: str) -> int:
    width = len(indent.replace("\t", " " * INDENT_STEP))
    return width // INDENT_STEP


def render_markdown(text: str) -> str:
    """Return an HTML fragment for ``text``."""

    state = RenderState()
    for raw_line in text.replace("\r\n", "\n").replace("\r", "\n").split("\n"):
        stripped = raw_line.strip()
        if not stripped:
            state.flush_paragraph()
            continue

        heading = _HEADING_RE.match(stripped)
        if heading:
            state.close_all_lists()
            state.flush_paragraph()
            tag = f"h{len(heading.group(1))}"
            state.output.append(f"<{tag}>{render_inline(heading.group(2).strip())}</{tag}>")
            continue

        item = _LIST_ITEM_RE.match(raw_line.rstrip())
        if item:
            indent, marker, content = item.groups()
            state.flush_paragraph()
            tag = "ul" if marker in {"-", "*"} else "ol"
            state.add_item(tag, _indent_level(indent), render_inline(content.strip()))
            continue

        if state.open_lists:
            state.close_all_lists()

        formatted = render_inline(stripped)
        if state.pending_paragraph:
            state.pending_paragraph = f"{state.pending_paragraph} {formatted}"
        else:
            state.pending_paragraph = formatted

    state.close_all_lists()
    state.flush_paragraph()
    return "".join(state.output)


__all__ = ["RenderState", "render_inline", "render_markdown"]
