from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, TypeVar

from . import dialect
from .model import (
    BackgroundColor,
    Block,
    Blockquote,
    BulletList,
    Code,
    CodeBlock,
    DateStamp,
    Document,
    Em,
    Emoji,
    Expand,
    HardBreak,
    Heading,
    InlineCard,
    InlineElement,
    Link,
    ListItem,
    Mark,
    MediaGroup,
    MediaNode,
    MediaSingle,
    Mention,
    OrderedList,
    Panel,
    Paragraph,
    Rule,
    Status,
    Strike,
    Strong,
    Subsup,
    Table,
    TableCell,
    TaskList,
    Text,
    TextColor,
    Underline,
)
from .utils import (
    escape_markdown,
    format_attrs,
    format_number,
    format_timestamp,
    normalize_whitespace,
    protect_backslashes,
)

M = TypeVar("M", bound=Mark)

LIST_TYPES = (BulletList, OrderedList, TaskList)


@dataclass
class RenderState:
    escape_text: bool = False


def render_markdown(doc: Document, escape_text: bool = False) -> str:
    state = RenderState(escape_text=escape_text)
    return normalize_whitespace(_render_blocks(doc.blocks, state))


def _render_blocks(blocks: Iterable[Block], state: RenderState) -> str:
    parts = (_dispatch_block(block, 0, state) for block in blocks)
    return "\n\n".join(part for part in parts if part)


def _dispatch_block(block: Block, depth: int, state: RenderState) -> str:
    if isinstance(block, Paragraph):
        return _render_paragraph(block, state)
    elif isinstance(block, Heading):
        return _render_heading(block, state)
    elif isinstance(block, BulletList):
        return _render_bullet_list(block, depth, state)
    elif isinstance(block, OrderedList):
        return _render_ordered_list(block, depth, state)
    elif isinstance(block, TaskList):
        return _render_task_list(block, depth, state)
    elif isinstance(block, CodeBlock):
        return f"```{block.language}\n{block.text}\n```"
    elif isinstance(block, Blockquote):
        return _render_blockquote(block, state)
    elif isinstance(block, Rule):
        return "---"
    elif isinstance(block, Panel):
        body = _render_blocks(block.blocks, state).strip()
        return f"~~~panel type={block.panel_type or dialect.DEFAULT_PANEL_TYPE}\n{body}\n~~~"
    elif isinstance(block, Expand):
        return _render_expand(block, state)
    elif isinstance(block, Table):
        return _render_table(block, state)
    elif isinstance(block, MediaSingle):
        return _render_media_single(block)
    elif isinstance(block, MediaGroup):
        body = "\n".join(_render_media(media) for media in block.items)
        return f"~~~mediaGroup\n{body}\n~~~"
    logging.debug("No markdown form for %s, skipped", type(block).__name__)
    return ""


def _render_paragraph(paragraph: Paragraph, state: RenderState) -> str:
    text = _render_inline(paragraph.inline, state)
    if not text:
        return ""
    attr_str = format_attrs(paragraph.attrs, *dialect.PARAGRAPH_META_KEYS)
    if attr_str:
        return f"<!-- {dialect.METADATA_COMMENT_PREFIX}:paragraph{attr_str} -->\n{text}"
    return text


def _render_heading(heading: Heading, state: RenderState) -> str:
    level = min(max(heading.level, 1), 6)
    line = f"{'#' * level} {_render_inline(heading.inline, state)}"
    attr_str = format_attrs(heading.attrs, *dialect.HEADING_META_KEYS)
    if attr_str:
        return f"<!-- {dialect.METADATA_COMMENT_PREFIX}:heading{attr_str} -->\n{line}"
    return line


def _render_bullet_list(block: BulletList, depth: int, state: RenderState) -> str:
    indent = _indent_prefix(depth)
    return "\n".join(f"{indent}- {_render_list_item(item, depth, state)}" for item in block.items)


def _render_ordered_list(block: OrderedList, depth: int, state: RenderState) -> str:
    indent = _indent_prefix(depth)
    return "\n".join(
        f"{indent}{block.start_order + idx}. {_render_list_item(item, depth, state)}"
        for idx, item in enumerate(block.items)
    )


def _render_task_list(block: TaskList, depth: int, state: RenderState) -> str:
    indent = _indent_prefix(depth)
    lines = []
    for item in block.items:
        checkbox = "[x]" if item.done else "[ ]"
        lines.append(f"{indent}- {checkbox} {_render_inline(item.inline, state)}")
    return "\n".join(lines)


def _render_list_item(item: ListItem, depth: int, state: RenderState) -> str:
    child_indent = _indent_prefix(depth + 1)
    parts: list[str] = []
    for idx, child in enumerate(item.blocks):
        if isinstance(child, Paragraph):
            text = _render_inline(child.inline, state).replace("\n", "\n" + child_indent)
            parts.append(text if idx == 0 else f"\n{child_indent}{text}")
            continue
        if isinstance(child, LIST_TYPES):
            rendered = _dispatch_block(child, depth + 1, state)
        else:
            rendered = _indent_lines(_dispatch_block(child, depth + 1, state), depth + 1)
        if rendered:
            parts.append("\n" + rendered)
    return "".join(parts).rstrip("\n")


def _render_blockquote(block: Blockquote, state: RenderState) -> str:
    body = _render_blocks(block.blocks, state).rstrip("\n")
    return "\n".join(f"> {line}" if line else ">" for line in body.split("\n"))


def _render_expand(block: Expand, state: RenderState) -> str:
    body = _render_blocks(block.blocks, state).strip()
    return f"~~~expand{format_attrs({'title': block.title}, 'title')}\n{body}\n~~~"


def _render_table(block: Table, state: RenderState) -> str:
    rows: list[list[str]] = []
    header_index: int | None = None
    for idx, row in enumerate(block.rows):
        rows.append([_render_table_cell(cell, state) for cell in row.cells])
        if header_index is None and any(cell.is_header for cell in row.cells):
            header_index = idx

    col_count = max((len(cells) for cells in rows), default=0)
    if col_count == 0:
        return ""
    if header_index is None:
        header_index = 0

    separator = "| " + " | ".join(["---"] * col_count) + " |"
    lines: list[str] = []
    for idx, cells in enumerate(rows):
        padded = cells + [""] * (col_count - len(cells))
        lines.append("| " + " | ".join(padded) + " |")
        if idx == header_index:
            lines.append(separator)
    return "\n".join(lines)


def _render_table_cell(cell: TableCell, state: RenderState) -> str:
    text = " ".join(part for part in (_dispatch_block(b, 0, state) for b in cell.blocks) if part)
    return text.strip().replace("\n", " ").replace("|", "\\|")


def _render_media_single(block: MediaSingle) -> str:
    attr_parts: list[str] = []
    if block.layout:
        attr_parts.append(f"layout={block.layout}")
    if block.width:
        attr_parts.append(f"width={format_number(block.width)}")
        if block.width_type:
            attr_parts.append(f"widthType={block.width_type}")
    attr_str = (" " + " ".join(attr_parts)) if attr_parts else ""
    return f"~~~mediaSingle{attr_str}\n{_render_media(block.media)}\n~~~"


def _render_media(media: MediaNode) -> str:
    if media.pending_source:
        return f"![{media.alt}]({media.pending_source})"
    alt = media.alt or dialect.DEFAULT_MEDIA_ALT
    if media.id:
        return f"![{alt}]({dialect.media_reference(media.id, media.collection, media.media_type)})"
    return f"[{alt}]"


def _render_inline(elements: Iterable[InlineElement], state: RenderState) -> str:
    return "".join(_render_inline_element(element, state) for element in elements)


def _render_inline_element(element: InlineElement, state: RenderState) -> str:
    if isinstance(element, Text):
        if not element.marks:
            return escape_markdown(element.text) if state.escape_text else protect_backslashes(element.text)
        return _apply_marks(element.text, element.marks)
    elif isinstance(element, HardBreak):
        return "  \n"
    elif isinstance(element, Emoji):
        return _render_emoji(element)
    elif isinstance(element, Mention):
        return _render_mention(element)
    elif isinstance(element, Status):
        if not element.text:
            return ""
        if element.color:
            return f"{{status:{element.text}|color={element.color}}}"
        return f"{{status:{element.text}}}"
    elif isinstance(element, DateStamp):
        if not element.timestamp_millis:
            return ""
        return f"{{date:{format_timestamp(element.timestamp_millis)}}}"
    elif isinstance(element, InlineCard):
        return f"{{card:{element.url}}}" if element.url else ""
    logging.debug("No markdown form for %s, skipped", type(element).__name__)
    return ""


def _render_emoji(emoji: Emoji) -> str:
    # The shortcode survives a round trip, the glyph does not.
    if emoji.short_name:
        if emoji.short_name.startswith(":") and emoji.short_name.endswith(":"):
            return emoji.short_name
        return f":{emoji.short_name}:"
    return emoji.text or ""


def _render_mention(mention: Mention) -> str:
    display_name = mention.display_text.removeprefix("@") or mention.id
    if mention.id:
        return f"@[{display_name}](accountId:{mention.id})"
    if mention.display_text:
        return mention.display_text
    return dialect.UNKNOWN_MENTION


def _apply_marks(text: str, marks: Iterable[Mark]) -> str:
    """Wrap ``text`` innermost first: code, link, em, strong, strike, underline,
    text colour, background colour, sub/sup."""
    if not text:
        return ""
    marks = list(marks)
    result = text
    if _first(marks, Code):
        result = f"`{result}`"
    link = _first(marks, Link)
    if link:
        if link.title:
            result = f'[{result}]({link.href} "{link.title}")'
        else:
            result = f"[{result}]({link.href})"
    if _first(marks, Em):
        result = f"*{result}*"
    if _first(marks, Strong):
        result = f"**{result}**"
    if _first(marks, Strike):
        result = f"~~{result}~~"
    if _first(marks, Underline):
        result = f"<u>{result}</u>"
    text_color = _first(marks, TextColor)
    if text_color and text_color.color:
        result = f"{{color:{text_color.color}}}{result}{{color}}"
    background = _first(marks, BackgroundColor)
    if background and background.color:
        result = f'<mark style="background:{background.color}">{result}</mark>'
    subsup = _first(marks, Subsup)
    if subsup and subsup.kind in ("sub", "sup"):
        result = f"<{subsup.kind}>{result}</{subsup.kind}>"
    return result


def _first(marks: list[Mark], mark_type: type[M]) -> M | None:
    for mark in marks:
        if isinstance(mark, mark_type):
            return mark
    return None


def _indent_prefix(depth: int) -> str:
    return " " * (dialect.INDENT_WIDTH * depth)


def _indent_lines(text: str, depth: int) -> str:
    prefix = _indent_prefix(depth)
    return "\n".join(prefix + line if line else line for line in text.split("\n"))
