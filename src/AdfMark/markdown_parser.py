from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Callable, List, Sequence

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
    Heading,
    InlineCard,
    InlineElement,
    Link,
    ListItem,
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
    TableRow,
    TaskItem,
    TaskList,
    Text,
    TextColor,
    Underline,
)
from .utils import (
    generate_local_id,
    get_indent_level,
    parse_attrs,
    parse_timestamp,
    split_status_attrs,
)

FENCE_OPEN_RE = re.compile(r"^~~~(\w+)(?:\s+(.*))?$")
FENCE_CLOSE_RE = re.compile(r"^~~~\s*$")
METADATA_COMMENT_RE = re.compile(r"^<!--\s*" + dialect.METADATA_COMMENT_PREFIX + r":(\w+)\s+(.+?)\s*-->$")
HEADING_RE = re.compile(r"^(#+) (.*)$")
TASK_ITEM_RE = re.compile(r"^(\s*)- \[([ xX])\]\s+(.*)$")
BULLET_RE = re.compile(r"^[-*+] ")
ORDERED_ITEM_RE = re.compile(r"^(\d+)\.\s+(.*)$")
ORDERED_START_RE = re.compile(r"^\d+\.\s")
IMAGE_RE = re.compile(r"!\[([^\]]*)\]\(([^)]+)\)")
IMAGE_LINE_RE = re.compile(r"^!\[([^\]]*)\]\(([^)]+)\)$")
SEPARATOR_CELL_RE = re.compile(r"^:?-+:?$")
CELL_SPLIT_RE = re.compile(r"(?<!\\)\|")
RULE_LINES = frozenset({"---", "***", "___"})


def parse_markdown(text: str) -> Document:
    lines = text.replace("\r\n", "\n").split("\n")
    return Document(blocks=_parse_blocks(lines))


def _parse_blocks(lines: Sequence[str]) -> List[Block]:
    blocks: List[Block] = []
    # Attributes captured from a metadata comment, valid for the next block only.
    metadata: dict[str, str] = {}
    i = 0
    while i < len(lines):
        line = lines[i]
        block: Block | None = None
        if not line.strip():
            i += 1
            continue
        comment = METADATA_COMMENT_RE.match(line.strip())
        if comment:
            metadata = parse_attrs(comment.group(2))
            i += 1
            continue

        fence = FENCE_OPEN_RE.match(line)
        if fence:
            block, i = _parse_fence_block(lines, i, fence.group(1), fence.group(2) or "")
        elif _is_code_fence(line):
            block, i = _parse_code_block(lines, i)
        elif _is_heading(line):
            block = _parse_heading(line, metadata)
            i += 1
        elif _is_rule(line):
            block = Rule()
            i += 1
        elif _is_blockquote(line):
            block, i = _parse_blockquote(lines, i)
        elif _is_table_row(line):
            block, i = _parse_table(lines, i)
        elif _is_task_item(line):
            block, i = _parse_task_list(lines, i)
        elif _is_bullet_item(line):
            block, i = _parse_bullet_list(lines, i, 0)
        elif _is_ordered_item(line):
            block, i = _parse_ordered_list(lines, i, 0)
        elif _is_image_line(line):
            image = IMAGE_LINE_RE.match(line.strip())
            block = _standalone_image(image.group(1), image.group(2))
            i += 1
        else:
            block, i = _parse_paragraph(lines, i, metadata)

        if block is not None:
            blocks.append(block)
        metadata = {}
    return blocks


def _is_code_fence(line: str) -> bool:
    return line.startswith("```")


def _is_heading(line: str) -> bool:
    return HEADING_RE.match(line) is not None


def _is_rule(line: str) -> bool:
    return line in RULE_LINES


def _is_blockquote(line: str) -> bool:
    return line.startswith("> ") or line == ">"


def _is_table_row(line: str) -> bool:
    return line.startswith("|")


def _is_task_item(line: str) -> bool:
    return TASK_ITEM_RE.match(line) is not None


def _is_bullet_item(line: str) -> bool:
    return BULLET_RE.match(line) is not None


def _is_ordered_item(line: str) -> bool:
    return ORDERED_START_RE.match(line) is not None


def _is_image_line(line: str) -> bool:
    return IMAGE_LINE_RE.match(line.strip()) is not None


def _starts_block(line: str) -> bool:
    """True when ``line`` would be claimed by a handler ranked above paragraphs."""
    return (
        METADATA_COMMENT_RE.match(line.strip()) is not None
        or FENCE_OPEN_RE.match(line) is not None
        or _is_code_fence(line)
        or _is_heading(line)
        or _is_rule(line)
        or _is_blockquote(line)
        or _is_table_row(line)
        or _is_task_item(line)
        or _is_bullet_item(line)
        or _is_ordered_item(line)
        or _is_image_line(line)
    )


def _parse_fence_block(lines: Sequence[str], index: int, name: str, attr_str: str) -> tuple[Block, int]:
    body: list[str] = []
    depth = 0
    i = index + 1
    while i < len(lines):
        line = lines[i]
        if FENCE_CLOSE_RE.match(line):
            if depth == 0:
                i += 1
                break
            depth -= 1
        elif FENCE_OPEN_RE.match(line):
            depth += 1
        body.append(line)
        i += 1

    attrs = parse_attrs(attr_str)
    if name == "panel":
        panel_type = attrs.get("type") or dialect.DEFAULT_PANEL_TYPE
        if panel_type not in dialect.PANEL_TYPES:
            logging.debug("Unusual panel type %r kept", panel_type)
        return Panel(panel_type=panel_type, blocks=_parse_blocks(body)), i
    if name == "expand":
        return Expand(title=attrs.get("title", ""), blocks=_parse_blocks(body)), i
    if name == "mediaSingle":
        return _media_single_from_fence(attrs, "\n".join(body)), i
    if name == "mediaGroup":
        items = [_media_from_image(m.group(1), m.group(2)) for m in IMAGE_RE.finditer("\n".join(body))]
        return MediaGroup(items=items), i
    logging.debug("Unknown fence block %r kept as code", name)
    return CodeBlock(language=name, text="\n".join(body)), i


def _media_single_from_fence(attrs: dict[str, str], content: str) -> MediaSingle:
    block = MediaSingle(layout=attrs.get("layout") or dialect.DEFAULT_MEDIA_LAYOUT)
    width = _parse_width(attrs.get("width", ""))
    if width is not None:
        block.width = width
        block.width_type = attrs.get("widthType") or dialect.DEFAULT_WIDTH_TYPE

    image = IMAGE_RE.search(content)
    if image:
        block.media = _media_from_image(image.group(1), image.group(2))
    else:
        block.media = MediaNode(media_type=dialect.DEFAULT_MEDIA_TYPE)
    return block


def _parse_width(raw: str) -> float | None:
    try:
        width = float(raw)
    except ValueError:
        return None
    if not math.isfinite(width) or width <= 0:
        return None
    return width


def _media_from_image(alt: str, src: str) -> MediaNode:
    if src.startswith(dialect.MEDIA_REF_PREFIX):
        parts = src[len(dialect.MEDIA_REF_PREFIX) :].split(":", 2)
        if len(parts) == 3:
            media_id, collection, media_type = parts
            return MediaNode(id=media_id, collection=collection or None, media_type=media_type, alt=alt)

    # Anything else is a URL or a local path that still has to be uploaded.
    return MediaNode(
        id=dialect.pending_media_id(generate_local_id()),
        media_type=dialect.DEFAULT_MEDIA_TYPE,
        alt=alt,
        pending_source=src,
    )


def _standalone_image(alt: str, src: str) -> MediaSingle:
    return MediaSingle(media=_media_from_image(alt, src), layout=dialect.DEFAULT_MEDIA_LAYOUT)


def _parse_code_block(lines: Sequence[str], index: int) -> tuple[CodeBlock, int]:
    language = lines[index][3:].strip()
    code: list[str] = []
    i = index + 1
    while i < len(lines) and not lines[i].startswith("```"):
        code.append(lines[i])
        i += 1
    return CodeBlock(language=language, text="\n".join(code)), i + 1


def _parse_heading(line: str, metadata: dict[str, str]) -> Heading:
    match = HEADING_RE.match(line)
    level = min(len(match.group(1)), 6)
    return Heading(level=level, inline=parse_inline(match.group(2).strip()), attrs=dict(metadata))


def _parse_blockquote(lines: Sequence[str], index: int) -> tuple[Blockquote, int]:
    quoted: list[str] = []
    i = index
    while i < len(lines):
        line = lines[i]
        if line.startswith("> "):
            quoted.append(line[2:])
        elif line == ">":
            quoted.append("")
        else:
            break
        i += 1
    return Blockquote(blocks=_parse_blocks(quoted)), i


def _parse_table(lines: Sequence[str], index: int) -> tuple[Table | None, int]:
    rows: list[TableRow] = []
    i = index
    while i < len(lines) and lines[i].startswith("|"):
        cells = _split_table_row(lines[i].strip())
        i += 1
        if all(SEPARATOR_CELL_RE.match(cell) for cell in cells):
            continue
        is_header = not rows
        rows.append(
            TableRow(
                cells=[TableCell(is_header=is_header, blocks=[Paragraph(inline=parse_inline(cell))]) for cell in cells]
            )
        )
    if not rows:
        return None, i
    return Table(rows=rows), i


def _split_table_row(line: str) -> list[str]:
    body = line[1:] if line.startswith("|") else line
    if body.endswith("|") and not body.endswith("\\|"):
        body = body[:-1]
    return [cell.strip().replace("\\|", "|") for cell in CELL_SPLIT_RE.split(body)]


def _parse_task_list(lines: Sequence[str], index: int, depth: int | None = None) -> tuple[TaskList, int]:
    """Collect consecutive task items; ``depth`` pins them to one indentation level."""
    items: list[TaskItem] = []
    i = index
    while i < len(lines):
        match = TASK_ITEM_RE.match(lines[i])
        if not match:
            break
        if depth is not None and get_indent_level(lines[i]) != depth:
            break
        state = "DONE" if match.group(2) in ("x", "X") else "TODO"
        items.append(TaskItem(state=state, inline=parse_inline(match.group(3).strip())))
        i += 1
    return TaskList(items=items), i


def _parse_bullet_list(lines: Sequence[str], index: int, depth: int) -> tuple[BulletList | None, int]:
    items: list[ListItem] = []
    i = index
    while i < len(lines):
        line = lines[i]
        if not line.strip():
            i += 1
            break
        if get_indent_level(line) != depth:
            break
        trimmed = line.lstrip(" \t")
        if not _is_bullet_item(trimmed) or _is_task_item(trimmed):
            break
        item, i = _parse_list_item(lines, i, depth)
        items.append(item)

    if not items:
        return None, index
    return BulletList(items=items), i


def _parse_ordered_list(lines: Sequence[str], index: int, depth: int) -> tuple[OrderedList | None, int]:
    items: list[ListItem] = []
    start_order = 1
    i = index
    while i < len(lines):
        line = lines[i]
        if not line.strip():
            i += 1
            break
        if get_indent_level(line) != depth:
            break
        match = ORDERED_ITEM_RE.match(line.lstrip(" \t"))
        if not match:
            break
        if not items:
            start_order = int(match.group(1))
        item, i = _parse_list_item(lines, i, depth)
        items.append(item)

    if not items:
        return None, index
    return OrderedList(items=items, start_order=start_order), i


def _parse_list_item(lines: Sequence[str], index: int, depth: int) -> tuple[ListItem, int]:
    trimmed = lines[index].lstrip(" \t")
    ordered = ORDERED_ITEM_RE.match(trimmed)
    if _is_bullet_item(trimmed):
        text = trimmed[2:].strip()
    elif ordered:
        text = ordered.group(2).strip()
    else:
        text = ""
    blocks: list[Block] = [Paragraph(inline=parse_inline(text))]

    i = index + 1
    while i < len(lines):
        line = lines[i]
        if not line.strip():
            i += 1
            continue
        level = get_indent_level(line)
        if level <= depth:
            break

        nested: Block | None
        trimmed = line.lstrip(" \t")
        if _is_task_item(trimmed):
            nested, i = _parse_task_list(lines, i, level)
        elif _is_bullet_item(trimmed):
            nested, i = _parse_bullet_list(lines, i, level)
        elif _is_ordered_item(trimmed):
            nested, i = _parse_ordered_list(lines, i, level)
        else:
            # Indented text under an item continues that item.
            nested = Paragraph(inline=parse_inline(trimmed.strip()))
            i += 1
        if nested is not None:
            blocks.append(nested)
    return ListItem(blocks=blocks), i


def _parse_paragraph(lines: Sequence[str], index: int, metadata: dict[str, str]) -> tuple[Paragraph, int]:
    para_lines: list[str] = []
    i = index
    while i < len(lines):
        line = lines[i]
        if not line.strip():
            i += 1
            break
        if para_lines and _starts_block(line):
            break
        para_lines.append(line.strip())
        i += 1
    return Paragraph(inline=parse_inline("\n".join(para_lines)), attrs=dict(metadata)), i


@dataclass(frozen=True)
class InlinePattern:
    name: str
    regex: re.Pattern
    build: Callable[[re.Match], InlineElement]


def _either(match: re.Match) -> str:
    return match.group(1) if match.group(1) is not None else match.group(2)


def _status(match: re.Match) -> Status:
    color = split_status_attrs(match.group(2)).get("color")
    if color and color not in dialect.STATUS_COLORS:
        logging.debug("Unusual status colour %r kept", color)
    return Status(text=match.group(1), color=color or None)


# Extended syntax comes first; on every step the earliest match start wins and
# ties go to the pattern listed first.
INLINE_PATTERNS: tuple[InlinePattern, ...] = (
    InlinePattern(
        "mention",
        re.compile(r"\{user:([^}]+)\}"),
        lambda m: Mention(id=m.group(1), display_text="@" + m.group(1)),
    ),
    InlinePattern(
        "date",
        re.compile(r"\{date:([^}]+)\}"),
        lambda m: DateStamp(timestamp_millis=parse_timestamp(m.group(1))),
    ),
    InlinePattern("status", re.compile(r"\{status:([^|}]+)(?:\|([^}]+))?\}"), _status),
    InlinePattern("card", re.compile(r"\{card:([^}]+)\}"), lambda m: InlineCard(url=m.group(1))),
    InlinePattern("emoji", re.compile(r":([a-z0-9_+-]+):"), lambda m: Emoji(short_name=f":{m.group(1)}:")),
    InlinePattern(
        "legacy_mention",
        re.compile(r"@\[([^\]]+)\]\(accountId:([^)]+)\)"),
        lambda m: Mention(id=m.group(2), display_text="@" + m.group(1)),
    ),
    InlinePattern(
        "link",
        re.compile(r'\[([^\]]+)\]\(([^)\s]+)(?:\s+"([^"]+)")?\)'),
        lambda m: Text(m.group(1), {Link(href=m.group(2), title=m.group(3))}),
    ),
    InlinePattern("bold", re.compile(r"\*\*([^*]+)\*\*|__([^_]+)__"), lambda m: Text(_either(m), {Strong()})),
    InlinePattern("italic", re.compile(r"\*([^*]+)\*|_([^_]+)_"), lambda m: Text(_either(m), {Em()})),
    InlinePattern("strike", re.compile(r"~~([^~]+)~~"), lambda m: Text(m.group(1), {Strike()})),
    InlinePattern("code", re.compile(r"`([^`]+)`"), lambda m: Text(m.group(1), {Code()})),
    InlinePattern(
        "text_color",
        re.compile(r"\{color:([^}]+)\}(.+?)\{color\}"),
        lambda m: Text(m.group(2), {TextColor(color=m.group(1))}),
    ),
    InlinePattern("underline", re.compile(r"<u>([^<]+)</u>"), lambda m: Text(m.group(1), {Underline()})),
    InlinePattern("subscript", re.compile(r"<sub>([^<]+)</sub>"), lambda m: Text(m.group(1), {Subsup(kind="sub")})),
    InlinePattern("superscript", re.compile(r"<sup>([^<]+)</sup>"), lambda m: Text(m.group(1), {Subsup(kind="sup")})),
    InlinePattern(
        "background_color",
        re.compile(r'<mark style="background:\s*([^";]+);?">([^<]+)</mark>'),
        lambda m: Text(m.group(2), {BackgroundColor(color=m.group(1).strip())}),
    ),
    InlinePattern(
        "escape",
        re.compile(r"\\([" + re.escape(dialect.UNESCAPE_CHARS) + r"])"),
        lambda m: Text(m.group(1)),
    ),
)


def parse_inline(text: str) -> List[InlineElement]:
    result: List[InlineElement] = []
    pos = 0
    while pos < len(text):
        best: re.Match | None = None
        best_pattern: InlinePattern | None = None
        for pattern in INLINE_PATTERNS:
            match = pattern.regex.search(text, pos)
            if match and (best is None or match.start() < best.start()):
                best, best_pattern = match, pattern
        if best is None:
            result.append(Text(text[pos:]))
            break
        if best.start() > pos:
            result.append(Text(text[pos : best.start()]))
        result.append(best_pattern.build(best))
        pos = best.end()
    return result
