from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, List

import yaml

from . import dialect
from .media import ensure_resolved
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
    TableRow,
    TaskItem,
    TaskList,
    Text,
    TextColor,
    Underline,
)
from .utils import generate_local_id

YAML_SUFFIXES = {".yaml", ".yml"}

# Marks are written in the same order the markdown renderer nests them.
MARK_ORDER = (Code, Link, Em, Strong, Strike, Underline, TextColor, BackgroundColor, Subsup)

SIMPLE_MARKS = {
    "strong": Strong,
    "em": Em,
    "code": Code,
    "strike": Strike,
    "underline": Underline,
}

INLINE_TYPES = {"text", "hardBreak", "emoji", "mention", "status", "date", "inlineCard"}


def load_adf_file(path: Path) -> Document:
    """Read a wire document stored as JSON or YAML."""
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in YAML_SUFFIXES:
        data = yaml.safe_load(text)
    else:
        data = json.loads(text)
    return document_from_adf(data)


def dump_adf(payload: dict[str, Any], as_yaml: bool = False, indent: int = 2) -> str:
    if as_yaml:
        return yaml.safe_dump(payload, sort_keys=False, allow_unicode=True)
    return json.dumps(payload, ensure_ascii=False, indent=indent)


def document_to_adf(doc: Document, allow_pending: bool = False) -> dict[str, Any]:
    """Serialise a document to the host platform's JSON structure.

    Placeholder media make this raise ``PendingMediaError`` unless
    ``allow_pending`` is set, in which case each placeholder carries its
    source under the private ``_source`` attribute.
    """
    if not allow_pending:
        ensure_resolved(doc)
    return {
        "type": "doc",
        "version": doc.version,
        "content": [node for node in (_block_to_adf(block) for block in doc.blocks) if node],
    }


def _block_to_adf(block: Block) -> dict[str, Any] | None:
    if isinstance(block, Paragraph):
        node = {"type": "paragraph", "content": _inline_to_adf(block.inline)}
        if block.attrs:
            node["attrs"] = dict(block.attrs)
        return node
    elif isinstance(block, Heading):
        return {
            "type": "heading",
            "attrs": {"level": min(max(block.level, 1), 6), **block.attrs},
            "content": _inline_to_adf(block.inline),
        }
    elif isinstance(block, BulletList):
        return {"type": "bulletList", "content": [_list_item_to_adf(item) for item in block.items]}
    elif isinstance(block, OrderedList):
        node = {"type": "orderedList", "content": [_list_item_to_adf(item) for item in block.items]}
        if block.start_order != 1:
            node["attrs"] = {"order": block.start_order}
        return node
    elif isinstance(block, TaskList):
        return {
            "type": "taskList",
            "attrs": {"localId": block.local_id},
            "content": [
                {
                    "type": "taskItem",
                    "attrs": {"localId": item.local_id, "state": item.state},
                    "content": _inline_to_adf(item.inline),
                }
                for item in block.items
            ],
        }
    elif isinstance(block, CodeBlock):
        node = {"type": "codeBlock", "attrs": {"language": block.language}}
        # Empty text nodes are rejected by the platform.
        node["content"] = [{"type": "text", "text": block.text}] if block.text else []
        return node
    elif isinstance(block, Blockquote):
        return {"type": "blockquote", "content": _blocks_to_adf(block.blocks)}
    elif isinstance(block, Rule):
        return {"type": "rule"}
    elif isinstance(block, Panel):
        return {
            "type": "panel",
            "attrs": {"panelType": block.panel_type or dialect.DEFAULT_PANEL_TYPE},
            "content": _blocks_to_adf(block.blocks),
        }
    elif isinstance(block, Expand):
        return {"type": "expand", "attrs": {"title": block.title}, "content": _blocks_to_adf(block.blocks)}
    elif isinstance(block, Table):
        return {
            "type": "table",
            "attrs": {"isNumberColumnEnabled": False, "layout": "default"},
            "content": [_table_row_to_adf(row) for row in block.rows],
        }
    elif isinstance(block, MediaSingle):
        attrs: dict[str, Any] = {"layout": block.layout or dialect.DEFAULT_MEDIA_LAYOUT}
        if block.width:
            attrs["width"] = block.width
            attrs["widthType"] = block.width_type or dialect.DEFAULT_WIDTH_TYPE
        return {"type": "mediaSingle", "attrs": attrs, "content": [_media_to_adf(block.media)]}
    elif isinstance(block, MediaGroup):
        return {"type": "mediaGroup", "content": [_media_to_adf(media) for media in block.items]}
    logging.debug("No wire form for %s, skipped", type(block).__name__)
    return None


def _blocks_to_adf(blocks: List[Block]) -> list[dict[str, Any]]:
    return [node for node in (_block_to_adf(block) for block in blocks) if node]


def _list_item_to_adf(item: ListItem) -> dict[str, Any]:
    return {"type": "listItem", "content": _blocks_to_adf(item.blocks)}


def _table_row_to_adf(row: TableRow) -> dict[str, Any]:
    return {
        "type": "tableRow",
        "content": [
            {
                "type": "tableHeader" if cell.is_header else "tableCell",
                "attrs": {},
                "content": _blocks_to_adf(cell.blocks),
            }
            for cell in row.cells
        ],
    }


def _media_to_adf(media: MediaNode) -> dict[str, Any]:
    attrs: dict[str, Any] = {"id": media.id, "type": media.media_type}
    if media.collection:
        attrs["collection"] = media.collection
    if media.alt:
        attrs["alt"] = media.alt
    if media.pending_source:
        attrs["_source"] = media.pending_source
    return {"type": "media", "attrs": attrs}


def _inline_to_adf(elements: List[InlineElement]) -> list[dict[str, Any]]:
    return [node for node in (_inline_element_to_adf(element) for element in elements) if node]


def _inline_element_to_adf(element: InlineElement) -> dict[str, Any] | None:
    if isinstance(element, Text):
        if not element.text:
            return None
        node: dict[str, Any] = {"type": "text", "text": element.text}
        if element.marks:
            node["marks"] = [_mark_to_adf(mark) for mark in _ordered_marks(element.marks)]
        return node
    elif isinstance(element, HardBreak):
        return {"type": "hardBreak"}
    elif isinstance(element, Emoji):
        attrs = {}
        if element.short_name:
            attrs["shortName"] = element.short_name
        if element.text:
            attrs["text"] = element.text
        return {"type": "emoji", "attrs": attrs}
    elif isinstance(element, Mention):
        return {"type": "mention", "attrs": {"id": element.id, "text": element.display_text}}
    elif isinstance(element, Status):
        attrs = {"text": element.text, "localId": element.local_id}
        if element.color:
            attrs["color"] = element.color
        return {"type": "status", "attrs": attrs}
    elif isinstance(element, DateStamp):
        return {"type": "date", "attrs": {"timestamp": element.timestamp_millis}}
    elif isinstance(element, InlineCard):
        return {"type": "inlineCard", "attrs": {"url": element.url}}
    logging.debug("No wire form for %s, skipped", type(element).__name__)
    return None


def _ordered_marks(marks) -> list[Mark]:
    return sorted(marks, key=lambda mark: MARK_ORDER.index(type(mark)) if type(mark) in MARK_ORDER else len(MARK_ORDER))


def _mark_to_adf(mark: Mark) -> dict[str, Any]:
    if isinstance(mark, Link):
        attrs = {"href": mark.href}
        if mark.title:
            attrs["title"] = mark.title
        return {"type": "link", "attrs": attrs}
    if isinstance(mark, TextColor):
        return {"type": "textColor", "attrs": {"color": mark.color}}
    if isinstance(mark, BackgroundColor):
        return {"type": "backgroundColor", "attrs": {"color": mark.color}}
    if isinstance(mark, Subsup):
        return {"type": "subsup", "attrs": {"type": mark.kind}}
    for name, mark_type in SIMPLE_MARKS.items():
        if isinstance(mark, mark_type):
            return {"type": name}
    raise TypeError(f"Unsupported mark: {mark!r}")


def document_from_adf(data: Any) -> Document:
    """Build a Document from the host platform's JSON structure.

    Only the root is validated; anything unexpected below it is skipped or
    flattened.
    """
    if not isinstance(data, dict):
        raise ValueError("ADF root must be a mapping with a content list.")
    version = data.get("version", 1)
    return Document(
        blocks=_blocks_from_adf(data.get("content")),
        version=version if isinstance(version, int) else 1,
    )


def _nodes(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [node for node in value if isinstance(node, dict)]


def _attrs(node: dict[str, Any]) -> dict[str, Any]:
    attrs = node.get("attrs")
    return attrs if isinstance(attrs, dict) else {}


def _str_attr(attrs: dict[str, Any], key: str, default: str = "") -> str:
    value = attrs.get(key)
    if value is None:
        return default
    return str(value)


def _blocks_from_adf(content: Any) -> List[Block]:
    blocks: List[Block] = []
    for node in _nodes(content):
        block = _block_from_adf(node)
        if isinstance(block, list):
            blocks.extend(block)
        elif block is not None:
            blocks.append(block)
    return blocks


def _block_from_adf(node: dict[str, Any]) -> Block | List[Block] | None:
    node_type = node.get("type")
    attrs = _attrs(node)
    content = node.get("content")

    if node_type == "paragraph":
        return Paragraph(inline=_inline_from_adf(content), attrs=_string_attrs(attrs))
    elif node_type == "heading":
        extra = _string_attrs({k: v for k, v in attrs.items() if k != "level"})
        return Heading(level=_heading_level(attrs.get("level")), inline=_inline_from_adf(content), attrs=extra)
    elif node_type == "bulletList":
        return BulletList(items=_list_items_from_adf(content))
    elif node_type == "orderedList":
        order = attrs.get("order", 1)
        return OrderedList(items=_list_items_from_adf(content), start_order=order if isinstance(order, int) else 1)
    elif node_type == "taskList":
        return TaskList(items=_task_items_from_adf(content), local_id=_str_attr(attrs, "localId") or generate_local_id())
    elif node_type == "codeBlock":
        text = "".join(_str_attr(child, "text") for child in _nodes(content))
        return CodeBlock(language=_str_attr(attrs, "language"), text=text)
    elif node_type == "blockquote":
        return Blockquote(blocks=_blocks_from_adf(content))
    elif node_type == "rule":
        return Rule()
    elif node_type == "panel":
        return Panel(panel_type=_str_attr(attrs, "panelType", dialect.DEFAULT_PANEL_TYPE), blocks=_blocks_from_adf(content))
    elif node_type in ("expand", "nestedExpand"):
        return Expand(title=_str_attr(attrs, "title"), blocks=_blocks_from_adf(content))
    elif node_type == "table":
        return Table(rows=[_table_row_from_adf(row) for row in _nodes(content) if row.get("type") == "tableRow"])
    elif node_type == "mediaSingle":
        return _media_single_from_adf(attrs, content)
    elif node_type == "mediaGroup":
        return MediaGroup(items=[_media_from_adf(child) for child in _nodes(content) if child.get("type") == "media"])

    children = _nodes(content)
    logging.debug("Unknown wire block %r flattened", node_type)
    if any(child.get("type") in INLINE_TYPES for child in children):
        return Paragraph(inline=_inline_from_adf(children))
    return _blocks_from_adf(children)


def _string_attrs(attrs: dict[str, Any]) -> dict[str, str]:
    return {key: str(value) for key, value in attrs.items() if isinstance(value, (str, int, float)) and value != ""}


def _heading_level(value: Any) -> int:
    try:
        level = int(value)
    except (TypeError, ValueError):
        return 1
    return min(max(level, 1), 6)


def _list_items_from_adf(content: Any) -> list[ListItem]:
    items: list[ListItem] = []
    for child in _nodes(content):
        if child.get("type") == "listItem":
            items.append(ListItem(blocks=_blocks_from_adf(child.get("content"))))
    return items


def _task_items_from_adf(content: Any) -> list[TaskItem]:
    items: list[TaskItem] = []
    for child in _nodes(content):
        child_type = child.get("type")
        if child_type == "taskItem":
            attrs = _attrs(child)
            item = TaskItem(state="DONE" if attrs.get("state") == "DONE" else "TODO", inline=_inline_from_adf(child.get("content")))
            if attrs.get("localId"):
                item.local_id = str(attrs["localId"])
            items.append(item)
        elif child_type == "taskList":
            # Nested task lists have no markdown form; their items are lifted.
            items.extend(_task_items_from_adf(child.get("content")))
    return items


def _table_row_from_adf(row: dict[str, Any]) -> TableRow:
    cells = []
    for cell in _nodes(row.get("content")):
        cell_type = cell.get("type")
        if cell_type in ("tableHeader", "tableCell"):
            cells.append(TableCell(is_header=cell_type == "tableHeader", blocks=_blocks_from_adf(cell.get("content"))))
    return TableRow(cells=cells)


def _media_single_from_adf(attrs: dict[str, Any], content: Any) -> MediaSingle:
    block = MediaSingle(layout=_str_attr(attrs, "layout", dialect.DEFAULT_MEDIA_LAYOUT))
    width = attrs.get("width")
    if isinstance(width, (int, float)) and not isinstance(width, bool) and width > 0:
        block.width = float(width)
        block.width_type = _str_attr(attrs, "widthType", dialect.DEFAULT_WIDTH_TYPE)
    media = [child for child in _nodes(content) if child.get("type") == "media"]
    if media:
        block.media = _media_from_adf(media[0])
    return block


def _media_from_adf(node: dict[str, Any]) -> MediaNode:
    attrs = _attrs(node)
    return MediaNode(
        id=_str_attr(attrs, "id"),
        media_type=_str_attr(attrs, "type", dialect.DEFAULT_MEDIA_TYPE),
        alt=_str_attr(attrs, "alt"),
        collection=_str_attr(attrs, "collection") or None,
        pending_source=_str_attr(attrs, "_source") or None,
    )


def _inline_from_adf(content: Any) -> List[InlineElement]:
    elements: List[InlineElement] = []
    for node in _nodes(content):
        element = _inline_element_from_adf(node)
        if element is not None:
            elements.append(element)
    return elements


def _inline_element_from_adf(node: dict[str, Any]) -> InlineElement | None:
    node_type = node.get("type")
    attrs = _attrs(node)
    if node_type == "text":
        return Text(_str_attr(node, "text"), _marks_from_adf(node.get("marks")))
    elif node_type == "hardBreak":
        return HardBreak()
    elif node_type == "emoji":
        return Emoji(short_name=_str_attr(attrs, "shortName") or None, text=_str_attr(attrs, "text") or None)
    elif node_type == "mention":
        return Mention(id=_str_attr(attrs, "id"), display_text=_str_attr(attrs, "text"))
    elif node_type == "status":
        status = Status(text=_str_attr(attrs, "text"), color=_str_attr(attrs, "color") or None)
        if attrs.get("localId"):
            status.local_id = str(attrs["localId"])
        return status
    elif node_type == "date":
        return DateStamp(timestamp_millis=_str_attr(attrs, "timestamp"))
    elif node_type == "inlineCard":
        return InlineCard(url=_str_attr(attrs, "url"))

    fallback = node.get("text") or attrs.get("text")
    if isinstance(fallback, str) and fallback:
        logging.debug("Unknown wire inline %r kept as text", node_type)
        return Text(fallback)
    logging.debug("Unknown wire inline %r skipped", node_type)
    return None


def _marks_from_adf(value: Any) -> set[Mark]:
    marks: set[Mark] = set()
    for mark in _nodes(value):
        mark_type = mark.get("type")
        attrs = _attrs(mark)
        if mark_type in SIMPLE_MARKS:
            marks.add(SIMPLE_MARKS[mark_type]())
        elif mark_type == "link":
            marks.add(Link(href=_str_attr(attrs, "href"), title=_str_attr(attrs, "title") or None))
        elif mark_type == "textColor":
            marks.add(TextColor(color=_str_attr(attrs, "color")))
        elif mark_type == "backgroundColor":
            marks.add(BackgroundColor(color=_str_attr(attrs, "color")))
        elif mark_type == "subsup":
            marks.add(Subsup(kind=_str_attr(attrs, "type", "sub")))
    return marks
