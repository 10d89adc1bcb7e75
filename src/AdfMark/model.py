from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from .utils import generate_local_id


@dataclass
class Block:
    """Base class for block-level nodes."""


@dataclass
class Document:
    blocks: List[Block] = field(default_factory=list)
    version: int = 1
    kind: str = "document"


@dataclass
class Paragraph(Block):
    inline: List["InlineElement"] = field(default_factory=list)
    attrs: dict[str, str] = field(default_factory=dict)


@dataclass
class Heading(Block):
    level: int
    inline: List["InlineElement"] = field(default_factory=list)
    attrs: dict[str, str] = field(default_factory=dict)


@dataclass
class ListItem:
    blocks: List[Block] = field(default_factory=list)


@dataclass
class BulletList(Block):
    items: List[ListItem] = field(default_factory=list)


@dataclass
class OrderedList(Block):
    items: List[ListItem] = field(default_factory=list)
    start_order: int = 1


@dataclass
class TaskItem:
    state: str = "TODO"
    inline: List["InlineElement"] = field(default_factory=list)
    local_id: str = field(default_factory=generate_local_id, compare=False)

    @property
    def done(self) -> bool:
        return self.state == "DONE"


@dataclass
class TaskList(Block):
    items: List[TaskItem] = field(default_factory=list)
    local_id: str = field(default_factory=generate_local_id, compare=False)


@dataclass
class CodeBlock(Block):
    language: str = ""
    text: str = ""


@dataclass
class Blockquote(Block):
    blocks: List[Block] = field(default_factory=list)


@dataclass
class Rule(Block):
    """Horizontal rule / thematic break."""


@dataclass
class Panel(Block):
    panel_type: str = "info"
    blocks: List[Block] = field(default_factory=list)


@dataclass
class Expand(Block):
    title: str = ""
    blocks: List[Block] = field(default_factory=list)


@dataclass
class TableCell:
    is_header: bool = False
    blocks: List[Block] = field(default_factory=list)


@dataclass
class TableRow:
    cells: List[TableCell] = field(default_factory=list)


@dataclass
class Table(Block):
    rows: List[TableRow] = field(default_factory=list)


@dataclass
class MediaNode:
    id: str = ""
    media_type: str = "file"
    alt: str = ""
    collection: str | None = None
    # Set only while the media still has to be uploaded; ``id`` is then a placeholder.
    pending_source: str | None = None


@dataclass
class MediaSingle(Block):
    media: MediaNode = field(default_factory=MediaNode)
    layout: str = "align-start"
    width: float | None = None
    width_type: str | None = None


@dataclass
class MediaGroup(Block):
    items: List[MediaNode] = field(default_factory=list)


@dataclass
class InlineElement:
    """Base class for inline nodes."""


@dataclass(frozen=True)
class Mark:
    """Base class for text formatting marks."""


@dataclass(frozen=True)
class Strong(Mark):
    pass


@dataclass(frozen=True)
class Em(Mark):
    pass


@dataclass(frozen=True)
class Code(Mark):
    pass


@dataclass(frozen=True)
class Strike(Mark):
    pass


@dataclass(frozen=True)
class Underline(Mark):
    pass


@dataclass(frozen=True)
class Link(Mark):
    href: str
    title: str | None = None


@dataclass(frozen=True)
class TextColor(Mark):
    color: str


@dataclass(frozen=True)
class BackgroundColor(Mark):
    color: str


@dataclass(frozen=True)
class Subsup(Mark):
    kind: str  # "sub" or "sup"


@dataclass
class Text(InlineElement):
    text: str
    marks: set[Mark] = field(default_factory=set)

    def has_mark(self, mark_type: type[Mark]) -> bool:
        return any(isinstance(mark, mark_type) for mark in self.marks)


@dataclass
class HardBreak(InlineElement):
    """Forced line break inside a paragraph."""


@dataclass
class Emoji(InlineElement):
    short_name: str | None = None
    text: str | None = None


@dataclass
class Mention(InlineElement):
    id: str = ""
    display_text: str = ""


@dataclass
class Status(InlineElement):
    text: str
    color: str | None = None
    local_id: str = field(default_factory=generate_local_id, compare=False)


@dataclass
class DateStamp(InlineElement):
    timestamp_millis: str


@dataclass
class InlineCard(InlineElement):
    url: str
