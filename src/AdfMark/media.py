"""Bookkeeping for media that still has to be uploaded.

Parsing turns every image that is not a ``jira-media:`` reference into a
placeholder ``MediaNode``. An upload step outside this package fetches
``pending_source``, uploads it and calls :func:`resolve_media` with the real
identifier. Nothing holding a placeholder may be sent to the host platform.
"""

from __future__ import annotations

from typing import Iterable, Iterator, List

from . import dialect
from .model import (
    Block,
    Blockquote,
    BulletList,
    Document,
    Expand,
    MediaGroup,
    MediaNode,
    MediaSingle,
    OrderedList,
    Panel,
    Table,
)


class PendingMediaError(ValueError):
    """Raised when placeholder media would leave the converter unresolved."""

    def __init__(self, nodes: List[MediaNode]):
        self.nodes = nodes
        sources = ", ".join(node.pending_source or node.id for node in nodes)
        super().__init__(f"{len(nodes)} media item(s) not uploaded yet: {sources}")


def iter_media(doc: Document) -> Iterator[MediaNode]:
    """Yield every media node in document order."""
    yield from _iter_block_media(doc.blocks)


def _iter_block_media(blocks: Iterable[Block]) -> Iterator[MediaNode]:
    for block in blocks:
        if isinstance(block, MediaSingle):
            yield block.media
        elif isinstance(block, MediaGroup):
            yield from block.items
        elif isinstance(block, (BulletList, OrderedList)):
            for item in block.items:
                yield from _iter_block_media(item.blocks)
        elif isinstance(block, (Blockquote, Panel, Expand)):
            yield from _iter_block_media(block.blocks)
        elif isinstance(block, Table):
            for row in block.rows:
                for cell in row.cells:
                    yield from _iter_block_media(cell.blocks)


def is_pending(node: MediaNode) -> bool:
    return node.pending_source is not None or node.id.startswith(dialect.PENDING_ID_PREFIX)


def pending_media(doc: Document) -> List[MediaNode]:
    return [node for node in iter_media(doc) if is_pending(node)]


def resolve_media(node: MediaNode, media_id: str, collection: str = dialect.RESOLVED_COLLECTION) -> MediaNode:
    if not media_id:
        raise ValueError("media_id must not be empty")
    node.id = media_id
    node.collection = collection
    node.pending_source = None
    return node


def ensure_resolved(doc: Document) -> None:
    pending = pending_media(doc)
    if pending:
        raise PendingMediaError(pending)
