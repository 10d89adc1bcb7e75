from __future__ import annotations

INDENT_WIDTH = 2
TAB_WIDTH = 2

MEDIA_REF_PREFIX = "jira-media:"
PENDING_ID_PREFIX = "__PENDING_UPLOAD_"
PENDING_ID_SUFFIX = "__"
RESOLVED_COLLECTION = "mediaServiceAttachments"

DEFAULT_PANEL_TYPE = "info"
DEFAULT_MEDIA_LAYOUT = "align-start"
DEFAULT_WIDTH_TYPE = "pixel"
DEFAULT_MEDIA_TYPE = "file"
DEFAULT_MEDIA_ALT = "attachment"
UNKNOWN_MENTION = "@unknown"

METADATA_COMMENT_PREFIX = "adf"
PARAGRAPH_META_KEYS = ("textAlign",)
HEADING_META_KEYS = ("id", "textAlign")

PANEL_TYPES = ("info", "note", "warning", "success", "error")

STATUS_COLORS = frozenset({"neutral", "purple", "blue", "green", "yellow", "red"})

# Backslash escapes written by the renderer and removed by the parser. The
# backtick is escaped but never unescaped so that code spans stay intact.
ESCAPE_CHARS = "\\`*_{}[]()#+-.!|"
UNESCAPE_CHARS = "\\*_{}[]()#+-.!|"


def pending_media_id(local_id: str) -> str:
    return f"{PENDING_ID_PREFIX}{local_id}{PENDING_ID_SUFFIX}"


def media_reference(media_id: str, collection: str | None, media_type: str) -> str:
    """Reserved image source carrying an existing attachment's identity."""
    return f"{MEDIA_REF_PREFIX}{media_id}:{collection or ''}:{media_type}"
