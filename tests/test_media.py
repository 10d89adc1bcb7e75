import textwrap

import pytest

from AdfMark import media
from AdfMark.markdown_parser import parse_markdown
from AdfMark.renderer_markdown import render_markdown

MD_TEXT = textwrap.dedent(
    """
    ![first](images/first.png)

    ~~~panel type=info
    ![known](jira-media:9:coll:file)
    ~~~

    ~~~mediaGroup
    ![second](https://x/second.png)
    ![third](jira-media:10:coll:file)
    ~~~
    """
)


def test_iter_media_walks_containers_in_order():
    doc = parse_markdown(MD_TEXT)
    assert [node.alt for node in media.iter_media(doc)] == ["first", "known", "second", "third"]


def test_pending_media_lists_only_placeholders():
    doc = parse_markdown(MD_TEXT)
    pending = media.pending_media(doc)
    assert [node.pending_source for node in pending] == ["images/first.png", "https://x/second.png"]
    assert all(media.is_pending(node) for node in pending)


def test_resolve_media_clears_placeholder():
    doc = parse_markdown(MD_TEXT)
    with pytest.raises(media.PendingMediaError) as excinfo:
        media.ensure_resolved(doc)
    assert len(excinfo.value.nodes) == 2

    for number, node in enumerate(media.pending_media(doc)):
        media.resolve_media(node, f"uploaded-{number}")
    media.ensure_resolved(doc)

    rendered = render_markdown(doc)
    assert "![first](jira-media:uploaded-0:mediaServiceAttachments:file)" in rendered
    assert "images/first.png" not in rendered


def test_resolve_media_requires_id():
    node = parse_markdown("![a](a.png)").blocks[0].media
    with pytest.raises(ValueError):
        media.resolve_media(node, "")
    assert media.is_pending(node)
