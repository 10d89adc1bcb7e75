import json
import textwrap
from pathlib import Path

import pytest

from AdfMark import adf_codec
from AdfMark.markdown_parser import parse_markdown
from AdfMark.media import PendingMediaError
from AdfMark.model import (
    Code,
    CodeBlock,
    Document,
    Em,
    Expand,
    Heading,
    OrderedList,
    Paragraph,
    Strong,
    TaskList,
    Text,
)
from AdfMark.renderer_markdown import render_markdown


def test_document_to_adf_basic_nodes():
    payload = adf_codec.document_to_adf(parse_markdown("# Hi\n\nText **b**"))
    assert payload["type"] == "doc"
    assert payload["version"] == 1
    heading, paragraph = payload["content"]
    assert heading == {"type": "heading", "attrs": {"level": 1}, "content": [{"type": "text", "text": "Hi"}]}
    assert paragraph["content"] == [
        {"type": "text", "text": "Text "},
        {"type": "text", "text": "b", "marks": [{"type": "strong"}]},
    ]


def test_marks_follow_composition_order():
    doc = Document(blocks=[Paragraph(inline=[Text("x", {Strong(), Code(), Em()})])])
    node = adf_codec.document_to_adf(doc)["content"][0]["content"][0]
    assert [mark["type"] for mark in node["marks"]] == ["code", "em", "strong"]


def test_ordered_list_order_and_empty_code_block():
    doc = Document(blocks=[OrderedList(start_order=5), CodeBlock(language="sh")])
    ordered, code = adf_codec.document_to_adf(doc)["content"]
    assert ordered["attrs"] == {"order": 5}
    assert code == {"type": "codeBlock", "attrs": {"language": "sh"}, "content": []}


def test_task_list_carries_local_ids():
    doc = parse_markdown("- [x] shipped")
    task_list = adf_codec.document_to_adf(doc)["content"][0]
    item = task_list["content"][0]
    assert task_list["attrs"]["localId"] == doc.blocks[0].local_id
    assert item["attrs"] == {"localId": doc.blocks[0].items[0].local_id, "state": "DONE"}


def test_pending_media_is_refused():
    doc = parse_markdown("![cat](https://x/cat.png)")
    with pytest.raises(PendingMediaError) as excinfo:
        adf_codec.document_to_adf(doc)
    assert "https://x/cat.png" in str(excinfo.value)

    media = adf_codec.document_to_adf(doc, allow_pending=True)["content"][0]["content"][0]
    assert media["attrs"]["_source"] == "https://x/cat.png"
    assert media["attrs"]["id"].startswith("__PENDING_UPLOAD_")


def test_non_mapping_root_is_rejected():
    with pytest.raises(ValueError):
        adf_codec.document_from_adf(["not", "a", "doc"])


def test_document_from_adf_tolerates_odd_nodes():
    data = {
        "type": "doc",
        "version": 1,
        "content": [
            {"type": "heading", "attrs": {"level": 9}, "content": [{"type": "text", "text": "Deep"}]},
            {"type": "nestedExpand", "attrs": {"title": "T"}, "content": []},
            {"type": "layoutSection", "content": [{"type": "paragraph", "content": [{"type": "text", "text": "in"}]}]},
            {"type": "decisionItem", "content": [{"type": "text", "text": "decided"}]},
            {
                "type": "taskList",
                "attrs": {"localId": "list-1"},
                "content": [
                    {"type": "taskItem", "attrs": {"localId": "a", "state": "TODO"}, "content": []},
                    {"type": "taskList", "content": [{"type": "taskItem", "attrs": {"state": "DONE"}}]},
                ],
            },
            {"type": "paragraph", "content": [{"type": "placeholder", "attrs": {"text": "fill"}}, {"type": "extension"}]},
        ],
    }
    blocks = adf_codec.document_from_adf(data).blocks
    assert isinstance(blocks[0], Heading) and blocks[0].level == 6
    assert isinstance(blocks[1], Expand) and blocks[1].title == "T"
    assert blocks[2].inline == [Text("in")]
    assert blocks[3].inline == [Text("decided")]
    assert isinstance(blocks[4], TaskList)
    assert blocks[4].local_id == "list-1"
    assert [item.state for item in blocks[4].items] == ["TODO", "DONE"]
    assert blocks[5].inline == [Text("fill")]


def test_wire_round_trip_preserves_markdown():
    md_text = textwrap.dedent(
        """
        ## Notes

        Mixed *em* and [`code link`](https://example.com) with {status:Blocked|color=red}.

        3. three
        4. four

        ~~~mediaSingle layout=center width=250 widthType=pixel
        ![diagram](jira-media:123:coll:file)
        ~~~
        """
    )
    doc = parse_markdown(md_text)
    restored = adf_codec.document_from_adf(json.loads(json.dumps(adf_codec.document_to_adf(doc))))
    assert render_markdown(restored) == render_markdown(doc)


def test_load_adf_file_reads_yaml(tmp_path: Path):
    source = tmp_path / "doc.yaml"
    source.write_text(
        textwrap.dedent(
            """
            type: doc
            version: 1
            content:
              - type: paragraph
                content:
                  - type: text
                    text: from yaml
            """
        ),
        encoding="utf-8",
    )
    doc = adf_codec.load_adf_file(source)
    assert doc.blocks[0].inline == [Text("from yaml")]


def test_dump_adf_yaml_keeps_key_order():
    dumped = adf_codec.dump_adf({"type": "doc", "version": 1, "content": []}, as_yaml=True)
    assert dumped.splitlines()[0] == "type: doc"
