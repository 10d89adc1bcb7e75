from AdfMark.model import (
    Code,
    DateStamp,
    Document,
    Em,
    Emoji,
    Heading,
    Link,
    ListItem,
    MediaNode,
    MediaSingle,
    Mention,
    OrderedList,
    Panel,
    Paragraph,
    Strong,
    Subsup,
    Table,
    TableCell,
    TableRow,
    TaskItem,
    TaskList,
    Text,
    TextColor,
)
from AdfMark.renderer_markdown import render_markdown


def _paragraph(*inline):
    return Paragraph(inline=list(inline))


def _render_inline(*inline) -> str:
    return render_markdown(Document(blocks=[_paragraph(*inline)]))


def test_strong_and_em_nest_as_triple_star():
    assert _render_inline(Text("text", {Strong(), Em()})) == "***text***"


def test_code_inside_link():
    assert _render_inline(Text("x", {Code(), Link(href="http://a")})) == "[`x`](http://a)"


def test_colour_and_subscript_wrappers():
    assert _render_inline(Text("hi", {TextColor(color="red")})) == "{color:red}hi{color}"
    assert _render_inline(Text("2", {Subsup(kind="sub")})) == "<sub>2</sub>"


def test_inline_nodes():
    rendered = _render_inline(
        Mention(id="42", display_text="@Ann"),
        Text(" "),
        Emoji(short_name="smile"),
        Text(" "),
        DateStamp(timestamp_millis="1704067200000"),
    )
    assert rendered == "@[Ann](accountId:42) :smile: {date:2024-01-01}"


def test_mention_without_id_or_text():
    assert _render_inline(Mention()) == "@unknown"


def test_heading_with_metadata_comment():
    doc = Document(blocks=[Heading(level=2, inline=[Text("Intro")], attrs={"id": "intro"})])
    assert render_markdown(doc) == '<!-- adf:heading id="intro" -->\n## Intro'


def test_empty_paragraph_is_dropped():
    doc = Document(blocks=[Paragraph(), _paragraph(Text("kept"))])
    assert render_markdown(doc) == "kept"


def test_ordered_and_task_lists():
    doc = Document(
        blocks=[
            OrderedList(items=[ListItem([_paragraph(Text("a"))]), ListItem([_paragraph(Text("b"))])], start_order=3),
            TaskList(items=[TaskItem(state="DONE", inline=[Text("done")]), TaskItem(inline=[Text("todo")])]),
        ]
    )
    assert render_markdown(doc) == "3. a\n4. b\n\n- [x] done\n- [ ] todo"


def test_table_separator_follows_header_row():
    doc = Document(
        blocks=[
            Table(
                rows=[
                    TableRow(cells=[TableCell(True, [_paragraph(Text("A"))]), TableCell(True, [_paragraph(Text("B"))])]),
                    TableRow(cells=[TableCell(False, [_paragraph(Text("1|2"))])]),
                ]
            )
        ]
    )
    assert render_markdown(doc) == "| A | B |\n| --- | --- |\n| 1\\|2 |  |"


def test_panel_fence():
    doc = Document(blocks=[Panel(panel_type="warning", blocks=[_paragraph(Text("Careful"))])])
    assert render_markdown(doc) == "~~~panel type=warning\nCareful\n~~~"


def test_media_rendering():
    resolved = MediaSingle(media=MediaNode(id="abc", collection="coll"), width=320.0, width_type="pixel")
    pending = MediaSingle(media=MediaNode(id="__PENDING_UPLOAD_x__", alt="cat", pending_source="cat.png"))
    doc = Document(blocks=[resolved, pending])
    assert render_markdown(doc) == (
        "~~~mediaSingle layout=align-start width=320 widthType=pixel\n"
        "![attachment](jira-media:abc:coll:file)\n"
        "~~~\n\n"
        "~~~mediaSingle layout=align-start\n"
        "![cat](cat.png)\n"
        "~~~"
    )


def test_escape_text_option():
    doc = Document(blocks=[_paragraph(Text("a*b"), Text("c_d", {Strong()}))])
    assert render_markdown(doc) == "a*b**c_d**"
    assert render_markdown(doc, escape_text=True) == "a\\*b**c_d**"
