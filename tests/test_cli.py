import json
from pathlib import Path

import pytest
import yaml

from AdfMark import cli


def test_to_adf_writes_json(tmp_path: Path):
    source = tmp_path / "page.md"
    source.write_text("# Title\n\n- item\n", encoding="utf-8")

    assert cli.main(["to-adf", str(source)]) == 0
    payload = json.loads((tmp_path / "page.json").read_text(encoding="utf-8"))
    assert [node["type"] for node in payload["content"]] == ["heading", "bulletList"]


def test_to_adf_writes_yaml_when_asked(tmp_path: Path):
    source = tmp_path / "page.md"
    source.write_text("Hello", encoding="utf-8")
    target = tmp_path / "out" / "page.yaml"

    assert cli.main(["to-adf", str(source), "-o", str(target)]) == 0
    payload = yaml.safe_load(target.read_text(encoding="utf-8"))
    assert payload["content"][0]["content"][0]["text"] == "Hello"


def test_to_adf_refuses_pending_media(tmp_path: Path):
    source = tmp_path / "page.md"
    source.write_text("![cat](cat.png)", encoding="utf-8")

    assert cli.main(["to-adf", str(source)]) == 1
    assert not (tmp_path / "page.json").exists()
    assert cli.main(["to-adf", str(source), "--allow-pending"]) == 0


def test_to_md_prints_to_stdout(tmp_path: Path, capsys):
    source = tmp_path / "doc.json"
    source.write_text(
        json.dumps(
            {
                "type": "doc",
                "version": 1,
                "content": [{"type": "paragraph", "content": [{"type": "text", "text": "a*b"}]}],
            }
        ),
        encoding="utf-8",
    )

    assert cli.main(["to-md", str(source), "-o", "-", "--escape"]) == 0
    assert capsys.readouterr().out == "a\\*b\n"


def test_pending_lists_sources(tmp_path: Path, capsys):
    source = tmp_path / "page.md"
    source.write_text("![a](a.png)\n\n![b](jira-media:1:c:file)\n\n![c](https://x/c.png)\n", encoding="utf-8")

    assert cli.main(["pending", str(source)]) == 0
    assert capsys.readouterr().out.splitlines() == ["a.png", "https://x/c.png"]


def test_normalize_prints_by_default(tmp_path: Path, capsys):
    source = tmp_path / "page.md"
    original = "* one\n* two\n"
    source.write_text(original, encoding="utf-8")

    assert cli.main(["normalize", str(source)]) == 0
    assert capsys.readouterr().out == "- one\n- two\n"
    assert source.read_text(encoding="utf-8") == original


def test_normalize_rewrites_markdown(tmp_path: Path):
    source = tmp_path / "messy.md"
    source.write_text("#  Title  \n\n\n\n* one\n* two\n", encoding="utf-8")
    target = tmp_path / "clean.md"

    assert cli.main(["normalize", str(source), "-o", str(target)]) == 0
    assert target.read_text(encoding="utf-8") == "# Title\n\n- one\n- two\n"


def test_missing_input_raises(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        cli.main(["normalize", str(tmp_path / "absent.md")])
