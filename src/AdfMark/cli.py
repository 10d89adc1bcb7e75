from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from . import adf_codec, markdown_parser, media, renderer_markdown
from .utils import configure_logging, read_text, resolve_output_path, write_text


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="adfmark",
        description="Convert between extended Markdown and the ADF document format.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    to_adf = commands.add_parser("to-adf", help="Convert Markdown to ADF JSON")
    to_adf.add_argument("input", type=str, help="Path to Markdown file")
    to_adf.add_argument("-o", "--output", type=str, help="Output JSON/YAML path, '-' for stdout")
    to_adf.add_argument("--allow-pending", action="store_true", help="Keep media that is not uploaded yet")
    to_adf.add_argument("--indent", type=int, default=2, help="JSON indentation")

    to_md = commands.add_parser("to-md", help="Convert ADF JSON/YAML to Markdown")
    to_md.add_argument("input", type=str, help="Path to .json, .yaml or .yml file")
    to_md.add_argument("-o", "--output", type=str, help="Output Markdown path, '-' for stdout")
    to_md.add_argument("--escape", action="store_true", help="Backslash-escape plain text")

    pending = commands.add_parser("pending", help="List media sources that need uploading")
    pending.add_argument("input", type=str, help="Path to Markdown file")

    normalize = commands.add_parser("normalize", help="Rewrite Markdown in canonical form")
    normalize.add_argument("input", type=str, help="Path to Markdown file")
    normalize.add_argument("-o", "--output", type=str, default="-", help="Output Markdown path (default: stdout)")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(verbose=args.verbose)
    input_path = Path(args.input).expanduser()
    if not input_path.exists():
        raise FileNotFoundError(f"Input file not found: {input_path}")

    handlers = {
        "to-adf": _to_adf,
        "to-md": _to_md,
        "pending": _pending,
        "normalize": _normalize,
    }
    try:
        handlers[args.command](args, input_path)
    except ValueError as exc:
        # PendingMediaError included.
        logging.error("%s", exc)
        return 1
    return 0


def _read_markdown(input_path: Path) -> str:
    logging.info("Reading %s", input_path)
    markdown_text = read_text(input_path)
    logging.debug("Markdown length: %d chars", len(markdown_text))
    return markdown_text


def _to_adf(args: argparse.Namespace, input_path: Path) -> None:
    output_path = resolve_output_path(input_path, args.output, ".json")
    document = markdown_parser.parse_markdown(_read_markdown(input_path))

    payload = adf_codec.document_to_adf(document, allow_pending=args.allow_pending)
    as_yaml = output_path is not None and output_path.suffix.lower() in adf_codec.YAML_SUFFIXES
    write_text(output_path, adf_codec.dump_adf(payload, as_yaml=as_yaml, indent=args.indent))
    logging.info("Done. Saved to %s", output_path or "stdout")


def _to_md(args: argparse.Namespace, input_path: Path) -> None:
    output_path = resolve_output_path(input_path, args.output, ".md")
    logging.info("Reading %s", input_path)
    document = adf_codec.load_adf_file(input_path)
    logging.debug("Top-level blocks: %d", len(document.blocks))

    write_text(output_path, renderer_markdown.render_markdown(document, escape_text=args.escape) + "\n")
    logging.info("Done. Saved to %s", output_path or "stdout")


def _pending(args: argparse.Namespace, input_path: Path) -> None:
    document = markdown_parser.parse_markdown(_read_markdown(input_path))
    nodes = media.pending_media(document)
    logging.info("%d media item(s) to upload", len(nodes))
    for node in nodes:
        sys.stdout.write(f"{node.pending_source}\n")


def _normalize(args: argparse.Namespace, input_path: Path) -> None:
    output_path = resolve_output_path(input_path, args.output, ".md")
    document = markdown_parser.parse_markdown(_read_markdown(input_path))
    write_text(output_path, renderer_markdown.render_markdown(document) + "\n")
    logging.info("Done. Saved to %s", output_path or "stdout")


if __name__ == "__main__":
    sys.exit(main())
