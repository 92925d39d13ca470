"""Command-line interface for the compendium builder.

WHY: The compendium is built by repeatedly applying curation batches to
the latest document version, then turning its sections into structured
topic files. The CLI wires the core, the payload parsers and the stores
together behind one command with a subcommand per step.

HOW: argparse with subcommands:
  apply   messages + operations payload → next compendium version
  render  entries payload → footnoted entries appended to a topic file
  merge   several topic files → one renumbered topic file
  export  topic file → markdown / topic JSON via the formatter registry
  index   document → section and block counts
Status messages go to stderr; ``index`` prints its report to stdout.

RULES:
- Exit code 0 on success, 1 on user/input errors (missing file, corrupt
  document, unparseable payload, schema violation)
- Per-operation and per-citation problems are reported, never fatal
- ``apply`` always writes exactly one new version, even for an empty batch
- Output naming for export: {slug}{suffix}, numeric suffix on conflict
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import jsonschema

from compendium_builder.config import (
    COMPENDIUM_VERSIONS_DIR,
    LOG_LEVEL,
    SNAPSHOTS_DIR,
    TOPICS_DIR,
)
from compendium_builder.core.applier import apply_operations
from compendium_builder.core.citations import count_citation_defects, resolve
from compendium_builder.core.footnotes import render_entry
from compendium_builder.core.indexer import (
    build_index,
    group_blocks_by_section,
    parse_blocks,
    slugify_section,
)
from compendium_builder.core.model import OutcomeKind, RenderedEntry
from compendium_builder.formatters import FORMATTERS
from compendium_builder.formatters.base import FormatterOutput
from compendium_builder.ingest import (
    load_message_index,
    parse_entries,
    parse_operations,
)
from compendium_builder.storage.topics import (
    TopicStore,
    dump_topic,
    merge_topic_files,
    normalize_entry_ids,
    read_topic_entries,
    validate_topic,
)
from compendium_builder.storage.versions import VersionStore


def _status(msg: str) -> None:
    """Print a status message to stderr so stdout stays pipeable."""
    print(msg, file=sys.stderr, flush=True)


def _read_text(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


def _resolve_output_path(stem: str, suffix: str, output_dir: Path) -> Path:
    """Return {stem}{suffix} in output_dir, or {stem}-2{suffix}, -3 ... if taken."""
    base_path = output_dir / "{}{}".format(stem, suffix)
    if not base_path.exists():
        return base_path

    dot_idx = suffix.rfind(".")
    if dot_idx >= 0:
        suffix_name, suffix_ext = suffix[:dot_idx], suffix[dot_idx:]
    else:
        suffix_name, suffix_ext = suffix, ""

    counter = 2
    while True:
        candidate = output_dir / "{}{}-{}{}".format(stem, suffix_name, counter, suffix_ext)
        if not candidate.exists():
            return candidate
        counter += 1


def _save_output(output: FormatterOutput, stem: str, output_dir: Path) -> Path:
    path = _resolve_output_path(stem, output.suffix, output_dir)
    path.write_text(output.content, encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


def cmd_apply(args: argparse.Namespace) -> None:
    """Apply one operations payload to the latest version."""
    store = VersionStore(args.versions_dir)
    latest = store.latest()
    text = store.read(latest)
    _status("Base version: {}".format(latest.name if latest else "(none, empty document)"))

    source = load_message_index(args.messages)
    parsed = parse_operations(_read_text(args.operations))
    for i, reason in parsed.rejected:
        _status("  Rejected operation #{}: {}".format(i, reason))
    if parsed.notes:
        _status("  Notes: {}".format(parsed.notes))

    result = apply_operations(text, parsed.operations, source)
    info = store.write_next(result.text)

    _status("Inserted {}/{} operation(s)".format(result.inserted, result.requested))
    for kind in OutcomeKind:
        count = result.count(kind)
        if count:
            _status("  {}: {}".format(kind.value, count))
    for header in result.created_sections:
        _status("  Created section: {}".format(header))
    _status("Saved: {}".format(info.path))


def _default_edition(versions_dir: str) -> int:
    latest = VersionStore(versions_dir).latest()
    return latest.version if latest else 0


def cmd_render(args: argparse.Namespace) -> None:
    """Render an entries payload and append it to a topic file."""
    edition = args.edition if args.edition is not None else _default_edition(args.versions_dir)
    store = TopicStore(args.topics_dir, args.snapshots_dir, edition)
    batch_index = (
        args.batch_index if args.batch_index is not None
        else store.latest_snapshot_number(args.topic)
    )

    parsed = parse_entries(_read_text(args.entries))
    for i, reason in parsed.rejected:
        _status("  Rejected entry #{}: {}".format(i, reason))

    entries = normalize_entry_ids(parsed.entries, batch_index)
    known_ids = set(load_message_index(args.messages)) if args.messages else None
    defects = count_citation_defects(entries, known_ids)

    rendered: List[RenderedEntry] = []
    excluded = 0
    for entry in entries:
        resolved = resolve(entry.text, entry.citation_inserts)
        excluded += resolved.invalid
        rendered.append(render_entry(entry, resolved))

    topic_path, snapshot_path = store.append(args.topic, rendered)

    _status("Topic {} (edition {}, batch {}): +{} entries".format(
        args.topic, edition, batch_index, len(rendered)
    ))
    if defects or excluded:
        _status("  Citation defects: {} (excluded requests: {})".format(defects, excluded))
    _status("Saved: {}".format(topic_path))
    _status("Snapshot: {}".format(snapshot_path))


def cmd_merge(args: argparse.Namespace) -> None:
    """Merge topic files into one, renumbering entry ids."""
    merged = {"entries": merge_topic_files(args.inputs)}
    validate_topic(merged)

    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(dump_topic(merged), encoding="utf-8")

    count = len(merged["entries"])
    _status("Merged {} file(s) → {}: {} entries (0:e1..0:e{})".format(
        len(args.inputs), output, count, count
    ))


def _format_keys(value: Optional[str]) -> List[str]:
    if not value:
        return list(FORMATTERS.keys())
    keys = [f.strip() for f in value.split(",") if f.strip()]
    for key in keys:
        if key not in FORMATTERS:
            raise ValueError("Unknown format '{}'. Available formats: {}".format(
                key, ", ".join(sorted(FORMATTERS.keys()))
            ))
    return keys


def cmd_export(args: argparse.Namespace) -> None:
    """Run formatters over a topic file."""
    topic_path = Path(args.topic_file)
    format_keys = _format_keys(args.formats)

    output_dir = Path(args.output_dir) if args.output_dir else topic_path.parent
    if not output_dir.is_dir():
        raise ValueError("Output directory does not exist: {}".format(output_dir))

    entries = [RenderedEntry.from_dict(e) for e in read_topic_entries(topic_path)]
    topic_name = args.title or topic_path.stem

    for key in format_keys:
        formatter = FORMATTERS[key]()
        for output in formatter.format(topic_name, entries):
            saved = _save_output(output, topic_path.stem, output_dir)
            _status("Saved ({}): {}".format(formatter.name, saved))


def cmd_index(args: argparse.Namespace) -> None:
    """Print a document's sections and block counts."""
    text = _read_text(args.document)
    index = build_index(text)
    groups = group_blocks_by_section(parse_blocks(text))

    print("sections={} blocks={}".format(len(index.sections), len(index.anchors)))
    for header in index.sections:
        print("{}\t{}\t{}".format(header, len(groups.get(header, [])), slugify_section(header)))
    for header, blocks in groups.items():
        if header not in index.sections:
            print("{}\t{}\t{}".format(header, len(blocks), slugify_section(header)))


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    WHY: Separating parser construction from main() makes the CLI
    testable; tests can inspect the parser without running a command.
    """
    parser = argparse.ArgumentParser(
        prog="compendium_builder",
        description="Grow a sectioned compendium document from curated chat "
                    "messages and render structured, footnoted topic files.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("apply", help="Apply an operations payload to the latest version.")
    p.add_argument("--messages", required=True, help="Slim message export (JSON).")
    p.add_argument("--operations", required=True, help="Operations payload (JSON, may be fenced).")
    p.add_argument(
        "--versions-dir",
        default=COMPENDIUM_VERSIONS_DIR,
        help="Directory of compendium_NNN.md versions (default: %(default)s).",
    )
    p.set_defaults(func=cmd_apply)

    p = sub.add_parser("render", help="Render an entries payload into a topic file.")
    p.add_argument("--entries", required=True, help="Entries payload (JSON, may be fenced).")
    p.add_argument("--topic", required=True, help="Topic slug, e.g. 'food'.")
    p.add_argument("--batch-index", type=int, default=None,
                   help="Batch index for entry ids (default: number of existing snapshots).")
    p.add_argument("--messages", default=None,
                   help="Slim message export used to flag citations of unknown messages.")
    p.add_argument("--topics-dir", default=TOPICS_DIR, help="(default: %(default)s)")
    p.add_argument("--snapshots-dir", default=SNAPSHOTS_DIR, help="(default: %(default)s)")
    p.add_argument("--edition", type=int, default=None,
                   help="Compendium edition (default: latest version number).")
    p.add_argument("--versions-dir", default=COMPENDIUM_VERSIONS_DIR,
                   help="Used to find the default edition (default: %(default)s).")
    p.set_defaults(func=cmd_render)

    p = sub.add_parser("merge", help="Merge topic files and renumber entry ids.")
    p.add_argument("output", help="Merged topic file to write.")
    p.add_argument("inputs", nargs="+", help="Topic files to merge, in order.")
    p.set_defaults(func=cmd_merge)

    p = sub.add_parser("export", help="Export a topic file with the registered formatters.")
    p.add_argument("topic_file", help="Topic JSON file.")
    p.add_argument(
        "--formats",
        default=None,
        help="Comma-separated list of output formats. "
             "Available: {}. Default: all.".format(", ".join(sorted(FORMATTERS.keys()))),
    )
    p.add_argument("--title", default=None, help="Topic title (default: file stem).")
    p.add_argument("--output-dir", default=None,
                   help="Directory to save output files (default: next to the topic file).")
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("index", help="Show sections and block counts of a document.")
    p.add_argument("document", help="Compendium document (markdown).")
    p.set_defaults(func=cmd_index)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    - Errors print "Error: ..." to stderr and exit with code 1
    """
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        args.func(args)
    except jsonschema.ValidationError as e:
        print("Error: Invalid topic data: {}".format(e.message), file=sys.stderr)
        sys.exit(1)
    except (OSError, ValueError) as e:
        # Missing files, corrupt documents, unparseable payloads
        print("Error: {}".format(e), file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
