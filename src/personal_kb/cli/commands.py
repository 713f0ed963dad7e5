"""
CLI commands - a thin shell over the KnowledgeBase facade.

Each command follows a consistent pattern:
1. Parse arguments
2. Load environment and build the knowledge base
3. Call one facade operation
4. Print results
5. Return exit code
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from personal_kb.config import KnowledgeStoreConfig
from personal_kb.core.errors import KnowledgeStoreError
from personal_kb.knowledge.base import KnowledgeBase, get_knowledge_base
from personal_kb.observability import init_tracing, shutdown_tracing
from personal_kb.retrieval.document import Document, DocumentType


def _load_env() -> None:
    """Load environment variables from .env file."""
    load_dotenv()


def _parse_metadata(pairs: list[str]) -> dict[str, str]:
    metadata = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Metadata must be KEY=VALUE, got {pair!r}")
        metadata[key] = value
    return metadata


def _read_content(args: argparse.Namespace) -> str:
    if args.file:
        return Path(args.file).read_text(encoding="utf-8")
    if args.content is not None:
        return args.content
    return sys.stdin.read()


def _print_document(doc: Document) -> None:
    tags = ", ".join(sorted(doc.tags)) or "-"
    print(f"{doc.id}  [{doc.document_type.value}]  {doc.title}  (tags: {tags})")


# ---------------------------------------------------------------------------
# COMMAND HANDLERS
# ---------------------------------------------------------------------------


def cmd_add(kb: KnowledgeBase, args: argparse.Namespace) -> int:
    doc_id = kb.add_document(
        args.title,
        _read_content(args),
        args.type,
        tags=args.tag,
        metadata=_parse_metadata(args.meta),
    )
    print(doc_id)
    return 0


def cmd_note(kb: KnowledgeBase, args: argparse.Namespace) -> int:
    print(kb.add_note(args.title, _read_content(args), tags=args.tag))
    return 0


def cmd_snippet(kb: KnowledgeBase, args: argparse.Namespace) -> int:
    print(kb.add_code_snippet(args.title, _read_content(args), args.language, tags=args.tag))
    return 0


def cmd_import(kb: KnowledgeBase, args: argparse.Namespace) -> int:
    for path in args.paths:
        doc_id = kb.add_text_file(path, tags=args.tag, preprocess=args.preprocess)
        print(f"{doc_id}  {path}")
    return 0


def cmd_search(kb: KnowledgeBase, args: argparse.Namespace) -> int:
    results = kb.search(args.query, limit=args.limit)

    if args.json:
        print(json.dumps([r.to_dict() for r in results], indent=2, ensure_ascii=False))
        return 0

    if not results:
        print("No relevant documents.")
        return 0

    for rank, result in enumerate(results, start=1):
        doc = result.document
        print(f"{rank}. {doc.title}  (score: {result.score:.3f}, id: {doc.id})")
        print(f"     {result.snippet!r}")
        if result.matched_terms:
            print(f"     matched: {', '.join(result.matched_terms)}")
    return 0


def cmd_list(kb: KnowledgeBase, args: argparse.Namespace) -> int:
    documents = kb.list_documents(document_type=args.type)
    if args.tag:
        documents = [doc for doc in documents if args.tag in doc.tags]
    if args.json:
        print(json.dumps([d.to_dict() for d in documents], indent=2, ensure_ascii=False))
        return 0
    for doc in documents:
        _print_document(doc)
    return 0


def cmd_remove(kb: KnowledgeBase, args: argparse.Namespace) -> int:
    for doc_id in args.ids:
        kb.remove_document(doc_id)
        print(f"Removed {doc_id}")
    return 0


def cmd_tags(kb: KnowledgeBase, args: argparse.Namespace) -> int:
    for tag, n in sorted(kb.stats().by_tag.items()):
        print(f"{tag}\t{n}")
    return 0


def cmd_stats(kb: KnowledgeBase, args: argparse.Namespace) -> int:
    stats = kb.stats()
    if args.json:
        print(json.dumps(stats.to_dict(), indent=2, ensure_ascii=False))
        return 0

    print(f"Documents: {stats.total}")
    for document_type, n in sorted(stats.by_type.items()):
        print(f"  {document_type}: {n}")
    return 0


def cmd_count(kb: KnowledgeBase, args: argparse.Namespace) -> int:
    print(kb.count())
    return 0


def cmd_compact(kb: KnowledgeBase, args: argparse.Namespace) -> int:
    kb.compact()
    print(f"Compacted catalog ({kb.count()} documents)")
    return 0


# ---------------------------------------------------------------------------
# PARSER
# ---------------------------------------------------------------------------


def _add_content_options(parser: argparse.ArgumentParser) -> None:
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--content", help="Document text (stdin if neither given)")
    source.add_argument("--file", help="Read document text from a file")
    parser.add_argument("--tag", action="append", default=[], help="Tag (repeatable)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="personal-kb",
        description="Local semantic knowledge store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  personal-kb note "Swift Notes" --content "Swift is a powerful programming language" --tag swift
  personal-kb import notes/*.md --tag notes
  personal-kb search "swift concurrency" --limit 5
  personal-kb remove 3f2a...
        """,
    )
    parser.add_argument("--store", help="Catalog path (overrides KB_STORE_PATH)")
    parser.add_argument(
        "--backend", choices=["jsonl", "sqlite"], help="Catalog backend (overrides KB_BACKEND)"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("add", help="Add a document")
    p.add_argument("title")
    p.add_argument(
        "--type", default=DocumentType.TEXT.value, choices=[t.value for t in DocumentType]
    )
    p.add_argument("--meta", action="append", default=[], help="Metadata KEY=VALUE (repeatable)")
    _add_content_options(p)
    p.set_defaults(handler=cmd_add)

    p = sub.add_parser("note", help="Add a note")
    p.add_argument("title")
    _add_content_options(p)
    p.set_defaults(handler=cmd_note)

    p = sub.add_parser("snippet", help="Add a code snippet")
    p.add_argument("title")
    p.add_argument("--language", required=True)
    _add_content_options(p)
    p.set_defaults(handler=cmd_snippet)

    p = sub.add_parser("import", help="Import text, markdown or source files")
    p.add_argument("paths", nargs="+")
    p.add_argument("--tag", action="append", default=[], help="Tag (repeatable)")
    p.add_argument("--preprocess", action="store_true", help="Collapse whitespace, strip boilerplate")
    p.set_defaults(handler=cmd_import)

    p = sub.add_parser("search", help="Semantic search")
    p.add_argument("query")
    p.add_argument("--limit", type=int, default=10)
    p.add_argument("--json", action="store_true")
    p.set_defaults(handler=cmd_search)

    p = sub.add_parser("list", help="List documents")
    p.add_argument("--tag", help="Only documents with this exact tag")
    p.add_argument("--type", choices=[t.value for t in DocumentType], help="Only documents of this type")
    p.add_argument("--json", action="store_true")
    p.set_defaults(handler=cmd_list)

    p = sub.add_parser("remove", help="Remove documents by id")
    p.add_argument("ids", nargs="+")
    p.set_defaults(handler=cmd_remove)

    p = sub.add_parser("tags", help="Tags in use, with document counts")
    p.set_defaults(handler=cmd_tags)

    p = sub.add_parser("stats", help="Document counts by type")
    p.add_argument("--json", action="store_true")
    p.set_defaults(handler=cmd_stats)

    p = sub.add_parser("count", help="Number of documents")
    p.set_defaults(handler=cmd_count)

    p = sub.add_parser("compact", help="Rewrite the catalog without removed entries")
    p.set_defaults(handler=cmd_compact)

    return parser


def main(argv: list[str] | None = None) -> int:
    """
    Main CLI entry point with subcommands.

    Usage:
        personal-kb add|note|snippet TITLE ...
        personal-kb import FILE...
        personal-kb search QUERY [--limit N]
        personal-kb list|tags|stats|count|compact
        personal-kb remove ID...
    """
    _load_env()

    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = KnowledgeStoreConfig.from_env()
    if args.store:
        config = dataclasses.replace(config, store_path=Path(args.store).expanduser())
    if args.backend:
        config = dataclasses.replace(config, backend=args.backend)

    init_tracing()
    try:
        kb = get_knowledge_base(config)
        kb.initialize()
        return args.handler(kb, args)
    except (KnowledgeStoreError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130
    finally:
        shutdown_tracing()


if __name__ == "__main__":
    sys.exit(main())
