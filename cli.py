#!/usr/bin/env python3
import argparse
import logging
import sys
from pathlib import Path

from practice_rag.app import (
    DEFAULT_CATEGORY,
    answer_question,
    build_services,
    delete_category,
    delete_document,
    ingest_file,
    list_categories,
    load_config,
    search_only,
)
from practice_rag.errors import PracticeRagError
from practice_rag.logging_utils import setup_logging
from practice_rag.utils.output import source_line, write_output

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="practice-rag",
        description="Question answering over a dental practice's QM and regulatory documents.",
    )
    parser.add_argument("--config", type=str, default="config.yaml")
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable DEBUG logs (to stderr)."
    )
    parser.add_argument("--quiet", "-q", action="store_true", help="Reduce logs to WARN and above.")
    parser.add_argument("--log-json", action="store_true", help="Emit logs as JSON lines (stderr).")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_ing = sub.add_parser("ingest", help="Upload and index documents (pdf, docx, xlsx)")
    p_ing.add_argument("paths", nargs="+", help="Files or folders to ingest")
    p_ing.add_argument("--title", type=str, default=None, help="Title (single file only)")
    p_ing.add_argument(
        "--category", type=str, default=DEFAULT_CATEGORY, help="Existing category id (see: categories)"
    )

    p_ask = sub.add_parser("ask", help="Ask a question")
    p_ask.add_argument("question", type=str)
    p_ask.add_argument(
        "--no-generate", action="store_true", help="Only retrieve; skip the language model"
    )
    p_ask.add_argument(
        "--show-context", action="store_true", help="Print the context handed to the model"
    )
    p_ask.add_argument(
        "--out", type=str, default=None, help="Write result to a file (infers format from extension)"
    )
    p_ask.add_argument(
        "--format", type=str, default=None, choices=["json", "md", "txt", "html"],
        help="Output format (overrides --out extension)",
    )
    p_ask.add_argument(
        "--save", type=str, default=None, help="Directory to auto-save result (default outputs/)"
    )

    p_s = sub.add_parser("search", help="Vector-only passage search")
    p_s.add_argument("query", type=str)
    p_s.add_argument("--k", type=int, default=None, help="Max passages (default from config)")

    p_docs = sub.add_parser("documents", help="List uploaded documents")
    p_docs.add_argument("--category", type=str, default=None)

    p_del = sub.add_parser("delete", help="Delete a document and its index entry")
    p_del.add_argument("document_id", type=str)

    p_cat = sub.add_parser("categories", help="List or manage document categories")
    cat_sub = p_cat.add_subparsers(dest="action")
    cat_sub.add_parser("list", help="Categories with document counts (default)")
    p_cat_add = cat_sub.add_parser("add", help="Create a category")
    p_cat_add.add_argument("name", type=str)
    p_cat_add.add_argument("--icon", type=str, default=None)
    p_cat_ren = cat_sub.add_parser("rename", help="Rename a category")
    p_cat_ren.add_argument("category_id", type=str)
    p_cat_ren.add_argument("name", type=str)
    p_cat_ren.add_argument("--icon", type=str, default=None)
    p_cat_rm = cat_sub.add_parser("remove", help="Delete an empty category")
    p_cat_rm.add_argument("category_id", type=str)
    return parser


def _expand(paths):
    for p in map(Path, paths):
        if p.is_dir():
            yield from sorted(f for f in p.rglob("*") if f.is_file())
        else:
            yield p


def cmd_ingest(services, args) -> int:
    files = list(_expand(args.paths))
    if args.title and len(files) != 1:
        logger.error("--title needs exactly one file (got %d)", len(files))
        return 2
    failed = 0
    for f in files:
        try:
            doc = ingest_file(services, f, title=args.title, category=args.category)
            print(f"[ready] {doc.id} {doc.title} ({doc.metadata.chunk_count} chunks)")
        except (PracticeRagError, OSError) as e:
            # keep going; the document carries the error status
            logger.error("ingest failed for %s: %s", f, e)
            failed += 1
    logger.info("Ingest finished: %d ok, %d failed", len(files) - failed, failed)
    return 1 if failed else 0


def cmd_ask(services, args) -> int:
    ans = answer_question(services, args.question, generate=not args.no_generate)

    if args.out or args.save:
        target = write_output(args.question, ans, out_path=args.out, fmt=args.format, save_dir=args.save)
        print(f"[saved] {target}")

    if ans.get("answer") is not None:
        print("\n=== ANSWER ===")
        print(ans["answer"].strip())

    print("\n=== SOURCES ===")
    for s in ans.get("sources", []):
        print(f"- {source_line(s)}")

    print("\n=== METADATA ===")
    print(ans.get("metadata"))
    timers = ans.get("trace", {}).get("timers_ms")
    if timers:
        print(f"timers_ms: {timers}")

    if args.show_context or args.no_generate:
        print("\n=== CONTEXT ===")
        print(ans.get("context", ""))
    return 0


def cmd_search(services, args) -> int:
    for i, m in enumerate(search_only(services, args.query, k=args.k), start=1):
        page = f"page {m.page_number}" if m.page_number is not None else "no page"
        print(f"[{i}] {m.title} | {page} | score {m.score:.3f}")
        print(m.chunk_text)
        print("---")
    return 0


def cmd_documents(services, args) -> int:
    for d in services.store.list(category=args.category):
        extra = f" - {d.metadata.error_message}" if d.status == "error" else ""
        print(f"{d.id}  {d.status:<10} {d.file_type:<5} {d.category:<12} {d.title}{extra}")
    return 0


def cmd_delete(services, args) -> int:
    doc = delete_document(services, args.document_id)
    print(f"[deleted] {doc.id} {doc.title}")
    return 0


def cmd_categories(services, args) -> int:
    action = args.action or "list"
    if action == "add":
        cat = services.categories.create(args.name, icon=args.icon)
        print(f"[created] {cat.id} {cat.name}")
    elif action == "rename":
        cat = services.categories.update(args.category_id, args.name, icon=args.icon)
        print(f"[renamed] {cat.id} {cat.name}")
    elif action == "remove":
        cat = delete_category(services, args.category_id)
        print(f"[deleted] {cat.id} {cat.name}")
    else:
        for c in list_categories(services):
            print(f"{c['id']:<20} {c['document_count']:>4}  {c['name']}")
    return 0


COMMANDS = {
    "ingest": cmd_ingest,
    "ask": cmd_ask,
    "search": cmd_search,
    "documents": cmd_documents,
    "delete": cmd_delete,
    "categories": cmd_categories,
}


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose and args.quiet:
        print("Cannot use --verbose and --quiet together.", file=sys.stderr)
        sys.exit(2)
    if args.verbose:
        setup_logging(level="DEBUG", json_logs=args.log_json)
    elif args.quiet:
        setup_logging(level="WARNING", json_logs=args.log_json)
    else:
        setup_logging(level=None, json_logs=args.log_json)

    logger.debug("CLI args parsed: %s", vars(args))
    cfg = load_config(args.config)
    services = build_services(cfg)

    try:
        code = COMMANDS[args.cmd](services, args)
    except PracticeRagError as e:
        logger.error("%s", e)
        code = 2
    sys.exit(code)


if __name__ == "__main__":
    main()
