"""CLI for wxr_importer - import WordPress WXR exports into a destination space."""

import argparse
import json
import sys
import xml.etree.ElementTree as ET
from typing import List, Optional

import requests

from .import_tool import DEFAULT_CONFIG_FILE, ImportTask, WXRImportTool
from .models.session import ImportProgress, ImportResults, WXRImportOptions
from .utils.errors import ImportCancelled, WXRImportError

SUMMARY_LIMIT = 5
EXIT_INTERRUPTED = 130


def _read_text(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def _split_path(value: Optional[str]) -> List[str]:
    return [segment for segment in (value or "").split("/") if segment]


def print_progress(progress: ImportProgress) -> None:
    line = f"[{progress.phase}] {progress.completed}/{progress.total}"
    if progress.current_item:
        line += f" {progress.current_item}"
    if progress.error:
        line += f" error: {progress.error}"
    print(line)


def print_results(results: ImportResults) -> None:
    print(f"Imported: {results.imported}")
    for label, items in (("Skipped", results.skipped), ("Failed", results.failed)):
        if not items:
            continue
        print(f"{label}: {len(items)}")
        for item in items[:SUMMARY_LIMIT]:
            line = f"  /{'/'.join(item.path)} ({item.title})"
            error = getattr(item, "error", None)
            if error:
                line += f": {error}"
            print(line)
        if len(items) > SUMMARY_LIMIT:
            print(f"  ...and {len(items) - SUMMARY_LIMIT} more")


def wait_for_results(task: ImportTask) -> int:
    """
    Wait for an import and print its summary.

    Ctrl-C cancels the task; the post being written finishes and the
    session stays resumable.
    """
    print(f"Import id: {task.import_id}")
    try:
        results = task.result()
    except KeyboardInterrupt:
        print("Interrupted, stopping after the current post...", file=sys.stderr)
        task.cancel()
        try:
            results = task.result()
        except ImportCancelled:
            print(
                f"Import {task.import_id} stopped; continue with "
                f"'wxr-import resume --import-id {task.import_id}'",
                file=sys.stderr,
            )
            return EXIT_INTERRUPTED
    print_results(results)
    return 0


def cmd_preview(args: argparse.Namespace, tool: WXRImportTool) -> int:
    """Summarize an export without importing it."""
    preview = tool.preview(_read_text(args.file))
    if args.json:
        print(json.dumps(preview.to_json_dict(), indent=2, ensure_ascii=False))
        return 0

    print(f"Site: {preview.site_title} ({preview.site_url})")
    print(f"Authors: {preview.author_count}")
    print(f"Posts: {preview.post_count}")
    print(f"Pages: {preview.page_count}")
    if preview.authored_fallback_authors:
        print("Authors publishing under the publisher key in authored mode:")
        for author in preview.authored_fallback_authors:
            print(f"  {author.login} ({author.display_name}): {author.reason}")
    return 0


def cmd_start(args: argparse.Namespace, tool: WXRImportTool) -> int:
    """Start a new import and wait for it."""
    if args.mode == "authored" and not args.password:
        print("Warning: authored import without --password stores author mnemonics in plain text",
              file=sys.stderr)
    if not args.skip_preflight:
        tool.preflight(args.publisher)

    options = WXRImportOptions(
        wxr_content=_read_text(args.file),
        destination_uid=args.destination,
        destination_path=_split_path(args.path),
        publisher_key_name=args.publisher,
        mode=args.mode,
        password=args.password,
        overwrite_existing=args.overwrite,
        on_progress=None if args.quiet else print_progress,
    )
    return wait_for_results(tool.start_import(options))


def cmd_resume(args: argparse.Namespace, tool: WXRImportTool) -> int:
    """Resume an interrupted import and wait for it."""
    task = tool.resume_import(
        args.import_id,
        password=args.password,
        on_progress=None if args.quiet else print_progress,
    )
    return wait_for_results(task)


def cmd_status(args: argparse.Namespace, tool: WXRImportTool) -> int:
    """Show the state of an import."""
    state = tool.get_status(args.import_id)
    if state is None:
        print("No import found")
        return 1
    if args.json:
        print(json.dumps(state.to_json_dict(), indent=2, ensure_ascii=False))
        return 0

    print(f"Import id: {state.import_id}")
    print(f"Phase: {state.phase}")
    print(f"Posts: {state.imported_posts}/{state.total_posts}")
    if state.error:
        print(f"Error: {state.error}")
    if state.results:
        print_results(state.results)
    if tool.can_export_author_keys(state.import_id):
        print("Author keys can be exported with 'export-keys'")
    return 0


def cmd_cancel(args: argparse.Namespace, tool: WXRImportTool) -> int:
    """Cancel an import and drop its stored state."""
    tool.cancel_import(args.import_id)
    return 0


def cmd_export_keys(args: argparse.Namespace, tool: WXRImportTool) -> int:
    """Write the import file holding the author mnemonics."""
    if not tool.can_export_author_keys(args.import_id):
        print("Error: no authored import file to export", file=sys.stderr)
        return 1
    print(tool.export_author_keys(args.out, args.import_id))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wxr-import", description="Import WordPress WXR exports"
    )
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_FILE,
        help=f"Path to config file (default: {DEFAULT_CONFIG_FILE})",
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Do not print progress"
    )
    parser.add_argument(
        "--json", action="store_true", help="Machine-readable output"
    )

    subparsers = parser.add_subparsers(dest="cmd", required=True)

    parser_preview = subparsers.add_parser("preview", help="Summarize a WXR export")
    parser_preview.add_argument("file", help="WXR export file")

    parser_start = subparsers.add_parser("start", help="Start a new import")
    parser_start.add_argument("file", help="WXR export file")
    parser_start.add_argument("--destination", required=True, help="Destination account uid")
    parser_start.add_argument("--path", default="", help="Destination path, e.g. blog/archive")
    parser_start.add_argument("--publisher", required=True, help="Publisher signing key name")
    parser_start.add_argument(
        "--mode", choices=["ghostwritten", "authored"], default="ghostwritten",
        help="Sign posts with the publisher key or with per-author keys",
    )
    parser_start.add_argument("--password", default=None, help="Encrypt the import file")
    parser_start.add_argument(
        "--overwrite", action="store_true", help="Overwrite documents that already exist"
    )
    parser_start.add_argument(
        "--skip-preflight", action="store_true", help="Do not check the signing service first"
    )

    parser_resume = subparsers.add_parser("resume", help="Resume an interrupted import")
    parser_resume.add_argument("--import-id", default=None)
    parser_resume.add_argument("--password", default=None)

    parser_status = subparsers.add_parser("status", help="Show import status")
    parser_status.add_argument("--import-id", default=None)

    parser_cancel = subparsers.add_parser("cancel", help="Cancel an import")
    parser_cancel.add_argument("--import-id", default=None)

    parser_export = subparsers.add_parser("export-keys", help="Export author keys")
    parser_export.add_argument("out", help="Output file")
    parser_export.add_argument("--import-id", default=None)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    handlers = {
        "preview": cmd_preview,
        "start": cmd_start,
        "resume": cmd_resume,
        "status": cmd_status,
        "cancel": cmd_cancel,
        "export-keys": cmd_export_keys,
    }
    handler = handlers[args.cmd]

    with WXRImportTool(config_file=args.config) as tool:
        try:
            exit_code = handler(args, tool)
        except (WXRImportError, ET.ParseError, requests.RequestException, OSError) as e:
            print(f"Error: {e}", file=sys.stderr)
            exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
