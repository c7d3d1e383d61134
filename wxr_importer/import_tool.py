"""
High-level orchestration of a WordPress WXR import.

This module defines a :class:`WXRImportTool` class that ties together the
parser, the import data builder, the import file codec, the session
store and the single-post importer into a resumable pipeline:

``pending -> authors -> posts -> complete``, with ``error`` reachable from
the two working phases.  Both working phases are safe to re-enter, so a
session interrupted by a restart, a crash or a network failure resumes
where its ``imported`` flags left off.

Configuration is supplied via a JSON file path or directly as a
dictionary.  The ``seed`` section configures the daemon client and the
``import`` section the state store, reports and optional features.
"""

from __future__ import annotations

import json
import os
import secrets
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Set

from .crypto.import_file import create_import_file, parse_import_file, serialize_import_file
from .extractors.wxr_parser import parse_wxr
from .import_data import create_import_data, preview_wxr
from .importers.post_importer import import_post
from .migrators.media import ImageDownloader
from .migrators.ports import (
    ROLE_WRITER,
    CapabilityService,
    DocumentService,
    FileUploader,
    HtmlToBlocks,
    KeyInfo,
    KeyService,
    entity_query_path,
)
from .migrators.seed_api import SeedClient
from .models.session import (
    FailedResultItem,
    ImportProgress,
    ImportResultItem,
    ImportResults,
    ProgressCallback,
    SeedImportData,
    WXRImportOptions,
    WXRImportState,
    WXRPreview,
)
from .store.kv import KeyValueStore, open_store
from .store.state_store import ImportStateStore
from .utils.errors import (
    ImportCancelled,
    NoImportToResume,
    WXRImportError,
    configure_reports,
    report_error,
    report_ok,
)
from .utils.logs import log_message
from .utils.pre_flight_checks import run_preflight_checks
from .utils.redirects import generate_redirects_csv
from .utils.wxr_utils import (
    create_author_key_name,
    fallback_author_login,
    get_author_display_name,
    is_email_usable_for_authored,
    normalize_author_login,
)

DEFAULT_CONFIG_FILE = os.path.join("config", "import_config.json")


def _noop_progress(progress: ImportProgress) -> None:
    pass


def new_import_id() -> str:
    return secrets.token_urlsafe(8)[:10]


class ImportTask:
    """
    Handle on an import running in the background.

    ``cancel()`` sets the cancellation token; the worker stops at its next
    checkpoint (before the next author or post) with :class:`ImportCancelled`.
    """

    def __init__(self, import_id: str, future: Future, cancel_event: threading.Event) -> None:
        self.import_id = import_id
        self.future = future
        self.cancel_event = cancel_event

    def done(self) -> bool:
        return self.future.done()

    def result(self, timeout: Optional[float] = None) -> ImportResults:
        return self.future.result(timeout)

    def exception(self, timeout: Optional[float] = None) -> Optional[BaseException]:
        return self.future.exception(timeout)

    def cancel(self) -> None:
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()


class WXRImportTool:
    """
    Encapsulates the state and behavior required to import a WXR export
    into a destination space.  Collaborators default to a
    :class:`SeedClient` built from the ``seed`` configuration; tests pass
    their own.  Detailed per-post outcomes are recorded using the
    :mod:`wxr_importer.utils.errors` module.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        *,
        config_file: Optional[str] = None,
        store: Optional[KeyValueStore] = None,
        keys: Optional[KeyService] = None,
        documents: Optional[DocumentService] = None,
        capabilities: Optional[CapabilityService] = None,
        uploader: Optional[FileUploader] = None,
        html_to_blocks: Optional[HtmlToBlocks] = None,
    ) -> None:
        if config_file and os.path.exists(config_file):
            with open(config_file, "r", encoding="utf-8") as f:
                config = json.load(f)
        elif config is None:
            # Default configuration
            config = {}

        # Ensure essential keys exist to prevent KeyErrors
        config.setdefault("seed", {})
        config["seed"].setdefault("base_url", os.getenv("SEED_BASE_URL", "http://localhost:56001"))
        config["seed"].setdefault("api_token", os.getenv("SEED_API_TOKEN", ""))
        config["seed"].setdefault("timeout", 30)
        config["seed"].setdefault("rpm", 600)

        config.setdefault("import", {})
        config["import"].setdefault("store", "json")
        config["import"].setdefault("store_path", os.path.join("data", "import_state"))
        config["import"].setdefault("reports_dir", os.path.join("reports", "import"))
        config["import"].setdefault("download_images", False)
        config["import"].setdefault("reencrypt_progress", True)
        config["import"].setdefault("write_redirect_map", True)

        self.config = config
        configure_reports(config["import"]["reports_dir"])

        client: Optional[SeedClient] = None
        if keys is None or documents is None or capabilities is None:
            client = SeedClient(config["seed"])
        self.keys: KeyService = keys or client
        self.documents: DocumentService = documents or client
        self.capabilities: CapabilityService = capabilities or client
        self.uploader: Optional[FileUploader] = uploader or client
        self.html_to_blocks = html_to_blocks

        self.store = ImportStateStore(store if store is not None else open_store(config["import"]))
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="wxr-import")
        self._tasks: Dict[str, ImportTask] = {}

    def log_message(self, message: str, level: str = "INFO") -> None:
        log_message(message, level)

    def close(self, *, cancel_running: bool = False) -> None:
        """
        Wait for the worker to finish.  With ``cancel_running`` the running
        import stops at its next checkpoint and stays resumable.
        """
        if cancel_running:
            for task in self._tasks.values():
                if not task.done():
                    task.cancel()
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "WXRImportTool":
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        # An exception escaping the block (Ctrl-C included) stops the import.
        self.close(cancel_running=exc_type is not None)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def preview(self, wxr_content: str) -> WXRPreview:
        return preview_wxr(wxr_content)

    def preflight(self, publisher_key_name: str) -> None:
        run_preflight_checks(self.keys, publisher_key_name)

    def start_import(self, options: WXRImportOptions) -> ImportTask:
        """
        Parse the export, persist a fresh session and run it in the background.

        Parse errors propagate before any session record is written.  The
        returned task carries the session's ``import_id``; progress is
        reported through ``options.on_progress`` and the session store.
        """
        on_progress = options.on_progress or _noop_progress

        on_progress(ImportProgress(phase="parsing", total=0, completed=0))
        wxr = parse_wxr(options.wxr_content)
        data = create_import_data(wxr, options.mode, self.keys)

        import_id = new_import_id()
        state = WXRImportState(
            import_id=import_id,
            is_authored=options.mode == "authored",
            destination_uid=options.destination_uid,
            destination_path=list(options.destination_path),
            publisher_key_name=options.publisher_key_name,
            overwrite_existing=options.overwrite_existing,
            phase="pending",
            total_posts=len(data.posts),
            imported_posts=0,
        )
        self.store.set(state, activate=True)
        self.store.set_import_file(import_id, create_import_file(data, options.password))

        self.log_message(
            f"Starting WXR import {import_id}: {len(data.posts)} posts from "
            f"'{wxr.site_title or wxr.site_url}' ({options.mode})"
        )
        return self._launch(state, data, on_progress, options.password)

    def resume_import(
        self,
        import_id: Optional[str] = None,
        *,
        password: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ImportTask:
        """
        Re-enter an interrupted session.

        Author keys are verified again and the posts loop continues with
        the posts not yet marked ``imported``.  Encrypted sessions need the
        password they were started with.
        """
        state = self.store.get(import_id)
        if state is None:
            raise NoImportToResume("No import to resume")
        if state.phase == "complete":
            raise NoImportToResume(f"Import {state.import_id} is already complete")

        running = self._tasks.get(state.import_id)
        if running is not None and not running.done():
            raise WXRImportError(f"Import {state.import_id} is already running")

        file = self.store.get_import_file(state.import_id)
        if file is None:
            raise NoImportToResume("Import file not found")
        data = parse_import_file(file.to_json_dict(), password)

        self.log_message(
            f"Resuming WXR import {state.import_id} at phase '{state.phase}' "
            f"({data.processed_count()}/{len(data.posts)} posts done)"
        )
        return self._launch(state, data, on_progress or _noop_progress, password)

    def cancel_import(self, import_id: Optional[str] = None) -> None:
        """Signal the running task, if any, and drop the session records."""
        import_id = self.store.resolve_id(import_id)
        if not import_id:
            return
        task = self._tasks.get(import_id)
        if task is not None:
            task.cancel()
        self.store.clear(import_id)
        self.log_message(f"Cancelled WXR import {import_id}")

    def get_status(self, import_id: Optional[str] = None) -> Optional[WXRImportState]:
        return self.store.get(import_id)

    def has_active_import(self, import_id: Optional[str] = None) -> bool:
        return self.store.has_resumable_import(import_id)

    def can_export_author_keys(self, import_id: Optional[str] = None) -> bool:
        state = self.store.get(import_id)
        return state is not None and state.is_authored and self.store.has_import_file(state.import_id)

    def export_author_keys(self, out_path: str, import_id: Optional[str] = None) -> str:
        """Write the session's import file envelope, as stored, to ``out_path``."""
        file = self.store.get_import_file(import_id)
        if file is None:
            raise NoImportToResume("Import file not found")
        os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
        with open(out_path, "w", encoding="utf-8") as f:
            f.write(serialize_import_file(file))
        self.log_message(f"Author keys exported to {out_path}")
        return out_path

    # ------------------------------------------------------------------
    # Background execution
    # ------------------------------------------------------------------

    def _launch(
        self,
        state: WXRImportState,
        data: SeedImportData,
        on_progress: ProgressCallback,
        password: Optional[str],
    ) -> ImportTask:
        cancel_event = threading.Event()
        future = self._executor.submit(self._run, state, data, on_progress, password, cancel_event)
        task = ImportTask(state.import_id, future, cancel_event)
        self._tasks[state.import_id] = task
        return task

    def _run(
        self,
        state: WXRImportState,
        data: SeedImportData,
        on_progress: ProgressCallback,
        password: Optional[str],
        cancel_event: threading.Event,
    ) -> ImportResults:
        try:
            return self.execute_import(
                state, data, on_progress, password=password, cancel_event=cancel_event
            )
        except ImportCancelled:
            self.log_message(f"WXR import {state.import_id} stopped after cancellation")
            raise
        except Exception as e:
            self.log_message(f"WXR import failed: {e}", level="ERROR")
            raise

    def execute_import(
        self,
        state: WXRImportState,
        data: SeedImportData,
        on_progress: Optional[ProgressCallback] = None,
        *,
        password: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ImportResults:
        """
        Run the authors and posts phases for one session.

        Any exception other than a per-post failure marks the session as
        ``error`` and is re-raised.
        """
        progress = on_progress or _noop_progress
        cancel_event = cancel_event or threading.Event()

        try:
            scope = f"{state.destination_uid}:{data.source.site_url}"

            # Runs on both the initial run and every resume so that author
            # keys are verified each time.
            if state.is_authored:
                self._register_author_keys(state, data, scope, progress, password, cancel_event)

            return self._import_posts(state, data, scope, progress, password, cancel_event)
        except ImportCancelled:
            raise
        except Exception as e:
            message = str(e) or e.__class__.__name__
            state.phase = "error"
            state.error = message
            self.store.mark_error(state.import_id, message)
            report_error("IMPORT_FAILED", {"id": state.import_id}, e)
            progress(
                ImportProgress(
                    phase="error",
                    total=state.total_posts,
                    completed=state.imported_posts,
                    error=message,
                )
            )
            raise

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _checkpoint(self, state: WXRImportState, cancel_event: threading.Event) -> None:
        if cancel_event.is_set() or self.store.get(state.import_id) is None:
            raise ImportCancelled(f"Import {state.import_id} was cancelled")

    def _save_state(self, state: WXRImportState, cancel_event: threading.Event) -> None:
        self._checkpoint(state, cancel_event)
        self.store.set(state)

    def _save_import_file(self, import_id: str, data: SeedImportData, password: Optional[str]) -> None:
        file = self.store.get_import_file(import_id)
        if file is None:
            return
        if file.encrypted:
            if password and self.config["import"]["reencrypt_progress"]:
                self.store.set_import_file(import_id, create_import_file(data, password))
            return
        self.store.set_import_file(import_id, create_import_file(data))

    def _register_author_keys(
        self,
        state: WXRImportState,
        data: SeedImportData,
        scope: str,
        progress: ProgressCallback,
        password: Optional[str],
        cancel_event: threading.Event,
    ) -> None:
        if state.phase == "pending":
            state.phase = "authors"
            self._save_state(state, cancel_event)

        eligible = [
            login for login, author in data.authors.items()
            if is_email_usable_for_authored(author.email)
        ]
        progress(ImportProgress(phase="authors", total=len(eligible), completed=0))

        existing: Dict[str, KeyInfo] = {key.name: key for key in self.keys.list_keys()}

        for count, login in enumerate(eligible, start=1):
            self._checkpoint(state, cancel_event)
            author = data.authors[login]
            key_name = create_author_key_name(scope, login)
            existing_key = existing.get(key_name)

            if author.mnemonic and existing_key is None:
                author.public_key = self.keys.register_key(author.mnemonic, key_name)
                existing[key_name] = KeyInfo(name=key_name, public_key=author.public_key)
                self._save_import_file(state.import_id, data, password)
                report_ok("AUTHOR_KEY_REGISTERED", {"login": login}, {"keyName": key_name})
            elif existing_key is not None and not author.public_key:
                author.public_key = existing_key.public_key
                report_ok("AUTHOR_KEY_REUSED", {"login": login}, {"keyName": key_name})

            progress(
                ImportProgress(
                    phase="authors",
                    total=len(eligible),
                    completed=count,
                    current_item=author.display_name,
                )
            )

    def _ensure_writer_capability(
        self,
        state: WXRImportState,
        public_key: str,
        post_path: List[str],
        writers_by_path: Dict[str, Set[str]],
    ) -> None:
        path = entity_query_path(post_path)
        delegates = writers_by_path.get(path)
        if delegates is None:
            delegates = {
                cap.delegate
                for cap in self.capabilities.list_capabilities(state.destination_uid, path)
                if cap.role == ROLE_WRITER
            }
            writers_by_path[path] = delegates

        if public_key not in delegates:
            self.capabilities.create_capability(
                state.destination_uid, public_key, ROLE_WRITER, path, state.publisher_key_name
            )
            delegates.add(public_key)
            report_ok("CAPABILITY_GRANTED", {"path": post_path}, {"delegate": public_key})

    def _import_posts(
        self,
        state: WXRImportState,
        data: SeedImportData,
        scope: str,
        progress: ProgressCallback,
        password: Optional[str],
        cancel_event: threading.Event,
    ) -> ImportResults:
        state.phase = "posts"
        # The flags are the source of truth; the counter may lag a crash.
        state.imported_posts = data.processed_count()
        self._save_state(state, cancel_event)

        results = state.results.model_copy(deep=True) if state.results else ImportResults()
        total = len(data.posts)
        progress(ImportProgress(phase="posts", total=total, completed=state.imported_posts))

        upload_image = None
        if self.config["import"]["download_images"] and self.uploader is not None:
            upload_image = ImageDownloader(self.uploader, data.image_cache)
        writers_by_path: Dict[str, Set[str]] = {}

        for entry in data.remaining_posts():
            self._checkpoint(state, cancel_event)

            wxr_post = data.wxr_posts.get(entry.id)
            if wxr_post is None:
                self.log_message(f"WXR post data not found for ID {entry.id}, skipping", level="WARNING")
                report_error("POST_DATA_MISSING", {"id": entry.id, "path": entry.path})
                continue

            post_path = [*state.destination_path, *entry.path]
            title = wxr_post.title or f"Post {entry.id}"
            progress(
                ImportProgress(phase="posts", total=total, completed=state.imported_posts, current_item=title)
            )

            login = normalize_author_login(entry.author_login) or fallback_author_login(entry.id)
            author = data.authors.get(login)
            display_name = get_author_display_name(login, author.display_name if author else None)
            can_sign = (
                state.is_authored
                and author is not None
                and is_email_usable_for_authored(author.email)
                and bool(author.public_key)
            )
            display_author = None if can_sign else display_name
            signing_key_name = create_author_key_name(scope, login) if can_sign else state.publisher_key_name

            if can_sign:
                self._ensure_writer_capability(state, author.public_key, post_path, writers_by_path)

            item = {"id": entry.id, "title": title, "path": post_path}
            try:
                outcome = import_post(
                    wxr_post,
                    self.documents,
                    destination_uid=state.destination_uid,
                    document_path=post_path,
                    signing_key_name=signing_key_name,
                    display_author=display_author,
                    overwrite_existing=state.overwrite_existing,
                    convert=self.html_to_blocks,
                    base_url=data.source.site_url,
                    upload_image=upload_image,
                )
                if outcome == "skipped":
                    results.skipped.append(ImportResultItem(path=post_path, title=title))
                    report_ok("POST_SKIPPED", item)
                else:
                    results.imported += 1
                    report_ok("POST_IMPORTED", item, {"signingKeyName": signing_key_name})
            except Exception as e:
                self.log_message(f"Failed to import post {entry.id}: {e}", level="ERROR")
                results.failed.append(
                    FailedResultItem(
                        path=post_path,
                        title=title,
                        error=f"[author={login or 'unknown'}][signing={signing_key_name}] {e}",
                    )
                )
                report_error("POST_FAILED", item, e)
                # Continue with next post instead of failing the entire import.

            # Processed, whatever the outcome.
            entry.imported = True
            state.imported_posts += 1
            state.last_imported_post_id = entry.id
            data.progress.imported_posts = state.imported_posts
            data.progress.last_imported_id = entry.id
            data.progress.phase = "posts"
            self._save_import_file(state.import_id, data, password)
            self.store.update_progress(state.import_id, entry.id, state.imported_posts, results)

        state.phase = "complete"
        state.results = results
        data.progress.phase = "complete"
        self._save_import_file(state.import_id, data, password)
        self.store.mark_complete(state.import_id, results)
        report_ok(
            "IMPORT_COMPLETE",
            {"id": state.import_id},
            {"imported": results.imported, "skipped": len(results.skipped), "failed": len(results.failed)},
        )
        self.log_message(
            f"WXR import {state.import_id} complete: {results.imported} imported, "
            f"{len(results.skipped)} skipped, {len(results.failed)} failed"
        )

        if self.config["import"]["write_redirect_map"]:
            out_path = os.path.join(self.config["import"]["reports_dir"], "redirect_map.csv")
            try:
                generate_redirects_csv(data, destination_path=state.destination_path, out_path=out_path)
                self.log_message(f"Redirect CSV generated at {out_path}")
            except OSError as e:
                self.log_message(f"Failed to generate redirects: {e}", "ERROR")

        progress(ImportProgress(phase="complete", total=total, completed=total, results=results))
        return results
