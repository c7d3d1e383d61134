import json
import os
import sys

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest

from wxr_importer.cli import EXIT_INTERRUPTED, build_parser, main, print_results, wait_for_results
from wxr_importer.models.session import FailedResultItem, ImportResultItem, ImportResults
from wxr_importer.utils.errors import ImportCancelled


@pytest.fixture
def config_file(tmp_path, reports):
    path = tmp_path / "import_config.json"
    path.write_text(
        json.dumps({"import": {"store": "json", "store_path": str(tmp_path / "state"), "reports_dir": reports}}),
        encoding="utf-8",
    )
    return str(path)


def run(argv):
    with pytest.raises(SystemExit) as exc:
        main(argv)
    return exc.value.code


def test_preview_command(tmp_path, config_file, sample_wxr, capsys):
    export = tmp_path / "export.xml"
    export.write_text(sample_wxr, encoding="utf-8")
    assert run(["--config", config_file, "preview", str(export)]) == 0
    out = capsys.readouterr().out
    assert "Site: Example Blog (https://blog.example.com)" in out
    assert "Posts: 4" in out
    assert "bob (Bob Barros): missing_email" in out


def test_preview_json(tmp_path, config_file, sample_wxr, capsys):
    export = tmp_path / "export.xml"
    export.write_text(sample_wxr, encoding="utf-8")
    assert run(["--config", config_file, "--json", "preview", str(export)]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["pageCount"] == 2


def test_malformed_export_is_an_error(tmp_path, config_file, capsys):
    export = tmp_path / "broken.xml"
    export.write_text("<rss><channel>", encoding="utf-8")
    assert run(["--config", config_file, "preview", str(export)]) == 1
    assert capsys.readouterr().err.startswith("Error:")


def test_status_without_import(config_file, capsys):
    assert run(["--config", config_file, "status"]) == 1
    assert "No import found" in capsys.readouterr().out


def test_resume_without_import(config_file, capsys):
    assert run(["--config", config_file, "resume"]) == 1
    assert "No import to resume" in capsys.readouterr().err


def test_start_arguments():
    args = build_parser().parse_args(
        ["start", "x.xml", "--destination", "uid1", "--path", "blog/2020", "--publisher", "pub",
         "--mode", "authored", "--password", "pw", "--overwrite"]
    )
    assert args.destination == "uid1"
    assert args.path == "blog/2020"
    assert args.mode == "authored"
    assert args.overwrite


def test_results_summary_is_truncated(capsys):
    results = ImportResults(
        imported=3,
        skipped=[ImportResultItem(path=["p", str(i)], title=f"T{i}") for i in range(7)],
        failed=[FailedResultItem(path=["f"], title="F", error="boom")],
    )
    print_results(results)
    out = capsys.readouterr().out
    assert "Imported: 3" in out
    assert "Skipped: 7" in out
    assert "/p/4 (T4)" in out
    assert "/p/5 (T5)" not in out
    assert "...and 2 more" in out
    assert "/f (F): boom" in out


class InterruptedTask:
    """Raises Ctrl-C on the first wait, then reports the outcome of cancelling."""

    import_id = "abc123"

    def __init__(self, outcome):
        self.outcome = outcome
        self.cancel_requested = False
        self.waits = 0

    def result(self, timeout=None):
        self.waits += 1
        if self.waits == 1:
            raise KeyboardInterrupt
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome

    def cancel(self):
        self.cancel_requested = True


def test_ctrl_c_cancels_the_task_and_leaves_it_resumable(capsys):
    task = InterruptedTask(ImportCancelled("Import abc123 was cancelled"))
    assert wait_for_results(task) == EXIT_INTERRUPTED
    assert task.cancel_requested
    assert task.waits == 2
    err = capsys.readouterr().err
    assert "resume --import-id abc123" in err


def test_ctrl_c_after_the_last_post_still_prints_results(capsys):
    task = InterruptedTask(ImportResults(imported=2))
    assert wait_for_results(task) == 0
    assert task.cancel_requested
    assert "Imported: 2" in capsys.readouterr().out
