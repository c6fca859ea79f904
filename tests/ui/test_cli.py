from __future__ import annotations

import asyncio
from functools import partial
from pathlib import Path  # noqa: TC003

import pytest
from sqlalchemy.engine import Engine  # noqa: TC002

from replication_checker.adapters.sqlalchemy import SqlAlchemyLibrary
from replication_checker.app import build_application
from replication_checker.config import CheckerSettings
from replication_checker.domain.reconciliation.profiles import (
    TAG_HAS_REPLICATION,
    TAG_IS_REPLICATION,
)
from replication_checker.ui import cli as cli_module
from tests.support.fakes import FakeCandidateSource
from tests.support.studies import make_candidate, make_study

ORIGINAL = "10.1037/pspa0000073"

BIBTEX = """
@article{aknin2013,
  title = {Prosocial spending and well-being},
  author = {Aknin, Lara B. and Dunn, Elizabeth W.},
  journal = {Journal of Personality and Social Psychology},
  year = {2013},
  doi = {10.1037/a0031578}
}

@book{kahneman2011,
  title = {Thinking, Fast and Slow},
  author = {Kahneman, Daniel},
  year = {2011}
}
"""


@pytest.fixture
def source() -> FakeCandidateSource:
    return FakeCandidateSource(
        [make_candidate(ORIGINAL, replications=(make_study(doi="10.1000/rep.1"),))]
    )


@pytest.fixture
def library(
    sqlite_started: Engine,
    source: FakeCandidateSource,
    monkeypatch: pytest.MonkeyPatch,
) -> SqlAlchemyLibrary:
    _ = sqlite_started
    monkeypatch.setattr(
        cli_module,
        "build_application",
        partial(
            build_application,
            source=source,
            settings=CheckerSettings(new_record_delay_seconds=0.0),
        ),
    )
    return SqlAlchemyLibrary()


def _stdout_lines(capsys: pytest.CaptureFixture[str]) -> list[str]:
    return capsys.readouterr().out.strip().splitlines()


def test_libraries_list_creates_the_personal_library(
    library: SqlAlchemyLibrary, capsys: pytest.CaptureFixture[str]
) -> None:
    _ = library
    cli_module.main(["libraries", "add", "Lab Group", "--read-only"])
    capsys.readouterr()

    cli_module.main(["libraries", "list"])

    assert _stdout_lines(capsys) == ["1\tLab Group\tread-only", "2\tMy Library\tpersonal"]


def test_records_add_and_list(
    library: SqlAlchemyLibrary, capsys: pytest.CaptureFixture[str]
) -> None:
    cli_module.main(
        [
            "records",
            "add",
            "--title",
            "Prosocial spending",
            "--doi",
            ORIGINAL,
            "--author",
            "Aknin, Lara",
            "--author",
            "Dunn",
        ]
    )
    [record_id] = _stdout_lines(capsys)

    record = asyncio.run(library.get_record(int(record_id)))
    assert [(c.last_name, c.first_name) for c in record.creators] == [
        ("Aknin", "Lara"),
        ("Dunn", None),
    ]

    cli_module.main(["records", "list"])

    assert _stdout_lines(capsys) == [
        f"{record_id}\tjournalArticle\t{ORIGINAL}\tProsocial spending"
    ]


def test_records_import_reads_every_bibtex_entry(
    library: SqlAlchemyLibrary, tmp_path: Path
) -> None:
    path = tmp_path / "refs.bib"
    path.write_text(BIBTEX, encoding="utf-8")

    cli_module.main(["records", "import", str(path)])

    personal = asyncio.run(library.personal_library_id())
    records = asyncio.run(library.list_records(personal))
    assert [record.item_type for record in records] == ["journalArticle", "book"]
    assert records[0].field_value("DOI") == "10.1037/a0031578"
    assert records[1].title == "Thinking, Fast and Slow"


def test_check_library_reconciles_and_reports(
    library: SqlAlchemyLibrary, capsys: pytest.CaptureFixture[str]
) -> None:
    cli_module.main(["records", "add", "--title", "Original", "--doi", ORIGINAL])
    original = int(_stdout_lines(capsys)[0])

    cli_module.main(["--yes", "check", "library"])

    output = capsys.readouterr().out
    assert "== Library Scan Complete ==" in output
    assert TAG_HAS_REPLICATION in asyncio.run(library.get_tags(original))
    [related] = asyncio.run(library.get_related(original))
    assert TAG_IS_REPLICATION in asyncio.run(library.get_tags(related))


def test_check_source_failure_is_reported_not_raised(
    library: SqlAlchemyLibrary,
    source: FakeCandidateSource,
    capsys: pytest.CaptureFixture[str],
) -> None:
    source.fail = True
    cli_module.main(["records", "add", "--title", "Original", "--doi", ORIGINAL])
    capsys.readouterr()

    cli_module.main(["check", "records", "1"])

    assert "== Replication Checker - Error ==" in capsys.readouterr().out
    assert asyncio.run(library.get_tags(1)) == set()


def test_bans_commands(library: SqlAlchemyLibrary, capsys: pytest.CaptureFixture[str]) -> None:
    cli_module.main(["records", "add", "--title", "Original", "--doi", ORIGINAL])
    original = int(_stdout_lines(capsys)[0])
    cli_module.main(["--yes", "check", "library"])
    [related] = asyncio.run(library.get_related(original))
    capsys.readouterr()

    cli_module.main(["bans", "add", str(related)])
    assert _stdout_lines(capsys) == ["Banned 1 record(s)"]

    cli_module.main(["bans", "list"])
    assert _stdout_lines(capsys) == ["replication\t10.1000/rep.1\tA replication\tmanual"]

    cli_module.main(["bans", "remove", "https://doi.org/10.1000/rep.1"])
    assert _stdout_lines(capsys) == ["Removed 1 ban(s)"]

    cli_module.main(["bans", "clear"])
    assert _stdout_lines(capsys) == ["Cleared 0 ban(s)"]


def test_invalid_author_exits_with_usage_code(library: SqlAlchemyLibrary) -> None:
    _ = library
    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(["records", "add", "--title", "Untitled", "--author", ", Lara"])

    assert excinfo.value.code == 2


def test_unknown_library_exits_with_failure(library: SqlAlchemyLibrary) -> None:
    _ = library
    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(["records", "list", "--library-id", "99"])

    assert excinfo.value.code == 1


def test_missing_subcommand_is_an_argparse_error() -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(["check"])

    assert excinfo.value.code == 2
