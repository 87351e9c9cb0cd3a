"""Tests for the sales-ingest command line."""

import os

import pytest

from sales_ingest.cli import main
from sales_ingest.store.schema import get_engine, orders

from conftest import count_rows

ENV_VARS = (
    "DATABASE_URL",
    "SALES_SOURCE_PATH",
    "SALES_BATCH_SIZE",
    "SALES_DELIMITER",
    "SALES_REFRESH_ON_STARTUP",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path) -> None:
    """Run every command from tmp_path with none of the ingest variables set."""
    for name in ENV_VARS:
        # setenv first so teardown also removes values written by load_dotenv
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'cli.db'}"


def test_refresh_creates_schema_and_loads(db_url, write_sales_csv) -> None:
    """Test that refresh --create-schema builds the tables and loads every record."""
    source = write_sales_csv(rows=40)

    code = main(
        ["--database-url", db_url, "refresh", "--source", str(source), "--batch-size", "15",
         "--create-schema"]
    )

    assert code == 0
    engine = get_engine(db_url)
    assert count_rows(engine, orders) == 40
    engine.dispose()


def test_refresh_reads_environment(db_url, write_sales_csv, monkeypatch) -> None:
    """Test that DATABASE_URL and SALES_SOURCE_PATH are taken from the environment."""
    monkeypatch.setenv("DATABASE_URL", db_url)
    monkeypatch.setenv("SALES_SOURCE_PATH", str(write_sales_csv(rows=3)))

    assert main(["init-db"]) == 0
    assert main(["refresh"]) == 0


def test_dotenv_file_in_working_directory(db_url, tmp_path, write_sales_csv) -> None:
    """Test that settings in ./.env are used when the environment lacks them."""
    source = write_sales_csv(rows=6)
    (tmp_path / ".env").write_text(
        f"DATABASE_URL={db_url}\nSALES_SOURCE_PATH={source}\nSALES_BATCH_SIZE=4\n",
        encoding="utf-8",
    )

    assert main(["init-db"]) == 0
    assert main(["refresh"]) == 0

    engine = get_engine(db_url)
    assert count_rows(engine, orders) == 6
    engine.dispose()


def test_explicit_env_file(db_url, tmp_path) -> None:
    """Test that --env-file points the CLI at a dotenv file elsewhere."""
    env_file = tmp_path / "conf" / "ingest.env"
    env_file.parent.mkdir()
    env_file.write_text(f'DATABASE_URL="{db_url}"\n', encoding="utf-8")

    assert main(["--env-file", str(env_file), "init-db"]) == 0
    assert os.environ["DATABASE_URL"] == db_url


def test_process_environment_wins_over_dotenv(db_url, tmp_path, monkeypatch) -> None:
    """Test that a variable already set in the process is not replaced by .env."""
    (tmp_path / ".env").write_text("DATABASE_URL=sqlite:///elsewhere.db\n", encoding="utf-8")
    monkeypatch.setenv("DATABASE_URL", db_url)

    assert main(["init-db"]) == 0

    assert os.environ["DATABASE_URL"] == db_url
    assert not (tmp_path / "elsewhere.db").exists()


def test_refresh_failure_exit_code(db_url, tmp_path) -> None:
    """Test that a failed refresh exits with status 1."""
    code = main(
        ["--database-url", db_url, "refresh", "--source", str(tmp_path / "nope.csv"),
         "--create-schema"]
    )

    assert code == 1


def test_missing_database_url_is_config_error() -> None:
    """Test that running without any database URL exits with status 2."""
    assert main(["init-db"]) == 2


def test_invalid_batch_size_is_config_error(db_url) -> None:
    """Test that an out-of-range --batch-size exits with status 2."""
    assert main(["--database-url", db_url, "refresh", "--batch-size", "0"]) == 2


def test_qa_prints_summary(db_url, write_sales_csv, capsys) -> None:
    """Test that qa --strict prints the summary and passes on a clean store."""
    source = write_sales_csv(rows=10)
    main(["--database-url", db_url, "refresh", "--source", str(source), "--create-schema"])

    code = main(["--database-url", db_url, "qa", "--strict"])

    assert code == 0
    out = capsys.readouterr().out
    assert "orders_rows: 10" in out
    assert "has_issues: False" in out
