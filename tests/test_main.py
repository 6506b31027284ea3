"""
End-to-end tests for the command-line interface.
"""

import logging

import pytest
import yaml

from main import build_parser, main


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    """Config file pointing the CLI at a temporary database."""
    monkeypatch.delenv("DB_CONNECTION_STRING", raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({
        "database": {
            "data_dir": str(tmp_path / "data"),
            "connection_string": f"sqlite:///{(tmp_path / 'data' / 'cli.db').as_posix()}",
        },
        "logging": {"level": "WARNING"},
    }))
    return str(path)


@pytest.fixture
def run(config_path, capsys):
    """Run the CLI and return its captured stdout."""
    def _run(*argv):
        main(["--config", config_path, *argv])
        return capsys.readouterr().out
    return _run


def test_parser_aliases():
    parser = build_parser()
    args = parser.parse_args(["bud", "create", "March", "--start", "2024-03-01", "--period", "monthly"])
    assert args.command == "bud"
    assert args.period == "MONTHLY"
    assert parser.parse_args(["pay", "create", "1", "2", "50", "1"]).amount == 50.0


def test_no_command_prints_help(capsys):
    with pytest.raises(SystemExit) as exc_info:
        main([])
    assert exc_info.value.code == 1
    assert "usage:" in capsys.readouterr().out


def test_budget_workflow(run):
    out = run(
        "budget", "create", "March", "--start", "2024-03-01",
        "--income", "1000", "MONTHLY", "Salary",
        "--allocate", "Rent", "NEEDS", "500",
    )
    assert "Created budget 1: March" in out

    out = run("transaction", "add", "1", "120", "--category-id", "1", "--name", "Deposit")
    assert "Recorded REGULAR transaction 1: $120.00" in out

    out = run("budget", "show", "1")
    assert "BUDGET: March" in out
    assert "Rent" in out
    assert "$120.00" in out

    out = run("budget", "list")
    assert "March" in out

    out = run("budget", "duplicate", "1", "--start", "2024-04-01")
    assert "March (Copy)" in out


def test_card_payment_workflow(run):
    run("budget", "create", "March", "--start", "2024-03-01")
    assert "Created card 1: Checking (DEBIT)" in run("card", "create", "Checking")
    assert "Created card 2: Visa (CREDIT)" in run("card", "create", "Visa", "--type", "credit", "--limit", "1000")

    out = run("card-payment", "create", "1", "2", "50", "1")
    assert "Recorded card payment of $50.00" in out

    out = run("transaction", "list", "--budget-id", "1")
    assert "CARD_PAYMENT" in out

    out = run("transaction", "delete", "1")
    assert "Deleted transaction(s): 1, 2" in out


def test_report_csv_export(run, tmp_path):
    run("budget", "create", "March", "--start", "2024-03-01", "--allocate", "Rent", "NEEDS", "500")
    csv_path = tmp_path / "march.csv"

    out = run("report", "budget", "1", "--groups", "--csv", str(csv_path))

    assert "NEEDS" in out
    assert csv_path.exists()


def test_domain_error_exits_with_message(run, capsys):
    with pytest.raises(SystemExit) as exc_info:
        run("budget", "show", "99")
    assert exc_info.value.code == 1
    assert "Error:" in capsys.readouterr().err


def test_invalid_config_exits(tmp_path, capsys):
    path = tmp_path / "config.yaml"
    path.write_text("budgeting: [unclosed")

    with pytest.raises(SystemExit) as exc_info:
        main(["--config", str(path), "budget", "list"])
    assert exc_info.value.code == 1
    assert "Error loading config" in capsys.readouterr().err


def test_budget_current_lists_budget_for_day(run):
    run("budget", "create", "March", "--start", "2024-03-01")
    run("budget", "create", "April", "--start", "2024-04-01")

    out = run("budget", "current", "--on", "2024-03-15")

    assert "March" in out
    assert "April" not in out
    assert "No budgets found." in run("budget", "current", "--on", "2023-12-31")


def test_savings_workflow(run, capsys):
    run("budget", "create", "March", "--start", "2024-03-01")
    assert "Created savings plan 1: Emergency fund" in run("savings", "create", "Emergency fund", "--budget-id", "1")
    assert "Created pocket 1: Rainy day" in run("sav", "pocket-add", "1", "Rainy day", "--goal", "1000")

    out = run("savings", "deposit", "1", "400", "--note", "Bonus")
    assert "Rainy day now holds $400.00" in out
    out = run("savings", "withdraw", "1", "150")
    assert "Rainy day now holds $250.00" in out

    out = run("savings", "show", "1")
    assert "SAVINGS: Emergency fund (funded from March)" in out
    assert "25.0%" in out

    assert "Emergency fund" in run("savings", "list")

    with pytest.raises(SystemExit) as exc_info:
        run("savings", "withdraw", "1", "500")
    assert exc_info.value.code == 1
    assert "cannot go below zero" in capsys.readouterr().err


def test_savings_pocket_needs_existing_plan(run, capsys):
    with pytest.raises(SystemExit):
        run("savings", "pocket-add", "7", "Orphan")
    assert "Savings plan not found" in capsys.readouterr().err
