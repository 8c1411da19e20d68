"""
Tests for the CLI
"""

import json
import pytest
from everbloom.cli import main
from everbloom.store import EntityStore


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "cli.db"


@pytest.fixture
def seeded(db_path):
    store = EntityStore(db_path=db_path)
    user = store.create_user("sam@example.com", "Sam")
    relationship = store.create_relationship(user.id, "Alex", "FRIEND", important_dates={"Birthday": "1990-01-15"})
    return user, relationship


def test_init_db(db_path):
    main(["--db", str(db_path), "init-db"])
    assert db_path.exists()


def test_notifications_stdout(db_path, seeded, capsys):
    user, relationship = seeded
    main(["--db", str(db_path), "notifications", user.id, "--today", "2025-01-10"])

    feed = json.loads(capsys.readouterr().out)
    ids = [n["id"] for n in feed["notifications"]]
    assert ids == [f"reminder-{relationship.id}", f"{relationship.id}-Birthday"]


def test_notifications_output_file(db_path, seeded, tmp_path):
    user, _ = seeded
    output = tmp_path / "feed.json"
    main(["--db", str(db_path), "notifications", user.id, "--today", "2025-01-10", "-o", str(output)])
    assert json.loads(output.read_text())["today"] == "2025-01-10"


def test_log_command(db_path, seeded, capsys):
    user, relationship = seeded
    main(["--db", str(db_path), "log", user.id, relationship.id, "conversation", "Long call"])
    assert json.loads(capsys.readouterr().out)["new_score"] == 60


def test_log_command_enforces_monthly_cap(db_path, seeded):
    """Test that the free tier's monthly interaction cap applies to the CLI too."""
    user, relationship = seeded
    store = EntityStore(db_path=db_path)
    for i in range(50):
        store.log_interaction(user.id, relationship.id, "message_sent", f"Message {i}")

    with pytest.raises(SystemExit) as exc_info:
        main(["--db", str(db_path), "log", user.id, relationship.id, "conversation", "One more"])

    assert exc_info.value.code == 1
    assert store.get_usage(user.id)["interactions_this_month"] == 50


def test_dashboard_command(db_path, seeded, capsys):
    user, _ = seeded
    main(["--db", str(db_path), "dashboard", user.id])
    report = json.loads(capsys.readouterr().out)
    assert report["stats"]["total_relationships"] == 1


@pytest.mark.parametrize("args", [
    ["log", "USER", "REL", "SKYDIVING", "Jumped"],
    ["notifications", "USER", "--today", "someday"],
])
def test_errors_exit_nonzero(db_path, seeded, args):
    user, relationship = seeded
    args = [a.replace("USER", user.id).replace("REL", relationship.id) for a in args]
    with pytest.raises(SystemExit) as exc_info:
        main(["--db", str(db_path)] + args)
    assert exc_info.value.code == 1
