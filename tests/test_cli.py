"""
End-to-end tests for the Typer CLI against a SQLite database.
"""

import pytest
from typer.testing import CliRunner

from slotswap.adapters.sqlalchemy_store import SqlAlchemySwapStore
from slotswap.cli.app import app
from slotswap.domain.models import SlotStatus, SwapStatus

runner = CliRunner()


def _text(result):
    """Console output with Rich line wrapping collapsed."""
    return " ".join(result.output.split())


@pytest.fixture
def config_path(tmp_path):
    db_path = tmp_path / "cli.db"
    path = tmp_path / "config.yaml"
    path.write_text(
        f"""
timezone: Europe/Berlin
store:
  backend: sqlalchemy
  url: sqlite:///{db_path}
users:
  - {{id: u-alice, name: alice, email: alice@example.com}}
  - {{id: u-bob, name: bob, email: bob@example.com}}
""",
        encoding="utf-8",
    )
    return path


def _invoke(config_path, *args):
    return runner.invoke(app, [*args, "--config", str(config_path)])


def _store(config_path):
    return SqlAlchemySwapStore(url=f"sqlite:///{config_path.parent / 'cli.db'}")


def _slots_of(config_path, owner_id):
    store = _store(config_path)
    try:
        with store.transaction() as tx:
            return tx.find_slots(owner_id=owner_id)
    finally:
        store.dispose()


def _add(config_path, user, title, start, end):
    result = _invoke(
        config_path, "slot", "add", title, "--start", start, "--end", end, "--swappable", "--as", user
    )
    assert result.exit_code == 0, result.output


def test_full_swap_flow(config_path):
    _add(config_path, "alice", "Standup", "2024-11-25 10:00", "2024-11-25 11:00")
    _add(config_path, "bob", "Review", "2024-11-25 14:00", "2024-11-25 15:00")
    alice_slot = _slots_of(config_path, "u-alice")[0]
    bob_slot = _slots_of(config_path, "u-bob")[0]

    market = _invoke(config_path, "market", "--as", "alice")
    assert market.exit_code == 0
    assert "Review" in market.output

    proposed = _invoke(config_path, "propose", alice_slot.id, bob_slot.id, "--as", "alice")
    assert proposed.exit_code == 0, proposed.output
    assert "PENDING" in proposed.output

    store = _store(config_path)
    with store.transaction() as tx:
        request = tx.find_swaps(target_user_id="u-bob")[0]
    store.dispose()

    incoming = _invoke(config_path, "incoming", "--as", "bob")
    assert incoming.exit_code == 0
    assert "Incoming requests" in incoming.output

    responded = _invoke(config_path, "respond", request.id, "accept", "--as", "bob")
    assert responded.exit_code == 0, responded.output
    assert "ACCEPTED" in responded.output

    assert [s.id for s in _slots_of(config_path, "u-alice")] == [bob_slot.id]
    assert _slots_of(config_path, "u-bob")[0].status is SlotStatus.BUSY

    again = _invoke(config_path, "respond", request.id, "reject", "--as", "bob")
    assert again.exit_code == 1
    assert "already been processed" in _text(again)

    store = _store(config_path)
    with store.transaction() as tx:
        assert tx.get_swap(request.id).status is SwapStatus.ACCEPTED
    store.dispose()


def test_invalid_times_are_reported(config_path):
    result = _invoke(
        config_path, "slot", "add", "Backwards", "--start", "2024-11-25 11:00", "--end", "2024-11-25 10:00", "--as", "alice"
    )

    assert result.exit_code == 1
    assert "must be after start time" in _text(result)


def test_unknown_user_is_rejected(config_path):
    result = _invoke(config_path, "slot", "list", "--as", "mallory")

    assert result.exit_code == 1
    assert "Unknown user identifier" in _text(result)


def test_pending_slot_cannot_be_deleted(config_path):
    _add(config_path, "alice", "Standup", "2024-11-25 10:00", "2024-11-25 11:00")
    _add(config_path, "bob", "Review", "2024-11-25 14:00", "2024-11-25 15:00")
    alice_slot = _slots_of(config_path, "u-alice")[0]
    bob_slot = _slots_of(config_path, "u-bob")[0]
    _invoke(config_path, "propose", alice_slot.id, bob_slot.id, "--as", "alice")

    result = _invoke(config_path, "slot", "delete", alice_slot.id, "--as", "alice")

    assert result.exit_code == 1
    assert "pending swap" in _text(result)


def test_store_outage_shows_retry_hint(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        f"store:\n  url: sqlite:///{tmp_path / 'missing' / 'x.db'}\n",
        encoding="utf-8",
    )

    result = runner.invoke(app, ["users", "--config", str(path)])

    assert result.exit_code == 1
    assert "try again" in _text(result)


def test_users_lists_configured_users(config_path):
    result = _invoke(config_path, "users")

    assert result.exit_code == 0
    assert "alice@example.com" in _text(result)
