"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - Tests run against the database named by TestingConfig — in-memory SQLite
    unless TEST_DATABASE_URL points somewhere else.
  - The app is created once per session using create_app("testing").
  - All tables are created once via db.create_all() at session start.
  - Between tests, all rows are deleted in FK-safe order so tests are isolated.
    This is cheaper than nested transactions.

Helper functions (not fixtures) are provided for common operations:
  - make_group(client, ...)       → group dict (with participants)
  - add_participant(client, ...)  → HTTP response
  - make_expense(client, ...)     → HTTP response
  - get_balances(client, ...)     → balances payload
  - ids_by_name(group)            → {"Alice": 1, ...}

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test without fixture parameterization overhead.
"""

from __future__ import annotations

import pytest
from sqlalchemy import text

from splitmint.app import create_app
from splitmint.app.extensions import db as _db


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    """
    Creates the Flask application in 'testing' mode once for the entire test session.

    Steps:
      1. Create app with TestingConfig.
      2. Run db.create_all() to create all tables.
      3. Yield the app for the test session.
      4. Drop all tables at teardown.
    """
    flask_app = create_app("testing")

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """
    Deletes all rows between tests in FK-safe order.

    autouse=True means this runs after EVERY test in the integration suite
    without needing to be declared in each test function.
    """
    yield  # run the test

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test

        with _db.engine.connect() as conn:
            conn.execute(text("DELETE FROM splits"))
            conn.execute(text("DELETE FROM expenses"))
            conn.execute(text("DELETE FROM participants"))
            conn.execute(text("DELETE FROM groups"))
            conn.commit()


# ═══════════════════════════════════════════════════════════════════════════
# Client fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def make_group(
    client,
    name: str = "Test Group",
    participants: list[str] | None = None,
) -> dict:
    """
    Creates a group and returns the group data dict.
    Returns: {"id", "name", "created_at", "participants": [{"id", "group_id", "name"}]}
    """
    payload: dict = {"name": name}
    if participants is not None:
        payload["participants"] = participants

    resp = client.post("/api/v1/groups/", json=payload)
    assert resp.status_code == 201, f"make_group failed: {resp.get_json()}"
    return resp.get_json()["data"]


def ids_by_name(group: dict) -> dict:
    """Maps participant names to ids for a group dict returned by make_group."""
    return {p["name"]: p["id"] for p in group["participants"]}


def add_participant(client, group_id: int, name: str):
    """Adds a participant to a group. Returns the HTTP response."""
    return client.post(
        f"/api/v1/groups/{group_id}/participants",
        json={"name": name},
    )


def make_expense(
    client,
    group_id: int,
    paid_by: int,
    amount: str,
    split_type: str = "EQUAL",
    participant_ids: list[int] | None = None,
    splits: list[dict] | None = None,
    description: str = "Test Expense",
    expense_date: str | None = None,
):
    """
    Creates an expense and returns the HTTP response.
    EQUAL takes participant_ids; EXACT takes splits of {participant_id, amount};
    PERCENTAGE takes splits of {participant_id, percentage}.
    """
    payload: dict = {
        "paid_by_participant_id": paid_by,
        "description": description,
        "amount": amount,
        "split_type": split_type,
    }
    if participant_ids is not None:
        payload["participant_ids"] = participant_ids
    if splits is not None:
        payload["splits"] = splits
    if expense_date is not None:
        payload["expense_date"] = expense_date

    return client.post(f"/api/v1/groups/{group_id}/expenses", json=payload)


def get_balances(client, group_id: int) -> dict:
    """Returns the balances payload for a group."""
    resp = client.get(f"/api/v1/groups/{group_id}/balances")
    assert resp.status_code == 200, f"get_balances failed: {resp.get_json()}"
    return resp.get_json()["data"]


def balance_of(balances: dict, participant_id: int) -> str:
    """Returns one participant's net balance string from a balances payload."""
    for row in balances["balances"]:
        if row["participant_id"] == participant_id:
            return row["balance"]
    raise KeyError(participant_id)
