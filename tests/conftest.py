"""Shared test fixtures for the CRM board tests."""

import sys
from pathlib import Path

import pytest

# Ensure the repo root (pkg/, crm_server.py, crm_cli.py) is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from pkg.crm.board import BoardState
from pkg.crm.config import Config
from pkg.crm.schema import Customer, initial_board


class RecordingNotifier:
    """Collects alerted customers instead of showing anything."""

    def __init__(self):
        self.alerts = []

    def notify(self, customer):
        self.alerts.append(customer.id)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "db.json"


@pytest.fixture
def cfg(tmp_path):
    """Config pointing at a temp db, isolated from the environment."""
    return Config.load(str(tmp_path / "missing.yaml"), environ={
        "CRM_DB": str(tmp_path / "db.json"),
    })


@pytest.fixture
def board():
    """Initial board with two customers: c1 in numbers-list, c2 in customer."""
    b = initial_board()
    b.cards["c1"] = Customer(id="c1", phone="09120000001", name="Sara", shop_name="Sara Tailoring")
    b.cards["c2"] = Customer(id="c2", phone="09120000002", name="Reza", shop_name="Reza Atelier")
    b.columns["numbers-list"].card_ids.append("c1")
    b.columns["customer"].card_ids.append("c2")
    return b


@pytest.fixture
def state(board):
    return BoardState(board)
