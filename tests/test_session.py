"""
Tests for BoardSession: loading, background saves, sweeper wiring.
"""
import json
from unittest.mock import MagicMock

from pkg.crm.schema import initial_board, now_ms
from pkg.crm.session import BoardSession
from pkg.crm.store import DocumentStore


def read_db(cfg):
    with open(cfg.db_path, encoding="utf-8") as f:
        return json.load(f)


class TestLocalSession:

    def test_first_run_creates_db(self, cfg, notifier):
        session = BoardSession(cfg, notifier=notifier)
        session.close()
        assert read_db(cfg) == initial_board().to_dict()

    def test_changes_are_saved(self, cfg, notifier):
        session = BoardSession(cfg, notifier=notifier)
        customer = session.state.add_customer({"phone": "9120000000", "name": "Sara"})
        session.state.set_notes(customer.id, "hello")
        session.close()

        document = read_db(cfg)
        assert document["cards"][customer.id]["notes"] == "hello"
        assert customer.id in document["columns"]["numbers-list"]["cardIds"]

    def test_reopen_sees_saved_board(self, cfg, notifier):
        with BoardSession(cfg, notifier=notifier) as session:
            customer = session.state.add_customer({"phone": "0912"})
        reopened = BoardSession(cfg, notifier=notifier)
        assert customer.id in reopened.board.cards
        reopened.close()

    def test_import_csv(self, cfg, notifier):
        session = BoardSession(cfg, notifier=notifier)
        ids = session.import_csv("phone,name\n9121234567,Ali\n")
        session.close()
        assert len(ids) == 1
        assert read_db(cfg)["cards"][ids[0]]["phone"] == "09121234567"

    def test_summary(self, cfg, notifier):
        session = BoardSession(cfg, notifier=notifier)
        session.state.add_customer({"phone": "0912"})
        summary = session.summary()
        session.close()
        assert summary["numbers-list"] == 1
        assert list(summary) == initial_board().column_order

    def test_sweep_persists(self, cfg, notifier):
        session = BoardSession(cfg, notifier=notifier)
        customer = session.state.add_customer({"phone": "0912"})
        session.state.set_reminder(customer.id, now_ms() - 1000)
        session.sweeper.tick()
        session.close()

        document = read_db(cfg)
        assert "reminder" not in document["cards"][customer.id]
        assert document["columns"]["needs-action"]["cardIds"] == [customer.id]
        assert notifier.alerts == [customer.id]

    def test_configured_intake_column(self, cfg, notifier):
        cfg.intake_column = "contact-failed"
        cfg.insert_at_end = False
        session = BoardSession(cfg, notifier=notifier)
        customer = session.state.add_customer({"phone": "0912"})
        session.close()
        assert read_db(cfg)["columns"]["contact-failed"]["cardIds"] == [customer.id]

    def test_explicit_store(self, tmp_path, cfg, notifier):
        store = DocumentStore(str(tmp_path / "other.json"))
        session = BoardSession(cfg, notifier=notifier, store=store)
        session.state.add_customer({"phone": "0912"})
        session.close()
        assert (tmp_path / "other.json").exists()


class TestWhatsappLinks:

    def test_link_for_customer(self, cfg, notifier):
        session = BoardSession(cfg, notifier=notifier)
        customer = session.state.add_customer({"phone": "09123456789"})
        link = session.whatsapp_link(customer.id, 1)
        session.close()
        assert link.startswith("https://wa.me/989123456789?text=")

    def test_unknown_customer_or_message(self, cfg, notifier):
        session = BoardSession(cfg, notifier=notifier)
        customer = session.state.add_customer({"phone": "0912"})
        assert session.whatsapp_link("nobody") is None
        assert session.whatsapp_link(customer.id, 99) is None
        session.close()


class TestRemoteSession:

    def test_loads_and_pushes_through_client(self, cfg, notifier):
        client = MagicMock()
        client.data_url = "http://crm/api/data"
        client.fetch.return_value = initial_board().to_dict()
        client.push.return_value = True

        session = BoardSession(cfg, notifier=notifier, client=client)
        session.state.add_customer({"phone": "0912"})
        session.close()

        client.fetch.assert_called_once()
        pushed = client.push.call_args[0][0]
        assert len(pushed["cards"]) == 1
