"""
A working session on the board: state, persistence and the reminder sweeper.

Every transition is pushed to the document store in the background; the
sweeper runs for the lifetime of the session and is stopped on close().
"""
import logging
from typing import Optional, List, Dict, Any

from .board import BoardState, column_cards
from .client import DocumentClient, SnapshotSaver
from .config import Config
from .importer import import_customers
from .reminders import ReminderSweeper
from .schema import BoardData, Customer
from .store import DocumentStore
from .whatsapp import whatsapp_link

logger = logging.getLogger(__name__)


class BoardSession:
    """Loads the board, keeps the store in sync, owns the sweeper thread."""

    def __init__(
        self,
        cfg: Config,
        notifier=None,
        client: Optional[DocumentClient] = None,
        store: Optional[DocumentStore] = None,
    ):
        self.cfg = cfg
        if cfg.server_url or client is not None:
            backend = client or DocumentClient(cfg.server_url, timeout=cfg.http_timeout_secs)
            document = backend.fetch()
            write = backend.push
            logger.info(f"Board loaded from {backend.data_url}")
        else:
            backend = store or DocumentStore(cfg.db_path)
            document = backend.load()
            write = backend.save
        self.backend = backend

        self.state = BoardState(
            BoardData.from_dict(document),
            intake_column=cfg.intake_column,
            insert_at_end=cfg.insert_at_end,
        )
        self.saver = SnapshotSaver(write)
        self.state.subscribe(lambda board: self.saver.submit(board.to_dict()))
        self.sweeper = ReminderSweeper(
            self.state,
            interval_secs=cfg.sweep_interval_secs,
            notifier=notifier,
            target_column=cfg.needs_action_column,
        )

    @property
    def board(self) -> BoardData:
        return self.state.board

    def start(self) -> "BoardSession":
        self.sweeper.start()
        return self

    def close(self) -> None:
        """Stop the sweeper first so no tick lands after the final save."""
        self.sweeper.stop()
        self.saver.close()

    def __enter__(self) -> "BoardSession":
        return self.start()

    def __exit__(self, *exc) -> None:
        self.close()

    # ── Front-end helpers ────────────────────────────────────────

    def import_csv(self, text: str) -> List[str]:
        return self.state.transact(lambda board: import_customers(
            board, text, column_id=self.cfg.intake_column, at_end=self.cfg.insert_at_end,
        ))

    def customer(self, customer_id: str) -> Optional[Customer]:
        return self.board.cards.get(customer_id)

    def whatsapp_link(self, customer_id: str, message_index: int = 0) -> Optional[str]:
        """Link for one of the configured canned messages, None if unknown."""
        customer = self.customer(customer_id)
        messages = self.cfg.whatsapp_messages
        if customer is None or not (0 <= message_index < len(messages)):
            return None
        return whatsapp_link(customer.phone, messages[message_index], self.cfg.whatsapp_country_code)

    def summary(self) -> Dict[str, Any]:
        """Card counts per column in display order."""
        board = self.board
        return {
            column_id: len(column_cards(board, column_id))
            for column_id in board.column_order
            if column_id in board.columns
        }
