"""
Board state model: pure transitions and the state container.

Every transition is a total function BoardData -> BoardData. Transitions never
mutate their input and treat unknown customer/column/call ids as a no-op,
returning the board unchanged: the caller is a UI that may act on stale,
already-rendered state.

BoardState is the single mutation entry point. It applies one transition at a
time under a lock and swaps the snapshot in one step, so readers (redraws,
the reminder sweep, the saver) never see a half-applied change.
"""
import logging
import threading
from dataclasses import replace
from typing import Optional, List, Dict, Any, Callable, Tuple, TypeVar

from .schema import (
    BoardData,
    CallLog,
    Column,
    Customer,
    Tag,
    EDITABLE_FIELDS,
    NUMBERS_LIST,
    TAG_COLORS,
    make_id,
    normalize_phone,
    now_ms,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Read model
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def find_column(board: BoardData, customer_id: str) -> Optional[str]:
    """Id of the first column holding customer_id, or None."""
    for column_id, column in board.columns.items():
        if customer_id in column.card_ids:
            return column_id
    return None


def column_cards(board: BoardData, column_id: str) -> List[Customer]:
    """Customers of a column in display order. Dangling ids are skipped."""
    column = board.columns.get(column_id)
    if not column:
        return []
    return [board.cards[cid] for cid in column.card_ids if cid in board.cards]


def all_tags(board: BoardData) -> Dict[str, Tag]:
    """Global tag vocabulary keyed by text. First occurrence wins."""
    vocabulary: Dict[str, Tag] = {}
    for customer in board.cards.values():
        for tag in customer.tags:
            vocabulary.setdefault(tag.text, tag)
    return vocabulary


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Helpers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def _with_customer(board: BoardData, customer: Customer) -> BoardData:
    cards = dict(board.cards)
    cards[customer.id] = customer
    return replace(board, cards=cards)


def _edit_customer(
    board: BoardData, customer_id: str, fn: Callable[[Customer], Customer]
) -> BoardData:
    customer = board.cards.get(customer_id)
    if customer is None:
        return board
    updated = fn(customer)
    if updated is customer:
        return board
    return _with_customer(board, updated)


def remove_card_ids(board: BoardData, ids) -> Dict[str, Column]:
    """Copy of the columns with ids removed from every column."""
    ids = set(ids)
    columns = {}
    for column_id, column in board.columns.items():
        if ids.intersection(column.card_ids):
            column = replace(column, card_ids=[c for c in column.card_ids if c not in ids])
        columns[column_id] = column
    return columns


def _customer_fields(fields: Dict[str, Any]) -> Dict[str, str]:
    """Editable attributes from a form dict. Accepts JSON or attribute keys."""
    values = {}
    for key, attr in EDITABLE_FIELDS.items():
        if key in fields:
            values[attr] = fields[key]
        elif attr in fields:
            values[attr] = fields[attr]
    return {k: str(v or "").strip() for k, v in values.items()}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Customer lifecycle
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def add_customer(
    board: BoardData,
    fields: Dict[str, Any],
    customer_id: Optional[str] = None,
    column_id: str = NUMBERS_LIST,
    at_end: bool = True,
) -> BoardData:
    """
    Create a customer from form fields and place it in the intake column.

    The new card gets a fresh id, no tags and no call history. If the intake
    column is missing the customer is stored orphaned.
    """
    values = _customer_fields(fields)
    values["phone"] = normalize_phone(values.get("phone", ""))
    customer = Customer(id=customer_id or make_id("card"), **values)

    board = _with_customer(board, customer)
    column = board.columns.get(column_id)
    if column is None:
        logger.warning(f"Intake column {column_id} missing; {customer.id} is orphaned")
        return board
    card_ids = column.card_ids + [customer.id] if at_end else [customer.id] + column.card_ids
    columns = dict(board.columns)
    columns[column_id] = replace(column, card_ids=card_ids)
    return replace(board, columns=columns)


def update_customer(board: BoardData, customer: Customer) -> BoardData:
    """Replace the stored record wholesale. Unknown id is a no-op."""
    if customer.id not in board.cards:
        return board
    return _with_customer(board, customer)


def delete_customer(board: BoardData, customer_id: str) -> BoardData:
    """Remove the customer and its id from every column."""
    in_columns = any(customer_id in c.card_ids for c in board.columns.values())
    if customer_id not in board.cards and not in_columns:
        return board
    cards = {cid: c for cid, c in board.cards.items() if cid != customer_id}
    return replace(board, cards=cards, columns=remove_card_ids(board, [customer_id]))


def move_customer(board: BoardData, customer_id: str, dest_column_id: str) -> BoardData:
    """Drag-and-drop: take the card out of its column, append it to dest."""
    source_id = find_column(board, customer_id)
    if source_id is None or source_id == dest_column_id:
        return board
    if dest_column_id not in board.columns:
        return board

    columns = remove_card_ids(board, [customer_id])
    dest = columns[dest_column_id]
    columns[dest_column_id] = replace(dest, card_ids=dest.card_ids + [customer_id])
    return replace(board, columns=columns)


def rename_column(board: BoardData, column_id: str, title: str) -> BoardData:
    column = board.columns.get(column_id)
    title = (title or "").strip()
    if column is None or not title or title == column.title:
        return board
    columns = dict(board.columns)
    columns[column_id] = replace(column, title=title)
    return replace(board, columns=columns)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Tags, reminders, notes
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def set_tags(board: BoardData, customer_id: str, tags: List[Tag]) -> BoardData:
    return _edit_customer(board, customer_id, lambda c: replace(c, tags=list(tags)))


def add_tag(
    board: BoardData,
    customer_id: str,
    text: str,
    color: str = TAG_COLORS[0],
    tag_id: Optional[str] = None,
) -> BoardData:
    """Append a tag unless the customer already has one with the same text."""
    text = (text or "").strip()

    def _add(customer: Customer) -> Customer:
        # Exact, case-sensitive match on text
        if not text or any(t.text == text for t in customer.tags):
            return customer
        tag = Tag(id=tag_id or make_id("tag"), text=text, color=color)
        return replace(customer, tags=customer.tags + [tag])

    return _edit_customer(board, customer_id, _add)


def remove_tag(board: BoardData, customer_id: str, tag_id: str) -> BoardData:
    def _remove(customer: Customer) -> Customer:
        if not any(t.id == tag_id for t in customer.tags):
            return customer
        return replace(customer, tags=[t for t in customer.tags if t.id != tag_id])

    return _edit_customer(board, customer_id, _remove)


def set_reminder(board: BoardData, customer_id: str, timestamp: Optional[int]) -> BoardData:
    """Set (ms epoch) or clear (None) the customer's reminder."""
    return _edit_customer(board, customer_id, lambda c: replace(c, reminder=timestamp))


def set_notes(board: BoardData, customer_id: str, notes: str) -> BoardData:
    return _edit_customer(board, customer_id, lambda c: replace(c, notes=notes or ""))


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Call history
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def log_call(
    board: BoardData,
    customer_id: str,
    call_id: Optional[str] = None,
    now: Optional[int] = None,
) -> BoardData:
    """Prepend an empty call log stamped with the current time."""
    call = CallLog(
        id=call_id or make_id("call"),
        timestamp=now if now is not None else now_ms(),
    )
    return _edit_customer(
        board, customer_id, lambda c: replace(c, call_history=[call] + c.call_history)
    )


def edit_call_notes(board: BoardData, customer_id: str, call_id: str, notes: str) -> BoardData:
    def _edit(customer: Customer) -> Customer:
        if not any(call.id == call_id for call in customer.call_history):
            return customer
        history = [
            replace(call, notes=notes or "") if call.id == call_id else call
            for call in customer.call_history
        ]
        return replace(customer, call_history=history)

    return _edit_customer(board, customer_id, _edit)


def delete_call(board: BoardData, customer_id: str, call_id: str) -> BoardData:
    def _delete(customer: Customer) -> Customer:
        if not any(call.id == call_id for call in customer.call_history):
            return customer
        history = [call for call in customer.call_history if call.id != call_id]
        return replace(customer, call_history=history)

    return _edit_customer(board, customer_id, _delete)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# BoardState — single mutation entry point
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class BoardState:
    """
    Holds the current board snapshot and applies transitions atomically.

    Subscribers are called with the new snapshot after every transition that
    changed something. A failing subscriber is logged and skipped.
    """

    def __init__(
        self,
        board: Optional[BoardData] = None,
        intake_column: str = NUMBERS_LIST,
        insert_at_end: bool = True,
    ):
        self._board = board if board is not None else BoardData()
        self._lock = threading.RLock()
        self.intake_column = intake_column
        self.insert_at_end = insert_at_end
        self.subscribers: List[Callable[[BoardData], None]] = []

    @property
    def board(self) -> BoardData:
        """Current snapshot. Never mutate it; apply a transition instead."""
        return self._board

    def subscribe(self, callback: Callable[[BoardData], None]) -> None:
        self.subscribers.append(callback)

    def _emit(self, board: BoardData) -> None:
        for callback in self.subscribers:
            try:
                callback(board)
            except Exception as e:
                logger.error(f"Board subscriber {callback!r} failed: {e}")

    def transact(self, fn: Callable[[BoardData], Tuple[BoardData, T]]) -> T:
        """Run fn(board) -> (new_board, result) as one transition."""
        with self._lock:
            new_board, result = fn(self._board)
            changed = new_board is not self._board
            self._board = new_board
            # Emit under the lock so subscribers see snapshots in order
            if changed:
                self._emit(new_board)
        return result

    def apply(self, transition: Callable[..., BoardData], *args, **kwargs) -> BoardData:
        """Apply transition(board, *args, **kwargs) and return the new snapshot."""
        def _run(board: BoardData):
            new_board = transition(board, *args, **kwargs)
            return new_board, new_board

        return self.transact(_run)

    def replace_board(self, board: BoardData) -> BoardData:
        """Swap in a whole document (initial load, reload from the store)."""
        return self.apply(lambda _: board)

    # ── Operations ───────────────────────────────────────────────

    def add_customer(self, fields: Dict[str, Any]) -> Customer:
        customer_id = make_id("card")
        board = self.apply(
            add_customer,
            fields,
            customer_id=customer_id,
            column_id=self.intake_column,
            at_end=self.insert_at_end,
        )
        return board.cards[customer_id]

    def update_customer(self, customer: Customer) -> BoardData:
        return self.apply(update_customer, customer)

    def delete_customer(self, customer_id: str) -> BoardData:
        return self.apply(delete_customer, customer_id)

    def move_customer(self, customer_id: str, dest_column_id: str) -> BoardData:
        return self.apply(move_customer, customer_id, dest_column_id)

    def rename_column(self, column_id: str, title: str) -> BoardData:
        return self.apply(rename_column, column_id, title)

    def set_tags(self, customer_id: str, tags: List[Tag]) -> BoardData:
        return self.apply(set_tags, customer_id, tags)

    def add_tag(self, customer_id: str, text: str, color: str = TAG_COLORS[0]) -> BoardData:
        return self.apply(add_tag, customer_id, text, color)

    def remove_tag(self, customer_id: str, tag_id: str) -> BoardData:
        return self.apply(remove_tag, customer_id, tag_id)

    def set_reminder(self, customer_id: str, timestamp: Optional[int]) -> BoardData:
        return self.apply(set_reminder, customer_id, timestamp)

    def set_notes(self, customer_id: str, notes: str) -> BoardData:
        return self.apply(set_notes, customer_id, notes)

    def log_call(self, customer_id: str) -> Optional[Customer]:
        """Log a call now; returns the updated customer for note entry."""
        board = self.apply(log_call, customer_id)
        return board.cards.get(customer_id)

    def edit_call_notes(self, customer_id: str, call_id: str, notes: str) -> BoardData:
        return self.apply(edit_call_notes, customer_id, call_id, notes)

    def delete_call(self, customer_id: str, call_id: str) -> BoardData:
        return self.apply(delete_call, customer_id, call_id)
