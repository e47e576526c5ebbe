"""
CRM board document schema.

The whole board is one JSON document:

  { cards: {id: Customer}, columns: {id: Column}, columnOrder: [id, ...] }

Every customer id appears in at most one column's cardIds. Dataclasses here
serialize to the camelCase keys the stored document uses.
"""
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any


# Fixed workflow columns of the initial board
NUMBERS_LIST = "numbers-list"        # intake: new and imported customers
CONTACT_FAILED = "contact-failed"
NEEDS_ACTION = "needs-action"        # reminder sweep target
NEEDS_FOLLOW_UP = "needs-follow-up"
CUSTOMER = "customer"

INITIAL_COLUMNS = [
    (NUMBERS_LIST, "لیست شماره ها"),
    (CONTACT_FAILED, "عدم برقرار تماس"),
    (NEEDS_ACTION, "نیاز به اقدام"),
    (NEEDS_FOLLOW_UP, "نیاز به آموزش و پیگیری"),
    (CUSTOMER, "مشتری"),
]

# Tag colour tokens, assigned in this order when importing
TAG_COLORS = [
    "blue",
    "green",
    "yellow",
    "red",
    "purple",
    "pink",
    "indigo",
    "gray",
]

# Customer attributes a user edits directly (JSON key -> attribute)
EDITABLE_FIELDS = {
    "phone": "phone",
    "name": "name",
    "shopName": "shop_name",
    "shopType": "shop_type",
    "city": "city",
}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Utilities
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def now_ms() -> int:
    """Current time as milliseconds since the epoch."""
    return int(time.time() * 1000)


def make_id(prefix: str) -> str:
    """Generate a sortable unique id (ms-precision timestamp + random hex)."""
    return f"{prefix}-{now_ms()}-{uuid.uuid4().hex[:8]}"


def normalize_phone(raw: Any) -> str:
    """Trim and force the leading-zero local format. Empty stays empty."""
    phone = str(raw or "").strip()
    if phone and not phone.startswith("0"):
        phone = f"0{phone}"
    return phone


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Records
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass
class Tag:
    id: str
    text: str
    color: str = TAG_COLORS[0]

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "text": self.text, "color": self.color}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Tag":
        return cls(
            id=str(data.get("id", "")),
            text=str(data.get("text", "")),
            color=data.get("color") or TAG_COLORS[0],
        )


@dataclass
class CallLog:
    """One logged call. id and timestamp never change after creation."""
    id: str
    timestamp: int                 # ms since epoch
    notes: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "timestamp": self.timestamp, "notes": self.notes}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CallLog":
        return cls(
            id=str(data.get("id", "")),
            timestamp=int(data.get("timestamp") or 0),
            notes=data.get("notes") or "",
        )


@dataclass
class Customer:
    """A card on the board."""

    # Identifiers
    id: str

    # Contact details
    phone: str = ""
    name: str = ""
    shop_name: str = ""
    shop_type: str = ""
    city: str = ""

    # Follow-up
    reminder: Optional[int] = None     # ms since epoch; None = no reminder
    notes: str = ""

    # Collections
    tags: List[Tag] = field(default_factory=list)
    call_history: List[CallLog] = field(default_factory=list)   # newest first

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "phone": self.phone,
            "name": self.name,
            "shopName": self.shop_name,
            "shopType": self.shop_type,
            "city": self.city,
            "tags": [t.to_dict() for t in self.tags],
            "callHistory": [c.to_dict() for c in self.call_history],
        }
        # Optional keys are absent rather than null in the stored document
        if self.reminder is not None:
            data["reminder"] = self.reminder
        if self.notes:
            data["notes"] = self.notes
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Customer":
        tags = data.get("tags")
        calls = data.get("callHistory")
        reminder = data.get("reminder")
        return cls(
            id=str(data.get("id", "")),
            phone=str(data.get("phone") or ""),
            name=data.get("name") or "",
            shop_name=data.get("shopName") or "",
            shop_type=data.get("shopType") or "",
            city=data.get("city") or "",
            reminder=int(reminder) if reminder else None,
            notes=data.get("notes") or "",
            tags=[Tag.from_dict(t) for t in tags] if isinstance(tags, list) else [],
            call_history=[CallLog.from_dict(c) for c in calls] if isinstance(calls, list) else [],
        )


@dataclass
class Column:
    id: str
    title: str
    card_ids: List[str] = field(default_factory=list)   # display order

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title, "cardIds": list(self.card_ids)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Column":
        card_ids = data.get("cardIds")
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title") or "",
            card_ids=[str(c) for c in card_ids] if isinstance(card_ids, list) else [],
        )


@dataclass
class BoardData:
    """Document root. Treated as a value: transitions build a new one."""
    cards: Dict[str, Customer] = field(default_factory=dict)
    columns: Dict[str, Column] = field(default_factory=dict)
    column_order: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cards": {cid: c.to_dict() for cid, c in self.cards.items()},
            "columns": {cid: col.to_dict() for cid, col in self.columns.items()},
            "columnOrder": list(self.column_order),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BoardData":
        cards = data.get("cards") or {}
        columns = data.get("columns") or {}
        order = data.get("columnOrder") or []
        board = cls()
        for key, raw in cards.items():
            customer = Customer.from_dict(raw)
            # The mapping key is authoritative when the record lost its id
            customer.id = customer.id or key
            board.cards[key] = customer
        for key, raw in columns.items():
            column = Column.from_dict(raw)
            column.id = column.id or key
            board.columns[key] = column
        board.column_order = [str(c) for c in order]
        return board


def initial_board() -> BoardData:
    """The first-run board: five fixed columns, no cards."""
    return BoardData(
        cards={},
        columns={cid: Column(id=cid, title=title) for cid, title in INITIAL_COLUMNS},
        column_order=[cid for cid, _ in INITIAL_COLUMNS],
    )


def validate_board(board: BoardData) -> List[str]:
    """
    Check the document invariants. Returns a list of problems (empty = valid).

    Dangling card ids and duplicate membership are data-quality defects;
    readers tolerate them, writers in strict mode refuse them.
    """
    problems = []
    seen: Dict[str, str] = {}
    for key, column in board.columns.items():
        if column.id != key:
            problems.append(f"column key {key!r} holds column id {column.id!r}")
        for card_id in column.card_ids:
            if card_id not in board.cards:
                problems.append(f"column {key!r} references missing card {card_id!r}")
            if card_id in seen:
                problems.append(
                    f"card {card_id!r} is in both {seen[card_id]!r} and {key!r}"
                )
            else:
                seen[card_id] = key
    for column_id in board.column_order:
        if column_id not in board.columns:
            problems.append(f"columnOrder references missing column {column_id!r}")
    return problems
