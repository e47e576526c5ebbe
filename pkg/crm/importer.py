"""
CSV import and template export for customer lists.

Headers may be English or Persian; each canonical field has an ordered list of
accepted header names and the first non-empty value wins. Rows without a phone
number are dropped silently.
"""
import csv
import io
import logging
import uuid
from dataclasses import replace
from pathlib import Path
from typing import Optional, List, Dict, Tuple

from .board import all_tags
from .schema import (
    BoardData,
    Customer,
    Tag,
    NUMBERS_LIST,
    TAG_COLORS,
    make_id,
    normalize_phone,
    now_ms,
)

logger = logging.getLogger(__name__)

BOM = "\ufeff"

# Canonical field -> accepted header names, English first
FIELD_ALIASES: Dict[str, List[str]] = {
    "phone": ["phone", "شماره تلفن"],
    "name": ["name", "نام"],
    "shop_name": ["shopName", "نام خیاطی"],
    "shop_type": ["shopType", "نوع خیاطی"],
    "city": ["city", "شهر"],
    "tags": ["tags", "برچسب ها"],
}

TEMPLATE_FIELDS = ["phone", "name", "shop_name", "shop_type", "city"]
TEMPLATE_FILENAME = "maghraz_crm_template.csv"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Parsing
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def parse_rows(text: str) -> List[Dict[str, str]]:
    """Header-keyed rows of a CSV text. Header cells are trimmed."""
    if text.startswith(BOM):
        text = text[len(BOM):]
    reader = csv.DictReader(io.StringIO(text))
    if reader.fieldnames is None:
        return []
    reader.fieldnames = [(h or "").strip() for h in reader.fieldnames]
    rows = []
    for raw in reader:
        # Short rows give None values; overflow cells land under the None key
        row = {k: (v or "") for k, v in raw.items() if k is not None}
        if any(v.strip() for v in row.values()):
            rows.append(row)
    return rows


def resolve_row(row: Dict[str, str]) -> Dict[str, str]:
    """Canonical field values for one row, trimmed."""
    resolved = {}
    for fieldname, aliases in FIELD_ALIASES.items():
        value = ""
        for header in aliases:
            value = (row.get(header) or "").strip()
            if value:
                break
        resolved[fieldname] = value
    resolved["phone"] = normalize_phone(resolved["phone"])
    return resolved


def split_tags(value: str) -> List[str]:
    """'a, b,,a' -> ['a', 'b']"""
    texts = []
    for token in (value or "").split(","):
        token = token.strip()
        if token and token not in texts:
            texts.append(token)
    return texts


class TagColorAllocator:
    """
    Colours for imported tag texts.

    A text already on the board keeps its colour, so repeated imports stay
    consistent. A new text takes the first palette colour no tag uses yet;
    once every colour is taken it cycles by vocabulary size.
    """

    def __init__(self, board: BoardData, palette: Optional[List[str]] = None):
        self.palette = palette or TAG_COLORS
        self.colors: Dict[str, str] = {
            text: tag.color for text, tag in all_tags(board).items()
        }

    def color_for(self, text: str) -> str:
        if text not in self.colors:
            used = set(self.colors.values())
            unused = [c for c in self.palette if c not in used]
            if unused:
                self.colors[text] = unused[0]
            else:
                # Palette exhausted: cycle by vocabulary size
                self.colors[text] = self.palette[len(self.colors) % len(self.palette)]
        return self.colors[text]

    def tags_for(self, texts: List[str]) -> List[Tag]:
        return [Tag(id=make_id("tag"), text=t, color=self.color_for(t)) for t in texts]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Import
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def import_customers(
    board: BoardData,
    text: str,
    column_id: str = NUMBERS_LIST,
    at_end: bool = True,
    now: Optional[int] = None,
) -> Tuple[BoardData, List[str]]:
    """
    Merge the customers of a CSV text into the board in one transition.

    Returns (new_board, imported_ids). Every accepted row becomes a new
    customer with a fresh id in column_id; nothing existing is updated.
    """
    rows = parse_rows(text)
    stamp = now if now is not None else now_ms()
    colors = TagColorAllocator(board)

    imported: List[Customer] = []
    for index, row in enumerate(rows):
        fields = resolve_row(row)
        if not fields["phone"]:
            continue
        imported.append(Customer(
            id=f"imported-{stamp}-{index}-{uuid.uuid4().hex[:4]}",
            phone=fields["phone"],
            name=fields["name"],
            shop_name=fields["shop_name"],
            shop_type=fields["shop_type"],
            city=fields["city"],
            tags=colors.tags_for(split_tags(fields["tags"])),
        ))

    dropped = len(rows) - len(imported)
    if dropped:
        logger.debug(f"Import skipped {dropped} row(s) without a phone number")
    if not imported:
        return board, []

    new_ids = [c.id for c in imported]
    cards = dict(board.cards)
    cards.update({c.id: c for c in imported})
    columns = dict(board.columns)
    column = columns.get(column_id)
    if column is not None:
        card_ids = column.card_ids + new_ids if at_end else new_ids + column.card_ids
        columns[column_id] = replace(column, card_ids=card_ids)
    else:
        logger.warning(f"Import column {column_id} missing; {len(new_ids)} customer(s) orphaned")

    logger.info(f"Imported {len(new_ids)} customer(s) into {column_id}")
    return replace(board, cards=cards, columns=columns), new_ids


def read_csv_file(path: str) -> str:
    """File contents as text; UTF-8 with or without a byte-order mark."""
    return Path(path).read_text(encoding="utf-8-sig")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Template export
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def export_template(include_tags: bool = False) -> bytes:
    """Header-only CSV with the Persian column names, BOM-prefixed for Excel."""
    fields = TEMPLATE_FIELDS + (["tags"] if include_tags else [])
    headers = [FIELD_ALIASES[f][1] for f in fields]
    return (BOM + ",".join(headers) + "\n").encode("utf-8")
