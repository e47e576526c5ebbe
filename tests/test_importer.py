"""
Tests for CSV import and template export.
"""
from pkg.crm.board import add_tag
from pkg.crm.importer import (
    BOM,
    TagColorAllocator,
    export_template,
    import_customers,
    parse_rows,
    read_csv_file,
    resolve_row,
    split_tags,
)
from pkg.crm.schema import TAG_COLORS, initial_board, validate_board


ENGLISH_CSV = (
    "phone,name,shopName,shopType,city\n"
    "9123456789,Sara,Sara Tailoring,Women,Tehran\n"
    ",No Phone,,,\n"
    "09350000000,Ali,,,Shiraz\n"
)

PERSIAN_CSV = (
    BOM + "شماره تلفن,نام,نام خیاطی,نوع خیاطی,شهر\n"
    "9121112233,مریم,خیاطی مریم,زنانه,اصفهان\n"
)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Parsing
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestParsing:

    def test_header_cells_trimmed(self):
        rows = parse_rows(" phone , name \n0912,Sara\n")
        assert rows == [{"phone": "0912", "name": "Sara"}]

    def test_blank_rows_skipped(self):
        rows = parse_rows("phone,name\n\n,\n0912,Sara\n")
        assert len(rows) == 1

    def test_empty_text(self):
        assert parse_rows("") == []

    def test_bom_stripped(self):
        rows = parse_rows(BOM + "phone\n0912\n")
        assert rows == [{"phone": "0912"}]

    def test_quoted_cells(self):
        rows = parse_rows('phone,tags\n0912,"VIP, Tehran"\n')
        assert rows[0]["tags"] == "VIP, Tehran"

    def test_resolve_prefers_english_header(self):
        fields = resolve_row({"name": "Sara", "نام": "سارا", "phone": "912"})
        assert fields["name"] == "Sara"
        assert fields["phone"] == "0912"

    def test_resolve_falls_back_to_persian_when_english_empty(self):
        fields = resolve_row({"name": "  ", "نام": "سارا"})
        assert fields["name"] == "سارا"
        assert fields["phone"] == ""

    def test_split_tags(self):
        assert split_tags(" a, b,,a ") == ["a", "b"]
        assert split_tags("") == []


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Import
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestImportCustomers:

    def test_english_headers(self, board):
        new, ids = import_customers(board, ENGLISH_CSV, now=1000)
        assert len(ids) == 2
        first = new.cards[ids[0]]
        assert first.phone == "09123456789"
        assert first.shop_name == "Sara Tailoring"
        assert first.city == "Tehran"
        assert new.cards[ids[1]].phone == "09350000000"
        assert new.columns["numbers-list"].card_ids == ["c1"] + ids
        assert validate_board(new) == []

    def test_ids_carry_timestamp_and_row(self, board):
        _, ids = import_customers(board, ENGLISH_CSV, now=1000)
        assert ids[0].startswith("imported-1000-0-")
        # Row 1 had no phone: the index keeps counting source rows
        assert ids[1].startswith("imported-1000-2-")

    def test_persian_headers(self, board):
        new, ids = import_customers(board, PERSIAN_CSV)
        customer = new.cards[ids[0]]
        assert customer.phone == "09121112233"
        assert customer.name == "مریم"
        assert customer.shop_type == "زنانه"
        assert customer.city == "اصفهان"

    def test_prepend(self, board):
        new, ids = import_customers(board, PERSIAN_CSV, at_end=False)
        assert new.columns["numbers-list"].card_ids == ids + ["c1"]

    def test_custom_column(self, board):
        new, ids = import_customers(board, PERSIAN_CSV, column_id="contact-failed")
        assert new.columns["contact-failed"].card_ids == ids

    def test_nothing_importable_is_noop(self, board):
        new, ids = import_customers(board, "phone,name\n,Sara\n")
        assert ids == []
        assert new is board

    def test_imported_customers_start_clean(self, board):
        new, ids = import_customers(board, ENGLISH_CSV)
        for cid in ids:
            assert new.cards[cid].call_history == []
            assert new.cards[cid].reminder is None

    def test_existing_customers_untouched(self, board):
        new, _ = import_customers(board, "phone,name\n09120000001,Other\n")
        assert new.cards["c1"] is board.cards["c1"]
        assert len(new.cards) == 3


class TestTagColors:

    def test_known_text_reuses_board_color(self):
        board = initial_board()
        board = import_customers(board, "phone\n0912\n")[0]
        cid = next(iter(board.cards))
        board = add_tag(board, cid, "A", "red")

        allocator = TagColorAllocator(board)
        assert allocator.color_for("A") == "red"
        assert allocator.color_for("B") == TAG_COLORS[0]

    def test_repeated_import_keeps_colors(self):
        board = initial_board()
        csv_text = "phone,tags\n0912,\"A,B\"\n"
        board, first = import_customers(board, csv_text)
        board, second = import_customers(board, csv_text)

        tags_1 = {t.text: t.color for t in board.cards[first[0]].tags}
        tags_2 = {t.text: t.color for t in board.cards[second[0]].tags}
        assert tags_1 == {"A": TAG_COLORS[0], "B": TAG_COLORS[1]}
        assert tags_2 == tags_1

    def test_palette_wraps(self):
        allocator = TagColorAllocator(initial_board(), palette=["x", "y"])
        assert [allocator.color_for(t) for t in "abc"] == ["x", "y", "x"]

    def test_hand_picked_colors_skipped(self):
        board = initial_board()
        board, ids = import_customers(board, "phone\n0912\n")
        board = add_tag(board, ids[0], "A", TAG_COLORS[1])

        board, new_ids = import_customers(board, "phone,tags\n0913,\"B,C\"\n")
        colors = {t.text: t.color for t in board.cards[new_ids[0]].tags}
        assert colors == {"B": TAG_COLORS[0], "C": TAG_COLORS[2]}

    def test_persian_tag_header(self, board):
        new, ids = import_customers(board, "شماره تلفن,برچسب ها\n0912,\"VIP, جدید\"\n")
        assert [t.text for t in new.cards[ids[0]].tags] == ["VIP", "جدید"]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Files and template
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_read_csv_file_strips_bom(tmp_path):
    path = tmp_path / "list.csv"
    path.write_bytes((BOM + "phone\n0912\n").encode("utf-8"))
    assert read_csv_file(str(path)) == "phone\n0912\n"


def test_export_template():
    data = export_template()
    assert data.startswith(b"\xef\xbb\xbf")
    assert data.decode("utf-8") == BOM + "شماره تلفن,نام,نام خیاطی,نوع خیاطی,شهر\n"


def test_export_template_with_tags():
    header = export_template(include_tags=True).decode("utf-8").strip()
    assert header.endswith(",برچسب ها")


def test_template_imports_nothing(board):
    new, ids = import_customers(board, export_template().decode("utf-8"))
    assert ids == []
    assert new is board
