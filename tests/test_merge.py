from app.sheets import columns as C
from app.sheets.merge import has_row_changed, merge_cell, merge_rows

from fakes import make_row

LIVE = make_row({
    C.LISTING_ID: "1001", C.TITLE: "Cotton Tee", C.STATUS: "active", C.TAGS: "cotton,tee",
    C.PRICE: "20.00", C.QUANTITY: "10", C.PRODUCT_ID: "5001", C.PROPERTY_ID_1: "100",
    C.PROPERTY_OPTION_IDS_1: "1", C.VARIATION: "S / White",
})


def test_equal_values_take_the_live_formatting():
    assert merge_cell(C.PRICE, "20.00", "$20") == "20.00"
    assert merge_cell(C.STATUS, "active", "Active") == "active"
    assert merge_cell(C.TAGS, "cotton,tee", "Tee, cotton") == "cotton,tee"
    assert merge_cell(C.QUANTITY, "10", "10.0") == "10"


def test_edited_value_wins_when_different():
    assert merge_cell(C.TITLE, "Cotton Tee", "Organic Cotton Tee") == "Organic Cotton Tee"
    assert merge_cell(C.PRICE, "20.00", "24.50") == "24.50"
    assert merge_cell(C.TITLE, "Cotton Tee", "cotton tee") == "cotton tee"


def test_empty_edited_value_takes_live():
    assert merge_cell(C.TITLE, "Cotton Tee", "") == "Cotton Tee"
    assert merge_cell(C.PRICE, "20.00", "   ") == "20.00"


def test_identifier_columns_always_take_live():
    for idx in C.IDENTIFIER_COLUMNS:
        assert merge_cell(idx, "live", "edited") == "live"
        assert merge_cell(idx, "", "edited") == ""
    assert merge_cell(C.VARIATION, "S / White", "whatever") == "S / White"


def test_listing_id_keeps_edited_value_only_when_live_has_none():
    assert merge_cell(C.LISTING_ID, "1001", "999") == "1001"
    assert merge_cell(C.LISTING_ID, "", "999") == "999"


def test_merge_rows_and_change_detection():
    edited = list(LIVE)
    edited[C.TITLE] = "Organic Cotton Tee"
    edited[C.PRODUCT_ID] = "1"
    edited[C.PRICE] = "20"
    merged = merge_rows(LIVE, edited)

    assert merged[C.TITLE] == "Organic Cotton Tee"
    assert merged[C.PRODUCT_ID] == "5001"
    assert merged[C.PRICE] == "20.00"
    assert has_row_changed(edited, merged)
    assert not has_row_changed(merged, list(merged))


def test_change_detection_ignores_low_signal_columns():
    other = list(LIVE)
    other[C.TAGS] = "something else"
    assert not has_row_changed(LIVE, other)
    assert has_row_changed(LIVE, LIVE[:20])
