import pytest

from app.errors import ParseError
from app.sheets import columns as C
from app.sheets.cells import parse_int, parse_price, prices_equal
from app.sheets.exporter import export_listings, processed_from_live
from app.sheets.row_parser import find_header_row, parse_rows

from fakes import header_grid, live_listing, make_row, tshirt


def test_listing_row_then_variation_row():
    grid = header_grid(
        make_row({C.LISTING_ID: "4403181452", C.TITLE: "My Product Title"}),
        make_row({
            C.PROPERTY_NAME_1: "Colors", C.PROPERTY_OPTION_1: "Heather",
            C.PROPERTY_NAME_2: "Size", C.PROPERTY_OPTION_2: "Medium",
            C.VARIATION_PRICE: "45.99", C.VARIATION_QUANTITY: "100",
        }),
    )
    listings = parse_rows(grid)

    assert len(listings) == 1
    listing = listings[0]
    assert listing.listing_id == 4403181452
    assert listing.has_variations is True
    assert len(listing.variations) == 1
    v = listing.variations[0]
    assert v.property_price == 45.99
    assert v.property_quantity == 100
    assert (v.property_name1, v.property_option1) == ("Colors", "Heather")


def test_variation_without_listing_id_attaches_to_previous_listing():
    grid = header_grid(
        make_row({C.LISTING_ID: "100", C.TITLE: "Soy Candle"}),
        make_row({C.LISTING_ID: "", C.PROPERTY_NAME_1: "Scent", C.PROPERTY_OPTION_1: "Cedar"}),
    )
    listings = parse_rows(grid)

    assert [l.listing_id for l in listings] == [100]
    assert [v.property_option1 for v in listings[0].variations] == ["Cedar"]


def test_header_is_found_below_instruction_rows():
    grid = export_listings([live_listing(2001)])
    assert find_header_row(grid) == len(C.INSTRUCTIONS) + 1
    assert [l.listing_id for l in parse_rows(grid)] == [2001]


def test_header_must_lead_the_row():
    buried = [""] * C.COLUMN_COUNT
    buried[5] = "Title"
    note = make_row({C.LISTING_ID: "Keep the Listing ID column as exported"})
    grid = [buried, note] + [make_row({C.LISTING_ID: "1", C.TITLE: "x"})]

    assert find_header_row(grid) == -1
    with pytest.raises(ParseError):
        parse_rows(grid)

    grid.insert(2, make_row({C.LISTING_ID: "Listing ID (DO NOT EDIT)", C.TITLE: "Title"}))
    assert find_header_row(grid) == 2
    assert [l.listing_id for l in parse_rows(grid)] == [1]


def test_too_short_grid_raises():
    with pytest.raises(ParseError):
        parse_rows([list(C.HEADER)])
    with pytest.raises(ParseError):
        parse_rows([])


def test_missing_header_raises():
    grid = [make_row({C.LISTING_ID: "1", C.TITLE: "x"}) for _ in range(12)]
    with pytest.raises(ParseError):
        parse_rows(grid)


def test_delete_sentinels_are_case_insensitive():
    grid = header_grid(
        make_row({C.LISTING_ID: "10", C.TITLE: "Old", C.SKU: "delete"}),
        make_row({C.LISTING_ID: "20", C.TITLE: "Tee"}),
        make_row({C.LISTING_ID: "20", C.PROPERTY_NAME_1: "Size", C.PROPERTY_OPTION_1: "S",
                  C.VARIATION_SKU: "DELETE", C.PRODUCT_ID: "77"}),
    )
    old, tee = parse_rows(grid)
    assert old.to_delete is True
    assert tee.to_delete is False
    assert tee.variations[0].to_delete is True
    assert tee.variations[0].product_id == 77


def test_narrow_and_empty_rows_are_skipped():
    grid = header_grid(
        make_row({C.LISTING_ID: "10", C.TITLE: "Mug"}),
        ["", "", ""],
        ["11", "Too narrow"] + [""] * 5,
        make_row({C.LISTING_ID: "12", C.TITLE: "Bowl"}),
    )
    assert [l.listing_id for l in parse_rows(grid)] == [10, 12]


def test_orphaned_variations_are_reattached_or_dropped():
    grid = header_grid(
        make_row({C.LISTING_ID: "100", C.TITLE: "Tee"}),
        make_row({C.LISTING_ID: "300", C.PROPERTY_NAME_1: "Size", C.PROPERTY_OPTION_1: "L"}),
        make_row({C.LISTING_ID: "999", C.PROPERTY_NAME_1: "Size", C.PROPERTY_OPTION_1: "XL"}),
        make_row({C.LISTING_ID: "200", C.TITLE: "Hoodie"}),
        make_row({C.LISTING_ID: "100", C.PROPERTY_NAME_1: "Size", C.PROPERTY_OPTION_1: "S"}),
        make_row({C.LISTING_ID: "300", C.TITLE: "Cap"}),
    )
    listings = {l.listing_id: l for l in parse_rows(grid)}

    assert set(listings) == {100, 200, 300}
    assert [v.property_option1 for v in listings[100].variations] == ["S"]
    assert [v.property_option1 for v in listings[300].variations] == ["L"]
    assert listings[200].variations == []
    assert listings[300].has_variations is True


def _tee_grid_with_an_early_variation_row():
    grid = export_listings([live_listing(2001), tshirt()])
    preamble = len(C.INSTRUCTIONS) + 2
    mug, tee, small, medium = grid[preamble:]
    small[C.TITLE] = "Cotton Tee"
    return grid[:preamble] + [mug, small, tee, medium]


def test_variation_row_above_its_listing_row_is_reattached():
    listings = parse_rows(_tee_grid_with_an_early_variation_row())

    assert [l.listing_id for l in listings] == [2001, 1001]
    tee = listings[1]
    assert tee.title == "Cotton Tee"
    assert sorted(v.product_id for v in tee.variations) == [5001, 5002]
    assert listings[0].variations == []


def test_combined_row_with_a_new_title_starts_a_new_listing():
    grid = header_grid(
        make_row({C.TITLE: "First", C.DESCRIPTION: "one"}),
        make_row({C.TITLE: "Second", C.PROPERTY_NAME_1: "Size", C.PROPERTY_OPTION_1: "S",
                  C.VARIATION_PRICE: "12"}),
        make_row({C.PROPERTY_NAME_1: "Size", C.PROPERTY_OPTION_1: "M"}),
    )
    first, second = parse_rows(grid)

    assert first.title == "First" and first.variations == []
    assert second.title == "Second"
    assert [v.property_option1 for v in second.variations] == ["S", "M"]
    assert second.variations[0].property_price == 12.0


def test_variation_row_repeating_listing_fields_updates_the_listing():
    grid = header_grid(
        make_row({C.LISTING_ID: "55", C.TITLE: "Tee", C.PRICE: "10"}),
        make_row({C.LISTING_ID: "55", C.PRICE: "12.50", C.PROPERTY_NAME_1: "Size", C.PROPERTY_OPTION_1: "S"}),
    )
    listing = parse_rows(grid)[0]
    assert listing.price == 12.5
    assert listing.title == "Tee"


def test_export_then_parse_round_trip():
    live = [tshirt(), live_listing(2001, price=19.99)]
    parsed = parse_rows(export_listings(live))

    assert [p.model_dump() for p in parsed] == [processed_from_live(l).model_dump() for l in live]


def test_cell_parsing():
    assert parse_price("$1,234.50") == 1234.5
    assert parse_price("€ 7") == 7.0
    assert parse_price("n/a") is None
    assert parse_int("12.0") == 12
    assert parse_int("12.5") is None
    assert prices_equal(19.99, 19.995)
    assert not prices_equal(19.99, 19.98)
