import asyncio
import csv
import io
import json

import httpx
import pandas as pd
import pytest

from app.errors import ParseError
from app.sheets import columns as C
from app.sheets.client import SheetsClient
from app.sheets.exporter import export_listings, group_by_sheet, processed_from_live, variation_display
from app.sheets.grid_loader import load_grid
from app.sheets.row_parser import parse_rows
from app.sheets.sheet_writer import build_row_index, refresh_sheet, refresh_spreadsheet, write_delay

from fakes import COLOR, SIZE, FakeEtsy, FakeSheets, live_listing, make_row, product, pv, tshirt

PREAMBLE = len(C.INSTRUCTIONS) + 2


def _recorder():
    delays = []

    async def fake_sleep(d):
        delays.append(d)

    return delays, fake_sleep


def test_write_throttle_schedule():
    delays = [write_delay(n, 100, 1100, 10) for n in range(1, 21)]
    assert delays[:9] == [0.1] * 9
    assert delays[9] == 1.1
    assert delays[10:19] == [0.1] * 9
    assert delays[19] == 1.1


def test_export_layout():
    grid = export_listings([tshirt()])
    header = grid[PREAMBLE - 1]
    assert header == C.HEADER
    listing_row, s_row, m_row = grid[PREAMBLE:]
    assert listing_row[C.LISTING_ID] == "1001" and listing_row[C.PROPERTY_OPTION_1] == ""
    assert listing_row[C.PRICE] == ""
    assert listing_row[C.QUANTITY] == "10"
    assert s_row[C.VARIATION] == "S / White"
    assert (s_row[C.VARIATION_PRICE], s_row[C.VARIATION_QUANTITY]) == ("20.00", "")
    assert (s_row[C.PRODUCT_ID], s_row[C.PROPERTY_ID_1], s_row[C.PROPERTY_OPTION_IDS_2]) == ("5001", "100", "11")
    assert m_row[C.LISTING_ID] == "1001"


def test_export_decodes_entities_and_groups_by_state():
    live = live_listing(2001, title="Mug &amp; Saucer")
    assert processed_from_live(live).title == "Mug & Saucer"
    grouped = group_by_sheet([live, live_listing(2002, state="draft"), live_listing(2003)])
    assert {k: [l.listing_id for l in v] for k, v in grouped.items()} == {"Active": [2001, 2003], "Draft": [2002]}
    assert variation_display(processed_from_live(tshirt()).variations[0]) == "S / White"


def test_refresh_writes_a_fresh_tab():
    sheets = FakeSheets()
    delays, fake_sleep = _recorder()

    stats = asyncio.run(refresh_sheet(sheets, [tshirt(), live_listing(2001)], "Active", sleep=fake_sleep))

    assert stats == {"updated": 0, "appended": 4, "removed": 0, "unchanged": 0}
    assert sheets.writes == [("Active", 1, PREAMBLE + 4)]
    assert sheets.formatted == [("Active", PREAMBLE)]
    assert [l.listing_id for l in parse_rows(sheets.tabs["Active"])] == [1001, 2001]


def test_refresh_merges_without_clobbering_edits():
    grid = export_listings([tshirt(), live_listing(2001)])
    tee_row, mug_row = PREAMBLE, PREAMBLE + 3
    grid[tee_row][C.DESCRIPTION] = ""
    grid[mug_row][C.TITLE] = "Speckled Mug"
    grid.append(make_row({C.TITLE: "Brand New Vase", C.DESCRIPTION: "Typed in by hand"}))
    sheets = FakeSheets({"Active": grid})

    tee = live_listing(1001, title="Cotton Tee", has_variations=True, price_on=[SIZE], products=[
        product(5001, [pv(SIZE, "Size", 1, "S"), pv(COLOR, "Color", 11, "White")], price=20.0),
        product(5003, [pv(SIZE, "Size", 3, "L"), pv(COLOR, "Color", 11, "White")], price=24.0),
    ])
    delays, fake_sleep = _recorder()

    stats = asyncio.run(refresh_sheet(sheets, [tee, live_listing(2001)], "Active", sleep=fake_sleep,
                                      delay_ms=100, long_delay_ms=1100, long_every=10))

    assert stats == {"updated": 1, "appended": 1, "removed": 1, "unchanged": 2}
    assert delays == [0.1]
    assert sheets.deleted_rows == [("Active", [tee_row + 3])]

    tab = sheets.tabs["Active"]
    titles = [r[C.TITLE] for r in tab[PREAMBLE:] if r[C.TITLE]]
    assert titles == ["Cotton Tee", "Speckled Mug", "Brand New Vase"]
    assert tab[tee_row][C.DESCRIPTION] == "Handmade and glazed by hand."
    assert [r[C.PRODUCT_ID] for r in tab[PREAMBLE:] if r[C.PRODUCT_ID]] == ["5001", "5003"]


def test_row_index_prefers_listing_rows_and_product_ids():
    grid = export_listings([tshirt()])
    header_idx, by_listing, by_product = build_row_index(grid)
    assert header_idx == PREAMBLE - 1
    assert by_listing == {1001: PREAMBLE + 1}
    assert by_product == {5001: PREAMBLE + 2, 5002: PREAMBLE + 3}


def test_refresh_spreadsheet_uses_one_tab_per_state():
    etsy = FakeEtsy([live_listing(2001), live_listing(2002, state="draft")])
    sheets = FakeSheets()
    _, fake_sleep = _recorder()

    results = asyncio.run(refresh_spreadsheet(etsy, sheets, ["active", "draft"], sleep=fake_sleep))

    assert set(results) == {"Active", "Draft"}
    assert [l.listing_id for l in parse_rows(sheets.tabs["Draft"])] == [2002]


# ---- Sheets API client ----

def _sheets_client(handler):
    return SheetsClient(access_token="tok", spreadsheet_id="sid", base_url="https://sheets.test/v4",
                        transport=httpx.MockTransport(handler))


def test_failed_read_returns_an_empty_grid():
    client = _sheets_client(lambda request: httpx.Response(500, text="boom"))
    assert asyncio.run(client.read_values("Active")) == []

    client = _sheets_client(lambda request: httpx.Response(200, json={"values": [["a", "b"], ["c"]]}))
    assert asyncio.run(client.read_values("Active")) == [["a", "b"], ["c"]]


def test_write_values_uses_user_entered_input():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={})

    client = _sheets_client(handler)
    asyncio.run(client.write_values("Active", 7, [["1001", "Cotton Tee"]]))

    req = seen[0]
    assert req.method == "PUT"
    assert req.headers["Authorization"] == "Bearer tok"
    assert req.url.params["valueInputOption"] == "USER_ENTERED"
    assert json.loads(req.content)["values"] == [["1001", "Cotton Tee"]]


def test_delete_rows_goes_bottom_up():
    batches = []

    def handler(request):
        if request.method == "GET":
            return httpx.Response(200, json={"sheets": [{"properties": {"title": "Active", "sheetId": 5}}]})
        batches.append(json.loads(request.content))
        return httpx.Response(200, json={})

    client = _sheets_client(handler)
    asyncio.run(client.delete_rows("Active", [4, 9]))

    starts = [r["deleteDimension"]["range"]["startIndex"] for r in batches[0]["requests"]]
    assert starts == [8, 3]


def test_formatting_failures_are_not_raised():
    client = _sheets_client(lambda request: httpx.Response(403, text="forbidden"))
    asyncio.run(client.apply_formatting("Active", header_row=6))


# ---- Uploads ----

def _csv_bytes(grid):
    buf = io.StringIO()
    csv.writer(buf).writerows(grid)
    return buf.getvalue().encode("utf-8")


def test_csv_upload_round_trip():
    live = [tshirt(), live_listing(2001, description="Glazed, fired, and, finally, boxed.")]
    grid = load_grid(_csv_bytes(export_listings(live)), "export.csv")

    parsed = parse_rows(grid)
    assert [p.model_dump() for p in parsed] == [processed_from_live(l).model_dump() for l in live]


def test_xlsx_upload():
    buf = io.BytesIO()
    pd.DataFrame(export_listings([tshirt()])).to_excel(buf, header=False, index=False, engine="openpyxl")

    parsed = parse_rows(load_grid(buf.getvalue(), "export.xlsx"))
    assert [l.listing_id for l in parsed] == [1001]
    assert [v.product_id for v in parsed[0].variations] == [5001, 5002]


def test_csv_upload_keeps_each_line_width():
    grid = [
        list(C.HEADER),
        make_row({C.LISTING_ID: "10", C.TITLE: "Mug"}),
        ["11", "Too narrow", "", "", "", "", ""],
        make_row({C.LISTING_ID: "12", C.TITLE: "Bowl"}) + ["trailing"],
        make_row({C.LISTING_ID: "13", C.TITLE: "Plate"}) + [""],
    ]
    loaded = load_grid(_csv_bytes(grid), "edits.csv")

    assert [len(r) for r in loaded] == [C.COLUMN_COUNT, C.COLUMN_COUNT, 7, C.COLUMN_COUNT + 1, C.COLUMN_COUNT + 1]
    assert [l.listing_id for l in parse_rows(loaded)] == [10, 12, 13]


def test_unreadable_upload_raises_parse_error():
    with pytest.raises(ParseError):
        load_grid(b"definitely not a workbook", "broken.xlsx")
    with pytest.raises(ParseError):
        load_grid(b"\xff\xfe\xfa not utf-8", "edits.csv")
