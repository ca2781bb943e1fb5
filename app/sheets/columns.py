# app/sheets/columns.py
# ---------------------------------------------------------
# Fixed 26-column grid schema shared by export, parse and merge.
# Column order is part of the sheet contract; never reorder.
# ---------------------------------------------------------

LISTING_ID = 0
TITLE = 1
DESCRIPTION = 2
STATUS = 3
TAGS = 4
VARIATION = 5            # display only, e.g. "S / Arctic White"
PROPERTY_NAME_1 = 6
PROPERTY_OPTION_1 = 7
PROPERTY_NAME_2 = 8
PROPERTY_OPTION_2 = 9
PRICE = 10
CURRENCY_CODE = 11
QUANTITY = 12
SKU = 13
VARIATION_PRICE = 14
VARIATION_QUANTITY = 15
VARIATION_SKU = 16
MATERIALS = 17
SHIPPING_PROFILE_ID = 18
PROCESSING_MIN = 19
PROCESSING_MAX = 20
PRODUCT_ID = 21
PROPERTY_ID_1 = 22
PROPERTY_OPTION_IDS_1 = 23
PROPERTY_ID_2 = 24
PROPERTY_OPTION_IDS_2 = 25

COLUMN_COUNT = 26
MIN_ROW_WIDTH = 15       # narrower rows are malformed and skipped
MIN_GRID_ROWS = 2       # header + at least one data row
HEADER_SCAN_LIMIT = 10

DELETE_SENTINEL = "DELETE"

HEADER = [
    "Listing ID (DO NOT EDIT)",
    "Title",
    "Description",
    "Status",
    "Tags",
    "Variation",
    "Property Name 1",
    "Property Option 1",
    "Property Name 2",
    "Property Option 2",
    "Price",
    "Currency Code",
    "Quantity",
    "SKU (DELETE=delete listing)",
    "Variation Price",
    "Variation Quantity",
    "Variation SKU (DELETE=delete variation)",
    "Materials",
    "Shipping Profile ID",
    "Processing Min (days)",
    "Processing Max (days)",
    "Product ID (DO NOT EDIT)",
    "Property ID 1 (DO NOT EDIT)",
    "Property Option IDs 1 (DO NOT EDIT)",
    "Property ID 2 (DO NOT EDIT)",
    "Property Option IDs 2 (DO NOT EDIT)",
]

HEADER_TERMS = ("listing id", "title")

# Marketplace-owned; a refresh always takes the live value.
IDENTIFIER_COLUMNS = (
    PRODUCT_ID,
    PROPERTY_ID_1,
    PROPERTY_OPTION_IDS_1,
    PROPERTY_ID_2,
    PROPERTY_OPTION_IDS_2,
)

# Compared by has_row_changed to decide whether a row write is needed.
KEY_COLUMNS = (
    LISTING_ID,
    TITLE,
    DESCRIPTION,
    STATUS,
    PRICE,
    QUANTITY,
    PRODUCT_ID,
    VARIATION_PRICE,
    VARIATION_QUANTITY,
)

INSTRUCTIONS = [
    "INFO: This sheet contains your Etsy listings. Listing-level fields (Title, Description, Status, "
    "Tags, Materials, Shipping Profile ID, Processing Time) are on the listing row; each variation "
    "follows on its own row.",
    "IMPORTANT: When uploading edits, keep Listing ID, Product ID, Property IDs intact. They identify "
    "which items to update.",
    "DELETE BEHAVIOR: SKU='DELETE' deletes the entire listing. Variation SKU='DELETE' deletes only "
    "that specific variation.",
    "UPLOAD BEHAVIOR: New records (no Listing ID) = Create new listing. Existing records (has Listing "
    "ID) = Update listing.",
]

SHEET_NAME_BY_STATE = {
    "active": "Active",
    "inactive": "Inactive",
    "draft": "Draft",
    "sold_out": "Sold Out",
    "expired": "Expired",
}
LISTING_STATES = tuple(SHEET_NAME_BY_STATE)


def blank_row() -> list[str]:
    return [""] * COLUMN_COUNT


def sheet_name_for_state(state: str) -> str:
    return SHEET_NAME_BY_STATE.get((state or "").lower(), "Unknown")
