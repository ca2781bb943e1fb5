#=======================================================================================
# app/routes.py
# FastAPI routes for spreadsheet <-> Etsy catalog reconciliation.
#
# Canonical API lives under /api/*
# Endpoints that write (apply, sheet refresh) require HTTP Basic (admin)
#
# In main_app.py, include with NO extra prefix to avoid /api/api duplication:
#   from app.routes import router as api_router
#   app.include_router(api_router)
#=======================================================================================

import json
import secrets
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from fastapi import APIRouter, Request, Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from fastapi.responses import JSONResponse

from app.config import settings
from app.errors import ParseError, ValidationError
from app.etsy.client import EtsyClient
from app.models.listing import ProcessedListing
from app.sheets import columns as C
from app.sheets.client import SheetsClient
from app.sheets.exporter import export_listings
from app.sheets.grid_loader import load_grid
from app.sheets.row_parser import parse_rows
from app.sheets.sheet_writer import refresh_spreadsheet
from app.storage import JsonFileStore, KeyValueStore, sheet_id_key
from app.sync.apply import apply_changes
from app.sync.preview import preview_changes

logger = logging.getLogger("uvicorn.error")

router = APIRouter(prefix="/api", tags=["Listing Sync API"])

# ---------------------------
# HTTP Basic for write endpoints
# ---------------------------
security = HTTPBasic()

def verify_admin(credentials: HTTPBasicCredentials = Depends(security)):
    ok_user = secrets.compare_digest(credentials.username or "", settings.ADMIN_USER or "")
    ok_pass = secrets.compare_digest(credentials.password or "", settings.ADMIN_PASS or "")
    if not (ok_user and ok_pass):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Basic"},
        )

# ---------------------------
# Collaborators (overridable via app.dependency_overrides)
# ---------------------------
_STORE: Optional[KeyValueStore] = None

def get_etsy_client() -> EtsyClient:
    return EtsyClient()

def get_sheets_factory() -> Callable[[str], SheetsClient]:
    return lambda spreadsheet_id: SheetsClient(spreadsheet_id=spreadsheet_id)

def get_store() -> KeyValueStore:
    global _STORE
    if _STORE is None:
        _STORE = JsonFileStore(settings.STORE_PATH)
    return _STORE

# ---------------------------
# Helpers
# ---------------------------
async def _safe_json(req: Request) -> Dict[str, Any]:
    """Best-effort JSON body parsing with fallbacks."""
    try:
        data = await req.json()
    except ValueError:
        raw = (await req.body()).decode("utf-8", "ignore")
        try:
            data = json.loads(raw) if raw.strip() else {}
        except ValueError:
            return {}
    return data if isinstance(data, dict) else {}

def _normalize_ids(raw: Any) -> Optional[List[str]]:
    """Accepts ["change_1", ...] | "change_1,change_2" | None (= everything)."""
    if raw is None:
        return None
    if isinstance(raw, list):
        return [str(s).strip() for s in raw if str(s).strip()]
    if isinstance(raw, str):
        return [s.strip() for s in raw.replace("\n", ",").split(",") if s.strip()] or None
    return None

def _bad_request(e: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

async def _read_input(request: Request) -> Tuple[List[ProcessedListing], Dict[str, Any]]:
    """
    Multipart upload (field "file", optional "sheet_name" / "change_ids")
    or JSON {"rows": [[...], ...], "change_ids": [...]}.
    """
    ctype = request.headers.get("content-type", "")
    if ctype.startswith("multipart/form-data"):
        form = await request.form()
        upload = form.get("file")
        if upload is None or isinstance(upload, str):
            raise HTTPException(status_code=400, detail="Missing 'file' upload")
        data = await upload.read()
        options = {"change_ids": form.get("change_ids"), "sheet_name": form.get("sheet_name")}
        try:
            grid = load_grid(data, upload.filename or "upload.csv", options["sheet_name"] or None)
        except ParseError as e:
            raise _bad_request(e)
    else:
        options = await _safe_json(request)
        grid = options.get("rows")
        if not isinstance(grid, list):
            raise HTTPException(status_code=400, detail="Body must contain 'rows' (list of rows)")
        grid = [[("" if c is None else str(c)) for c in (row or [])] for row in grid]

    try:
        parsed = parse_rows(grid)
    except ParseError as e:
        raise _bad_request(e)
    return parsed, options

# ---------------------------
# Endpoints
# ---------------------------

@router.post("/preview")
async def api_preview(request: Request, etsy: EtsyClient = Depends(get_etsy_client)):
    """
    Read-only diff of an uploaded sheet against the live catalog.
    Returns { changes: [...], summary: {totalChanges, creates, updates, deletes} }.
    """
    parsed, _ = await _read_input(request)
    try:
        result = await preview_changes(etsy, parsed)
    except ValidationError as e:
        raise _bad_request(e)
    return JSONResponse(content=result.model_dump(by_alias=True))

@router.post("/apply", dependencies=[Depends(verify_admin)])
async def api_apply(request: Request, etsy: EtsyClient = Depends(get_etsy_client)):
    """
    Apply an uploaded sheet (admin-only).
    Optional change_ids restricts the run to the changes picked from a preview.
    """
    parsed, options = await _read_input(request)
    change_ids = _normalize_ids(options.get("change_ids"))
    logger.info("[APPLY] request: %s listing(s), selection=%s", len(parsed), change_ids or "all")
    result = await apply_changes(etsy, parsed, change_ids)
    return JSONResponse(content=result)

@router.post("/export")
async def api_export(request: Request, etsy: EtsyClient = Depends(get_etsy_client)):
    """Body: { "state": "active" } -> { sheet, rows } ready to paste into a tab."""
    payload = await _safe_json(request)
    state = str(payload.get("state") or "active").strip().lower()
    if state not in C.LISTING_STATES:
        raise HTTPException(status_code=400, detail=f"Unknown listing state '{state}'")
    listings = await etsy.get_all_shop_listings(state)
    rows = export_listings(listings)
    return JSONResponse(content={"sheet": C.sheet_name_for_state(state), "count": len(listings), "rows": rows})

@router.post("/sheets/refresh", dependencies=[Depends(verify_admin)])
async def api_sheets_refresh(
    request: Request,
    etsy: EtsyClient = Depends(get_etsy_client),
    sheets_factory: Callable[[str], SheetsClient] = Depends(get_sheets_factory),
    store: KeyValueStore = Depends(get_store),
):
    """
    Refresh the shop's spreadsheet from the live catalog, one tab per state.
    Body (optional): { "spreadsheet_id": "...", "states": ["active", ...] }
    The spreadsheet id is remembered per shop.
    """
    payload = await _safe_json(request)
    key = sheet_id_key(etsy.shop_id)
    spreadsheet_id = payload.get("spreadsheet_id") or store.get(key) or settings.SHEETS_SPREADSHEET_ID
    if not spreadsheet_id:
        raise HTTPException(status_code=400, detail="No spreadsheet id configured for this shop")
    store.set(key, spreadsheet_id)

    states = [s for s in (payload.get("states") or C.LISTING_STATES) if s in C.LISTING_STATES]
    logger.info("[SHEET] refresh of %s for shop %s (%s)", spreadsheet_id, etsy.shop_id, ", ".join(states))
    results = await refresh_spreadsheet(etsy, sheets_factory(spreadsheet_id), states)
    return JSONResponse(content={"spreadsheet_id": spreadsheet_id, "sheets": results})
