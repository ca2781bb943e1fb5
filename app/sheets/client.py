#==========================================================================================
# app/sheets/client.py
# Google Sheets values API (spreadsheet collaborator).
# Reads a tab as a grid of strings, upserts rows at a start row, best-effort formatting.
#==========================================================================================

from __future__ import annotations

import logging
from typing import Any, Dict, List
from urllib.parse import quote

import httpx

from app.config import settings
from app.errors import TransportError

logger = logging.getLogger("uvicorn.error")


class SheetsClient:
    def __init__(
        self,
        access_token: str | None = None,
        spreadsheet_id: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.access_token = access_token if access_token is not None else settings.SHEETS_ACCESS_TOKEN
        self.spreadsheet_id = spreadsheet_id or settings.SHEETS_SPREADSHEET_ID
        self.base_url = (base_url or settings.SHEETS_API_BASE).rstrip("/")
        self.timeout = timeout or settings.HTTP_TIMEOUT
        self.transport = transport

    def _url(self, suffix: str) -> str:
        return f"{self.base_url}/spreadsheets/{self.spreadsheet_id}{suffix}"

    async def _send(self, method: str, url: str, *, params: Dict[str, Any] | None = None,
                    json: Any = None) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.access_token}"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, verify=settings.HTTP_VERIFY_SSL,
                                         transport=self.transport) as client:
                resp = await client.request(method, url, headers=headers, params=params, json=json)
        except httpx.HTTPError as e:
            raise TransportError(f"Sheets {method} failed: {e}") from e
        if resp.status_code >= 400:
            raise TransportError(f"Sheets {method} returned {resp.status_code}", resp.status_code, resp.text)
        return resp

    @staticmethod
    def _range(sheet_name: str, cells: str) -> str:
        return quote(f"'{sheet_name}'!{cells}", safe="")

    async def read_values(self, sheet_name: str) -> List[List[str]]:
        """Whole tab (A:Z) as strings; a failed read yields an empty grid."""
        try:
            resp = await self._send("GET", self._url(f"/values/{self._range(sheet_name, 'A:Z')}"))
        except TransportError as e:
            logger.warning("[SHEET] read of '%s' failed: %s", sheet_name, e)
            return []
        values = (resp.json() or {}).get("values") or []
        return [["" if v is None else str(v) for v in row] for row in values]

    async def write_values(self, sheet_name: str, start_row: int, rows: List[List[str]]) -> None:
        """Upsert `rows` starting at 1-based `start_row`."""
        await self._send(
            "PUT",
            self._url(f"/values/{self._range(sheet_name, f'A{start_row}')}"),
            params={"valueInputOption": "USER_ENTERED"},
            json={"values": rows, "majorDimension": "ROWS"},
        )

    async def append_values(self, sheet_name: str, rows: List[List[str]]) -> None:
        await self._send(
            "POST",
            self._url(f"/values/{self._range(sheet_name, 'A1')}:append"),
            params={"valueInputOption": "USER_ENTERED", "insertDataOption": "INSERT_ROWS"},
            json={"values": rows, "majorDimension": "ROWS"},
        )

    async def _sheet_ids(self) -> Dict[str, int]:
        resp = await self._send("GET", self._url(""), params={"fields": "sheets.properties"})
        out = {}
        for sheet in (resp.json() or {}).get("sheets") or []:
            props = sheet.get("properties") or {}
            out[props.get("title")] = props.get("sheetId")
        return out

    async def ensure_sheet(self, sheet_name: str) -> None:
        """Create the tab when it does not exist yet."""
        if sheet_name in await self._sheet_ids():
            return
        await self._send(
            "POST",
            self._url(":batchUpdate"),
            json={"requests": [{"addSheet": {"properties": {"title": sheet_name}}}]},
        )
        logger.info("[SHEET] created tab '%s'", sheet_name)

    async def delete_rows(self, sheet_name: str, row_numbers: List[int]) -> None:
        """Delete 1-based rows, bottom-up so earlier indexes stay valid."""
        if not row_numbers:
            return
        sheet_id = (await self._sheet_ids()).get(sheet_name)
        if sheet_id is None:
            return
        requests = [
            {"deleteDimension": {"range": {"sheetId": sheet_id, "dimension": "ROWS",
                                           "startIndex": n - 1, "endIndex": n}}}
            for n in sorted(set(row_numbers), reverse=True)
        ]
        await self._send("POST", self._url(":batchUpdate"), json={"requests": requests})

    async def apply_formatting(self, sheet_name: str, header_row: int = 1) -> None:
        """Freeze through the 1-based header row and bold it. Failures are logged only."""
        try:
            sheet_id = (await self._sheet_ids()).get(sheet_name)
            if sheet_id is None:
                return
            await self._send("POST", self._url(":batchUpdate"), json={"requests": [
                {"updateSheetProperties": {
                    "properties": {"sheetId": sheet_id, "gridProperties": {"frozenRowCount": header_row}},
                    "fields": "gridProperties.frozenRowCount",
                }},
                {"repeatCell": {
                    "range": {"sheetId": sheet_id, "startRowIndex": header_row - 1, "endRowIndex": header_row},
                    "cell": {"userEnteredFormat": {"textFormat": {"bold": True}}},
                    "fields": "userEnteredFormat.textFormat.bold",
                }},
            ]})
        except TransportError as e:
            logger.warning("[SHEET] formatting '%s' skipped: %s", sheet_name, e)
