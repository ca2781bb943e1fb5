# ----------------------------------------------------------------
# Import configuration variables to be used throughout the project
# ----------------------------------------------------------------
import os
from dotenv import load_dotenv

# Load .env (allow container env to override file values)
load_dotenv(override=True)


def _rstrip_slash(s: str) -> str:
    return (s or "").rstrip("/")


def _get_bool(name: str, default: bool = False) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return str(v).strip().lower() in {"1", "true", "yes", "on", "y"}


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name, "")
    try:
        return int(str(raw).strip())
    except ValueError:
        return default


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    try:
        return float(str(raw).strip())
    except ValueError:
        return default


def _get_list(name: str, default: str) -> list[str]:
    return [p.strip() for p in os.getenv(name, default).split(",") if p.strip()]


class Settings:
    # ── Etsy (marketplace) ───────────────────────────────────────────────────
    ETSY_API_BASE: str = _rstrip_slash(os.getenv("ETSY_API_BASE", "https://api.etsy.com/v3"))
    ETSY_API_KEY: str = os.getenv("ETSY_API_KEY", "")
    ETSY_ACCESS_TOKEN: str = os.getenv("ETSY_ACCESS_TOKEN", "")
    ETSY_SHOP_ID: int = _get_int("ETSY_SHOP_ID", 0)

    # ── Google Sheets ────────────────────────────────────────────────────────
    SHEETS_API_BASE: str = _rstrip_slash(os.getenv("SHEETS_API_BASE", "https://sheets.googleapis.com/v4"))
    SHEETS_ACCESS_TOKEN: str = os.getenv("SHEETS_ACCESS_TOKEN", "")
    SHEETS_SPREADSHEET_ID: str = os.getenv("SHEETS_SPREADSHEET_ID", "")

    # ── HTTP transport ───────────────────────────────────────────────────────
    HTTP_TIMEOUT: float = _get_float("HTTP_TIMEOUT", 20.0)
    HTTP_MAX_ATTEMPTS: int = _get_int("HTTP_MAX_ATTEMPTS", 3)
    HTTP_BACKOFF_BASE: float = _get_float("HTTP_BACKOFF_BASE", 1.0)
    HTTP_VERIFY_SSL: bool = _get_bool("HTTP_VERIFY_SSL", True)

    # ── Preview / identifier resolution fan-out ──────────────────────────────
    PREVIEW_FETCH_BATCH_SIZE: int = _get_int("PREVIEW_FETCH_BATCH_SIZE", 10)
    RESOLVE_SAMPLE_LIMIT: int = _get_int("RESOLVE_SAMPLE_LIMIT", 20)
    RESOLVE_STATES: list[str] = _get_list("RESOLVE_STATES", "active,draft,inactive")

    # ── Spreadsheet write throttle (courtesy, not correctness) ───────────────
    SHEET_WRITE_DELAY_MS: int = _get_int("SHEET_WRITE_DELAY_MS", 100)
    SHEET_WRITE_LONG_DELAY_MS: int = _get_int("SHEET_WRITE_LONG_DELAY_MS", 1100)
    SHEET_WRITE_LONG_EVERY: int = _get_int("SHEET_WRITE_LONG_EVERY", 10)
    SHEET_APPEND_BATCH: int = _get_int("SHEET_APPEND_BATCH", 1000)

    # ── Listing defaults ─────────────────────────────────────────────────────
    DEFAULT_WHO_MADE: str = os.getenv("DEFAULT_WHO_MADE", "i_did")
    DEFAULT_WHEN_MADE: str = os.getenv("DEFAULT_WHEN_MADE", "2020_2024")
    MIN_PRICE: float = _get_float("MIN_PRICE", 0.20)

    # ── Admin Panel ──────────────────────────────────────────────────────────
    ADMIN_USER: str = os.getenv("ADMIN_USER", "admin")
    ADMIN_PASS: str = os.getenv("ADMIN_PASS", "changeme")

    # ── CORS ─────────────────────────────────────────────────────────────────
    # Comma-separated list in .env, e.g. "https://example.com, https://foo.bar"
    CORS_ORIGINS: list[str] = _get_list("CORS_ORIGINS", "*")

    # ── Paths ────────────────────────────────────────────────────────────────
    # sheet-id-by-shop and other small bits of client state
    STORE_PATH: str = os.getenv("STORE_PATH", "data/store.json")


settings = Settings()
