# --- Global log sanitizer: HTML body spam and credentials ----------------------
import logging, re

_HTML_SIG_RE = re.compile(r'(?is)<!DOCTYPE html|<html[^>]*>')
_TITLE_RE    = re.compile(r'(?is)<title[^>]*>(.*?)</title>')
_TAG_RE      = re.compile(r'(?is)<[^>]+>')
_SCRIPT_RE   = re.compile(r'(?is)<(script|style)[^>]*>.*?</\1>')
_BEARER_RE   = re.compile(r'(?i)(bearer\s+)[A-Za-z0-9._~+/=-]+')
_API_KEY_RE  = re.compile(r"(?i)(x-api-key['\"]?\s*[:=]\s*['\"]?)[A-Za-z0-9._-]+")

def _strip_tags(s: str) -> str:
    s = _SCRIPT_RE.sub('', s)
    s = _TAG_RE.sub(' ', s)
    return re.sub(r'\s+', ' ', s).strip()

def _summarize_html(s: str, limit: int = 200) -> str:
    title = None
    m = _TITLE_RE.search(s)
    if m:
        title = _strip_tags(m.group(1))
    preview = title or _strip_tags(s)[:limit]
    return f"{preview} [HTML {len(s)} chars trimmed]"

def redact_secrets(s: str) -> str:
    s = _BEARER_RE.sub(r'\1***', s)
    return _API_KEY_RE.sub(r'\1***', s)

class _SanitizeFilter(logging.Filter):
    """Replace large HTML blobs with a short summary and mask bearer tokens / api keys."""
    def filter(self, record: logging.LogRecord) -> bool:
        try:
            msg = record.getMessage()
        except (TypeError, ValueError):
            return True
        if not isinstance(msg, str):
            return True
        clean = msg
        if len(clean) > 200 and _HTML_SIG_RE.search(clean):
            clean = _summarize_html(clean)
        clean = redact_secrets(clean)
        if clean != msg:
            record.msg = clean
            record.args = ()
        return True

# install once on common loggers (root + uvicorn family)
for _name in ("", "uvicorn", "uvicorn.error"):
    logging.getLogger(_name).addFilter(_SanitizeFilter())
# --------------------------------------------------------------------------------
