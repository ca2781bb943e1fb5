import json
import logging
import os

from app.logging_filters import redact_secrets
from app.storage import JsonFileStore, MemoryStore, sheet_id_key


def test_memory_store():
    store = MemoryStore({"a": 1})
    store.set(sheet_id_key(42), "sheet-abc")
    assert store.get("sheet_id:42") == "sheet-abc"
    store.delete("a")
    assert store.get("a", "gone") == "gone"


def test_json_file_store_writes_atomically(tmp_path):
    path = tmp_path / "state" / "store.json"
    store = JsonFileStore(str(path))

    store.set("sheet_id:42", "sheet-abc")
    store.set("sheet_id:7", "sheet-xyz")
    store.delete("sheet_id:7")

    assert json.loads(path.read_text(encoding="utf-8")) == {"sheet_id:42": "sheet-abc"}
    assert not os.path.exists(str(path) + ".tmp")
    assert JsonFileStore(str(path)).get("sheet_id:42") == "sheet-abc"


def test_corrupt_store_file_reads_as_empty(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("{not json", encoding="utf-8")
    assert JsonFileStore(str(path)).get("anything", "default") == "default"


def test_secrets_are_masked_in_logs(caplog):
    assert redact_secrets("Authorization: Bearer abc.DEF-123") == "Authorization: Bearer ***"
    assert redact_secrets("x-api-key: k3y") == "x-api-key: ***"

    logger = logging.getLogger("uvicorn.error")
    with caplog.at_level(logging.INFO, logger="uvicorn.error"):
        logger.info("sending with Bearer %s", "super-secret")
    assert "super-secret" not in caplog.text
