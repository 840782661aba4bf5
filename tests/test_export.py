import json
from datetime import datetime

from app.transforms.export import export_filename, to_export_document, write_export


def test_export_document_orders_history_desc():
    history = [
        {"id": "v1", "event_date": "2024-05-15"},
        {"id": "a1", "event_date": "2024-06-01T09:00"},
        {"id": "x", "event_date": None},
    ]
    document = to_export_document({"id": "p1", "name": "Maria Silva"}, history)

    assert document["exported_at"].endswith("Z")
    assert document["patient"]["name"] == "Maria Silva"
    assert [entry["id"] for entry in document["history"]] == ["a1", "v1", "x"]


def test_export_filename():
    name = export_filename({"name": "Maria da Silva"}, datetime(2024, 6, 1, 10, 5, 0))
    assert name == "prontuario_Maria_da_Silva_2024-06-01-10-05-00.json"


def test_write_export(tmp_path):
    document = {"exported_at": "2024-06-01T10:00:00Z", "patient": {"name": "João"}, "history": []}
    path = write_export(document, str(tmp_path / "out"), "prontuario.json")

    assert path.exists()
    assert json.loads(path.read_text(encoding="utf-8")) == document
