"""
Whiteboard description tests.

Run with: pytest tests/test_whiteboard.py -v
"""
import json
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from whiteboard import WHITEBOARD_HEADER, describe_drawing, extract_shape_records


def geo(shape_id, text="", kind="rectangle"):
    return {"id": shape_id, "typeName": "shape", "type": "geo", "props": {"geo": kind, "text": text}}


def arrow(shape_id, start=None, end=None, text=""):
    props = {"text": text}
    if start:
        props["start"] = {"boundShapeId": start}
    if end:
        props["end"] = {"boundShapeId": end}
    return {"id": shape_id, "typeName": "shape", "type": "arrow", "props": props}


def text_shape(shape_id, text):
    return {"id": shape_id, "typeName": "shape", "type": "text", "props": {"text": text}}


def snapshot(*records):
    return {"store": {r["id"]: r for r in records}}


def test_client_server_diagram():
    drawing = snapshot(
        geo("shape:a", "Client"),
        geo("shape:b", "Server"),
        arrow("shape:c", start="shape:a", end="shape:b", text="HTTP"),
    )

    assert describe_drawing(drawing) == (
        f"\n\n{WHITEBOARD_HEADER}\n"
        'Contains 2 boxes labeled: "Client", "Server". '
        "Connections: Client -> Server (HTTP)."
    )


def test_single_shape_and_unlabeled_shapes():
    drawing = snapshot(
        geo("shape:a", "Cache", kind="ellipse"),
        {"id": "shape:d1", "typeName": "shape", "type": "draw", "props": {}},
        {"id": "shape:d2", "typeName": "shape", "type": "draw", "props": {}},
    )

    description = describe_drawing(drawing)
    assert 'Contains a ellipse labeled: "Cache"' in description
    assert "Also has 2 freehands" in description


def test_unbound_arrows():
    labeled = describe_drawing(snapshot(geo("shape:a", "Queue"), arrow("shape:b", text="push")))
    assert 'Connections: arrow labeled "push"' in labeled

    bare = describe_drawing(snapshot(geo("shape:a", "Queue"), arrow("shape:b"), arrow("shape:c")))
    assert "2 arrows connecting shapes" in bare


def test_text_notes():
    description = describe_drawing(snapshot(text_shape("shape:t", "O(1) average lookup")))
    assert description.endswith('Text notes: "O(1) average lookup".')


def test_accepts_json_string_and_document_layout():
    drawing = {"document": {"store": {"shape:a": geo("shape:a", "Bucket")}}}
    assert 'a box labeled: "Bucket"' in describe_drawing(json.dumps(drawing))


def test_accepts_record_list():
    records = [geo("shape:a", "Node"), {"id": "page:1", "typeName": "page"}]
    assert [r["id"] for r in extract_shape_records(records)] == ["shape:a"]


def test_empty_or_invalid_drawings_describe_nothing():
    assert describe_drawing(None) == ""
    assert describe_drawing("") == ""
    assert describe_drawing("{not json") == ""
    assert describe_drawing({"store": {}}) == ""
    assert describe_drawing(snapshot(geo("shape:a", ""))) != ""
    assert describe_drawing({"store": {"page:1": {"id": "page:1", "typeName": "page"}}}) == ""
