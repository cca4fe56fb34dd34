"""
Whiteboard description - turns a tldraw snapshot into text the evaluator can read.

The description is appended to the candidate's answer as auxiliary text.
Returns an empty string when the drawing has nothing meaningful or cannot
be parsed; a bad drawing never fails an answer.
"""
import json
import logging
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

WHITEBOARD_HEADER = "[Whiteboard Diagram]"


def _label(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _plural(word: str, count: int) -> str:
    if count == 1:
        return word
    if word.endswith(("s", "x", "ch", "sh")):
        return f"{word}es"
    return f"{word}s"


def extract_shape_records(snapshot: Any) -> List[Dict[str, Any]]:
    """
    Shape records from any of the snapshot layouts tldraw produces:
    {"store": {...}}, {"document": {"store": {...}}}, a list of records,
    or a flat mapping of record id to record.
    """
    records: List[Any] = []
    if isinstance(snapshot, dict):
        document = snapshot.get("document")
        if isinstance(snapshot.get("store"), dict):
            records = list(snapshot["store"].values())
        elif isinstance(document, dict) and isinstance(document.get("store"), dict):
            records = list(document["store"].values())
        else:
            values = list(snapshot.values())
            if values and isinstance(values[0], dict) and values[0].get("typeName"):
                records = values
    elif isinstance(snapshot, list):
        records = snapshot

    return [r for r in records if isinstance(r, dict) and r.get("typeName") == "shape"]


def describe_drawing(snapshot: Union[str, Dict[str, Any], List[Any], None]) -> str:
    """
    Describe a whiteboard drawing in plain text.

    Args:
        snapshot: tldraw snapshot (dict, list of records, or JSON string)

    Returns:
        "\\n\\n[Whiteboard Diagram]\\n<sentences>." or "" if there is nothing to say
    """
    if not snapshot:
        return ""

    try:
        if isinstance(snapshot, str):
            snapshot = json.loads(snapshot)
        parts = _describe_records(extract_shape_records(snapshot))
    except (ValueError, TypeError, AttributeError) as e:
        logger.warning("Could not parse whiteboard drawing: %s", e)
        return ""

    if not parts:
        return ""
    return f"\n\n{WHITEBOARD_HEADER}\n" + ". ".join(parts) + "."


def _describe_records(records: List[Dict[str, Any]]) -> List[str]:
    shapes: List[Dict[str, Any]] = []
    arrows: List[Dict[str, Any]] = []
    texts: List[str] = []
    by_id: Dict[str, Dict[str, Any]] = {}

    for record in records:
        shape_type = record.get("type")
        props = record.get("props") or {}
        info = None

        if shape_type == "arrow":
            arrows.append({
                "start": (props.get("start") or {}).get("boundShapeId"),
                "end": (props.get("end") or {}).get("boundShapeId"),
                "label": _label(props.get("text")),
            })
            continue
        elif shape_type == "text":
            text = _label(props.get("text"))
            if text:
                texts.append(text)
                by_id[record.get("id")] = {"type": "text", "label": text}
            continue
        elif shape_type == "geo":
            info = {"type": props.get("geo") or "rectangle", "label": _label(props.get("text"))}
        elif shape_type == "note":
            label = _label(props.get("text"))
            if label:
                info = {"type": "note", "label": label}
        elif shape_type == "frame":
            label = _label(props.get("name"))
            if label:
                info = {"type": "frame", "label": label}
        elif shape_type == "draw":
            info = {"type": "freehand", "label": None}
        elif shape_type == "line":
            info = {"type": "line", "label": None}
        else:
            label = _label(props.get("text")) or _label(props.get("name"))
            if label:
                info = {"type": shape_type, "label": label}

        if info is not None:
            shapes.append(info)
            by_id[record.get("id")] = info

    parts = []

    labeled: Dict[str, List[str]] = {}
    unlabeled: Dict[str, int] = {}
    for shape in shapes:
        kind = "box" if shape["type"] == "rectangle" else shape["type"]
        if shape["label"]:
            labeled.setdefault(kind, []).append(shape["label"])
        else:
            unlabeled[kind] = unlabeled.get(kind, 0) + 1

    if labeled:
        groups = []
        for kind, labels in labeled.items():
            quoted = ", ".join(f'"{label}"' for label in labels)
            if len(labels) > 1:
                groups.append(f"{len(labels)} {_plural(kind, len(labels))} labeled: {quoted}")
            else:
                groups.append(f"a {kind} labeled: {quoted}")
        parts.append("Contains " + "; ".join(groups))

    if unlabeled:
        counts = ", ".join(f"{count} {_plural(kind, count)}" for kind, count in unlabeled.items())
        parts.append(f"Also has {counts}")

    if arrows:
        connections = []
        for arrow in arrows:
            start = by_id.get(arrow["start"]) if arrow["start"] else None
            end = by_id.get(arrow["end"]) if arrow["end"] else None
            if start and start["label"] and end and end["label"]:
                suffix = f" ({arrow['label']})" if arrow["label"] else ""
                connections.append(f"{start['label']} -> {end['label']}{suffix}")
            elif arrow["label"]:
                connections.append(f'arrow labeled "{arrow["label"]}"')

        if connections:
            parts.append("Connections: " + ", ".join(connections))
        else:
            parts.append(f"{len(arrows)} {_plural('arrow', len(arrows))} connecting shapes")

    shape_labels = {shape["label"] for shape in shapes if shape["label"]}
    notes = [text for text in texts if text not in shape_labels]
    if notes:
        parts.append("Text notes: " + ", ".join(f'"{text}"' for text in notes))

    return parts
