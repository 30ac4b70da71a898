import json
import math
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class CommandKind(str, Enum):
    NOTE = "note"
    TEXT = "text"
    LIST = "list"
    IMAGE = "image"
    WORD_ART = "wordArt"
    SHAPE = "shape"
    CODE = "code"
    MIND_MAP = "mindMap"
    COMPARISON = "comparison"
    CONNECT = "connect"


# Lookup key is the kind name lowercased with separators removed, so
# "note", "addNote", "add_note" and "mind-map" all resolve.
_KIND_ALIASES: dict[str, CommandKind] = {k.value.lower(): k for k in CommandKind}

# Kind-specific fields carried through to the board. Anything else the model
# invents is dropped here.
_KIND_FIELDS: dict[CommandKind, tuple[str, ...]] = {
    CommandKind.NOTE: ("content", "color", "style"),
    CommandKind.TEXT: ("text", "color"),
    CommandKind.LIST: ("title", "items", "color"),
    CommandKind.IMAGE: ("description",),
    CommandKind.WORD_ART: ("text", "color", "rotation"),
    CommandKind.SHAPE: ("shapeType", "color", "width", "height"),
    CommandKind.CODE: ("code", "language"),
    CommandKind.MIND_MAP: ("title", "nodes"),
    CommandKind.COMPARISON: ("title", "columns"),
    CommandKind.CONNECT: ("label",),
}

# Fields that can stand in as a short reply for a whole batch, by kind.
_TITLE_FIELDS: dict[CommandKind, str] = {
    CommandKind.WORD_ART: "text",
    CommandKind.MIND_MAP: "title",
    CommandKind.LIST: "title",
    CommandKind.COMPARISON: "title",
}


@dataclass(frozen=True)
class Command:
    kind: CommandKind
    local_id: Optional[str] = None
    fields: dict[str, Any] = field(default_factory=dict)
    x: Optional[float] = None
    y: Optional[float] = None
    # Only meaningful for CONNECT.
    source: Optional[str] = None
    target: Optional[str] = None

    @property
    def is_node(self) -> bool:
        return self.kind is not CommandKind.CONNECT

    @property
    def note_body(self) -> str:
        if self.kind is not CommandKind.NOTE:
            return ""
        return _as_text(self.fields.get("content"))

    @property
    def title(self) -> str:
        key = _TITLE_FIELDS.get(self.kind)
        return _as_text(self.fields.get(key)) if key else ""


def normalize_kind(raw: Any) -> Optional[CommandKind]:
    """Map "note", "addNote", "add_note", "MindMap"... onto a CommandKind."""
    if not isinstance(raw, str):
        return None
    key = re.sub(r"[\s_\-]", "", raw).lower()
    if key in _KIND_ALIASES:
        return _KIND_ALIASES[key]
    if key.startswith("add"):
        return _KIND_ALIASES.get(key[3:])
    return None


def command_from_dict(obj: dict) -> Optional[Command]:
    """Validate one decoded object. Returns None for unknown or missing kinds."""
    kind = normalize_kind(obj.get("kind", obj.get("action")))
    if kind is None:
        return None

    local_id = obj.get("localId", obj.get("id"))
    fields = {name: obj[name] for name in _KIND_FIELDS[kind] if name in obj}

    if kind is CommandKind.CONNECT:
        return Command(
            kind=kind,
            fields=fields,
            source=_as_ref(obj.get("from")),
            target=_as_ref(obj.get("to")),
        )

    return Command(
        kind=kind,
        local_id=_as_ref(local_id),
        fields=fields,
        x=_as_coord(obj.get("x")),
        y=_as_coord(obj.get("y")),
    )


# ── Extraction strategies ────────────────────────────────────────────────────
#
# Each strategy takes the fence-stripped text and returns a list of decoded
# objects, or None. The first non-None result wins.

_FENCE_RE = re.compile(r"```(?:json|JSON)?")


def strip_fences(raw: str) -> str:
    return _FENCE_RE.sub("", raw).strip()


def _objects_from(value: Any) -> Optional[list[dict]]:
    if isinstance(value, dict) and isinstance(value.get("commands"), list):
        value = value["commands"]
    if not isinstance(value, list):
        return None
    objects = [item for item in value if isinstance(item, dict)]
    return objects or None


def parse_whole(text: str) -> Optional[list[dict]]:
    try:
        return _objects_from(json.loads(text))
    except (json.JSONDecodeError, ValueError, RecursionError):
        return None


def parse_bracket_slice(text: str) -> Optional[list[dict]]:
    start = text.find("[")
    end = text.rfind("]")
    if start == -1 or end <= start:
        return None
    return parse_whole(text[start : end + 1])


STRATEGIES: tuple[Callable[[str], Optional[list[dict]]], ...] = (
    parse_whole,
    parse_bracket_slice,
)


def extract_commands(raw: str) -> tuple[list[Command], bool]:
    """
    Turn a model response into an ordered command list.

    Returns (commands, matched). matched is False when nothing usable came out
    of the text, in which case the caller should show the raw text as a plain
    reply and leave the board alone.
    """
    text = strip_fences(raw or "")
    if not text:
        return [], False

    objects: Optional[list[dict]] = None
    for strategy in STRATEGIES:
        objects = strategy(text)
        if objects is not None:
            break

    if not objects:
        return [], False

    commands = [cmd for cmd in map(command_from_dict, objects) if cmd is not None]
    dropped = len(objects) - len(commands)
    if dropped:
        print(f"[Commands] Dropped {dropped} object(s) with unknown kind")
    return commands, bool(commands)


# ── Coercion helpers ─────────────────────────────────────────────────────────


def _as_coord(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if not isinstance(value, (int, float, str)):
        return None
    try:
        coord = float(value)
    except (ValueError, OverflowError):
        return None
    # NaN and infinity cannot be sent to the client as JSON
    return coord if math.isfinite(coord) else None


def _as_ref(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (str, int)):
        text = str(value).strip()
        return text or None
    return None


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value.strip() if isinstance(value, str) else str(value)
