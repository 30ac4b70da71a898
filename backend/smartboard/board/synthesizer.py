import random
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from smartboard.board.images import build_image_url
from smartboard.board.layout import default_position, satellite_positions
from smartboard.commands import Command, CommandKind
from smartboard.messages import localized

MIND_MAP_CENTER_COLOR = "#d1c4e9"
MIND_MAP_SATELLITE_COLOR = "#c5cae9"


class BoardMutator(Protocol):
    """Whatever actually holds the board. The synthesizer only ever appends."""

    async def create_element(self, final_id: str, kind: str, fields: dict) -> None: ...

    async def create_edge(
        self, edge_id: str, source_id: str, target_id: str, label: Optional[str]
    ) -> None: ...


@dataclass(frozen=True)
class ResolvedElement:
    final_id: str
    kind: str
    x: float
    y: float


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex}"


class GraphSynthesizer:
    """
    Applies one batch of commands to the board in two passes.

    Pass 1 creates every node and records localId -> finalId for the batch.
    Pass 2 creates edges (explicit connects and mind-map spokes) through that
    map, so a connect can point at a node defined later in the same batch.
    The identity map lives for exactly one apply() call.
    """

    def __init__(
        self,
        board: BoardMutator,
        language: str = "en",
        rng: Optional[random.Random] = None,
        id_factory: Callable[[str], str] = new_id,
        image_url_builder: Callable[[str], str] | None = None,
    ):
        self.board = board
        self.language = language
        self.rng = rng or random.Random()
        self.id_factory = id_factory
        self.image_url_builder = image_url_builder or (
            lambda description: build_image_url(description, rng=self.rng)
        )

    async def apply(self, commands: list[Command]) -> str:
        if not commands:
            return localized("not_understood", self.language)

        identity: dict[str, str] = {}
        spokes: dict[int, list[tuple[str, str]]] = {}

        # ── Pass 1: nodes ────────────────────────────────────────────────────
        for index, command in enumerate(commands):
            if not command.is_node:
                continue
            if command.kind is CommandKind.MIND_MAP:
                spokes[index] = await self._create_mind_map(command, identity)
            else:
                await self._create_node(command, identity)

        # ── Pass 2: edges ────────────────────────────────────────────────────
        for index, command in enumerate(commands):
            if index in spokes:
                for source_id, target_id in spokes[index]:
                    await self._create_edge(source_id, target_id, None)
            elif command.kind is CommandKind.CONNECT:
                source_id = identity.get(command.source or "")
                target_id = identity.get(command.target or "")
                if source_id and target_id:
                    await self._create_edge(source_id, target_id, command.fields.get("label"))
                else:
                    print(
                        f"[Board] Dropping connect {command.source!r} -> {command.target!r}: "
                        "unknown id"
                    )

        return self._reply_text(commands)

    # ── Nodes ────────────────────────────────────────────────────────────────

    async def _create_node(
        self, command: Command, identity: dict[str, str]
    ) -> Optional[ResolvedElement]:
        x, y = default_position(command.x, command.y, self.rng)
        fields = dict(command.fields)
        if command.kind is CommandKind.IMAGE:
            fields["url"] = self.image_url_builder(str(fields.get("description", "")))

        element = await self._emit_element(command.kind.value, x, y, fields)
        if element is not None and command.local_id:
            identity[command.local_id] = element.final_id
        return element

    async def _create_mind_map(
        self, command: Command, identity: dict[str, str]
    ) -> list[tuple[str, str]]:
        """Center note plus satellites on a circle. Returns the spokes for pass 2."""
        center_x, center_y = default_position(command.x, command.y, self.rng)
        center = await self._emit_element(
            CommandKind.NOTE.value,
            center_x,
            center_y,
            {
                "content": command.title,
                "color": MIND_MAP_CENTER_COLOR,
                "style": "bold",
            },
        )
        if center is not None and command.local_id:
            identity[command.local_id] = center.final_id

        satellites = _satellite_entries(command.fields.get("nodes"))
        spokes: list[tuple[str, str]] = []
        for (local_id, label), (x, y) in zip(
            satellites, satellite_positions(center_x, center_y, len(satellites))
        ):
            element = await self._emit_element(
                CommandKind.NOTE.value,
                x,
                y,
                {"content": label, "color": MIND_MAP_SATELLITE_COLOR},
            )
            if element is None:
                continue
            if local_id:
                identity[local_id] = element.final_id
            if center is not None:
                spokes.append((center.final_id, element.final_id))
        return spokes

    async def _emit_element(
        self, kind: str, x: float, y: float, fields: dict
    ) -> Optional[ResolvedElement]:
        element = ResolvedElement(final_id=self.id_factory("ai"), kind=kind, x=x, y=y)
        try:
            await self.board.create_element(
                element.final_id, kind, {**fields, "x": x, "y": y}
            )
        except Exception as exc:
            print(f"[Board] create_element failed for {kind}: {exc}")
            return None
        return element

    # ── Edges ────────────────────────────────────────────────────────────────

    async def _create_edge(
        self, source_id: str, target_id: str, label: Optional[str]
    ) -> None:
        try:
            await self.board.create_edge(
                self.id_factory("edge"), source_id, target_id, label
            )
        except Exception as exc:
            print(f"[Board] create_edge failed {source_id} -> {target_id}: {exc}")

    # ── Reply ────────────────────────────────────────────────────────────────

    def _reply_text(self, commands: list[Command]) -> str:
        for command in commands:
            if command.note_body:
                return command.note_body
        for command in commands:
            if command.title:
                return command.title
        return localized("board_updated", self.language)


def _satellite_entries(raw: Any) -> list[tuple[Optional[str], str]]:
    """Normalize mind-map `nodes` into (local_id, label) pairs, skipping junk."""
    if not isinstance(raw, list):
        return []
    entries = []
    for item in raw:
        if isinstance(item, str) and item.strip():
            entries.append((None, item.strip()))
        elif isinstance(item, dict):
            label = item.get("label", item.get("text"))
            if not isinstance(label, str) or not label.strip():
                continue
            local_id = item.get("id")
            entries.append((str(local_id) if local_id is not None else None, label.strip()))
    return entries
