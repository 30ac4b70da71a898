from typing import Optional

from fastapi import WebSocket


class WebSocketBoard:
    """Board mutations forwarded to the browser, which owns the real graph."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.element_count = 0
        self.edge_count = 0

    async def create_element(self, final_id: str, kind: str, fields: dict) -> None:
        data = {k: v for k, v in fields.items() if k not in ("x", "y")}
        await self.websocket.send_json(
            {
                "type": "element_created",
                "element": {
                    "id": final_id,
                    "kind": kind,
                    "position": {"x": fields["x"], "y": fields["y"]},
                    "data": {"id": final_id, "type": kind, **data},
                },
            }
        )
        self.element_count += 1

    async def create_edge(
        self, edge_id: str, source_id: str, target_id: str, label: Optional[str]
    ) -> None:
        edge = {"id": edge_id, "source": source_id, "target": target_id}
        if label:
            edge["label"] = label
        await self.websocket.send_json({"type": "edge_created", "edge": edge})
        self.edge_count += 1
