# parceltrack/services/api/routes/realtime.py
"""
WebSocket fan-out endpoint.

Every connection receives shipment_updated and shipment_assigned frames:
    {"event": "shipment_updated", "data": {"id": 1, "status": "in_transit"}}

Incoming messages:
- {"action": "subscribe", "topic": "shipment_updated"}
- {"action": "unsubscribe", "topic": "shipment_assigned"}
- {"action": "ping"}
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from parceltrack.core.realtime import ConnectionManager
from parceltrack.services.api.dependencies import get_notifier

router = APIRouter(tags=["Realtime"])


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket) -> None:
    manager = get_notifier().manager
    connection_id = await manager.connect(websocket)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                await manager.send_personal(connection_id, {"type": "error", "error": "Invalid JSON"})
                continue
            await _handle_client_message(manager, connection_id, data)
    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(connection_id)


async def _handle_client_message(
    manager: ConnectionManager,
    connection_id: str,
    data: Any,
) -> None:
    if not isinstance(data, dict):
        await manager.send_personal(connection_id, {"type": "error", "error": "Expected a JSON object"})
        return

    action = data.get("action")
    topic = data.get("topic")

    match action:
        case "ping":
            await manager.send_personal(connection_id, {"type": "pong"})
        case "subscribe":
            if await manager.subscribe(connection_id, str(topic)):
                await manager.send_personal(connection_id, {"type": "subscribed", "topic": topic})
            else:
                await manager.send_personal(connection_id, {"type": "error", "error": f"Unknown topic: {topic}"})
        case "unsubscribe":
            await manager.unsubscribe(connection_id, str(topic))
            await manager.send_personal(connection_id, {"type": "unsubscribed", "topic": topic})
        case _:
            await manager.send_personal(connection_id, {"type": "error", "error": f"Unknown action: {action}"})
