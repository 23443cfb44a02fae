import asyncio
import logging
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from lostmap.routers.reports import entry_response
from lostmap.utils.auth_helper import get_existing_session

logger = logging.getLogger(__name__)

router = APIRouter()

# Only the latest snapshot matters, older ones are superseded
QUEUE_SIZE = 1


async def stop_task(task: asyncio.Task) -> None:
    task.cancel()
    await asyncio.wait({task})

    if not task.cancelled() and task.exception() is not None:
        logger.error("Feed push failed", exc_info=task.exception())


@router.websocket("/feed")
async def report_feed(websocket: WebSocket):
    session_id, client = get_existing_session(websocket)
    if client is None:
        # the map_session cookie is issued by any HTTP call, e.g. GET /reports
        await websocket.close(code=4401)
        return

    await websocket.accept()

    changed: asyncio.Queue = asyncio.Queue(maxsize=QUEUE_SIZE)

    def on_change(_reports) -> None:
        if changed.full():
            return
        changed.put_nowait(True)

    async def push_snapshots() -> None:
        while True:
            await websocket.send_json({
                "version": client.records.version,
                "reports": [entry_response(entry) for entry in client.records.entries()],
            })
            await changed.get()

    with websocket.app.state.sessions.hold(session_id):
        remove_listener = client.records.add_listener(on_change)
        sender = asyncio.create_task(push_snapshots())
        try:
            # nothing is expected from the browser; this only notices the disconnect
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            logger.info("Feed socket disconnected")
        finally:
            remove_listener()
            await stop_task(sender)
