"""Realtime WebSocket: live session state and item feeds for one client."""

import asyncio
import json
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool

from app.dependencies import get_auth_service, get_db_client
from app.services.realtime import RealtimeChannel
from app.utils.exceptions import Dear23Exception
from app.utils.logger import bind_context, get_logger, reset_context

logger = get_logger(__name__)
router = APIRouter()

UNAUTHORIZED_CLOSE_CODE = 4401


@router.websocket("/ws")
async def realtime_socket(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    auth_service=Depends(get_auth_service),
    db_client=Depends(get_db_client),
) -> None:
    """
    Stream ``session`` and ``feed`` events and accept add/delete commands.

    Every listener opened for the connection is released when the socket
    closes, whatever the reason.
    """
    await websocket.accept()
    try:
        claims = await auth_service.verify_token(token or "")
    except Dear23Exception as e:
        logger.warning(f"Realtime auth rejected: {e.message}")
        await websocket.close(code=UNAUTHORIZED_CLOSE_CODE)
        return

    log_context = bind_context(uid=claims["uid"], channel="realtime")
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def emit(event: dict) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, event)

    channel = RealtimeChannel(db_client, claims["uid"], token, emit)

    async def pump_events() -> None:
        while True:
            await websocket.send_json(await queue.get())

    async def read_commands() -> None:
        while True:
            raw = await websocket.receive_text()
            try:
                command = json.loads(raw)
            except ValueError:
                command = None
            if not isinstance(command, dict):
                emit({"type": "error", "code": "VALIDATION_ERROR", "message": "Commands must be JSON objects"})
                continue
            try:
                ack = await run_in_threadpool(channel.handle, command)
            except Dear23Exception as e:
                emit({"type": "error", "code": e.error_code, "message": e.message, "details": e.details})
            except Exception as e:
                logger.error(
                    f"Realtime command {command.get('action')} failed for {claims['uid']}: {e}",
                    extra={"extra_data": {"exception_type": type(e).__name__}},
                    exc_info=True,
                )
                emit({
                    "type": "error",
                    "code": "INTERNAL_SERVER_ERROR",
                    "message": "An unexpected error occurred",
                    "details": {},
                })
            else:
                if ack:
                    emit(ack)

    tasks = []
    try:
        channel.open()
        logger.info(f"Realtime connection opened for {claims['uid']}")
        tasks = [asyncio.create_task(pump_events()), asyncio.create_task(read_commands())]
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.error(f"Realtime connection for {claims['uid']} failed: {exc}", exc_info=exc)
    finally:
        for task in tasks:
            task.cancel()
        channel.close()
        logger.info(f"Realtime connection closed for {claims['uid']}")
        reset_context(log_context)
