"""
==============================================================================
Capture WebSocket Module
==============================================================================

Real-time stripe detection via WebSocket connection.

Protocol:
---------
1. Client connects (each connection owns its own capture session)
2. Client sends {"type": "start"} to begin detecting
3. Client sends frames as {"type": "frame", "frame": <base64>}
4. Server pushes "frame" outcomes, "status" updates and one "result"
5. Client sends {"type": "stop"} to stop detecting, or disconnects

==============================================================================
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from magcode.config import get_settings
from magcode.core import AppException
from magcode.decoder import BarcodeReader, PyzbarBarcodeReader
from magcode.services import (
    CaptureSession,
    DetectionWorker,
    FrameDisposition,
    FrameOutcome,
)
from magcode.utils import ImageCodec


# Module logger
logger = logging.getLogger(__name__)

router = APIRouter()


class CaptureWebSocketHandler:
    """
    Handler for capture WebSocket connections.

    Manages the lifecycle of one capture session including:
    - Detection start/stop
    - Frame queueing through the detection worker
    - Outcome and result reporting
    """

    def __init__(self, websocket: WebSocket, session: CaptureSession, queue_size: int = 1):
        self._websocket = websocket
        self._session = session
        self._worker = DetectionWorker(session, queue_size, on_outcome=self.send_outcome)
        self._send_lock = asyncio.Lock()

    async def _send(self, message: dict) -> None:
        """Send one JSON message; the worker task and the receive loop share the socket."""
        async with self._send_lock:
            await self._websocket.send_json(message)

    async def send_error(self, message: str, code: str = "ERROR") -> None:
        """Send error message to client."""
        await self._send({
            "type": "error",
            "code": code,
            "message": message
        })

    async def send_status(self) -> None:
        """Send current session status to client."""
        await self._send({
            "type": "status",
            "session": self._session.snapshot().model_dump(mode="json")
        })

    async def send_outcome(self, outcome: FrameOutcome) -> None:
        """Send a processed frame outcome, followed by the result on completion."""
        await self._send({
            "type": "frame",
            "outcome": outcome.model_dump(mode="json")
        })

        if outcome.composited:
            await self.send_status()
            await self.send_result()

    async def send_result(self) -> None:
        """Send the composite result with both output images."""
        result = self._session.result
        if result is None:
            return

        barcode = result.barcode
        await self._send({
            "type": "result",
            "barcode": {
                "success": barcode.success,
                "text": barcode.text,
                "symbology": barcode.symbology,
                "display_text": barcode.display_text
            },
            "image_a": ImageCodec.encode_base64_png(result.image_a),
            "image_b": ImageCodec.encode_base64_png(result.image_b),
            "completed_at": result.completed_at.isoformat()
        })

    async def handle_frame(self, data: dict) -> None:
        """Handle frame message from client."""
        try:
            frame = ImageCodec.decode_base64(data.get("frame", ""))
        except AppException as e:
            await self.send_error(e.message, e.code)
            return

        outcome = self._worker.submit(frame)

        # Queued frames report once processed
        if outcome.disposition != FrameDisposition.QUEUED:
            await self._send({
                "type": "frame",
                "outcome": outcome.model_dump(mode="json")
            })

    async def run(self) -> None:
        """Main handler loop."""
        await self._websocket.accept()
        logger.info("📱 Capture WebSocket connected")

        self._worker.start()

        try:
            await self.send_status()

            while True:
                data = await self._websocket.receive_json()
                message_type = data.get("type")

                if message_type == "start":
                    self._session.start_detection()
                    await self.send_status()

                elif message_type == "frame":
                    await self.handle_frame(data)

                elif message_type == "stop":
                    logger.info("🛑 Client requested stop")
                    self._session.stop_detection()
                    await self.send_status()

                elif message_type == "status":
                    await self.send_status()

                else:
                    await self.send_error(f"Unknown message type: {message_type}", "UNKNOWN_MESSAGE")

        except WebSocketDisconnect:
            logger.info("📱 Client disconnected")
        except Exception as e:
            logger.error(f"WebSocket error: {e}")
            try:
                await self.send_error(str(e))
            except Exception:
                logger.debug("Could not deliver error to client")
        finally:
            await self._worker.stop()
            logger.info("✅ Capture WebSocket closed")


def get_barcode_reader() -> BarcodeReader:
    """Barcode reader for new capture connections."""
    return PyzbarBarcodeReader()


@router.websocket("/ws/capture")
async def websocket_capture(
    websocket: WebSocket,
    reader: BarcodeReader = Depends(get_barcode_reader)
):
    """Real-time head/tail frame detection via WebSocket."""
    settings = get_settings()
    session = CaptureSession.from_settings(settings, reader=reader)
    handler = CaptureWebSocketHandler(websocket, session, settings.frame_queue_size)
    await handler.run()
