"""
==============================================================================
Detection Worker Module
==============================================================================

Bounded single-consumer frame queue in front of a CaptureSession.

Frames are admitted by the session (rate gate, role checks), queued without
blocking, and consumed one at a time by a background asyncio task. Decoding
and session commits run in a worker thread so the event loop keeps serving
the capture source. A full queue drops the frame instead of waiting.

==============================================================================
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Tuple

import numpy as np

from .capture_session import (
    CaptureSession,
    FrameDisposition,
    FrameOutcome,
    FrameTicket,
)


# Module logger
logger = logging.getLogger(__name__)


OutcomeCallback = Callable[[FrameOutcome], Awaitable[None]]


class DetectionWorker:
    """
    Background consumer feeding frames to a capture session.

    Example:
        >>> worker = DetectionWorker(session)
        >>> worker.start()
        >>> worker.submit(frame)
        >>> await worker.drain()
        >>> await worker.stop()
    """

    def __init__(
        self,
        session: CaptureSession,
        queue_size: int = 1,
        on_outcome: Optional[OutcomeCallback] = None
    ) -> None:
        """
        Initialize the worker.

        Args:
            session: Session receiving the frames
            queue_size: Maximum number of frames waiting for processing
            on_outcome: Awaited with the outcome of every processed frame
        """
        self._session = session
        self._queue_size = queue_size
        self._on_outcome = on_outcome
        self._queue: Optional[asyncio.Queue[Tuple[FrameTicket, np.ndarray]]] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def session(self) -> CaptureSession:
        return self._session

    async def _consume_loop(self) -> None:
        """Process queued frames one at a time."""
        logger.info("🔄 Detection worker started")

        while True:
            ticket, frame = await self._queue.get()
            try:
                outcome = await asyncio.to_thread(self._process, ticket, frame)
                if self._on_outcome is not None:
                    await self._on_outcome(outcome)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Detection worker error: {e}")
            finally:
                self._queue.task_done()

    def _process(self, ticket: FrameTicket, frame: np.ndarray) -> FrameOutcome:
        classified = self._session.classify_frame(frame)
        return self._session.commit(ticket, classified)

    def start(self) -> asyncio.Task:
        """
        Start the background consumer (requires a running event loop).

        Returns:
            The asyncio Task object
        """
        if self._task is None or self._task.done():
            self._queue = asyncio.Queue(maxsize=self._queue_size)
            self._task = asyncio.create_task(self._consume_loop())
        return self._task

    def submit(self, frame: np.ndarray) -> FrameOutcome:
        """
        Offer a frame without blocking.

        Returns:
            QUEUED when the frame will be processed, otherwise the drop reason
        """
        if self._queue is None:
            raise RuntimeError("Detection worker is not started")

        ticket = self._session.admit()
        if not ticket.admitted:
            return self._session.commit(ticket, None)

        try:
            self._queue.put_nowait((ticket, frame))
        except asyncio.QueueFull:
            logger.debug("Frame queue full, dropping frame")
            return FrameOutcome(
                disposition=FrameDisposition.DROPPED_BUSY,
                state=self._session.state,
            )

        return FrameOutcome(disposition=FrameDisposition.QUEUED, state=self._session.state)

    async def drain(self) -> None:
        """Wait until every queued frame has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self) -> None:
        """Cancel the consumer; queued frames are discarded."""
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            logger.info("🛑 Detection worker stopped")
        self._task = None

    @property
    def is_running(self) -> bool:
        """Check if the consumer task is running."""
        return self._task is not None and not self._task.done()
