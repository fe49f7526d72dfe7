"""
==============================================================================
Capture Session Service
==============================================================================

State machine that accumulates classified frames until one HEAD and one
TAIL frame are held, then composites them exactly once.

State Machine:
--------------
    IDLE -> DETECTING -> HEAD_FOUND | TAIL_FOUND -> BOTH_FOUND -> COMPLETE

- start_detection() always resets retained frames (any state -> DETECTING)
- First HEAD wins, first TAIL wins; later frames of a filled role are ignored
- Filling the second role composites synchronously
- Compositing failure stays in BOTH_FOUND until the next start

Concurrency:
------------
All mutable fields are guarded by one lock. Frame admission hands out the
current generation; start/stop bump the generation, so results of frames
admitted before a reset are discarded at commit time. Decoding runs outside
the lock.

==============================================================================
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, NamedTuple, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from magcode.config import Settings, get_settings
from magcode.core import AppException, exceptions
from magcode.decoder import (
    BarcodeReader,
    BarcodeReadResult,
    ClassifiedFrame,
    CompositeImages,
    DualFrameCompositor,
    FrameDecoder,
    FrameType,
    PyzbarBarcodeReader,
)
from magcode.utils import ResultWriter


# Module logger
logger = logging.getLogger(__name__)


# =============================================================================
# STATE & OUTCOME TYPES
# =============================================================================

class DetectionState(str, enum.Enum):
    """
    Capture session states.

    - IDLE: Not detecting
    - DETECTING: Waiting for both roles
    - HEAD_FOUND / TAIL_FOUND: One role filled
    - BOTH_FOUND: Both roles filled, compositing failed
    - COMPLETE: Composite produced, processing disabled
    """
    IDLE = "idle"
    DETECTING = "detecting"
    HEAD_FOUND = "head_found"
    TAIL_FOUND = "tail_found"
    BOTH_FOUND = "both_found"
    COMPLETE = "complete"


ACTIVE_STATES = frozenset({
    DetectionState.DETECTING,
    DetectionState.HEAD_FOUND,
    DetectionState.TAIL_FOUND,
    DetectionState.BOTH_FOUND,
})


class FrameDisposition(str, enum.Enum):
    """What happened to one submitted frame."""
    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"
    SKIPPED = "skipped"
    QUEUED = "queued"
    DROPPED_IDLE = "dropped_idle"
    DROPPED_COMPLETE = "dropped_complete"
    DROPPED_BOTH_FOUND = "dropped_both_found"
    DROPPED_RATE = "dropped_rate"
    DROPPED_BUSY = "dropped_busy"
    DROPPED_STALE = "dropped_stale"
    DROPPED_ERROR = "dropped_error"


class FrameTicket(NamedTuple):
    """Admission decision for one frame."""
    generation: int
    disposition: Optional[FrameDisposition] = None

    @property
    def admitted(self) -> bool:
        return self.disposition is None


class FrameOutcome(BaseModel):
    """Result of submitting one frame to the session."""
    disposition: FrameDisposition
    state: DetectionState
    frame_type: Optional[FrameType] = Field(default=None)
    bit_count: Optional[int] = Field(default=None)
    composited: bool = Field(default=False)


class SessionResult(BaseModel):
    """Composite images plus the barcode reader outcome."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    images: CompositeImages
    barcode: BarcodeReadResult
    completed_at: datetime

    @property
    def image_a(self) -> np.ndarray:
        return self.images.image_a

    @property
    def image_b(self) -> np.ndarray:
        return self.images.image_b


class SessionSnapshot(BaseModel):
    """Read-only view of the session for status reporting."""
    state: DetectionState
    is_detecting: bool
    head_frame_detected: bool
    tail_frame_detected: bool
    processing_complete: bool
    status_message: str
    barcode_result: Optional[str] = Field(default=None)
    error: Optional[dict] = Field(default=None)
    frames_received: int = Field(default=0, ge=0)
    frames_processed: int = Field(default=0, ge=0)


# =============================================================================
# CAPTURE SESSION
# =============================================================================

class CaptureSession:
    """
    Owns the retained HEAD/TAIL frames and drives compositing.

    Attributes:
        _decoder: Per-frame decode pipeline
        _compositor: Dual-frame compositor
        _reader: Barcode reader collaborator
        _min_interval: Minimum seconds between admitted frames

    Example:
        >>> session = CaptureSession.from_settings()
        >>> session.start_detection()
        >>> outcome = session.process_frame(frame)
        >>> outcome.disposition
        <FrameDisposition.ACCEPTED: 'accepted'>
    """

    def __init__(
        self,
        decoder: Optional[FrameDecoder] = None,
        compositor: Optional[DualFrameCompositor] = None,
        reader: Optional[BarcodeReader] = None,
        min_frame_interval: float = 0.033,
        clock: Callable[[], float] = time.monotonic,
        on_complete: Optional[Callable[[SessionResult], None]] = None
    ) -> None:
        """
        Initialize an idle session.

        Args:
            decoder: Frame decoder (default settings if None)
            compositor: Compositor (default crop height if None)
            reader: Barcode reader (pyzbar if None)
            min_frame_interval: Minimum seconds between admitted frames
            clock: Monotonic time source
            on_complete: Called with the result after successful compositing
        """
        self._decoder = decoder or FrameDecoder()
        self._compositor = compositor or DualFrameCompositor()
        self._reader = reader or PyzbarBarcodeReader()
        self._min_interval = min_frame_interval
        self._clock = clock
        self._on_complete = on_complete

        self._lock = threading.RLock()
        self._generation = 0
        self._state = DetectionState.IDLE
        self._head: Optional[ClassifiedFrame] = None
        self._tail: Optional[ClassifiedFrame] = None
        self._result: Optional[SessionResult] = None
        self._error: Optional[AppException] = None
        self._status_message = "Pending"
        self._last_admitted: Optional[float] = None
        self._frames_received = 0
        self._frames_processed = 0

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        reader: Optional[BarcodeReader] = None,
        on_complete: Optional[Callable[[SessionResult], None]] = None
    ) -> "CaptureSession":
        """Build a session configured from application settings."""
        settings = settings or get_settings()
        return cls(
            decoder=FrameDecoder.from_settings(settings),
            compositor=DualFrameCompositor(settings.output_crop_height),
            reader=reader,
            min_frame_interval=settings.min_frame_interval_seconds,
            on_complete=on_complete,
        )

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start_detection(self) -> None:
        """Reset retained frames and start detecting."""
        with self._lock:
            self._generation += 1
            self._clear()
            self._state = DetectionState.DETECTING
            self._status_message = "Detecting..."
        logger.info("🔍 Detection started")

    def stop_detection(self) -> None:
        """Stop detecting; retained frames are released, the last result is kept."""
        with self._lock:
            self._generation += 1
            self._head = None
            self._tail = None
            self._state = DetectionState.IDLE
            self._status_message = "Detection Stopped"
        logger.info("🛑 Detection stopped")

    def _clear(self) -> None:
        self._head = None
        self._tail = None
        self._result = None
        self._error = None
        self._last_admitted = None
        self._frames_received = 0
        self._frames_processed = 0

    # =========================================================================
    # FRAME PROCESSING
    # =========================================================================

    def admit(self, now: Optional[float] = None) -> FrameTicket:
        """
        Decide whether a frame arriving now should be processed.

        Dropped without processing when not detecting, already complete,
        both roles filled, or sooner than the minimum interval.
        """
        with self._lock:
            self._frames_received += 1
            generation = self._generation

            if self._state == DetectionState.COMPLETE:
                return FrameTicket(generation, FrameDisposition.DROPPED_COMPLETE)
            if self._state not in ACTIVE_STATES:
                return FrameTicket(generation, FrameDisposition.DROPPED_IDLE)
            if self._head is not None and self._tail is not None:
                return FrameTicket(generation, FrameDisposition.DROPPED_BOTH_FOUND)

            now = self._clock() if now is None else now
            if (
                self._last_admitted is not None
                and now - self._last_admitted < self._min_interval
            ):
                return FrameTicket(generation, FrameDisposition.DROPPED_RATE)

            self._last_admitted = now
            return FrameTicket(generation)

    def classify_frame(self, frame: np.ndarray) -> Optional[ClassifiedFrame]:
        """
        Decode and classify a frame outside the session lock.

        Returns:
            ClassifiedFrame, or None when the frame could not be decoded
        """
        try:
            classified = self._decoder.classify(frame)
        except AppException as e:
            logger.debug(f"Frame rejected: {e.message}")
            return None
        except Exception as e:
            logger.warning(f"Frame processing error: {e}")
            return None

        if classified.decode_result.is_empty:
            logger.debug("Decode produced no bits")
            return None

        return classified

    def commit(self, ticket: FrameTicket, classified: Optional[ClassifiedFrame]) -> FrameOutcome:
        """
        Apply a classified frame to the session.

        The frame only updates state when its ticket generation is still
        current. Filling the second role composites before returning.
        """
        with self._lock:
            if not ticket.admitted:
                return self._outcome(ticket.disposition)

            if ticket.generation != self._generation or self._state not in ACTIVE_STATES:
                logger.debug("Discarding result of a frame admitted before reset")
                return self._outcome(FrameDisposition.DROPPED_STALE)

            self._frames_processed += 1

            if classified is None:
                return self._outcome(FrameDisposition.DROPPED_ERROR)

            frame_type = classified.frame_type
            bit_count = classified.decode_result.bit_count

            if frame_type == FrameType.SKIP:
                return self._outcome(FrameDisposition.SKIPPED, frame_type, bit_count)

            if frame_type == FrameType.HEAD:
                if self._head is not None:
                    return self._outcome(FrameDisposition.DUPLICATE, frame_type, bit_count)
                self._head = classified
                logger.info("🟢 Head frame detected")
            else:
                if self._tail is not None:
                    return self._outcome(FrameDisposition.DUPLICATE, frame_type, bit_count)
                self._tail = classified
                logger.info("🟢 Tail frame detected")

            composited = False
            completed = None
            if self._head is not None and self._tail is not None:
                self._state = DetectionState.BOTH_FOUND
                self._status_message = f"{frame_type.value.capitalize()} frame detected, generating results..."
                completed = self._composite()
                composited = True
            elif self._head is not None:
                self._state = DetectionState.HEAD_FOUND
                self._status_message = "Head frame detected, detecting tail frame..."
            else:
                self._state = DetectionState.TAIL_FOUND
                self._status_message = "Tail frame detected, detecting head frame..."

            outcome = self._outcome(FrameDisposition.ACCEPTED, frame_type, bit_count, composited)

        # Callback runs without the lock held
        if completed is not None and self._on_complete is not None:
            try:
                self._on_complete(completed)
            except Exception as e:
                logger.error(f"Completion callback error: {e}")

        return outcome

    def process_frame(self, frame: np.ndarray, now: Optional[float] = None) -> FrameOutcome:
        """Admit, decode, classify and commit one frame synchronously."""
        ticket = self.admit(now)
        if not ticket.admitted:
            return self.commit(ticket, None)
        return self.commit(ticket, self.classify_frame(frame))

    def _outcome(
        self,
        disposition: FrameDisposition,
        frame_type: Optional[FrameType] = None,
        bit_count: Optional[int] = None,
        composited: bool = False
    ) -> FrameOutcome:
        return FrameOutcome(
            disposition=disposition,
            state=self._state,
            frame_type=frame_type,
            bit_count=bit_count,
            composited=composited,
        )

    # =========================================================================
    # COMPOSITING
    # =========================================================================

    def _composite(self) -> Optional[SessionResult]:
        """Composite the retained frames; caller holds the lock."""
        head, tail = self._head, self._tail

        try:
            images = self._compositor.compose(
                head.image, head.decode_result,
                tail.image, tail.decode_result,
            )
        except AppException as e:
            logger.error(f"❌ Compositing failed: {e.message}")
            self._error = e
            self._status_message = e.message
            return None
        except Exception as e:
            logger.exception("Error generating final images")
            self._error = exceptions.internal_error(f"Image generation error: {e}")
            self._status_message = self._error.message
            return None

        barcode = self._reader.read(images.image_b)
        self._result = SessionResult(
            images=images,
            barcode=barcode,
            completed_at=datetime.now(timezone.utc),
        )
        self._state = DetectionState.COMPLETE
        self._status_message = "Detection Complete"
        logger.info(f"✅ Detection complete, barcode result: {barcode.display_text}")
        return self._result

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    @property
    def state(self) -> DetectionState:
        with self._lock:
            return self._state

    @property
    def result(self) -> Optional[SessionResult]:
        with self._lock:
            return self._result

    @property
    def error(self) -> Optional[AppException]:
        with self._lock:
            return self._error

    @property
    def head_frame(self) -> Optional[ClassifiedFrame]:
        with self._lock:
            return self._head

    @property
    def tail_frame(self) -> Optional[ClassifiedFrame]:
        with self._lock:
            return self._tail

    def snapshot(self) -> SessionSnapshot:
        """Consistent status view taken under the lock."""
        with self._lock:
            return SessionSnapshot(
                state=self._state,
                is_detecting=self._state in ACTIVE_STATES,
                head_frame_detected=self._head is not None,
                tail_frame_detected=self._tail is not None,
                processing_complete=self._state == DetectionState.COMPLETE,
                status_message=self._status_message,
                barcode_result=self._result.barcode.display_text if self._result else None,
                error=self._error.to_dict()["error"] if self._error else None,
                frames_received=self._frames_received,
                frames_processed=self._frames_processed,
            )


# =============================================================================
# SINGLETON INSTANCE MANAGEMENT
# =============================================================================

_session_instance: Optional[CaptureSession] = None
_session_lock = threading.Lock()


def get_capture_session() -> CaptureSession:
    """Get the process-wide capture session, creating it on first use."""
    global _session_instance
    with _session_lock:
        if _session_instance is None:
            _session_instance = CaptureSession.from_settings(on_complete=_save_result)
        return _session_instance


def init_capture_session(session: CaptureSession) -> CaptureSession:
    """
    Install a capture session as the process-wide instance.

    Args:
        session: Session to install

    Returns:
        The installed session
    """
    global _session_instance
    with _session_lock:
        _session_instance = session
        return _session_instance


def _save_result(result: SessionResult) -> None:
    settings = get_settings()
    if not settings.save_results:
        return

    ResultWriter(settings.result_path).write(result)
