"""
==============================================================================
Detection Endpoints
==============================================================================

Capture session control, frame submission and composite results.

==============================================================================
"""

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from magcode.core import exceptions
from magcode.schemas import (
    BarcodeResponse,
    DetectionResultResponse,
    FrameOutcomeResponse,
    FrameSubmission,
    StatusResponse,
)
from magcode.services import CaptureSession, DetectionState, get_capture_session
from magcode.utils import ImageCodec


router = APIRouter(prefix="/detection", tags=["Detection"])


class DetectionController:
    """Controller for capture session operations."""

    def __init__(self, session: CaptureSession):
        self._session = session

    def start(self) -> StatusResponse:
        """Start (or restart) detection."""
        self._session.start_detection()
        return StatusResponse(session=self._session.snapshot())

    def stop(self) -> StatusResponse:
        """Stop detection."""
        self._session.stop_detection()
        return StatusResponse(session=self._session.snapshot())

    def status(self) -> StatusResponse:
        """Current session status."""
        return StatusResponse(session=self._session.snapshot())

    def submit_frame(self, data: FrameSubmission) -> FrameOutcomeResponse:
        """Decode one frame and apply it to the session."""
        state = self._session.state
        if state == DetectionState.IDLE:
            raise exceptions.session_not_detecting(state.value)

        frame = ImageCodec.decode_base64(data.frame)
        outcome = self._session.process_frame(frame)
        return FrameOutcomeResponse(outcome=outcome, session=self._session.snapshot())

    def result(self) -> DetectionResultResponse:
        """Summary of the composite result."""
        result = self._session.result
        if result is None:
            raise exceptions.result_not_ready()

        barcode = result.barcode
        return DetectionResultResponse(
            barcode=BarcodeResponse(
                success=barcode.success,
                text=barcode.text,
                symbology=barcode.symbology,
                display_text=barcode.display_text,
            ),
            image_a_size=[result.image_a.shape[1], result.image_a.shape[0]],
            image_b_size=[result.image_b.shape[1], result.image_b.shape[0]],
            completed_at=result.completed_at.isoformat(),
        )

    def image(self, name: str) -> Response:
        """Composite image as PNG."""
        result = self._session.result
        if result is None:
            raise exceptions.result_not_ready()

        image = result.image_a if name == "a" else result.image_b
        return Response(content=ImageCodec.encode_png(image), media_type="image/png")


@router.post("/start", response_model=StatusResponse)
def start_detection(session: CaptureSession = Depends(get_capture_session)):
    """Start detection; retained head/tail frames are cleared."""
    return DetectionController(session).start()


@router.post("/stop", response_model=StatusResponse)
def stop_detection(session: CaptureSession = Depends(get_capture_session)):
    """Stop detection."""
    return DetectionController(session).stop()


@router.get("/status", response_model=StatusResponse)
def detection_status(session: CaptureSession = Depends(get_capture_session)):
    """Get session state, detected roles and status message."""
    return DetectionController(session).status()


@router.post("/frames", response_model=FrameOutcomeResponse)
def submit_frame(
    data: FrameSubmission,
    session: CaptureSession = Depends(get_capture_session)
):
    """
    Submit one frame.

    Frames are decoded synchronously; the response carries the frame's
    disposition (accepted, skipped, dropped...) and the session status.
    """
    return DetectionController(session).submit_frame(data)


@router.get("/result", response_model=DetectionResultResponse)
def detection_result(session: CaptureSession = Depends(get_capture_session)):
    """Get the barcode outcome and output image sizes."""
    return DetectionController(session).result()


@router.get("/result/image-a.png")
def result_image_a(session: CaptureSession = Depends(get_capture_session)):
    """Image A: raw composite over stripe composite."""
    return DetectionController(session).image("a")


@router.get("/result/image-b.png")
def result_image_b(session: CaptureSession = Depends(get_capture_session)):
    """Image B: normalized stripe composite."""
    return DetectionController(session).image("b")
