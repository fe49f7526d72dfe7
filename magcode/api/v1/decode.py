"""
==============================================================================
Frame Decode Endpoints
==============================================================================

Stateless single-frame analysis for calibration and diagnostics.

==============================================================================
"""

from fastapi import APIRouter

from magcode.config import get_settings
from magcode.decoder import FrameDecoder
from magcode.schemas import FrameAnalysisResponse, FrameSubmission
from magcode.utils import ImageCodec


router = APIRouter(prefix="/decode", tags=["Decode"])


@router.post("/frame", response_model=FrameAnalysisResponse)
def analyze_frame(data: FrameSubmission):
    """
    Decode and classify one frame without touching the capture session.

    Returns the decoded bits, the frame role and, for HEAD/TAIL frames,
    the marker positions.
    """
    decoder = FrameDecoder.from_settings(get_settings())
    classified = decoder.classify(ImageCodec.decode_base64(data.frame))
    result = classified.decode_result

    return FrameAnalysisResponse(
        width=classified.image.shape[1],
        height=classified.image.shape[0],
        bit_count=result.bit_count,
        bits=result.bit_string(),
        frame_type=classified.frame_type,
        positions=classified.positions,
    )
