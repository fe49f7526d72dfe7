"""
==============================================================================
Health Check Endpoints
==============================================================================

System health status endpoints for monitoring and orchestration.

==============================================================================
"""

from fastapi import APIRouter, Depends

from magcode.services import CaptureSession, get_capture_session


router = APIRouter(prefix="/health", tags=["Health"])


class HealthController:
    """Controller for health check operations."""

    def __init__(self, session: CaptureSession):
        self._session = session

    def check_reader(self) -> str:
        """Check that the zbar shared library can be loaded."""
        try:
            import pyzbar.pyzbar  # noqa: F401
            return "healthy"
        except Exception:
            return "unavailable"

    def get_health(self) -> dict:
        """Get full health status."""
        reader_status = self.check_reader()
        snapshot = self._session.snapshot()

        overall = "healthy" if reader_status == "healthy" else "degraded"

        return {
            "status": overall,
            "components": {
                "api": "healthy",
                "decoder": "healthy",
                "reader": reader_status
            },
            "details": {
                "session_state": snapshot.state.value
            }
        }


@router.get("")
async def health_check(session: CaptureSession = Depends(get_capture_session)):
    """
    Health check endpoint.

    Returns system status including API, decoder and barcode reader.
    """
    controller = HealthController(session)
    return controller.get_health()


@router.get("/ready")
async def readiness_check():
    """Readiness probe for container orchestration."""
    return {"ready": True}


@router.get("/live")
async def liveness_check():
    """Liveness probe for container orchestration."""
    return {"alive": True}
