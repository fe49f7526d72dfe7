"""
==============================================================================
API Integration Tests
==============================================================================

Tests for REST API endpoints and the capture WebSocket.

==============================================================================
"""

import asyncio
import base64

import cv2
import numpy as np
from fastapi.testclient import TestClient

from magcode.services import DetectionState, FrameDisposition, FrameOutcome
from magcode.websockets.capture import CaptureWebSocketHandler


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_health_check(self, client: TestClient):
        """Test health check returns status."""
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] in ["healthy", "degraded"]
        assert data["details"]["session_state"] == "idle"

    def test_readiness_probe(self, client: TestClient):
        """Test readiness probe."""
        response = client.get("/api/v1/health/ready")
        assert response.status_code == 200
        assert response.json()["ready"] is True

    def test_liveness_probe(self, client: TestClient):
        """Test liveness probe."""
        response = client.get("/api/v1/health/live")
        assert response.status_code == 200
        assert response.json()["alive"] is True


class TestDetectionEndpoints:
    """Tests for capture session endpoints."""

    def test_status_idle(self, client: TestClient):
        """Test status of a fresh session."""
        response = client.get("/api/v1/detection/status")
        assert response.status_code == 200
        session = response.json()["session"]
        assert session["state"] == "idle"
        assert session["is_detecting"] is False

    def test_start_and_stop(self, client: TestClient):
        """Test start/stop transitions."""
        response = client.post("/api/v1/detection/start")
        assert response.status_code == 200
        assert response.json()["session"]["state"] == "detecting"
        assert response.json()["session"]["status_message"] == "Detecting..."

        response = client.post("/api/v1/detection/stop")
        assert response.json()["session"]["state"] == "idle"
        assert response.json()["session"]["status_message"] == "Detection Stopped"

    def test_frame_while_idle(self, client: TestClient, tail_frame, encode_frame):
        """Test frame submission before start is rejected."""
        response = client.post(
            "/api/v1/detection/frames",
            json={"frame": encode_frame(tail_frame)}
        )
        assert response.status_code == 409
        data = response.json()
        assert data["success"] is False
        assert data["error"]["code"] == "SESSION_NOT_DETECTING"

    def test_invalid_base64(self, client: TestClient):
        """Test malformed frame data."""
        client.post("/api/v1/detection/start")
        response = client.post("/api/v1/detection/frames", json={"frame": "not base64!"})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_FRAME"

    def test_not_an_image(self, client: TestClient):
        """Test valid base64 that is not an image."""
        client.post("/api/v1/detection/start")
        payload = base64.b64encode(b"hello world").decode("ascii")
        response = client.post("/api/v1/detection/frames", json={"frame": payload})
        assert response.status_code == 400

    def test_empty_frame_validation(self, client: TestClient):
        """Test empty frame strings fail validation."""
        response = client.post("/api/v1/detection/frames", json={"frame": "   "})
        assert response.status_code == 422

    def test_result_not_ready(self, client: TestClient):
        """Test result before completion."""
        response = client.get("/api/v1/detection/result")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "RESULT_NOT_READY"

        response = client.get("/api/v1/detection/result/image-b.png")
        assert response.status_code == 404

    def test_full_detection_flow(self, client: TestClient, tail_frame, head_frame, skip_frame, encode_frame):
        """Test start, skip, head, tail and result retrieval."""
        client.post("/api/v1/detection/start")

        response = client.post("/api/v1/detection/frames", json={"frame": encode_frame(skip_frame)})
        assert response.status_code == 200
        assert response.json()["outcome"]["disposition"] == "skipped"

        response = client.post("/api/v1/detection/frames", json={"frame": encode_frame(head_frame)})
        data = response.json()
        assert data["outcome"]["frame_type"] == "head"
        assert data["session"]["state"] == "head_found"
        assert data["session"]["status_message"] == "Head frame detected, detecting tail frame..."

        response = client.post("/api/v1/detection/frames", json={"frame": encode_frame(tail_frame)})
        data = response.json()
        assert data["outcome"]["composited"] is True
        assert data["session"]["state"] == "complete"
        assert data["session"]["processing_complete"] is True

        response = client.get("/api/v1/detection/result")
        assert response.status_code == 200
        result = response.json()
        assert result["barcode"]["display_text"] == "4006381333931 (Format: EAN13)"
        assert result["image_a_size"] == [1980, 1920]
        assert result["image_b_size"] == [2260, 960]

        response = client.get("/api/v1/detection/result/image-b.png")
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        image = cv2.imdecode(np.frombuffer(response.content, np.uint8), cv2.IMREAD_COLOR)
        assert image.shape == (960, 2260, 3)

        response = client.get("/api/v1/detection/result/image-a.png")
        assert response.status_code == 200

    def test_frames_after_complete_dropped(self, client: TestClient, tail_frame, head_frame, encode_frame):
        """Test frames after completion are dropped, not errors."""
        client.post("/api/v1/detection/start")
        client.post("/api/v1/detection/frames", json={"frame": encode_frame(tail_frame)})
        client.post("/api/v1/detection/frames", json={"frame": encode_frame(head_frame)})

        response = client.post("/api/v1/detection/frames", json={"frame": encode_frame(tail_frame)})
        assert response.status_code == 200
        assert response.json()["outcome"]["disposition"] == "dropped_complete"


class TestDecodeEndpoints:
    """Tests for stateless frame analysis."""

    def test_analyze_tail_frame(self, client: TestClient, tail_frame, encode_frame):
        """Test analysis reports bits, role and positions."""
        response = client.post("/api/v1/decode/frame", json={"frame": encode_frame(tail_frame)})
        assert response.status_code == 200
        data = response.json()
        assert data["width"] == 1080
        assert data["height"] == 1920
        assert data["bit_count"] == 54
        assert data["bits"].startswith("100101")
        assert data["frame_type"] == "tail"
        assert data["positions"]["start_bit_index"] == 1
        assert data["positions"]["end_bit_index"] == 48

    def test_analyze_skip_frame(self, client: TestClient, skip_frame, encode_frame):
        """Test SKIP frames have no positions."""
        response = client.post("/api/v1/decode/frame", json={"frame": encode_frame(skip_frame)})
        data = response.json()
        assert data["frame_type"] == "skip"
        assert data["positions"] is None

    def test_analyze_does_not_touch_session(self, client: TestClient, tail_frame, encode_frame):
        """Test analysis leaves the capture session alone."""
        client.post("/api/v1/decode/frame", json={"frame": encode_frame(tail_frame)})
        session = client.get("/api/v1/detection/status").json()["session"]
        assert session["tail_frame_detected"] is False

    def test_wrong_orientation(self, client: TestClient, encode_frame):
        """Test frames matching no orientation are rejected."""
        frame = np.zeros((480, 640, 3), dtype=np.uint8)
        response = client.post("/api/v1/decode/frame", json={"frame": encode_frame(frame)})
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "FRAME_ORIENTATION"


class TestCaptureWebSocket:
    """Tests for the capture WebSocket."""

    def test_capture_flow(self, client: TestClient, tail_frame, head_frame, encode_frame):
        """Test start, two frames and the pushed result."""
        with client.websocket_connect("/ws/capture") as websocket:
            message = websocket.receive_json()
            assert message["type"] == "status"
            assert message["session"]["state"] == "idle"

            websocket.send_json({"type": "start"})
            message = websocket.receive_json()
            assert message["session"]["state"] == "detecting"

            websocket.send_json({"type": "frame", "frame": encode_frame(tail_frame)})
            message = websocket.receive_json()
            assert message["type"] == "frame"
            assert message["outcome"]["disposition"] == "accepted"
            assert message["outcome"]["frame_type"] == "tail"

            websocket.send_json({"type": "frame", "frame": encode_frame(head_frame)})
            message = websocket.receive_json()
            assert message["outcome"]["composited"] is True

            message = websocket.receive_json()
            assert message["type"] == "status"
            assert message["session"]["state"] == "complete"

            message = websocket.receive_json()
            assert message["type"] == "result"
            assert message["barcode"]["text"] == "4006381333931"
            image_b = cv2.imdecode(
                np.frombuffer(base64.b64decode(message["image_b"]), np.uint8),
                cv2.IMREAD_COLOR
            )
            assert image_b.shape == (960, 2260, 3)

            websocket.send_json({"type": "stop"})
            message = websocket.receive_json()
            assert message["session"]["state"] == "idle"

    def test_frame_before_start(self, client: TestClient, tail_frame, encode_frame):
        """Test frames before start are reported dropped."""
        with client.websocket_connect("/ws/capture") as websocket:
            websocket.receive_json()
            websocket.send_json({"type": "frame", "frame": encode_frame(tail_frame)})
            message = websocket.receive_json()
            assert message["outcome"]["disposition"] == "dropped_idle"

    def test_bad_frame_and_unknown_message(self, client: TestClient):
        """Test protocol errors are reported without closing."""
        with client.websocket_connect("/ws/capture") as websocket:
            websocket.receive_json()

            websocket.send_json({"type": "frame", "frame": "%%%"})
            message = websocket.receive_json()
            assert message["type"] == "error"
            assert message["code"] == "INVALID_FRAME"

            websocket.send_json({"type": "bogus"})
            message = websocket.receive_json()
            assert message["code"] == "UNKNOWN_MESSAGE"


class RecordingWebSocket:
    """WebSocket double that yields inside send_json and tracks overlap."""

    def __init__(self):
        self.messages = []
        self.active = 0
        self.max_active = 0

    async def send_json(self, message):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        await asyncio.sleep(0)
        self.messages.append(message)
        self.active -= 1


class TestCaptureWebSocketHandler:
    """Tests for the handler's outbound message path."""

    def test_sends_are_serialized(self, session, tail_frame, head_frame):
        """Test worker pushes and loop replies never overlap on the socket."""
        session.start_detection()
        session.process_frame(tail_frame)
        session.process_frame(head_frame)
        outcome = FrameOutcome(
            disposition=FrameDisposition.ACCEPTED,
            state=DetectionState.COMPLETE,
            composited=True
        )
        websocket = RecordingWebSocket()

        async def scenario():
            handler = CaptureWebSocketHandler(websocket, session)
            await asyncio.gather(
                handler.send_outcome(outcome),
                handler.send_status(),
                handler.send_error("boom")
            )

        asyncio.run(scenario())

        assert websocket.max_active == 1
        types = [m["type"] for m in websocket.messages]
        assert sorted(types) == ["error", "frame", "result", "status", "status"]
        assert types.index("frame") < types.index("result")
