"""HTTP API and page, driven through the Flask test client."""
from __future__ import annotations

import numpy as np
import pytest

from facereg.web import create_app
from facereg.web.server import generate_mjpeg

from conftest import FakeAnalyzer, FakeCamera, vec


@pytest.fixture
def client_for(make_session):
    def _client(descriptors=None, ready=True, analyzer=None):
        session, _ = make_session(descriptors, ready=ready, analyzer=analyzer)
        app = create_app(session)
        app.config["TESTING"] = True
        return app.test_client(), session

    return _client


def test_index_page(client_for) -> None:
    client, _ = client_for()

    response = client.get("/")

    assert response.status_code == 200
    body = response.get_data(as_text=True)
    assert "Face Registration and Recognition" in body
    assert 'src="/video_feed"' in body
    assert "registerBtn" in body


def test_state_endpoint(client_for) -> None:
    client, _ = client_for()

    data = client.get("/api/state").get_json()

    assert data == {
        "models_loaded": True,
        "message": "",
        "users": [],
        "can_register": True,
        "can_recognize": False,
        "busy": False,
    }


def test_register_then_recognize(client_for) -> None:
    client, _ = client_for([vec(0.0), vec(0.42)])

    response = client.post("/api/register")
    assert response.status_code == 200
    data = response.get_json()
    assert data["success"] is True
    assert data["status"] == "registered"
    assert data["user"] == {"id": "user1"}
    assert data["users"] == ["user1"]

    response = client.post("/api/recognize")
    data = response.get_json()
    assert response.status_code == 200
    assert data["message"] == "Recognized face: user1 (distance 0.420)"
    assert data["match"] == {"id": "user1", "distance": 0.42}

    assert client.get("/api/users").get_json() == [{"id": "user1"}]


def test_not_recognized_is_not_an_http_error(client_for) -> None:
    client, _ = client_for([vec(0.0), vec(0.7)])
    client.post("/api/register")

    response = client.post("/api/recognize")

    assert response.status_code == 200
    data = response.get_json()
    assert data["success"] is False
    assert data["status"] == "not_recognized"
    assert data["error"] == "Face not recognized."


def test_recognize_with_no_users(client_for) -> None:
    client, _ = client_for()

    response = client.post("/api/recognize")

    assert response.status_code == 400
    assert response.get_json()["status"] == "no_users"


def test_models_not_loaded_is_503(client_for) -> None:
    client, session = client_for(ready=False)

    response = client.post("/api/register")

    assert response.status_code == 503
    assert response.get_json()["message"] == "Models are not loaded yet!"
    assert session.store.is_empty()


def test_busy_is_409(client_for) -> None:
    client, session = client_for([vec(0.0)])

    with session._flow_lock:
        response = client.post("/api/register")

    assert response.status_code == 409
    assert response.get_json()["status"] == "busy"


def test_processing_error_is_500(client_for) -> None:
    class Broken(FakeAnalyzer):
        def detect_single_face(self, frame, options=None):
            raise RuntimeError("bad tensor")

    client, session = client_for(analyzer=Broken())

    response = client.post("/api/register")

    assert response.status_code == 500
    assert response.get_json() == {"success": False, "error": "bad tensor"}
    assert session.message == "Face processing error"


def test_mjpeg_chunks() -> None:
    chunks = list(generate_mjpeg(FakeCamera(), max_frames=2, interval=0))

    assert len(chunks) == 2
    assert chunks[0].startswith(b"--frame\r\nContent-Type: image/jpeg\r\n\r\n\xff\xd8")


def test_rejected_descriptor_is_500_with_processing_status(client_for) -> None:
    client, _ = client_for([np.ones(512, dtype=np.float32)])

    response = client.post("/api/register")

    assert response.status_code == 500
    assert response.get_json()["success"] is False
    state = client.get("/api/state").get_json()
    assert state["message"] == "Face processing error"
    assert state["users"] == []
    assert state["busy"] is False
