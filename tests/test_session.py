"""Registration and recognition flows driven with a fake camera and analyzer."""
from __future__ import annotations

import threading

import numpy as np
import pytest

from facereg.core.model_factory import MSG_LOAD_ERROR, ModelLoader
from facereg.data.store import EnrollmentStore
from facereg.processing.session import (
    FaceSession,
    FlowStatus,
    MSG_BUSY,
    MSG_FACE_NOT_FOUND,
    MSG_MODELS_NOT_LOADED,
    MSG_NO_CAMERA,
    MSG_NO_USERS,
    MSG_NOT_RECOGNIZED,
    MSG_PROCESSING_ERROR,
)

from conftest import DIM, BlockingAnalyzer, FakeAnalyzer, FakeCamera, vec


def test_register_enrolls_first_user(make_session) -> None:
    session, _ = make_session([vec(0.1, 0.2)])

    result = session.register()

    assert result.success
    assert result.status is FlowStatus.REGISTERED
    assert result.face.id == "user1"
    assert result.message == "Face registered as user1"
    assert session.message == "Face registered as user1"
    assert session.store.ids() == ["user1"]


def test_register_twice_numbers_sequentially(make_session) -> None:
    session, _ = make_session([vec(0.0), vec(0.0)])

    session.register()
    result = session.register()

    assert result.face.id == "user2"
    assert session.store.ids() == ["user1", "user2"]


def test_register_without_face_leaves_store_unchanged(make_session) -> None:
    session, analyzer = make_session([None])

    result = session.register()

    assert result.status is FlowStatus.FACE_NOT_FOUND
    assert result.message == MSG_FACE_NOT_FOUND
    assert session.store.is_empty()
    assert analyzer.calls == 1


def test_register_before_models_loaded(make_session, camera) -> None:
    session, analyzer = make_session([vec(0.0)], ready=False)

    result = session.register()

    assert result.status is FlowStatus.MODELS_NOT_LOADED
    assert session.message == MSG_MODELS_NOT_LOADED
    assert session.store.is_empty()
    assert camera.reads == 0
    assert analyzer.calls == 0


def test_register_without_camera(make_session, camera) -> None:
    camera.available = False
    session, analyzer = make_session([vec(0.0)])

    result = session.register()

    assert result.status is FlowStatus.NO_CAMERA
    assert result.message == MSG_NO_CAMERA
    assert analyzer.calls == 0
    assert session.store.is_empty()


def test_recognize_with_empty_store_never_reads_camera(make_session, camera) -> None:
    session, analyzer = make_session([vec(0.0)])

    result = session.recognize()

    assert result.status is FlowStatus.NO_USERS
    assert result.message == MSG_NO_USERS
    assert camera.reads == 0
    assert analyzer.calls == 0


def test_recognize_before_models_loaded(make_session) -> None:
    session, _ = make_session(ready=False)

    assert session.recognize().status is FlowStatus.MODELS_NOT_LOADED


def test_recognize_match_formats_distance(make_session) -> None:
    session, _ = make_session([vec(0.0), vec(0.42)])
    session.register()

    result = session.recognize()

    assert result.success
    assert result.match.id == "user1"
    assert result.message == "Recognized face: user1 (distance 0.420)"
    assert session.message == result.message


@pytest.mark.parametrize("distance", [0.65, 0.70, 0.6])
def test_recognize_at_or_above_threshold_is_not_recognized(make_session, distance) -> None:
    session, _ = make_session([vec(0.0), vec(distance)])
    session.register()

    result = session.recognize()

    assert result.status is FlowStatus.NOT_RECOGNIZED
    assert result.message == MSG_NOT_RECOGNIZED
    assert result.match.id == "user1"


def test_recognize_picks_nearest_of_several(make_session) -> None:
    session, _ = make_session([vec(1.0), vec(0.3), vec(2.0), vec(0.25)])
    for _ in range(3):
        session.register()

    result = session.recognize()

    assert result.match.id == "user2"
    assert result.match.distance_str == "0.050"


def test_recognize_without_face(make_session) -> None:
    session, _ = make_session([vec(0.0), None])
    session.register()

    result = session.recognize()

    assert result.status is FlowStatus.FACE_NOT_FOUND
    assert session.store.ids() == ["user1"]


def test_custom_threshold(make_session) -> None:
    session, _ = make_session([vec(0.0), vec(0.42)], threshold=0.4)
    session.register()

    assert session.recognize().status is FlowStatus.NOT_RECOGNIZED


def test_analyzer_error_sets_processing_message(make_session) -> None:
    class Broken(FakeAnalyzer):
        def detect_single_face(self, frame, options=None):
            raise RuntimeError("bad tensor")

    session, _ = make_session(analyzer=Broken())

    with pytest.raises(RuntimeError):
        session.register()

    assert session.message == MSG_PROCESSING_ERROR
    assert not session.busy
    assert session.store.is_empty()


def test_second_flow_while_busy_is_rejected(make_session) -> None:
    analyzer = BlockingAnalyzer([vec(0.0)])
    session, _ = make_session(analyzer=analyzer)
    results = []

    worker = threading.Thread(target=lambda: results.append(session.register()))
    worker.start()
    assert analyzer.entered.wait(timeout=5)

    assert session.busy
    busy = session.register()
    assert busy.status is FlowStatus.BUSY
    assert busy.message == MSG_BUSY
    assert session.recognize().status is FlowStatus.BUSY

    analyzer.release.set()
    worker.join(timeout=5)

    assert results[0].status is FlowStatus.REGISTERED
    assert session.store.ids() == ["user1"]
    assert session.message == "Face registered as user1"
    assert not session.busy


def test_state_reflects_button_availability(make_session) -> None:
    session, _ = make_session([vec(0.0)])

    state = session.state()
    assert state["models_loaded"] is True
    assert state["can_register"] is True
    assert state["can_recognize"] is False
    assert state["users"] == []

    session.register()

    state = session.state()
    assert state["can_recognize"] is True
    assert state["users"] == ["user1"]
    assert state["busy"] is False


def test_state_before_loading(make_session) -> None:
    session, _ = make_session(ready=False)

    state = session.state()

    assert state["models_loaded"] is False
    assert state["can_register"] is False
    assert state["can_recognize"] is False


def test_start_loading_publishes_loaded_message(make_session) -> None:
    session, _ = make_session(ready=False)

    session.start_loading().join(timeout=5)

    assert session.models_loaded
    assert session.message == "Models loaded. You can register a face."


def test_register_rejected_descriptor_sets_processing_message(make_session) -> None:
    session, _ = make_session([np.ones(512, dtype=np.float32)])

    with pytest.raises(ValueError):
        session.register()

    assert session.message == MSG_PROCESSING_ERROR
    assert session.store.is_empty()
    assert not session.busy


def test_recognize_rejected_descriptor_sets_processing_message(make_session) -> None:
    session, _ = make_session([vec(0.0), np.ones(64, dtype=np.float32)])
    session.register()

    with pytest.raises(ValueError):
        session.recognize()

    assert session.message == MSG_PROCESSING_ERROR
    assert session.store.ids() == ["user1"]
    assert not session.busy


def test_descriptor_size_mismatch_fails_model_load() -> None:
    class WideAnalyzer(FakeAnalyzer):
        embedding_dim = 512

    analyzer = WideAnalyzer([np.ones(512, dtype=np.float32)])
    loader = ModelLoader(
        detector_factory=lambda: "detector",
        landmark_factory=lambda: "landmarks",
        recognizer_factory=lambda: "recognizer",
        analyzer_factory=lambda d, l, r: analyzer,
        embedding_dim=DIM,
    )
    camera = FakeCamera()
    session = FaceSession(camera=camera, loader=loader, store=EnrollmentStore(embedding_dim=DIM))

    assert session.load_models() is False
    assert session.message == MSG_LOAD_ERROR
    assert isinstance(loader.error, ValueError)

    assert session.register().status is FlowStatus.MODELS_NOT_LOADED
    assert camera.reads == 0
    assert analyzer.calls == 0
