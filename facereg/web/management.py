# facereg/web/management.py
"""
Face API - wires the page buttons to the registration/recognition flows.

Endpoints:
- GET  /api/state      - readiness, status message, enrolled ids, button flags
- GET  /api/users      - enrolled ids in registration order
- POST /api/register   - capture a frame and enroll the face as userN
- POST /api/recognize  - capture a frame and find the nearest enrolled face
"""
import logging

from flask import Blueprint, jsonify

from ..processing.session import FlowStatus

logger = logging.getLogger(__name__)

management_bp = Blueprint('management', __name__)

# Set from create_app() / main.py
_session = None

# Flow outcomes that are not plain "200 + message"
_HTTP_STATUS = {
    FlowStatus.MODELS_NOT_LOADED: 503,
    FlowStatus.NO_CAMERA: 503,
    FlowStatus.NO_USERS: 400,
    FlowStatus.BUSY: 409,
}


def init_management(session):
    """
    Bind the API to a FaceSession.
    Called by create_app() after the camera and loader exist.
    """
    global _session
    _session = session
    logger.info("[Web Management] Initialized with face session")


def get_session():
    return _session


def _not_ready():
    return jsonify({'success': False, 'error': 'Session is not initialized'}), 500


def _flow_response(result):
    body = {
        'success': result.success,
        'status': result.status.value,
        'message': result.message,
        'users': _session.store.ids(),
    }
    if result.face is not None:
        body['user'] = {'id': result.face.id}
    if result.match is not None:
        body['match'] = {
            'id': result.match.id,
            'distance': round(result.match.distance, 3),
        }
    if not result.success:
        body['error'] = result.message
    return jsonify(body), _HTTP_STATUS.get(result.status, 200)


@management_bp.route('/api/state', methods=['GET'])
def api_state():
    """
    GET /api/state

    Response:
        {"models_loaded": true, "message": "...", "users": ["user1"],
         "can_register": true, "can_recognize": true, "busy": false}
    """
    if _session is None:
        return _not_ready()
    return jsonify(_session.state())


@management_bp.route('/api/users', methods=['GET'])
def api_users():
    """
    GET /api/users

    Response:
        [{"id": "user1"}, {"id": "user2"}]
    """
    if _session is None:
        return _not_ready()
    return jsonify([{'id': face_id} for face_id in _session.store.ids()])


@management_bp.route('/api/register', methods=['POST'])
def api_register():
    """
    POST /api/register

    Response:
        {"success": true, "status": "registered", "message": "Face registered as user1",
         "user": {"id": "user1"}, "users": [...]}
        or
        {"success": false, "status": "face_not_found", "error": "...", ...}
    """
    if _session is None:
        return _not_ready()

    try:
        result = _session.register()
    except Exception as e:
        logger.error(f"Register failed: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
    return _flow_response(result)


@management_bp.route('/api/recognize', methods=['POST'])
def api_recognize():
    """
    POST /api/recognize

    Response:
        {"success": true, "status": "recognized",
         "message": "Recognized face: user1 (distance 0.420)",
         "match": {"id": "user1", "distance": 0.42}, "users": [...]}
        or
        {"success": false, "status": "not_recognized", "error": "Face not recognized.", ...}
    """
    if _session is None:
        return _not_ready()

    try:
        result = _session.recognize()
    except Exception as e:
        logger.error(f"Recognize failed: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
    return _flow_response(result)


def register_management_routes(app):
    """Attach the API blueprint to a Flask app."""
    app.register_blueprint(management_bp)
    logger.info("[Web Management] Routes registered: /api/state, /api/users, /api/register, /api/recognize")
