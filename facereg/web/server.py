# facereg/web/server.py
"""
Web page for face registration and recognition.
Open: http://<IP>:5000
"""
import time
import socket
import logging

from flask import Flask, Response, render_template_string

from .management import init_management, register_management_routes, get_session
from ..core.settings import settings

logger = logging.getLogger(__name__)

HTML_TEMPLATE = '''
<!DOCTYPE html>
<html>
<head>
    <title>Face Registration</title>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <style>
        * { font-family: 'Segoe UI', Arial, sans-serif; margin: 0; padding: 0; box-sizing: border-box; }
        body { background: #f5f7fa; color: #333; padding: 20px; text-align: center; }
        h2 { color: #1976d2; margin-bottom: 20px; }
        .preview { width: {{ width }}px; height: {{ height }}px; background: #000; border-radius: 8px; }
        .btn { margin: 10px; padding: 10px 20px; border: none; border-radius: 6px; cursor: pointer;
               font-weight: bold; background: #1976d2; color: #fff; }
        .btn:disabled { background: #90caf9; cursor: not-allowed; }
        #status { margin-top: 20px; color: #555; min-height: 1.2em; }
        .users { margin-top: 10px; }
        .users ul { list-style: none; margin-top: 6px; }
        .users li { padding: 2px 0; }
    </style>
</head>
<body>
    <h2>Face Registration and Recognition</h2>

    <img class="preview" src="/video_feed" alt="Camera">
    <br>
    <button class="btn" id="registerBtn" {{ '' if state.can_register else 'disabled' }}>Register face</button>
    <button class="btn" id="recognizeBtn" {{ '' if state.can_recognize else 'disabled' }}>Recognize face</button>

    <div id="status">{{ state.message }}</div>

    <div class="users">
        <b>Registered users:</b>
        <ul id="users">
            {% for user_id in state.users %}
            <li>{{ user_id }}</li>
            {% endfor %}
        </ul>
    </div>

    <script>
        const registerBtn = document.getElementById('registerBtn');
        const recognizeBtn = document.getElementById('recognizeBtn');
        const statusDiv = document.getElementById('status');
        const usersList = document.getElementById('users');
        let inFlight = false;
        let state = {{ state | tojson }};

        function render() {
            registerBtn.disabled = inFlight || !state.can_register;
            recognizeBtn.disabled = inFlight || !state.can_recognize;
            statusDiv.textContent = state.message;
            usersList.innerHTML = '';
            state.users.forEach(function(id) {
                const li = document.createElement('li');
                li.textContent = id;
                usersList.appendChild(li);
            });
        }

        async function refresh() {
            try {
                const response = await fetch('/api/state');
                if (response.ok) {
                    state = await response.json();
                    render();
                }
            } catch (error) {
                // keep last known state
            }
        }

        async function runFlow(url) {
            inFlight = true;
            render();
            try {
                const response = await fetch(url, { method: 'POST' });
                const result = await response.json();
                if (result.message || result.error) {
                    state.message = result.message || result.error;
                }
            } catch (error) {
                state.message = 'Connection error: ' + error;
            }
            inFlight = false;
            await refresh();
        }

        registerBtn.addEventListener('click', function() { runFlow('/api/register'); });
        recognizeBtn.addEventListener('click', function() { runFlow('/api/recognize'); });

        render();
        setInterval(refresh, {{ poll_ms }});
    </script>
</body>
</html>
'''


def index():
    """Main page"""
    session = get_session()
    state = session.state() if session is not None else {
        'models_loaded': False, 'message': '', 'users': [],
        'can_register': False, 'can_recognize': False, 'busy': False,
    }
    return render_template_string(
        HTML_TEMPLATE,
        state=state,
        width=settings.CAMERA_WIDTH,
        height=settings.CAMERA_HEIGHT,
        poll_ms=settings.STATE_POLL_MS,
    )


def generate_mjpeg(camera, max_frames=None, interval=0.03):
    """Multipart JPEG chunks for the preview <img>."""
    sent = 0
    while max_frames is None or sent < max_frames:
        jpeg = camera.read_jpeg()
        if jpeg is None:
            time.sleep(0.5)
            continue
        yield (b'--frame\r\n'
               b'Content-Type: image/jpeg\r\n\r\n' + jpeg + b'\r\n')
        sent += 1
        time.sleep(interval)


def video_feed():
    """MJPEG preview stream"""
    session = get_session()
    if session is None:
        return Response('Camera not available', status=503)
    return Response(
        generate_mjpeg(session.camera),
        mimetype='multipart/x-mixed-replace; boundary=frame'
    )


def create_app(session):
    """Flask app bound to a FaceSession."""
    app = Flask(__name__)
    app.add_url_rule('/', 'index', index)
    app.add_url_rule('/video_feed', 'video_feed', video_feed)

    init_management(session)
    register_management_routes(app)
    return app


def get_local_ip():
    """Local IP address of this machine"""
    try:
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        s.connect(("8.8.8.8", 80))
        ip = s.getsockname()[0]
        s.close()
        return ip
    except OSError:
        return "localhost"


def run_server(app, host='0.0.0.0', port=5000):
    """Run the web server (blocking)."""
    local_ip = get_local_ip()
    print(f"\n{'='*50}")
    print(f"🌐 Face registration page is running!")
    print(f"📱 From another device: http://{local_ip}:{port}")
    print(f"💻 Local: http://localhost:{port}")
    print(f"{'='*50}\n")
    app.run(host=host, port=port, debug=False, threaded=True)
