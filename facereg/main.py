# facereg/main.py
"""
Face Registration - Main Entry Point.

Wires the modules together:
- core/: settings, camera, model loading
- processing/: analysis chain + registration/recognition flows
- web/: page + API

Usage:
    python -m facereg.main                      # Run with defaults
    python -m facereg.main --threshold 0.5      # Stricter matching
    python -m facereg.main --camera 1 --port 8080
"""
import os
import sys
import logging
import argparse

# === HEADLESS OPENCV ===
if os.environ.get("DISPLAY", "") == "":
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from .core import settings, create_camera, ModelLoader
from .data import EnrollmentStore
from .processing import FaceSession
from .web import create_app, run_server

logger = logging.getLogger(__name__)


def setup_logging():
    """Root logger: console, plus a file when LOG_FILE is set."""
    handlers = [logging.StreamHandler()]
    if settings.LOG_FILE:
        handlers.append(logging.FileHandler(settings.LOG_FILE, encoding='utf-8'))

    logging.basicConfig(
        level=getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True,
    )


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Face Registration - register a face from the webcam and recognize it',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m facereg.main                      # Run with defaults
  python -m facereg.main --threshold 0.5      # Custom threshold
  python -m facereg.main --resolution 640x480 --no-mirror
        """
    )

    parser.add_argument(
        '--threshold', '-t',
        type=float,
        metavar='VALUE',
        help=f'Match distance threshold (default: {settings.RECOGNITION_THRESHOLD})'
    )
    parser.add_argument(
        '--models-dir', '-m',
        metavar='DIR',
        help=f'Directory with the model bundles (default: {settings.MODELS_DIR})'
    )

    # Web server
    parser.add_argument(
        '--host',
        metavar='HOST',
        help=f'Web server host (default: {settings.WEB_HOST})'
    )
    parser.add_argument(
        '--port', '-p',
        type=int,
        metavar='PORT',
        help=f'Web server port (default: {settings.WEB_PORT})'
    )

    # Camera
    parser.add_argument(
        '--camera', '-c',
        type=int,
        metavar='ID',
        help=f'Camera device ID (default: {settings.CAMERA_ID})'
    )
    parser.add_argument(
        '--resolution', '-r',
        type=str,
        metavar='WxH',
        help=f'Camera resolution (default: {settings.CAMERA_WIDTH}x{settings.CAMERA_HEIGHT})'
    )
    parser.add_argument(
        '--no-mirror',
        action='store_true',
        help='Do not mirror the preview (rear camera)'
    )

    # Debug
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Verbose logging'
    )

    return parser.parse_args(argv)


def apply_arguments(args):
    """Apply command line arguments to settings."""
    changes = []

    if args.threshold is not None:
        settings.RECOGNITION_THRESHOLD = args.threshold
        changes.append(f"Threshold: {args.threshold}")

    if args.models_dir:
        settings.MODELS_DIR = args.models_dir
        changes.append(f"Models: {args.models_dir}")

    if args.host:
        settings.WEB_HOST = args.host
        changes.append(f"Host: {args.host}")
    if args.port:
        settings.WEB_PORT = args.port
        changes.append(f"Port: {args.port}")

    if args.camera is not None:
        settings.CAMERA_ID = args.camera
        changes.append(f"Camera: {args.camera}")
    if args.resolution:
        try:
            w, h = map(int, args.resolution.lower().split('x'))
            settings.CAMERA_WIDTH = w
            settings.CAMERA_HEIGHT = h
            changes.append(f"Resolution: {w}x{h}")
        except ValueError:
            print(f"⚠️ Invalid resolution format: {args.resolution} (use WxH, e.g., 320x240)")
    if args.no_mirror:
        settings.MIRROR_PREVIEW = False
        changes.append("Mirror: off")

    if args.verbose:
        settings.LOG_LEVEL = "DEBUG"
        changes.append("Verbose: ON")

    return changes


def print_startup_info():
    print("\n" + "=" * 50)
    print("🙂 FACE REGISTRATION")
    print("=" * 50)
    print(f"📹 Camera: #{settings.CAMERA_ID} {settings.CAMERA_WIDTH}x{settings.CAMERA_HEIGHT}"
          f"{' (mirrored)' if settings.MIRROR_PREVIEW else ''}")
    print(f"🧠 Models: {os.path.abspath(os.path.join(settings.BASE_DIR, settings.MODELS_DIR))}")
    print(f"🔍 Detection: input={settings.DETECTION_INPUT_SIZE}, score>{settings.DETECTION_SCORE_THRESHOLD}")
    print(f"🎯 Match: distance < {settings.RECOGNITION_THRESHOLD}")
    print("-" * 50)
    print("⌨️  Ctrl+C to quit")
    print("=" * 50 + "\n")


def main(argv=None):
    """Main entry point."""
    args = parse_arguments(argv)
    arg_changes = apply_arguments(args)
    setup_logging()

    if arg_changes:
        print("🔧 Command-line overrides:")
        for change in arg_changes:
            print(f"   • {change}")
        print()

    # === 1. CAMERA ===
    camera = create_camera(
        device_id=settings.CAMERA_ID,
        width=settings.CAMERA_WIDTH,
        height=settings.CAMERA_HEIGHT,
        mirror=settings.MIRROR_PREVIEW,
        jpeg_quality=settings.JPEG_QUALITY,
    )
    if not camera.open():
        # The page still runs; both flows will report "No camera access."
        logger.error("❌ Camera not available")

    # === 2. SESSION + MODELS (background) ===
    session = FaceSession(
        camera=camera,
        loader=ModelLoader(embedding_dim=settings.EMBEDDING_DIM),
        store=EnrollmentStore(
            embedding_dim=settings.EMBEDDING_DIM,
            id_prefix=settings.USER_ID_PREFIX,
        ),
        threshold=settings.RECOGNITION_THRESHOLD,
    )
    session.start_loading()

    # === 3. WEB ===
    print_startup_info()
    app = create_app(session)
    try:
        run_server(app, host=settings.WEB_HOST, port=settings.WEB_PORT)
    except KeyboardInterrupt:
        print("\n🛑 Stopped (Ctrl+C)")
    finally:
        camera.release()
        print("👋 Bye!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
