# facereg/web/__init__.py
"""
Web module - Flask page and face API.
"""
from .server import run_server, create_app
from .management import management_bp, init_management

__all__ = [
    'run_server',
    'create_app',
    'management_bp',
    'init_management',
]
