"""
asgi.py -- ASGI entry point for the StudyShala backend.

Run with:  uvicorn asgi:app --reload
           python main.py serve

Importing this module is what a server process does, so it is also where the
process-level excepthook is installed. Tests import api.main directly and
keep the interpreter's default hook.
"""

from api.main import app
from core.process import install_excepthook

install_excepthook()

__all__ = ["app"]
