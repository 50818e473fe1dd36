"""Serverless entry point: the platform's Python runtime serves the ASGI ``app``."""
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from main import app  # noqa: E402,F401
