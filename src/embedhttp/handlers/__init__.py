"""
File-backed collaborators used by Response.send_file() and Response.render().
"""

from .static import read_static_file
from .templates import render_template

__all__ = ["read_static_file", "render_template"]
