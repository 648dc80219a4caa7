"""
Kestrel Templates - Blade-style views compiled to Jinja2.

    from kestrel.templates import View

    view = View("resources/views")
    html = view.render("home.index", {"title": "Welcome"})
"""

from .compiler import BladeCompiler, translate_expression
from .engine import View
from .loader import ViewLoader

__all__ = [
    "View",
    "ViewLoader",
    "BladeCompiler",
    "translate_expression",
]
