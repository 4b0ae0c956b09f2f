"""cardrender - renders card templates (layered JSON documents) to images."""

from cardrender.dsl.schema import Template
from cardrender.engine.compositor import Compositor, render_template, render_template_sync

__version__ = "0.1.0"

__all__ = [
    "Compositor",
    "Template",
    "render_template",
    "render_template_sync",
]
