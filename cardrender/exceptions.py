"""
Exception hierarchy for template rendering.

Layer-level failures are recovered at the layer boundary by the compositor;
invariant violations propagate and abort the render.
"""

from typing import Any, Optional


class CardRenderError(Exception):
    """Base exception for all rendering errors"""

    def __init__(
        self,
        message: str,
        cause: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.cause = cause
        self.context = context or {}

    def __str__(self):
        parts = [super().__str__()]
        if self.cause:
            parts.append(f" (caused by: {type(self.cause).__name__}: {str(self.cause)})")
        if self.context:
            parts.append(f" Context: {self.context}")
        return "".join(parts)


# === Condition exceptions ===

class ConditionEvalError(CardRenderError):
    """An operator could not be evaluated (the operator is ignored)"""
    pass


# === Layer exceptions ===

class LayerRenderError(CardRenderError):
    """A single layer failed to render (the layer contributes nothing)"""
    pass


class ImageLoadError(LayerRenderError):
    """An image could not be fetched or decoded"""
    pass


class UnsupportedOperationError(LayerRenderError):
    """A compositing operation name is not known to the backend"""
    pass


class TemplateStructureError(CardRenderError):
    """A layer in the tree has an unknown type"""
    pass


class FontLoadError(CardRenderError):
    """A custom font could not be registered"""
    pass


# === Layout exceptions ===

class LayoutInvariantError(CardRenderError):
    """The text layout reached an impossible state (fatal)"""
    pass
