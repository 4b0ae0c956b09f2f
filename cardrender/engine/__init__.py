# cardrender Rendering Engine

from .geometry import (
    Rect,
    resolve_origin,
    fit_image_box,
)

from .text_layout import (
    SHRINK_FACTOR,
    StyledRun,
    MeasuredRun,
    Line,
    LineMetrics,
    Paragraph,
    ParagraphMetrics,
    PlacedRun,
    TextLayout,
    replace_text,
    extract_styles,
    segment,
    measure_paragraphs,
    wrap_line,
    wrap_paragraphs,
    block_size,
    layout_text,
    place_runs,
)

from .compositor import (
    Compositor,
    apply_input_overrides,
    render_template,
    render_template_sync,
)

__all__ = [
    # Geometry
    "Rect",
    "resolve_origin",
    "fit_image_box",
    # Text layout
    "SHRINK_FACTOR",
    "StyledRun",
    "MeasuredRun",
    "Line",
    "LineMetrics",
    "Paragraph",
    "ParagraphMetrics",
    "PlacedRun",
    "TextLayout",
    "replace_text",
    "extract_styles",
    "segment",
    "measure_paragraphs",
    "wrap_line",
    "wrap_paragraphs",
    "block_size",
    "layout_text",
    "place_runs",
    # Compositing
    "Compositor",
    "apply_input_overrides",
    "render_template",
    "render_template_sync",
]
