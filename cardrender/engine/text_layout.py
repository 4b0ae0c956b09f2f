"""
text_layout.py — Styled text layout for text layers.

Pipeline (each stage builds new immutable values):

1. replace_text       literal substring replacements, in order
2. extract_styles     start/end symbol pairs -> styled runs
3. segment            paragraphs ("\\n\\n") -> lines ("\\n") -> runs
4. measure_paragraphs per-run width/ascent/descent, per-line maxima
5. wrap_paragraphs    greedy word wrap against the box width
6. layout_text        shrink-to-fit loop, then placement of every run

Layout is computed in the layer's native text units. When the text is
shrunk by ``scale``, the native box is ``layer.size / scale`` and the painter
multiplies run positions and font sizes by ``scale`` when drawing.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Sequence

from cardrender.config import get_settings
from cardrender.dsl.schema import (
    HorizontalAnchor,
    Size,
    StyleReplace,
    TextLayer,
    TextStyle,
    VerticalAnchor,
)
from cardrender.exceptions import LayoutInvariantError
from cardrender.renderer.base import RunMetrics, TextMeasurer

logger = logging.getLogger(__name__)

# Scale multiplier applied on each fit-to-box iteration
SHRINK_FACTOR = 0.95

PARAGRAPH_BREAK = "\n\n"
LINE_BREAK = "\n"
WORD_SEPARATOR = " "


# =============================================================================
# LAYOUT VALUES
# =============================================================================

@dataclass(frozen=True)
class StyledRun:
    """A contiguous piece of text drawn in one style."""
    text: str
    style: TextStyle


@dataclass(frozen=True)
class MeasuredRun:
    """A styled run and, once measured, its metrics."""
    run: StyledRun
    metrics: Optional[RunMetrics] = None

    @property
    def text(self) -> str:
        return self.run.text

    @property
    def style(self) -> TextStyle:
        return self.run.style


@dataclass(frozen=True)
class LineMetrics:
    max_ascent: float
    max_descent: float
    width: float

    @property
    def height(self) -> float:
        return self.max_ascent + self.max_descent


@dataclass(frozen=True)
class Line:
    runs: tuple[MeasuredRun, ...]
    metrics: LineMetrics

    @property
    def text(self) -> str:
        return "".join(run.text for run in self.runs)


@dataclass(frozen=True)
class ParagraphMetrics:
    height: float
    width: float


@dataclass(frozen=True)
class Paragraph:
    lines: tuple[Line, ...]
    metrics: ParagraphMetrics


@dataclass(frozen=True)
class PlacedRun:
    """A run ready to draw; (x, y) is the start of its baseline."""
    text: str
    style: TextStyle
    x: float
    y: float
    width: float


@dataclass(frozen=True)
class TextLayout:
    """Result of laying out a text layer."""
    paragraphs: tuple[Paragraph, ...]
    runs: tuple[PlacedRun, ...]
    scale: float          # Multiplier from native units to layer units
    iterations: int       # Number of shrink steps performed
    width: float          # Widest line, native units
    height: float         # Total block height, native units
    box: Size             # Layer box in native units

    @property
    def lines(self) -> list[Line]:
        return [line for paragraph in self.paragraphs for line in paragraph.lines]


# =============================================================================
# 1-2. REPLACEMENT AND STYLE EXTRACTION
# =============================================================================

def replace_text(text: str, replacements: Mapping[str, str]) -> str:
    """Apply literal replacements in order, each over the previous result."""
    for search, replacement in replacements.items():
        if not search:
            continue
        text = text.replace(search, replacement)
    return text


def extract_styles(
    text: str,
    default_style: TextStyle,
    rules: Sequence[StyleReplace],
) -> list[StyledRun]:
    """
    Split text into styled runs using start/end symbol rules.

    Rules are applied in order, one pass over all current runs per rule. In
    each run only the first start symbol (and the first end symbol after it)
    is resolved; text before and after keeps the run's style, the enclosed
    text takes the rule's style and is visible to later rules.
    """
    runs = [StyledRun(text, default_style)]
    for rule in rules:
        next_runs: list[StyledRun] = []
        for run in runs:
            next_runs.extend(_split_run(run, rule))
        runs = next_runs
    return runs or [StyledRun("", default_style)]


def _split_run(run: StyledRun, rule: StyleReplace) -> list[StyledRun]:
    start = run.text.find(rule.start_symbol)
    if start < 0:
        return [run]

    remainder = run.text[start + len(rule.start_symbol):]
    end = remainder.find(rule.end_symbol)
    if end < 0:
        return [run]

    pieces = [
        StyledRun(run.text[:start], run.style),
        StyledRun(remainder[:end], rule.style),
        StyledRun(remainder[end + len(rule.end_symbol):], run.style),
    ]
    return [piece for piece in pieces if piece.text]


# =============================================================================
# 3-4. SEGMENTATION AND METRICS
# =============================================================================

def segment(runs: Sequence[StyledRun]) -> list[list[list[StyledRun]]]:
    """
    Split runs into paragraphs of lines, keeping each piece's style.

    Every line holds at least one run (possibly empty) so blank lines keep
    the height of the style they were written in.
    """
    paragraphs: list[list[list[StyledRun]]] = [[[]]]
    last_style = runs[0].style if runs else TextStyle()

    def close_line(style: TextStyle) -> None:
        if not paragraphs[-1][-1]:
            paragraphs[-1][-1].append(StyledRun("", style))

    for run in runs:
        last_style = run.style
        for p_index, paragraph_text in enumerate(run.text.split(PARAGRAPH_BREAK)):
            if p_index > 0:
                close_line(run.style)
                paragraphs.append([[]])
            for l_index, line_text in enumerate(paragraph_text.split(LINE_BREAK)):
                if l_index > 0:
                    close_line(run.style)
                    paragraphs[-1].append([])
                if line_text:
                    paragraphs[-1][-1].append(StyledRun(line_text, run.style))

    close_line(last_style)
    return paragraphs


def measure_runs(runs: Iterable[StyledRun], measurer: TextMeasurer) -> tuple[MeasuredRun, ...]:
    return tuple(MeasuredRun(run, measurer.measure_text(run.text, run.style)) for run in runs)


def make_line(runs: Sequence[MeasuredRun]) -> Line:
    """Build a line, deriving its metrics from already measured runs."""
    for run in runs:
        if run.metrics is None:
            raise LayoutInvariantError(f"Run {run.text!r} has no metrics")
    return Line(
        runs=tuple(runs),
        metrics=LineMetrics(
            max_ascent=max((run.metrics.ascent for run in runs), default=0.0),
            max_descent=max((run.metrics.descent for run in runs), default=0.0),
            width=sum(run.metrics.width for run in runs),
        ),
    )


def make_paragraph(lines: Sequence[Line], line_spacing: float) -> Paragraph:
    return Paragraph(
        lines=tuple(lines),
        metrics=ParagraphMetrics(
            height=sum(line.metrics.height * line_spacing for line in lines),
            width=max((line.metrics.width for line in lines), default=0.0),
        ),
    )


def measure_paragraphs(
    segmented: Sequence[Sequence[Sequence[StyledRun]]],
    measurer: TextMeasurer,
    line_spacing: float = 1.0,
) -> tuple[Paragraph, ...]:
    return tuple(
        make_paragraph(
            [make_line(measure_runs(line, measurer)) for line in paragraph],
            line_spacing,
        )
        for paragraph in segmented
    )


# =============================================================================
# 5. WORD WRAP
# =============================================================================

def split_words(line: Line) -> list[list[StyledRun]]:
    """
    Split a line into words, each a list of styled fragments.

    A new word starts at every space and carries that space at the front of
    its first fragment. Fragments of differently styled runs that touch
    without a space belong to the same word.
    """
    words: list[list[StyledRun]] = [[]]
    for measured in line.runs:
        pieces = measured.text.split(WORD_SEPARATOR)
        for index, piece in enumerate(pieces):
            if index == 0:
                if piece:
                    words[-1].append(StyledRun(piece, measured.style))
            else:
                words.append([StyledRun(WORD_SEPARATOR + piece, measured.style)])
    return [word for word in words if word]


def _strip_leading_space(word: list[StyledRun]) -> list[StyledRun]:
    first = word[0]
    if not first.text.startswith(WORD_SEPARATOR):
        return word
    stripped = StyledRun(first.text[len(WORD_SEPARATOR):], first.style)
    return ([stripped] if stripped.text else []) + word[1:]


def wrap_line(line: Line, max_width: float, measurer: TextMeasurer) -> list[Line]:
    """Greedily wrap one line's words so each line fits ``max_width``.

    A word wider than ``max_width`` on its own still gets a line.
    """
    words = split_words(line)
    if not words:
        return [line]

    lines: list[Line] = []
    current: list[MeasuredRun] = []
    width = 0.0

    for word in words:
        fragments = word if current else _strip_leading_space(word)
        measured = measure_runs(fragments, measurer)
        word_width = sum(run.metrics.width for run in measured)

        if current and width + word_width > max_width:
            lines.append(make_line(current))
            measured = measure_runs(_strip_leading_space(word), measurer)
            word_width = sum(run.metrics.width for run in measured)
            current, width = [], 0.0

        if measured:
            current.extend(measured)
            width += word_width

    if current or not lines:
        lines.append(make_line(current) if current else line)
    return lines


def wrap_paragraphs(
    paragraphs: Sequence[Paragraph],
    max_width: float,
    measurer: TextMeasurer,
    line_spacing: float = 1.0,
) -> tuple[Paragraph, ...]:
    return tuple(
        make_paragraph(
            [wrapped for line in paragraph.lines for wrapped in wrap_line(line, max_width, measurer)],
            line_spacing,
        )
        for paragraph in paragraphs
    )


# =============================================================================
# 6-7. FIT TO BOX AND PLACEMENT
# =============================================================================

def paragraph_gap(paragraph: Paragraph, line_spacing: float, paragraph_spacing: float) -> float:
    """Extra space after a paragraph that is followed by another one."""
    if not paragraph.lines:
        return 0.0
    return paragraph.lines[-1].metrics.height * line_spacing * paragraph_spacing


def block_size(
    paragraphs: Sequence[Paragraph],
    line_spacing: float = 1.0,
    paragraph_spacing: float = 1.0,
) -> tuple[float, float]:
    """Return (total height, widest line) of laid out paragraphs.

    A single line counts its own height without line spacing.
    """
    lines = [line for paragraph in paragraphs for line in paragraph.lines]
    width = max((line.metrics.width for line in lines), default=0.0)
    if len(lines) <= 1:
        return (lines[0].metrics.height if lines else 0.0), width

    height = sum(paragraph.metrics.height for paragraph in paragraphs)
    height += sum(
        paragraph_gap(paragraph, line_spacing, paragraph_spacing)
        for paragraph in paragraphs[:-1]
    )
    return height, width


def layout_text(
    layer: TextLayer,
    measurer: TextMeasurer,
    max_iterations: Optional[int] = None,
    min_scale: Optional[float] = None,
) -> TextLayout:
    """
    Lay out a text layer's text inside its box.

    Args:
        layer: The text layer (after input overrides).
        measurer: Text measurement collaborator.
        max_iterations: Cap on shrink steps (defaults to settings).
        min_scale: Smallest scale the loop may reach (defaults to settings).

    Returns:
        TextLayout with every run positioned in native units.
    """
    settings = get_settings()
    max_iterations = settings.max_scale_iterations if max_iterations is None else max_iterations
    min_scale = settings.min_text_scale if min_scale is None else min_scale

    text = replace_text(layer.text, layer.text_replace)
    runs = extract_styles(text, layer.style, layer.style_replace)
    base = measure_paragraphs(segment(runs), measurer, layer.line_spacing)

    box = layer.size
    scale = 1.0
    iterations = 0

    while True:
        # Always re-derive from the unscaled plan
        if layer.wrap_text:
            paragraphs = wrap_paragraphs(base, box.width / scale, measurer, layer.line_spacing)
        else:
            paragraphs = base
        height, width = block_size(paragraphs, layer.line_spacing, layer.paragraph_spacing)

        fits = height * scale <= box.height and width * scale <= box.width
        if not layer.scale_text or fits:
            break

        next_scale = scale * SHRINK_FACTOR
        if iterations >= max_iterations or next_scale < min_scale:
            logger.warning(
                f"Text of layer '{layer.description}' still overflows after "
                f"{iterations} shrink steps (scale {scale:.4f}); drawing at this scale"
            )
            break
        scale = next_scale
        iterations += 1

    native_box = Size(width=box.width / scale, height=box.height / scale)
    placed = place_runs(
        paragraphs,
        native_box,
        height,
        layer.align.horizontal,
        layer.align.vertical,
        layer.line_spacing,
        layer.paragraph_spacing,
    )

    return TextLayout(
        paragraphs=paragraphs,
        runs=placed,
        scale=scale,
        iterations=iterations,
        width=width,
        height=height,
        box=native_box,
    )


def place_runs(
    paragraphs: Sequence[Paragraph],
    box: Size,
    total_height: float,
    horizontal: HorizontalAnchor,
    vertical: VerticalAnchor,
    line_spacing: float = 1.0,
    paragraph_spacing: float = 1.0,
) -> tuple[PlacedRun, ...]:
    """Position every run of every line inside ``box``.

    Raises:
        LayoutInvariantError: If a run reaches placement without metrics.
    """
    if vertical is VerticalAnchor.TOP:
        y = 0.0
    elif vertical is VerticalAnchor.MIDDLE:
        y = (box.height - total_height) / 2
    else:
        y = box.height - total_height

    placed: list[PlacedRun] = []
    for p_index, paragraph in enumerate(paragraphs):
        for line in paragraph.lines:
            if horizontal is HorizontalAnchor.LEFT:
                x = 0.0
            elif horizontal is HorizontalAnchor.CENTER:
                x = (box.width - line.metrics.width) / 2
            else:
                x = box.width - line.metrics.width

            # Move to this line's baseline
            y += line.metrics.max_ascent
            for run in line.runs:
                if run.metrics is None:
                    raise LayoutInvariantError(
                        f"Run {run.text!r} reached placement without metrics"
                    )
                placed.append(PlacedRun(run.text, run.style, x, y, run.metrics.width))
                x += run.metrics.width

            # Move to the top of the next line
            y += line.metrics.height * line_spacing - line.metrics.max_ascent

        if p_index < len(paragraphs) - 1:
            y += paragraph_gap(paragraph, line_spacing, paragraph_spacing)

    return tuple(placed)
