"""
Text layout for catalog cards.

Turns the card caption into centered lines under a pixel-width limit:
- greedy word wrap (a lone word wider than the limit overflows its line)
- the widest word of the whole caption is the emphasis token and gets a
  highlight box on every line it appears in
- the block is nudged upward when it would cross the bottom margin, by at
  most an allowance that grows with the line count

Everything here is pure. Widths come from a `measure(text) -> float`
callable supplied by the rendering backend, so the same layout can be
computed against a real font or a fake one in tests.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional

from config import (
    BASELINE_OFFSET,
    HIGHLIGHT_PADDING,
    HIGHLIGHT_TOP_RATIO,
    LINE_COUNT_ADJUSTMENT,
    MIN_BOTTOM_MARGIN,
    TEXT_PADDING,
)

Measure = Callable[[str], float]

MODE_PLAIN = "plain"
MODE_HIGHLIGHT = "highlight"


@dataclass(frozen=True)
class HighlightBox:
    """Background rectangle drawn behind the emphasis token."""
    x: float
    y: float
    width: float
    height: float

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        return (self.x, self.y, self.x + self.width, self.y + self.height)


@dataclass(frozen=True)
class PlacedWord:
    text: str
    x: float
    width: float
    highlighted: bool = False


@dataclass
class LaidOutLine:
    """One rendered line; words/highlights are only filled in highlight mode."""
    text: str
    baseline_y: float
    anchor_x: float
    width: float
    mode: str = MODE_PLAIN
    words: list[PlacedWord] = field(default_factory=list)
    highlights: list[HighlightBox] = field(default_factory=list)


@dataclass
class TextLayout:
    lines: list[LaidOutLine]
    emphasis: Optional[str]
    start_y: float
    adjusted_start_y: float
    total_height: float

    @property
    def shift(self) -> float:
        return self.start_y - self.adjusted_start_y


def tokenize(text: str) -> list[str]:
    """Split on whitespace runs; blank text has no tokens."""
    return text.split()


def wrap_words(words: list[str], max_width: float, measure: Measure) -> list[str]:
    """
    Greedy word wrap.

    Words are packed while `current + " " + word` measures within
    max_width. A word that does not fit starts the next line, even when it
    is wider than max_width on its own.
    """
    lines: list[str] = []
    current = ""
    for word in words:
        candidate = f"{current} {word}" if current else word
        if not current or measure(candidate) <= max_width:
            current = candidate
        else:
            lines.append(current)
            current = word
    if current:
        lines.append(current)
    return lines


def find_emphasis(words: list[str], measure: Measure) -> Optional[str]:
    """Widest token of the whole text; the first one wins a tie."""
    emphasis = None
    emphasis_width = 0.0
    for word in words:
        width = measure(word)
        if width > emphasis_width:
            emphasis = word
            emphasis_width = width
    return emphasis


def max_adjustment_for(line_count: int, max_text_adjustment: float) -> float:
    """Upward shift allowed for a block of line_count lines."""
    if line_count in LINE_COUNT_ADJUSTMENT:
        return LINE_COUNT_ADJUSTMENT[line_count]
    return max_text_adjustment


def block_height(line_count: int, line_height: float) -> float:
    return line_count * line_height + TEXT_PADDING


def vertical_shift(
    start_y: float,
    line_count: int,
    line_height: float,
    canvas_height: float,
    max_text_adjustment: float,
) -> float:
    """
    Upward correction for a block that would cross the bottom margin.

    The correction is capped, so a tall block can still end below the
    margin after shifting.
    """
    limit = canvas_height - MIN_BOTTOM_MARGIN
    bottom = start_y + block_height(line_count, line_height)
    if bottom <= limit:
        return 0.0
    needed = bottom - limit
    return min(needed, max_adjustment_for(line_count, max_text_adjustment))


def _highlight_line(
    line: str,
    emphasis: str,
    anchor_x: float,
    baseline_y: float,
    line_width: float,
    line_height: float,
    measure: Measure,
) -> tuple[list[PlacedWord], list[HighlightBox]]:
    space_width = measure(" ")
    x = anchor_x - line_width / 2
    words = []
    highlights = []
    for word in tokenize(line):
        width = measure(word)
        if word == emphasis:
            highlights.append(HighlightBox(
                x=x - HIGHLIGHT_PADDING,
                y=baseline_y - line_height * HIGHLIGHT_TOP_RATIO,
                width=width + 2 * HIGHLIGHT_PADDING,
                height=line_height,
            ))
        words.append(PlacedWord(text=word, x=x, width=width, highlighted=word == emphasis))
        x += width + space_width
    return words, highlights


def layout_text(
    text: str,
    measure: Measure,
    max_width: float,
    start_y: float,
    line_height: float,
    canvas_height: float,
    anchor_x: float,
    max_text_adjustment: float,
) -> TextLayout:
    """Wrap, position and annotate a caption. Nothing is drawn."""
    words = tokenize(text)
    wrapped = wrap_words(words, max_width, measure)
    emphasis = find_emphasis(words, measure)

    shift = vertical_shift(start_y, len(wrapped), line_height, canvas_height, max_text_adjustment)
    adjusted_start_y = start_y - shift

    lines = []
    for index, line in enumerate(wrapped):
        baseline_y = adjusted_start_y + index * line_height + BASELINE_OFFSET
        line_width = measure(line)
        laid_out = LaidOutLine(
            text=line,
            baseline_y=baseline_y,
            anchor_x=anchor_x,
            width=line_width,
        )
        if emphasis is not None and emphasis in tokenize(line):
            laid_out.mode = MODE_HIGHLIGHT
            laid_out.words, laid_out.highlights = _highlight_line(
                line, emphasis, anchor_x, baseline_y, line_width, line_height, measure,
            )
        lines.append(laid_out)

    return TextLayout(
        lines=lines,
        emphasis=emphasis,
        start_y=start_y,
        adjusted_start_y=adjusted_start_y,
        total_height=block_height(len(wrapped), line_height),
    )
