import pytest

from conftest import char_measure
from text_layout import (
    MODE_HIGHLIGHT,
    MODE_PLAIN,
    find_emphasis,
    layout_text,
    max_adjustment_for,
    tokenize,
    vertical_shift,
    wrap_words,
)


def _layout(text, max_width=446, start_y=433, line_height=30, max_text_adjustment=50, measure=char_measure):
    return layout_text(
        text,
        measure=measure,
        max_width=max_width,
        start_y=start_y,
        line_height=line_height,
        canvas_height=500,
        anchor_x=250,
        max_text_adjustment=max_text_adjustment,
    )


def test_tokenize_splits_whitespace_runs():
    assert tokenize("  PACK\t10   LAPICES\n") == ["PACK", "10", "LAPICES"]
    assert tokenize("") == []
    assert tokenize("   ") == []


def test_wrap_packs_greedily():
    # "AAAA BBBB" is exactly 90px and still fits
    assert wrap_words(["AAAA", "BBBB", "CCCC"], 90, char_measure) == ["AAAA BBBB", "CCCC"]


def test_wrap_keeps_overlong_word_alone():
    lines = wrap_words(["AB", "SUPERCALIFRAGILISTIC", "CD"], 50, char_measure)
    assert lines == ["AB", "SUPERCALIFRAGILISTIC", "CD"]


def test_wrapped_lines_fit_unless_single_overlong_word():
    text = "PACK X10 LAPICES DE COLORES SUPERLARGOSYBRILLANTES CON ESTUCHE $ 3.500"
    for max_width in (60, 100, 150, 230, 446):
        for line in wrap_words(tokenize(text), max_width, char_measure):
            if char_measure(line) > max_width:
                assert len(line.split()) == 1


def test_emphasis_is_widest_token_first_on_tie():
    words = tokenize("PACK 10 LAPICES DE COLORES $ 3.500")
    # LAPICES and COLORES both measure 70px
    assert find_emphasis(words, char_measure) == "LAPICES"


def test_emphasis_none_for_empty_text():
    assert find_emphasis([], char_measure) is None


def test_emphasis_does_not_depend_on_line_breaks():
    text = "CUADERNO ARGOLLADO PROFESIONAL 100 HOJAS $ 12.900"
    emphases = {_layout(text, max_width=w).emphasis for w in (120, 200, 300, 446)}
    assert emphases == {"PROFESIONAL"}


def test_emphasis_line_renders_word_by_word():
    layout = _layout("PACK 10 LAPICES DE COLORES $ 3.500", max_width=150)
    modes = {line.text: line.mode for line in layout.lines}
    assert [line.text for line in layout.lines] == ["PACK 10 LAPICES", "DE COLORES $", "3.500"]
    assert modes["PACK 10 LAPICES"] == MODE_HIGHLIGHT
    assert modes["DE COLORES $"] == MODE_PLAIN
    assert modes["3.500"] == MODE_PLAIN


def test_highlight_box_geometry():
    layout = _layout("PACK 10 LAPICES", max_width=446, start_y=300, line_height=30)
    line = layout.lines[0]
    assert line.mode == MODE_HIGHLIGHT

    # Line is 150px wide, centered on 250
    assert [w.x for w in line.words] == [175.0, 225.0, 255.0]
    assert [w.highlighted for w in line.words] == [False, False, True]

    box = line.highlights[0]
    assert box.x == pytest.approx(250.0)
    assert box.width == pytest.approx(80.0)
    assert box.height == pytest.approx(30.0)
    assert box.y == pytest.approx(line.baseline_y - 24.0)


def test_every_occurrence_of_emphasis_is_highlighted():
    layout = _layout("LAPIZ ROJO LAPIZ", max_width=446, start_y=300)
    assert len(layout.lines[0].highlights) == 2


def test_baselines_step_by_line_height():
    layout = _layout("AAAA BBBB CCCC", max_width=40, start_y=300, line_height=30)
    assert [line.baseline_y for line in layout.lines] == [307.0, 337.0, 367.0]


def test_empty_text_has_no_lines():
    layout = _layout("")
    assert layout.lines == []
    assert layout.emphasis is None
    assert layout.shift == 0


def test_single_line_never_moves():
    for start_y in (300, 470, 495, 600):
        layout = _layout("PACK", start_y=start_y)
        assert len(layout.lines) == 1
        assert layout.adjusted_start_y == start_y


def test_max_adjustment_by_line_count():
    assert max_adjustment_for(1, 50) == 0
    assert max_adjustment_for(2, 50) == 10
    assert max_adjustment_for(3, 50) == 25
    assert max_adjustment_for(4, 50) == 50
    assert max_adjustment_for(9, 80) == 80


def test_no_shift_when_block_fits():
    # 2 lines: 300 + 74 = 374 <= 480
    assert vertical_shift(300, 2, 30, 500, 50) == 0


def test_shift_covers_small_overflow_exactly():
    # 4 lines: 380 + 134 = 514, needed 34 < 50
    assert vertical_shift(380, 4, 30, 500, 50) == pytest.approx(34.0)


def test_shift_is_capped_for_five_lines():
    # 396 + 5 * 30 + 14 = 560, needed 80, cap 50
    assert vertical_shift(396, 5, 30, 500, 50) == pytest.approx(50.0)

    layout = _layout("AAAA BBBB CCCC DDDD EEEE", max_width=40, start_y=396, line_height=30, max_text_adjustment=50)
    assert len(layout.lines) == 5
    assert layout.shift == pytest.approx(50.0)
    assert layout.adjusted_start_y == pytest.approx(346.0)
    # Still past the bottom margin after the capped shift
    assert layout.adjusted_start_y + layout.total_height > 480


def test_two_and_three_line_caps():
    assert vertical_shift(460, 2, 30, 500, 50) == pytest.approx(10.0)
    assert vertical_shift(460, 3, 30, 500, 50) == pytest.approx(25.0)


def test_scenario_pencil_pack():
    layout = _layout("PACK 10 LAPICES DE COLORES $ 3.500", max_width=446)
    assert len(layout.lines) >= 1
    assert " ".join(line.text for line in layout.lines) == "PACK 10 LAPICES DE COLORES $ 3.500"
    assert layout.emphasis == "LAPICES"
