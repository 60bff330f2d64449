import pytest

from color_model import BLACK, WHITE, Color, ParseError


# ----------------------------
# Parsing
# ----------------------------

@pytest.mark.parametrize("text, expected", [
    ("rgb(10, 20, 30)", Color(10, 20, 30, 1)),
    ("rgba(10, 20, 30, 0.5)", Color(10, 20, 30, 0.5)),
    ("RGBA(10,20,30,0)", Color(10, 20, 30, 0)),
    ("rgb(10 20 30 / 50%)", Color(10, 20, 30, 0.5)),
    ("120,120,120", Color(120, 120, 120, 1)),
    ("120, 120, 120, 0.25", Color(120, 120, 120, 0.25)),
    ("#ff0000", Color(255, 0, 0, 1)),
    ("white", Color(255, 255, 255, 1)),
    ("  rgb(1, 2, 3)  ", Color(1, 2, 3, 1)),
])
def test_parse_accepted_syntax(text, expected):
    assert Color.parse(text) == expected


def test_parse_transparent_keyword():
    col = Color.parse("transparent")
    assert col.is_transparent()
    assert not col.is_opaque()


def test_parse_hex_with_alpha():
    col = Color.parse("#00000080")
    assert col.a == pytest.approx(128 / 255)


def test_parse_clamps_out_of_range_channels():
    assert Color.parse("rgba(300, -5, 20, 2)") == Color(255, 0, 20, 1)


@pytest.mark.parametrize("text", ["", "not-a-color", "rgb(1, 2)", "rgb(a, b, c)", "1,2,3,4,5", "hsl(nope)"])
def test_parse_rejects_unknown_syntax(text):
    with pytest.raises(ParseError):
        Color.parse(text)


def test_parse_error_is_a_value_error():
    with pytest.raises(ValueError):
        Color.parse("rgb(oops)")


# ----------------------------
# Compositing
# ----------------------------

@pytest.mark.parametrize("fg", [Color(12.5, 40, 200), BLACK, WHITE, Color(0, 255, 0)])
@pytest.mark.parametrize("bg", [WHITE, Color(30, 60, 90)])
def test_as_opaque_keeps_opaque_color(fg, bg):
    assert fg.as_opaque(bg) == fg


@pytest.mark.parametrize("bg", [WHITE, BLACK, Color(30, 60, 90)])
def test_transparent_over_background_is_background(bg):
    assert Color.parse("rgba(200, 10, 10, 0)").as_opaque(bg) == bg


def test_half_alpha_blends_evenly():
    col = Color(255, 0, 0, 0.5).as_opaque(Color(0, 0, 255))
    assert col == Color(127.5, 0, 127.5, 1)
    assert col.is_opaque()


def test_as_opaque_requires_opaque_background():
    with pytest.raises(ValueError):
        BLACK.as_opaque(Color(255, 255, 255, 0.5))


# ----------------------------
# Brightness + contrast
# ----------------------------

def test_brightness_extremes_and_monotonic():
    assert BLACK.brightness() == 0
    assert WHITE.brightness() == pytest.approx(255)
    assert Color(10, 0, 0).brightness() < Color(20, 0, 0).brightness()
    assert Color(0, 10, 0).brightness() < Color(0, 20, 0).brightness()
    assert Color(0, 0, 10).brightness() < Color(0, 0, 20).brightness()


def test_contrast_measure_range():
    assert Color(90, 90, 90).contrast(Color(90, 90, 90)) == 0
    assert BLACK.contrast(WHITE) == pytest.approx(1)
    assert WHITE.contrast(BLACK) == pytest.approx(1)
    assert 0 < Color(150, 150, 150).contrast(WHITE) < 1


@pytest.mark.parametrize("fg, bg", [
    (Color(150, 150, 150), WHITE),
    (Color(200, 30, 30), Color(40, 40, 40)),
    (Color(90, 90, 90), Color(90, 90, 90)),
])
def test_contrast_to_zero_is_identity(fg, bg):
    assert fg.contrast_to(bg, 0) == fg


@pytest.mark.parametrize("fg, bg, expected", [
    (Color(100, 100, 100), WHITE, BLACK),
    (Color(20, 120, 200), Color(230, 220, 210), BLACK),
    (Color(200, 200, 200), BLACK, WHITE),
    (Color(90, 200, 40), Color(30, 30, 60), WHITE),
    (Color(200, 200, 200), Color(200, 200, 200), BLACK),
    (Color(50, 50, 50), Color(50, 50, 50), WHITE),
])
def test_contrast_to_one_reaches_black_or_white(fg, bg, expected):
    assert fg.contrast_to(bg, 1) == expected


def test_contrast_to_reaches_target_exactly():
    bg = WHITE
    fg = Color(150, 150, 150)
    out = fg.contrast_to(bg, 0.8)
    assert out.contrast(bg) == pytest.approx(0.8)
    assert out.brightness() < fg.brightness()


def test_contrast_to_lightens_on_dark_background():
    bg = Color(40, 40, 40)
    fg = Color(70, 80, 90)
    out = fg.contrast_to(bg, 0.7)
    assert out.contrast(bg) == pytest.approx(0.7)
    assert out.brightness() > fg.brightness()


def test_contrast_to_darkening_keeps_channel_ratios():
    out = Color(200, 100, 50).contrast_to(WHITE, 0.9)
    assert out.r / out.g == pytest.approx(2)
    assert out.g / out.b == pytest.approx(2)


def test_contrast_to_leaves_sufficient_contrast_alone():
    fg = Color(10, 10, 10)
    assert fg.contrast_to(WHITE, 0.8) is fg


def test_contrast_to_does_not_mutate():
    fg = Color(150, 150, 150)
    fg.contrast_to(WHITE, 1)
    assert fg == Color(150, 150, 150)


# ----------------------------
# Serialisation
# ----------------------------

def test_str_is_rounded_opaque_rgb():
    assert str(Color(33.6, 0.4, 254.7, 0.3)) == "rgb(34, 0, 255)"
    assert str(Color.parse("rgb(250, 250, 250)")) == "rgb(250, 250, 250)"
