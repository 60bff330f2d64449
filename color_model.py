import re
from dataclasses import dataclass

from PIL import ImageColor


# ----------------------------
# Constants
# ----------------------------

MAX_CHANNEL = 255.0

# ITU-R BT.601 luma weights
BRIGHTNESS_WEIGHTS = (0.299, 0.587, 0.114)

_FUNC_RE = re.compile(r"^rgba?\(\s*([^)]*)\)$", re.IGNORECASE)


class ParseError(ValueError):
    """Raised when a color string is not in a recognised syntax."""


# ----------------------------
# Color value
# ----------------------------

@dataclass(frozen=True)
class Color:
    """
    RGBA color with real-valued channels (0..255) and alpha (0..1).

    Instances are never mutated; adjusting a color returns a new one.
    """
    r: float
    g: float
    b: float
    a: float = 1.0

    @classmethod
    def parse(cls, value: str) -> "Color":
        """
        Parse a CSS color: rgb()/rgba(), bare "r,g,b[,a]" channel lists,
        "transparent", hex and named colors.
        """
        if not isinstance(value, str):
            raise ParseError(f"Color must be a string: {value!r}")

        text = value.strip().lower()
        if not text:
            raise ParseError("Empty color string")
        if text == "transparent":
            return cls(0.0, 0.0, 0.0, 0.0)

        m = _FUNC_RE.match(text)
        if m:
            return cls._from_parts(_split_channels(m.group(1)), value)

        if "," in text:
            return cls._from_parts([p.strip() for p in text.split(",")], value)

        try:
            rgba = ImageColor.getrgb(text)
        except ValueError:
            raise ParseError(f"Unrecognised color syntax: {value!r}") from None
        alpha = rgba[3] / MAX_CHANNEL if len(rgba) == 4 else 1.0
        return cls(float(rgba[0]), float(rgba[1]), float(rgba[2]), alpha)

    @classmethod
    def from_rgb(cls, rgb) -> "Color":
        r, g, b = (float(c) for c in rgb[:3])
        return cls(r, g, b, 1.0)

    @classmethod
    def _from_parts(cls, parts, original: str) -> "Color":
        if len(parts) not in (3, 4):
            raise ParseError(f"Expected 3 or 4 channels: {original!r}")
        try:
            r, g, b = (_clamp(float(p), 0.0, MAX_CHANNEL) for p in parts[:3])
            a = _parse_alpha(parts[3]) if len(parts) == 4 else 1.0
        except ValueError:
            raise ParseError(f"Invalid channel value in {original!r}") from None
        return cls(r, g, b, a)

    # ----------------------------
    # Opacity
    # ----------------------------

    def is_transparent(self) -> bool:
        return self.a == 0

    def is_opaque(self) -> bool:
        return self.a == 1

    def as_opaque(self, background: "Color") -> "Color":
        """
        Composite this color over an opaque background (alpha-over).
        """
        if not background.is_opaque():
            raise ValueError(f"Background must be opaque, got {background!r}")
        a = self.a
        return Color(
            self.r * a + background.r * (1 - a),
            self.g * a + background.g * (1 - a),
            self.b * a + background.b * (1 - a),
            1.0,
        )

    # ----------------------------
    # Brightness + contrast
    # ----------------------------

    def brightness(self) -> float:
        wr, wg, wb = BRIGHTNESS_WEIGHTS
        return _clamp(wr * self.r + wg * self.g + wb * self.b, 0.0, MAX_CHANNEL)

    def _moves_darker(self, background: "Color") -> bool:
        own = self.brightness()
        bg = background.brightness()
        if own != bg:
            return own < bg
        return bg >= MAX_CHANNEL / 2

    def contrast(self, background: "Color") -> float:
        """
        Relative contrast in 0..1: how far this color sits from the background
        toward the black or white extreme on its side.
        """
        own = self.brightness()
        bg = background.brightness()
        if own < bg:
            return (bg - own) / bg
        if own > bg:
            return (own - bg) / (MAX_CHANNEL - bg)
        return 0.0

    def contrast_to(self, background: "Color", desired_contrast: float) -> "Color":
        """
        Return a color with at least `desired_contrast` relative contrast to the
        background, moving toward black or white only as far as needed.
        """
        if desired_contrast <= 0 or self.contrast(background) >= desired_contrast:
            return self

        desired = min(desired_contrast, 1.0)
        own = self.brightness()
        bg = background.brightness()

        if self._moves_darker(background):
            target = bg * (1 - desired)
            if own <= 0:
                return self
            k = target / own
            return Color(self.r * k, self.g * k, self.b * k, self.a)

        target_gap = (MAX_CHANNEL - bg) * (1 - desired)
        own_gap = MAX_CHANNEL - own
        k = target_gap / own_gap
        return Color(
            MAX_CHANNEL - (MAX_CHANNEL - self.r) * k,
            MAX_CHANNEL - (MAX_CHANNEL - self.g) * k,
            MAX_CHANNEL - (MAX_CHANNEL - self.b) * k,
            self.a,
        )

    # ----------------------------
    # Serialisation
    # ----------------------------

    def rgb_tuple(self):
        return tuple(int(round(_clamp(c, 0.0, MAX_CHANNEL))) for c in (self.r, self.g, self.b))

    def __str__(self) -> str:
        r, g, b = self.rgb_tuple()
        return f"rgb({r}, {g}, {b})"


WHITE = Color(255.0, 255.0, 255.0)
BLACK = Color(0.0, 0.0, 0.0)
TRANSPARENT = Color(0.0, 0.0, 0.0, 0.0)


# ----------------------------
# Parsing helpers
# ----------------------------

def _clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def _split_channels(body: str):
    """
    Split the inside of rgb()/rgba() in either the legacy comma form or the
    modern "r g b / a" form.
    """
    body = body.strip()
    if "," in body:
        return [p.strip() for p in body.split(",")]
    alpha = None
    if "/" in body:
        body, alpha = body.split("/", 1)
    parts = body.split()
    if alpha is not None:
        parts.append(alpha.strip())
    return parts


def _parse_alpha(token: str) -> float:
    token = token.strip()
    if token.endswith("%"):
        return _clamp(float(token[:-1]) / 100.0, 0.0, 1.0)
    return _clamp(float(token), 0.0, 1.0)
