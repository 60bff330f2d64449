import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from background import BackgroundResolver
from color_model import Color, ParseError, TRANSPARENT, WHITE
from image_color import DEADLINE_SECONDS, PALETTE_SIZE, ImageColorResolver, SeedSummary
from page_dom import SCROLLBAR_COLOR, ElementTree, PropertyName, StyleReader, StyleWriter, describe
from settings_store import DEFAULT_DESIRED_CONTRAST

logger = logging.getLogger(__name__)

NORMAL_FONT_WEIGHT = 400

_FONT_WEIGHT_KEYWORDS = {"normal": 400.0, "bold": 700.0}


@dataclass
class CorrectionConfig:
    desired_contrast: float = DEFAULT_DESIRED_CONTRAST
    default_background: Color = WHITE
    scrollbar_color: Color = Color(120.0, 120.0, 120.0)
    min_font_weight: int = NORMAL_FONT_WEIGHT
    image_timeout: float = DEADLINE_SECONDS
    palette_size: int = PALETTE_SIZE


@dataclass(frozen=True)
class Correction:
    """One style write, queued during the compute phase."""
    element: object
    prop: str
    value: str


@dataclass
class ElementOutcome:
    element: object
    background: Optional[Color] = None
    foreground: Optional[Color] = None
    corrected: Optional[Color] = None
    contrast_before: Optional[float] = None
    contrast_after: Optional[float] = None
    font_weight_raised: bool = False
    error: Optional[str] = None

    @property
    def color_changed(self) -> bool:
        return self.corrected is not None and str(self.corrected) != str(self.foreground)

    def to_dict(self) -> dict:
        return {
            "element": describe(self.element),
            "background": str(self.background) if self.background else None,
            "foreground": str(self.foreground) if self.foreground else None,
            "corrected": str(self.corrected) if self.corrected else None,
            "contrastBefore": round(self.contrast_before, 3) if self.contrast_before is not None else None,
            "contrastAfter": round(self.contrast_after, 3) if self.contrast_after is not None else None,
            "colorChanged": self.color_changed,
            "fontWeightRaised": self.font_weight_raised,
            "error": self.error,
        }


@dataclass
class CorrectionResult:
    corrections: List[Correction] = field(default_factory=list)
    outcomes: List[ElementOutcome] = field(default_factory=list)
    seeding: Optional[SeedSummary] = None
    applied: int = 0


def parse_font_weight(value: str) -> Optional[float]:
    text = (value or "").strip().lower()
    if text in _FONT_WEIGHT_KEYWORDS:
        return _FONT_WEIGHT_KEYWORDS[text]
    try:
        return float(text)
    except ValueError:
        return None


class ContrastCorrector:
    """
    Two-pass text contrast correction over one document.

    Pass 1 seeds the background cache from background images. Pass 2 reads
    every qualifying element and queues corrections. Only then are the
    corrections written, so a write can never feed into a later read.
    """

    def __init__(self, tree: ElementTree, reader: StyleReader, writer: StyleWriter,
                 config: Optional[CorrectionConfig] = None,
                 image_resolver: Optional[ImageColorResolver] = None):
        self.tree = tree
        self.reader = reader
        self.writer = writer
        self.config = config or CorrectionConfig()
        self.image_resolver = image_resolver
        self.cache = {}

    def run(self) -> CorrectionResult:
        self.cache = {}
        seeding = self.seed_images()
        outcomes, corrections = self.compute()
        applied = self.apply(corrections)
        return CorrectionResult(corrections=corrections, outcomes=outcomes, seeding=seeding, applied=applied)

    def seed_images(self) -> Optional[SeedSummary]:
        if self.image_resolver is None:
            return None
        summary = self.image_resolver.seed(self.tree, self.reader, self.cache)
        logger.info("Image seeding: %s", summary.to_dict())
        return summary

    # ----------------------------
    # Compute phase
    # ----------------------------

    def compute(self) -> Tuple[List[ElementOutcome], List[Correction]]:
        backgrounds = BackgroundResolver(self.tree, self.reader, self.cache,
                                         default=self.config.default_background)
        corrections = []
        outcomes = []

        root = self.tree.document_root()
        if root is not None:
            corrections.append(Correction(root, SCROLLBAR_COLOR, f"{self.config.scrollbar_color} {_rgba(TRANSPARENT)}"))

        for element in self.tree.qualifying_elements():
            outcome = ElementOutcome(element)
            outcomes.append(outcome)

            try:
                weight_fix = self._font_weight_correction(element)
                if weight_fix is not None:
                    corrections.append(weight_fix)
                    outcome.font_weight_raised = True

                corrections.append(self._color_correction(element, backgrounds, outcome))
            except ParseError as e:
                outcome.error = str(e)
                logger.error("Skipping %s: %s", describe(element), e)
            except Exception as e:
                outcome.error = str(e)
                logger.exception("Skipping %s", describe(element))

        return outcomes, corrections

    def _font_weight_correction(self, element) -> Optional[Correction]:
        raw = self.reader.get(element, PropertyName.FONT_WEIGHT)
        weight = parse_font_weight(raw)
        if weight is None:
            logger.debug("Unrecognised font-weight %r on %s", raw, describe(element))
            return None
        if weight < self.config.min_font_weight:
            return Correction(element, PropertyName.FONT_WEIGHT.value, str(self.config.min_font_weight))
        return None

    def _color_correction(self, element, backgrounds: BackgroundResolver, outcome: ElementOutcome) -> Correction:
        bg = backgrounds.resolve(element)
        outcome.background = bg

        declared = Color.parse(self.reader.get(element, PropertyName.COLOR))
        fg = declared.as_opaque(bg)
        outcome.foreground = fg
        outcome.contrast_before = fg.contrast(bg)

        corrected = fg.contrast_to(bg, self.config.desired_contrast)
        outcome.corrected = corrected
        outcome.contrast_after = corrected.contrast(bg)

        return Correction(element, PropertyName.COLOR.value, str(corrected))

    # ----------------------------
    # Apply phase
    # ----------------------------

    def apply(self, corrections: List[Correction]) -> int:
        for corr in corrections:
            self.writer.set(corr.element, corr.prop, corr.value)
        applied = self.writer.flush()
        logger.info("Applied %d corrections", applied)
        return applied


def _rgba(color: Color) -> str:
    r, g, b = color.rgb_tuple()
    return f"rgba({r}, {g}, {b}, {color.a:g})"
