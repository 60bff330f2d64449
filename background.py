from typing import Dict, Optional

from color_model import Color, WHITE
from page_dom import ElementTree, PropertyName, StyleReader


class BackgroundResolver:
    """
    Resolve the opaque background color behind an element.

    Backgrounds are rarely declared on the text element itself, so the
    resolver walks up the ancestor chain until it reaches an opaque color
    (or the root) and then composites the translucent layers it passed,
    outermost first. Every ancestor visited gets its final color stored in
    `cache`, so elements sharing part of a chain reuse the work.
    """

    def __init__(self, tree: ElementTree, reader: StyleReader,
                 cache: Optional[Dict] = None, default: Color = WHITE):
        if not default.is_opaque():
            raise ValueError(f"Default background must be opaque, got {default}")
        self.tree = tree
        self.reader = reader
        self.cache = cache if cache is not None else {}
        self.default = default

    def _declared(self, element) -> Color:
        if element in self.cache:
            return self.cache[element]
        return Color.parse(self.reader.get(element, PropertyName.BACKGROUND_COLOR))

    def resolve(self, element) -> Color:
        chain = []  # (element, declared color), innermost first
        seed = self.default
        el = element

        while el is not None:
            col = self._declared(el)
            if col.is_opaque():
                seed = col
                self.cache[el] = col
                break
            chain.append((el, col))
            el = self.tree.parent(el)

        # Blue -> 50% red -> 15% green is 85% (50% blue + 50% red) + 15% green
        col = seed
        for el, layer in reversed(chain):
            if not layer.is_transparent():
                col = layer.as_opaque(col)
            self.cache[el] = col

        return col
