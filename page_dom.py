import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Protocol

logger = logging.getLogger(__name__)


# ----------------------------
# Typed interfaces
# ----------------------------

class PropertyName(str, Enum):
    """Computed style properties read by the correction pass."""
    COLOR = "color"
    BACKGROUND_COLOR = "background-color"
    BACKGROUND_IMAGE = "background-image"
    BACKGROUND_REPEAT = "background-repeat"
    FONT_WEIGHT = "font-weight"


SCROLLBAR_COLOR = "scrollbar-color"


class ElementTree(Protocol):
    def qualifying_elements(self) -> Iterable: ...

    def parent(self, element): ...

    def document_root(self): ...


class StyleReader(Protocol):
    def get(self, element, prop: PropertyName) -> str: ...


class StyleWriter(Protocol):
    def set(self, element, prop: str, value: str) -> None: ...

    def flush(self) -> int: ...


def describe(element) -> str:
    """Short label for log lines: tag and class of an element."""
    tag = getattr(element, "tag", None) or type(element).__name__
    cls = getattr(element, "class_name", "") or ""
    return f"{tag} {cls}".strip()


# ----------------------------
# Background image URL
# ----------------------------

_URL_RE = re.compile(r"""url\(\s*(['"]?)(.*?)\1\s*\)""", re.IGNORECASE)


def background_image_url(background_image: str, background_repeat: str = "") -> Optional[str]:
    """
    Return the first url(...) of a computed background-image, or None.

    Non-repeated backgrounds are skipped: they are usually list bullets or
    small icons, not the surface text sits on.
    """
    if not background_image or background_image.strip().lower() == "none":
        return None
    if (background_repeat or "").strip().lower() == "no-repeat":
        return None
    m = _URL_RE.search(background_image)
    if not m or not m.group(2):
        return None
    return m.group(2)


# ----------------------------
# Playwright snapshot
# ----------------------------

ID_ATTR = "data-tcc-id"

SNAPSHOT_JS = r"""
(rootSelector) => {
  const PROPS = ["color", "background-color", "background-image", "background-repeat", "font-weight"];
  const SKIP = new Set(["SCRIPT", "STYLE", "NOSCRIPT", "TEMPLATE"]);

  // ids from a previous pass must not collide with this one
  document.querySelectorAll("[data-tcc-id]").forEach((e) => e.removeAttribute("data-tcc-id"));

  const root = document.querySelector(rootSelector) || document.body || document.documentElement;
  const ids = new Map();
  const nodes = [];
  let nextId = 0;

  function register(el) {
    if (ids.has(el)) return ids.get(el);
    const parent = el.parentElement;
    const parentId = parent ? register(parent) : null;
    const id = nextId++;
    ids.set(el, id);
    el.setAttribute("data-tcc-id", String(id));
    const cs = window.getComputedStyle(el);
    const style = {};
    for (const p of PROPS) style[p] = cs.getPropertyValue(p);
    nodes.push({
      id,
      parentId,
      tag: el.tagName,
      className: typeof el.className === "string" ? el.className : "",
      style
    });
    return id;
  }

  const textElements = [];
  const seen = new Set();
  const walk = document.createTreeWalker(root, NodeFilter.SHOW_TEXT, null);
  let n;
  while ((n = walk.nextNode())) {
    if (n.data.trim() === "") continue;
    const parent = n.parentElement;
    if (!parent || SKIP.has(parent.tagName)) continue;
    const id = register(parent);
    if (!seen.has(id)) {
      seen.add(id);
      textElements.push(id);
    }
  }

  const documentRoot = register(document.documentElement);
  return { nodes, textElements, documentRoot };
}
"""

APPLY_JS = r"""
(corrections) => {
  const byId = new Map();
  document.querySelectorAll("[data-tcc-id]").forEach((e) => byId.set(e.getAttribute("data-tcc-id"), e));
  let applied = 0;
  for (const c of corrections) {
    const el = byId.get(String(c.id));
    if (!el) continue;
    el.style.setProperty(c.prop, c.value, "important");
    applied += 1;
  }
  return applied;
}
"""


@dataclass(frozen=True)
class PageElement:
    node_id: int
    tag: str
    class_name: str = ""
    parent_id: Optional[int] = None


class PageSnapshot:
    """
    Element tree and computed styles captured from a page in one evaluate call.

    All reads of a correction pass are served from this snapshot, so nothing
    written back to the page can influence them.
    """

    def __init__(self, elements: Dict[int, PageElement], styles: Dict[int, Dict[str, str]],
                 text_ids: List[int], root_id: Optional[int] = None):
        self._elements = elements
        self._styles = styles
        self._text_ids = text_ids
        self._root_id = root_id

    @classmethod
    def capture(cls, page, root_selector: str = "body") -> "PageSnapshot":
        payload = page.evaluate(SNAPSHOT_JS, root_selector)
        snapshot = cls.from_payload(payload)
        logger.info("Captured %d elements (%d with text)", len(snapshot), len(snapshot._text_ids))
        return snapshot

    @classmethod
    def from_payload(cls, payload: dict) -> "PageSnapshot":
        elements = {}
        styles = {}
        for node in payload.get("nodes", []):
            node_id = int(node["id"])
            parent_id = node.get("parentId")
            elements[node_id] = PageElement(
                node_id=node_id,
                tag=node.get("tag") or "",
                class_name=node.get("className") or "",
                parent_id=int(parent_id) if parent_id is not None else None,
            )
            styles[node_id] = dict(node.get("style") or {})
        text_ids = [int(i) for i in payload.get("textElements", []) if int(i) in elements]
        root_id = payload.get("documentRoot")
        return cls(elements, styles, text_ids, int(root_id) if root_id is not None else None)

    def __len__(self) -> int:
        return len(self._elements)

    def qualifying_elements(self) -> List[PageElement]:
        return [self._elements[i] for i in self._text_ids]

    def parent(self, element: PageElement) -> Optional[PageElement]:
        if element.parent_id is None:
            return None
        return self._elements.get(element.parent_id)

    def document_root(self) -> Optional[PageElement]:
        if self._root_id is None:
            return None
        return self._elements.get(self._root_id)

    def get(self, element: PageElement, prop: PropertyName) -> str:
        return self._styles.get(element.node_id, {}).get(PropertyName(prop).value, "")


class PageStyleWriter:
    """Buffers style writes and applies them to the page in one batch."""

    def __init__(self, page):
        self.page = page
        self._pending = []

    def set(self, element: PageElement, prop: str, value: str) -> None:
        self._pending.append({"id": element.node_id, "prop": getattr(prop, "value", prop), "value": value})

    def flush(self) -> int:
        if not self._pending:
            return 0
        batch, self._pending = self._pending, []
        applied = self.page.evaluate(APPLY_JS, batch)
        if applied != len(batch):
            logger.warning("Applied %d of %d style writes; some elements left the page", applied, len(batch))
        return int(applied or 0)
