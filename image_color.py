import base64
import io
import logging
import os
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from urllib.parse import unquote, unquote_to_bytes, urlparse

import numpy as np
import requests
from PIL import Image

from color_model import Color
from page_dom import ElementTree, PropertyName, StyleReader, background_image_url, describe

logger = logging.getLogger(__name__)

RGB = Tuple[int, int, int]

PALETTE_SIZE = 5
DOMINANT_WEIGHT = 0.8
DEADLINE_SECONDS = 3.0

# pixels at or below this alpha do not count toward the palette
MIN_ALPHA = 125
MAX_SAMPLE_SIDE = 200


# ----------------------------
# Fetching
# ----------------------------

class ImageFetcher:
    """Fetch image bytes from http(s), data: URLs and local paths."""

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout
        self._session = requests.Session()
        self._session.headers.update({"User-Agent": "text-contrast/1.0"})

    def fetch(self, url: str) -> bytes:
        if url.startswith("data:"):
            return _decode_data_url(url)
        parsed = urlparse(url)
        scheme = (parsed.scheme or "").lower()
        if scheme in ("http", "https"):
            r = self._session.get(url, timeout=self.timeout)
            r.raise_for_status()
            return r.content
        if scheme == "file":
            local_path = unquote(parsed.path)
            if os.name == "nt" and local_path.startswith("/"):
                local_path = local_path[1:]
            with open(local_path, "rb") as f:
                return f.read()
        if scheme == "":
            with open(url, "rb") as f:
                return f.read()
        raise ValueError(f"Unsupported URL scheme: {scheme}")

    def load(self, url: str) -> Image.Image:
        img = Image.open(io.BytesIO(self.fetch(url)))
        img.load()
        return img

    def close(self) -> None:
        self._session.close()


def _decode_data_url(url: str) -> bytes:
    header, _, data = url.partition(",")
    if header.endswith(";base64"):
        return base64.b64decode(data)
    return unquote_to_bytes(data)


# ----------------------------
# Palette reduction
# ----------------------------

def extract_palette(image: Image.Image, color_count: int = PALETTE_SIZE) -> List[RGB]:
    """
    Median-cut palette of an image, most dominant color first.
    Mostly transparent pixels are ignored.
    """
    small = image.convert("RGBA")
    if max(small.size) > MAX_SAMPLE_SIDE:
        small.thumbnail((MAX_SAMPLE_SIDE, MAX_SAMPLE_SIDE))

    arr = np.asarray(small, dtype=np.uint8).reshape(-1, 4)
    opaque = arr[arr[:, 3] > MIN_ALPHA][:, :3]
    if opaque.size == 0:
        return []

    strip = Image.fromarray(np.ascontiguousarray(opaque.reshape(1, -1, 3)))
    quantized = strip.quantize(colors=color_count, method=Image.Quantize.MEDIANCUT)
    palette = quantized.getpalette() or []
    counts = sorted(quantized.getcolors() or [], reverse=True)
    return [tuple(palette[idx * 3: idx * 3 + 3]) for _, idx in counts[:color_count]]


def representative_color(palette: List[RGB], dominant_weight: float = DOMINANT_WEIGHT) -> Color:
    """
    Blend the dominant palette entry with the palette mean so a single
    quantisation artefact cannot decide the result on its own.
    """
    if not palette:
        raise ValueError("Empty palette")
    colors = np.asarray(palette, dtype=np.float64)
    mixed = dominant_weight * colors[0] + (1 - dominant_weight) * colors.mean(axis=0)
    return Color.from_rgb(mixed.tolist())


# ----------------------------
# Seeding
# ----------------------------

@dataclass
class SeedSummary:
    found: int = 0
    resolved: int = 0
    failed: int = 0
    pending: int = 0

    def to_dict(self) -> dict:
        return {"found": self.found, "resolved": self.resolved,
                "failed": self.failed, "pending": self.pending}


class ImageColorResolver:
    """
    Turns image-backed ancestors into solid colors in the background cache.

    Each distinct ancestor is fetched and reduced once, however many text
    elements sit on it. Work runs on a thread pool; `seed` returns when all
    of it finished or the deadline passed, whichever comes first. Results
    that arrive later are dropped.
    """

    def __init__(self, fetcher: Optional[ImageFetcher] = None, palette_size: int = PALETTE_SIZE,
                 timeout: float = DEADLINE_SECONDS, max_workers: int = 8):
        self.fetcher = fetcher or ImageFetcher()
        self.palette_size = palette_size
        self.timeout = timeout
        self.max_workers = max_workers

    def _image_url(self, reader: StyleReader, element) -> Optional[str]:
        return background_image_url(
            reader.get(element, PropertyName.BACKGROUND_IMAGE),
            reader.get(element, PropertyName.BACKGROUND_REPEAT),
        )

    def find_image_ancestors(self, tree: ElementTree, reader: StyleReader) -> Dict:
        """Map each nearest image-backed ancestor to its image URL."""
        found = {}
        seen = set()
        for element in tree.qualifying_elements():
            walked = []
            el = element
            try:
                while el is not None and el not in seen:
                    walked.append(el)
                    url = self._image_url(reader, el)
                    if url:
                        found[el] = url
                        break
                    el = tree.parent(el)
            except Exception as e:
                logger.warning("Skipping background images above %s: %s", describe(element), e)
                continue
            seen.update(walked)
        return found

    def resolve_url(self, url: str) -> Color:
        palette = extract_palette(self.fetcher.load(url), self.palette_size)
        return representative_color(palette)

    def seed(self, tree: ElementTree, reader: StyleReader, cache: Dict) -> SeedSummary:
        targets = self.find_image_ancestors(tree, reader)
        summary = SeedSummary(found=len(targets))
        if not targets:
            return summary

        executor = ThreadPoolExecutor(max_workers=self.max_workers)
        futures = {executor.submit(self.resolve_url, url): el for el, url in targets.items()}
        try:
            done, not_done = wait(futures, timeout=self.timeout)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        for future in done:
            el = futures[future]
            try:
                cache[el] = future.result()
                summary.resolved += 1
            except Exception as e:
                summary.failed += 1
                logger.warning("Background image of %s failed: %s (%s)", describe(el), targets[el], e)

        summary.pending = len(not_done)
        if not_done:
            logger.info("Image deadline of %.1fs passed with %d image(s) pending", self.timeout, len(not_done))
        return summary
