import base64
import io
import threading
import time

import pytest
from PIL import Image

from background import BackgroundResolver
from color_model import Color
from image_color import ImageColorResolver, ImageFetcher, extract_palette, representative_color

BG_URL = "https://example.test/bg.png"


def striped(colors_and_rows, width=20, mode="RGB"):
    """Image made of horizontal bands: [(color, rows), ...]."""
    height = sum(rows for _, rows in colors_and_rows)
    img = Image.new(mode, (width, height))
    y = 0
    for color, rows in colors_and_rows:
        for row in range(y, y + rows):
            for x in range(width):
                img.putpixel((x, row), color)
        y += rows
    return img


def close_to(rgb, expected, tol=10):
    return all(abs(a - b) <= tol for a, b in zip(rgb, expected))


class FakeFetcher:
    def __init__(self, result=None, error=None, gate=None):
        self.result = result
        self.error = error
        self.gate = gate
        self.calls = []

    def load(self, url):
        self.calls.append(url)
        if self.gate is not None:
            self.gate.wait(5)
        if self.error is not None:
            raise self.error
        return self.result


# ----------------------------
# Palette reduction
# ----------------------------

def test_palette_is_ordered_by_dominance():
    img = striped([((220, 20, 20), 12), ((20, 20, 220), 6), ((20, 200, 20), 2)])
    palette = extract_palette(img, 5)
    assert close_to(palette[0], (220, 20, 20))
    assert close_to(palette[1], (20, 20, 220))
    assert len(palette) <= 5


def test_palette_ignores_transparent_pixels():
    img = striped([((255, 255, 255, 0), 14), ((10, 40, 160, 255), 6)], mode="RGBA")
    palette = extract_palette(img, 5)
    assert close_to(palette[0], (10, 40, 160))


def test_palette_of_fully_transparent_image_is_empty():
    img = Image.new("RGBA", (8, 8), (0, 0, 0, 0))
    assert extract_palette(img) == []


def test_representative_color_weights_dominant_entry():
    col = representative_color([(200, 0, 0), (0, 0, 100)])
    assert col.r == pytest.approx(180)
    assert col.g == pytest.approx(0)
    assert col.b == pytest.approx(10)
    assert col.is_opaque()


def test_representative_color_needs_a_palette():
    with pytest.raises(ValueError):
        representative_color([])


# ----------------------------
# Fetching
# ----------------------------

def _png_bytes(color=(1, 2, 3), size=(4, 4)):
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


def test_fetcher_decodes_base64_data_url():
    url = "data:image/png;base64," + base64.b64encode(_png_bytes()).decode("ascii")
    img = ImageFetcher().load(url)
    assert img.size == (4, 4)


def test_fetcher_reads_local_files(tmp_path):
    path = tmp_path / "bg.png"
    path.write_bytes(_png_bytes(size=(3, 5)))
    fetcher = ImageFetcher()
    assert fetcher.load(str(path)).size == (3, 5)
    assert fetcher.load(path.as_uri()).size == (3, 5)


def test_fetcher_rejects_unknown_scheme():
    with pytest.raises(ValueError):
        ImageFetcher().fetch("ftp://example.test/bg.png")


# ----------------------------
# Seeding
# ----------------------------

def _hero_page(doc, repeat="repeat"):
    hero = doc.add("DIV", background_image=f'url("{BG_URL}")', background_repeat=repeat)
    inner = doc.add("DIV", hero)
    first = doc.add("P", inner, text=True)
    second = doc.add("P", inner, text=True)
    return hero, first, second


def test_seed_resolves_each_ancestor_once(doc):
    hero, first, second = _hero_page(doc)
    fetcher = FakeFetcher(result=Image.new("RGB", (8, 8), (30, 60, 90)))
    cache = {}

    summary = ImageColorResolver(fetcher).seed(doc, doc, cache)

    assert fetcher.calls == [BG_URL]
    assert summary.found == 1 and summary.resolved == 1
    assert close_to(cache[hero].rgb_tuple(), (30, 60, 90), tol=2)
    assert BackgroundResolver(doc, doc, cache).resolve(first) is cache[hero]


def test_seed_skips_non_repeated_images(doc):
    _hero_page(doc, repeat="no-repeat")
    fetcher = FakeFetcher(result=Image.new("RGB", (8, 8), (30, 60, 90)))
    summary = ImageColorResolver(fetcher).seed(doc, doc, {})
    assert summary.found == 0
    assert fetcher.calls == []


def test_seed_failure_falls_through(doc):
    hero, first, _ = _hero_page(doc)
    cache = {}
    summary = ImageColorResolver(FakeFetcher(error=OSError("connection reset"))).seed(doc, doc, cache)

    assert summary.failed == 1
    assert hero not in cache
    assert BackgroundResolver(doc, doc, cache).resolve(first) == Color(255, 255, 255)


def test_seed_stops_waiting_at_deadline(doc):
    hero, _, _ = _hero_page(doc)
    gate = threading.Event()
    fetcher = FakeFetcher(result=Image.new("RGB", (8, 8), (30, 60, 90)), gate=gate)
    cache = {}

    try:
        started = time.monotonic()
        summary = ImageColorResolver(fetcher, timeout=0.1).seed(doc, doc, cache)
        assert time.monotonic() - started < 2
        assert summary.pending == 1
        assert summary.resolved == 0
    finally:
        gate.set()

    time.sleep(0.2)
    assert hero not in cache


def test_unreadable_element_is_skipped_while_seeding(doc):
    broken = doc.add("P", text=True)
    del broken.style["background-image"]
    hero, _, _ = _hero_page(doc)
    fetcher = FakeFetcher(result=Image.new("RGB", (8, 8), (30, 60, 90)))
    cache = {}

    summary = ImageColorResolver(fetcher).seed(doc, doc, cache)

    assert summary.resolved == 1
    assert hero in cache


def test_shared_ancestors_without_images_are_read_once(doc):
    outer = doc.add("DIV")
    middle = doc.add("DIV", outer)
    inner = doc.add("DIV", middle)
    for _ in range(4):
        doc.add("P", inner, text=True)

    summary = ImageColorResolver(FakeFetcher()).seed(doc, doc, {})

    assert summary.found == 0
    for shared in (doc.root, outer, middle, inner):
        assert len(doc.reads(shared, "background-image")) == 1
