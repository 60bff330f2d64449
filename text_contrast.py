import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlparse

from playwright.sync_api import sync_playwright

from corrector import ContrastCorrector, CorrectionConfig, CorrectionResult
from image_color import DEADLINE_SECONDS, ImageColorResolver, ImageFetcher
from page_dom import PageSnapshot, PageStyleWriter
from settings_store import JsonSettingsStore, load_desired_contrast, save_desired_contrast, validate_contrast

log = logging.getLogger("text_contrast")


DEFAULT_URLS = [
    "https://www.booking.com/",
    "https://www.airbnb.com/",
    "https://react.dev/"
]

DEFAULT_OUTPUT = "text_contrast_corrections.json"


def setup_logging(verbosity: int = 0) -> None:
    level = [logging.WARNING, logging.INFO, logging.DEBUG][min(verbosity, 2)]
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
    )


# ----------------------------
# Utilities: URL key
# ----------------------------

def domain_key(url: str) -> str:
    parsed = urlparse(url)
    if not parsed.netloc:
        return Path(parsed.path).name or url
    return parsed.netloc.removeprefix("www.")


# ----------------------------
# Correcting one page
# ----------------------------

def correct_page(page, url: str, config: CorrectionConfig, fetcher: ImageFetcher,
                 settle_ms: int = 3000) -> CorrectionResult:
    page.goto(url, wait_until="domcontentloaded", timeout=60_000)
    page.wait_for_timeout(settle_ms)

    snapshot = PageSnapshot.capture(page)
    corrector = ContrastCorrector(
        snapshot,
        snapshot,
        PageStyleWriter(page),
        config=config,
        image_resolver=ImageColorResolver(fetcher, palette_size=config.palette_size, timeout=config.image_timeout),
    )
    return corrector.run()


def summarize(url: str, result: CorrectionResult) -> dict:
    outcomes = result.outcomes
    ok = [o for o in outcomes if o.error is None]
    before = [o.contrast_before for o in ok]
    after = [o.contrast_after for o in ok]
    return {
        "url": url,
        "elements": len(outcomes),
        "colors_changed": sum(1 for o in ok if o.color_changed),
        "font_weights_raised": sum(1 for o in outcomes if o.font_weight_raised),
        "failures": len(outcomes) - len(ok),
        "mean_contrast_before": round(sum(before) / len(before), 3) if before else None,
        "mean_contrast_after": round(sum(after) / len(after), 3) if after else None,
        "images": result.seeding.to_dict() if result.seeding else None,
        "applied": result.applied,
    }


def print_console(summary: dict, result: CorrectionResult, top_n: int = 5):
    print(f"\n=== {domain_key(summary['url'])} ===")
    print(f"URL: {summary['url']}")
    print(f"Text elements: {summary['elements']} | Colors changed: {summary['colors_changed']} "
          f"| Font weights raised: {summary['font_weights_raised']} | Failures: {summary['failures']}")
    if summary["images"]:
        imgs = summary["images"]
        print(f"Background images: {imgs['found']} found, {imgs['resolved']} resolved, "
              f"{imgs['failed']} failed, {imgs['pending']} pending at deadline")
    print(f"Mean relative contrast: {summary['mean_contrast_before']} -> {summary['mean_contrast_after']}")

    changed = [o for o in result.outcomes if o.error is None and o.color_changed]
    changed.sort(key=lambda o: o.contrast_before)
    if changed:
        print(f"\nLowest-contrast corrections (top {top_n}):")
        for o in changed[:top_n]:
            d = o.to_dict()
            print(f"  {d['element']}: {d['foreground']} on {d['background']} "
                  f"({d['contrastBefore']}) -> {d['corrected']} ({d['contrastAfter']})")


# ----------------------------
# CLI
# ----------------------------

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description="Raise low text contrast on web pages and report the corrections.")
    p.add_argument("urls", nargs="*", help="Pages to correct (default: a small built-in list)")
    p.add_argument("--contrast", type=float, default=None,
                   help="Desired contrast 0..1 for this run (default: stored setting)")
    p.add_argument("--set-contrast", type=float, default=None, dest="set_contrast",
                   help="Store a new desired contrast and exit")
    p.add_argument("--settings", type=Path, default=None, help="Settings file path")
    p.add_argument("--timeout", type=float, default=DEADLINE_SECONDS,
                   help="Seconds to wait for background images")
    p.add_argument("--screenshots", type=Path, default=None,
                   help="Directory for screenshots of corrected pages")
    p.add_argument("--output", type=Path, default=Path(DEFAULT_OUTPUT), help="JSON results file")
    p.add_argument("--headed", action="store_true", help="Show the browser window")
    p.add_argument("-v", "--verbose", action="count", default=0)
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    store = JsonSettingsStore(args.settings)

    if args.set_contrast is not None:
        try:
            value = save_desired_contrast(store, args.set_contrast)
        except ValueError as e:
            print(f"ERROR: {e}")
            return 2
        print(f"Saved desired contrast {value} to {store.path}")
        return 0

    if args.contrast is not None:
        try:
            desired = validate_contrast(args.contrast)
        except ValueError as e:
            print(f"ERROR: {e}")
            return 2
    else:
        desired = load_desired_contrast(store)

    config = CorrectionConfig(desired_contrast=desired, image_timeout=args.timeout)
    urls = args.urls or DEFAULT_URLS

    output = {
        "run_date": date.today().isoformat(),
        "desired_contrast": desired,
        "sites": {}
    }

    if args.screenshots:
        args.screenshots.mkdir(parents=True, exist_ok=True)

    browser = None
    fetcher = ImageFetcher()
    try:
        with sync_playwright() as p:
            browser = p.chromium.launch(headless=not args.headed)
            page = browser.new_page()

            for url in urls:
                key = domain_key(url)
                print(f"\nCorrecting: {url}")
                try:
                    result = correct_page(page, url, config, fetcher)
                    summary = summarize(url, result)
                    output["sites"][key] = {
                        "summary": summary,
                        "elements": [o.to_dict() for o in result.outcomes],
                    }
                    print_console(summary, result)
                    if args.screenshots:
                        shot = args.screenshots / f"{key}.png"
                        page.screenshot(path=str(shot), full_page=True)
                        print(f"Screenshot: {shot}")
                except Exception as e:
                    log.debug("Correction of %s failed", url, exc_info=True)
                    output["sites"][key] = {"url": url, "error": str(e)}
                    print(f"  ERROR: {e}")
    except KeyboardInterrupt:
        print("\nRun interrupted by user.")
    finally:
        fetcher.close()
        if browser:
            try:
                browser.close()
            except Exception:
                pass

    with open(args.output, "w", encoding="utf-8") as f:
        json.dump(output, f, indent=2, ensure_ascii=False)

    print(f"\nSaved: {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
