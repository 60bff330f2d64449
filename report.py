import sys
import json
import csv
import html as html_mod
from pathlib import Path

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np

DEFAULT_INPUT = "text_contrast_corrections.json"

SUMMARY_FIELDS = [
    "site", "elements", "colors_changed", "font_weights_raised", "failures",
    "mean_contrast_before", "mean_contrast_after",
]

# ---------------------------------------------------------
# Site Rows
# ---------------------------------------------------------

def site_rows(data: dict) -> list:
    """
    One row per successfully corrected site, sorted by name.
    Sites that errored are left out; see `failed_sites`.
    """
    rows = []
    for site_name, site_blob in sorted(data.get("sites", {}).items()):
        if "error" in site_blob:
            continue
        summ = site_blob.get("summary", {})
        rows.append({
            "site": site_name,
            "elements": summ.get("elements", 0),
            "colors_changed": summ.get("colors_changed", 0),
            "font_weights_raised": summ.get("font_weights_raised", 0),
            "failures": summ.get("failures", 0),
            "mean_contrast_before": summ.get("mean_contrast_before"),
            "mean_contrast_after": summ.get("mean_contrast_after"),
        })
    return rows


def failed_sites(data: dict) -> list:
    return [
        {"site": name, "url": blob.get("url", ""), "error": blob["error"]}
        for name, blob in sorted(data.get("sites", {}).items())
        if "error" in blob
    ]


def contrast_gains(data: dict) -> np.ndarray:
    """Contrast gained by every changed element across all sites."""
    gains = []
    for site_blob in data.get("sites", {}).values():
        for el in site_blob.get("elements", []):
            if el.get("error") or not el.get("colorChanged"):
                continue
            before = el.get("contrastBefore")
            after = el.get("contrastAfter")
            if before is None or after is None:
                continue
            gains.append(after - before)
    return np.asarray(gains, dtype=float)


def worst_elements(site_blob: dict, limit: int = 10) -> list:
    changed = [
        el for el in site_blob.get("elements", [])
        if not el.get("error") and el.get("colorChanged")
    ]
    changed.sort(key=lambda el: el.get("contrastBefore") or 0.0)
    return changed[:limit]


# ---------------------------------------------------------
# Chart Generators
# ---------------------------------------------------------

def generate_basic_chart(names, series, labels, title, ylabel, out_path):
    fig, ax = plt.subplots(figsize=(10,5))
    width = 0.35
    x = list(range(len(names)))

    for i, s in enumerate(series):
        offset = (i - len(series)/2) * width
        ax.bar([v + offset for v in x], s, width=width, label=labels[i])

    ax.set_title(title, fontsize=14, fontweight='bold', pad=20)
    ax.set_ylabel(ylabel, fontsize=12)
    ax.set_xticks(x)
    ax.set_xticklabels(names, rotation=45, ha="right", fontsize=9)
    ax.legend(fontsize=10)
    ax.grid(axis='y', alpha=0.3, linestyle='--')

    fig.tight_layout()
    fig.savefig(str(out_path), dpi=150, bbox_inches='tight')
    plt.close(fig)


def generate_gain_histogram(gains, out_path):
    fig, ax = plt.subplots(figsize=(10,5))
    if gains.size:
        ax.hist(gains, bins=np.linspace(0.0, 1.0, 21), color="#3b82f6", edgecolor='black', linewidth=0.6)
    ax.set_title("Contrast Gained per Corrected Element", fontsize=14, fontweight='bold', pad=20)
    ax.set_xlabel("Relative contrast gained", fontsize=12)
    ax.set_ylabel("Elements", fontsize=12)
    ax.grid(axis='y', alpha=0.3, linestyle='--')

    fig.tight_layout()
    fig.savefig(str(out_path), dpi=150, bbox_inches='tight')
    plt.close(fig)


# ---------------------------------------------------------
# HTML
# ---------------------------------------------------------

def make_html(data, rows, failures, chart_paths, out_path: Path):
    esc = html_mod.escape

    summary_rows = []
    for r in rows:
        summary_rows.append(f"""
        <tr>
            <td><strong>{esc(r['site'])}</strong></td>
            <td>{r['elements']}</td>
            <td>{r['colors_changed']}</td>
            <td>{r['font_weights_raised']}</td>
            <td>{r['failures']}</td>
            <td>{r['mean_contrast_before']}</td>
            <td>{r['mean_contrast_after']}</td>
        </tr>""")

    chart_blocks = []
    for title, path in chart_paths.items():
        chart_blocks.append(f"<div class=\"card\"><h3>{esc(title)}</h3><img src=\"{esc(path)}\" alt=\"{esc(title)}\"/></div>")

    site_sections = []
    for r in rows:
        blob = data["sites"][r["site"]]
        items = []
        for el in worst_elements(blob):
            items.append(
                f"<tr><td>{esc(el['element'])}</td>"
                f"<td><span class=\"swatch\" style=\"background:{esc(el['foreground'])}\"></span>{esc(el['foreground'])}</td>"
                f"<td><span class=\"swatch\" style=\"background:{esc(el['corrected'])}\"></span>{esc(el['corrected'])}</td>"
                f"<td><span class=\"swatch\" style=\"background:{esc(el['background'])}\"></span>{esc(el['background'])}</td>"
                f"<td>{el['contrastBefore']} &rarr; {el['contrastAfter']}</td></tr>"
            )
        if not items:
            items.append("<tr><td colspan=\"5\">No color changes.</td></tr>")
        site_sections.append(f"""
        <div class="card">
            <h3>{esc(r['site'])}</h3>
            <table>
                <tr><th>Element</th><th>Original</th><th>Corrected</th><th>Background</th><th>Contrast</th></tr>
                {''.join(items)}
            </table>
        </div>""")

    failure_rows = "".join(
        f"<tr><td>{esc(f['site'])}</td><td>{esc(f['url'])}</td><td>{esc(f['error'])}</td></tr>"
        for f in failures
    ) or "<tr><td colspan=\"3\">None</td></tr>"

    doc = f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8"/>
<title>Text Contrast Corrections</title>
<style>
    body {{ font-family: system-ui, sans-serif; margin: 2rem; color: #111827; background: #f9fafb; }}
    table {{ border-collapse: collapse; width: 100%; }}
    th, td {{ border: 1px solid #d1d5db; padding: 0.4rem 0.6rem; text-align: left; font-size: 0.9rem; }}
    th {{ background: #e5e7eb; }}
    .card {{ background: #ffffff; border-radius: 8px; padding: 1rem 1.5rem; margin-bottom: 1.5rem; box-shadow: 0 1px 3px rgba(0,0,0,0.1); }}
    .card img {{ max-width: 100%; }}
    .swatch {{ display: inline-block; width: 0.9rem; height: 0.9rem; border: 1px solid #6b7280; margin-right: 0.4rem; vertical-align: middle; }}
</style>
</head>
<body>
<h1>Text Contrast Corrections</h1>
<p>Run date: {esc(str(data.get('run_date', '')))} &middot; Desired contrast: {esc(str(data.get('desired_contrast', '')))}</p>
<div class="card">
    <h2>Summary</h2>
    <table>
        <tr><th>Site</th><th>Elements</th><th>Colors changed</th><th>Font weights raised</th><th>Failures</th><th>Mean contrast before</th><th>Mean contrast after</th></tr>
        {''.join(summary_rows)}
    </table>
</div>
{''.join(chart_blocks)}
<h2>Lowest-contrast corrections by site</h2>
{''.join(site_sections)}
<div class="card">
    <h2>Sites that failed</h2>
    <table><tr><th>Site</th><th>URL</th><th>Error</th></tr>{failure_rows}</table>
</div>
</body>
</html>
"""
    out_path.write_text(doc, encoding="utf-8")


# ---------------------------------------------------------
# Main
# ---------------------------------------------------------

def build_report(in_path: Path, out_dir: Path) -> dict:
    data = json.loads(in_path.read_text(encoding="utf-8"))
    rows = site_rows(data)
    failures = failed_sites(data)

    out_dir.mkdir(parents=True, exist_ok=True)
    assets = out_dir / "report_assets"
    assets.mkdir(exist_ok=True)

    csv_path = out_dir / "corrections_summary.csv"
    with open(csv_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=SUMMARY_FIELDS)
        writer.writeheader()
        writer.writerows(rows)

    names = [r["site"] for r in rows]

    contrast_path = assets / "contrast_before_after.png"
    generate_basic_chart(
        names,
        [[r["mean_contrast_before"] or 0 for r in rows], [r["mean_contrast_after"] or 0 for r in rows]],
        ["Before", "After"],
        "Mean Relative Contrast by Site",
        "Relative contrast",
        contrast_path
    )

    counts_path = assets / "corrections_by_site.png"
    generate_basic_chart(
        names,
        [[r["colors_changed"] for r in rows], [r["font_weights_raised"] for r in rows]],
        ["Colors changed", "Font weights raised"],
        "Corrections by Site",
        "Count",
        counts_path
    )

    gains_path = assets / "contrast_gain_histogram.png"
    generate_gain_histogram(contrast_gains(data), gains_path)

    chart_paths = {
        "Mean Relative Contrast by Site": contrast_path.relative_to(out_dir).as_posix(),
        "Corrections by Site": counts_path.relative_to(out_dir).as_posix(),
        "Contrast Gained per Corrected Element": gains_path.relative_to(out_dir).as_posix(),
    }

    html_path = out_dir / "corrections_report.html"
    make_html(data, rows, failures, chart_paths, html_path)

    return {
        "csv": csv_path,
        "charts": [contrast_path, counts_path, gains_path],
        "html": html_path,
    }


def main():
    in_path = Path(sys.argv[1]) if len(sys.argv) > 1 else Path(DEFAULT_INPUT)
    out_dir = Path(sys.argv[2]) if len(sys.argv) > 2 else Path(".")

    outputs = build_report(in_path, out_dir)

    print("✔ Generated:")
    print(f" - {outputs['csv']}")
    for chart in outputs["charts"]:
        print(f" - {chart}")
    print(f" - {outputs['html']}")


if __name__ == "__main__":
    main()
