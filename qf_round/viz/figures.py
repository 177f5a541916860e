"""
qf_round/viz/figures.py: Payout figure for a distributed (or previewed) round.

Usage:
    from qf_round.viz.figures import plot_payouts
    path = plot_payouts(frame, output_dir="reports/figures", title="Q3 round")
"""

from __future__ import annotations

import logging
import os

import matplotlib
try:
    matplotlib.use("Agg")
except Exception:
    pass  # backend already set

import matplotlib.pyplot as plt
import pandas as pd

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Shared colour palette
# ---------------------------------------------------------------------------
C_DIRECT = "#2196A6"    # teal: direct contributions
C_MATCH = "#F2B134"     # amber: matching share
C_DARK = "#1A2B3C"      # near-black
C_LIGHT = "#E8EFF5"     # background tint

STYLE = {
    "figure.facecolor": "white",
    "axes.facecolor": C_LIGHT,
    "axes.edgecolor": C_DARK,
    "axes.labelcolor": C_DARK,
    "xtick.color": C_DARK,
    "ytick.color": C_DARK,
    "text.color": C_DARK,
    "grid.color": "white",
    "grid.linewidth": 1.0,
    "axes.spines.top": False,
    "axes.spines.right": False,
}


def _label(title: str, proposal_id: int, width: int = 18) -> str:
    short = title if len(title) <= width else title[: width - 1] + "…"
    return f"#{proposal_id} {short}"


def plot_payouts(
    frame: pd.DataFrame,
    output_dir: str,
    title: str = "Quadratic funding payouts",
    filename: str = "payouts.png",
) -> str | None:
    """
    Stacked bars per proposal: direct contributions below, match share above.

    Args:
        frame:      Output of reports.round_report.build_payout_frame().
        output_dir: Directory to save the PNG into (created if needed).
        title:      Figure title.
        filename:   Output file name.

    Returns:
        Absolute path of the saved figure, or None if ``frame`` is empty.
    """
    if frame.empty:
        logger.info("No proposals to plot; payout figure skipped.")
        return None

    os.makedirs(output_dir, exist_ok=True)
    plt.rcParams.update(STYLE)

    labels = [_label(t, int(p)) for t, p in zip(frame["title"], frame["proposal_id"])]
    direct = [float(v) for v in frame["collected_funds"]]
    match = [float(v) for v in frame["match"]]
    positions = range(len(labels))

    fig, ax = plt.subplots(figsize=(max(6, len(labels) * 1.2), 5))
    ax.bar(positions, direct, color=C_DIRECT, label="Direct contributions", zorder=3)
    ax.bar(positions, match, bottom=direct, color=C_MATCH, label="Matching share", zorder=3)

    for x, (d, m) in enumerate(zip(direct, match)):
        ax.text(x, d + m, f"{int(d + m)}", ha="center", va="bottom", fontsize=9)

    ax.set_xticks(list(positions))
    ax.set_xticklabels(labels, rotation=30, ha="right", fontsize=9)
    ax.set_ylabel("Payout", fontsize=12)
    ax.set_title(title, fontsize=13, fontweight="bold", pad=12)
    ax.set_ylim(bottom=0)
    ax.yaxis.grid(True, zorder=0)
    ax.legend(fontsize=10, loc="upper left")

    fig.tight_layout()
    path = os.path.join(output_dir, filename)
    fig.savefig(path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    logger.info("Payout figure written to %s", path)
    return os.path.abspath(path)
