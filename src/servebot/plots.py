from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Tuple

import matplotlib.pyplot as plt
import pandas as pd


def ranked(metric_by_key: Dict[str, float]) -> List[Tuple[str, float]]:
    """Pares (chave, valor) do pior para o melhor; empates pela chave."""
    return sorted(metric_by_key.items(), key=lambda kv: (-kv[1], kv[0]))


def plot_bars(metric_by_key: Dict[str, float], title: str, out: Path, xlabel: str = "tempo") -> None:
    # Barras horizontais, a mais lenta no topo; a média geral fica tracejada
    rows = ranked(metric_by_key)
    names = [k for k, _ in rows]
    values = [v for _, v in rows]
    y = list(range(len(rows)))
    colors = plt.get_cmap("tab10").colors
    fig, ax = plt.subplots(figsize=(8, max(3.0, 0.45 * len(rows) + 1.5)))
    ax.barh(y, values, color=[colors[i % len(colors)] for i in y])
    ax.set_yticks(y)
    ax.set_yticklabels(names)
    ax.invert_yaxis()
    if values:
        mean = sum(values) / len(values)
        ax.axvline(mean, color="#333333", linestyle="--", linewidth=1)
        ax.text(mean, -0.6, f"média {mean:.1f}", ha="left", va="bottom", fontsize=8)
    for i, v in enumerate(values):
        ax.text(v, i, f" {v:.1f}", ha="left", va="center", fontsize=8)
    ax.set_title(title)
    ax.set_xlabel(xlabel)
    fig.savefig(out, dpi=150, bbox_inches="tight", pad_inches=0.1)
    plt.close(fig)


def plot_queue(samples: List[Tuple[float, int]], title: str, out: Path) -> None:
    fig, ax = plt.subplots(figsize=(8, 5))
    if samples:
        times, sizes = zip(*samples)
        ax.step(times, sizes, where="post", color="#F58518")
    ax.set_title(title)
    ax.set_xlabel("tempo")
    ax.set_ylabel("pedidos aguardando o robô")
    plt.subplots_adjust(bottom=0.2, top=0.9)
    fig.savefig(out, dpi=150, bbox_inches="tight", pad_inches=0.1)
    plt.close(fig)


def plot_gantt(df: pd.DataFrame, title: str, out: Path) -> None:
    # Uma linha por estação (prato); cada barra é um pedido no fogo
    d = df.dropna(subset=["cook_start"]).sort_values("cook_start")
    dishes = sorted(d["dish"].unique())
    fig, ax = plt.subplots(figsize=(9, 5))
    for row_idx, dish in enumerate(dishes):
        rows = d[d["dish"] == dish]
        ax.broken_barh(
            list(zip(rows["cook_start"], rows["cook_time"])),
            (row_idx * 10, 9),
            facecolors="#54A24B",
            edgecolors="white",
        )
    ax.set_yticks([i * 10 + 4.5 for i in range(len(dishes))])
    ax.set_yticklabels(dishes)
    ax.set_xlabel("tempo")
    ax.set_title(title)
    plt.subplots_adjust(bottom=0.2, top=0.9)
    fig.savefig(out, dpi=150, bbox_inches="tight", pad_inches=0.1)
    plt.close(fig)
