# -*- coding: utf-8 -*-
"""
周报配图（CLI 输出用）：本周/上周漏斗对比柱状图。

作图失败（缺字体、磁盘不可写等）只记日志，不影响报告本身。
"""

from __future__ import annotations

import logging
import warnings
from pathlib import Path
from typing import Optional

import matplotlib

matplotlib.use("Agg")  # 非交互式后端
import matplotlib.pyplot as plt
from matplotlib import font_manager
import seaborn as sns

from src.core.metrics import funnel_frame
from src.core.schema import ReportData

logger = logging.getLogger(__name__)

_CN_STYLE_READY: bool = False

# 按平台常见程度排列；都没有时中文会显示为方块，但图照样能出
_CN_FONT_CANDIDATES = [
    "PingFang SC",
    "Hiragino Sans GB",
    "Microsoft YaHei",
    "SimHei",
    "Noto Sans CJK SC",
    "Source Han Sans SC",
    "WenQuanYi Zen Hei",
    "Arial Unicode MS",
]


def _set_cn_style() -> None:
    """
    seaborn.set_style 会覆盖 font.sans-serif，所以必须先 set_style 再设置字体。
    """
    global _CN_STYLE_READY
    if _CN_STYLE_READY:
        return

    sns.set_style("whitegrid")
    try:
        available = {f.name for f in font_manager.fontManager.ttflist}
    except Exception:
        available = set()
    chosen = [n for n in _CN_FONT_CANDIDATES if n in available]
    plt.rcParams["font.sans-serif"] = chosen + [n for n in _CN_FONT_CANDIDATES if n not in chosen] + ["DejaVu Sans"]
    plt.rcParams["font.family"] = "sans-serif"
    plt.rcParams["axes.unicode_minus"] = False
    warnings.filterwarnings("ignore", message=r"Glyph .* missing from font.*")
    warnings.filterwarnings("ignore", message=r"Glyph .* missing from current font.*")
    _CN_STYLE_READY = True


def _save_fig(fig: plt.Figure, path: Path) -> None:
    fig.tight_layout()
    fig.savefig(path, dpi=160)
    plt.close(fig)


def plot_funnel(report: ReportData, out_path: Path) -> Optional[Path]:
    """
    曝光 → 入店 → 下单，本周/上周并排；柱顶标注数值。
    """
    try:
        view = funnel_frame(report)
        if view.empty:
            return None
        _set_cn_style()
        out_path.parent.mkdir(parents=True, exist_ok=True)
        fig, ax = plt.subplots(figsize=(9, 5))
        sns.barplot(data=view, x="stage", y="value", hue="week", ax=ax, palette=["#4C72B0", "#C0C0C0"])
        for container in ax.containers:
            ax.bar_label(container, fmt="%.0f", fontsize=9)
        ax.set_title(f"{report.shop_info.shop_name} 流量漏斗（本周 vs 上周）")
        ax.set_xlabel("")
        ax.set_ylabel("人数")
        ax.legend(title="")
        _save_fig(fig, out_path)
        return out_path
    except Exception as e:
        logger.warning("漏斗图生成失败: %s", e)
        plt.close("all")
        return None
