# -*- coding: utf-8 -*-
"""
AI 写周报：提示词拼装 + 输出留档。

把一份已校验的 ReportData 组装成一条 user 消息（要求模型只返回 HTML 片段），
交给 analysis.api_client 调用大模型；CLI 场景下再把结果落到输出目录：
- report.html：净化后的独立报告文档（可直接用浏览器打开/打印）
- prompt.md：本次提示词留档（便于复现/调参；没配置密钥时也可以手工复制到聊天工具里用）
- report_data.json：本次输入数据（camelCase，可直接作为下一次 --input）
- summary.md：指标对比表 + 业务警告 + 异常提示
- figures/funnel.png：本周/上周漏斗对比图
- report_failed.md：生成失败（或 prompt-only）时的说明文件

设计目标：
- AI 只负责解释与写作，周同比等数字在这里先算好再喂给模型
- 生成失败也留档，不影响主流程
"""

from __future__ import annotations

import datetime as dt
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from src.core.md import df_to_md_table, md_bullets
from src.core.metrics import build_metrics_frame, calculate_change
from src.core.schema import PromotionData, ReportData, ShopAdjustmentData
from src.core.utils import fmt_number

logger = logging.getLogger(__name__)

# 模型参考用的样式模板（简版）
_REFERENCE_CSS = """<style>
.report-container { max-width: 1200px; margin: 0 auto; padding: 30px; font-family: 'Arial', 'Microsoft YaHei', sans-serif; background: #f8f9fa; }
.report-title { text-align: center; color: #2c3e50; margin-bottom: 30px; font-size: 28px; font-weight: bold; }
.info-card { background: white; border-radius: 12px; padding: 25px; margin: 20px 0; box-shadow: 0 4px 6px rgba(0,0,0,0.1); }
.data-table { width: 100%; border-collapse: collapse; margin: 20px 0; background: white; border-radius: 8px; overflow: hidden; }
.data-table th { background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); color: white; padding: 15px; text-align: center; }
.data-table td { padding: 12px 15px; border-bottom: 1px solid #eee; text-align: center; }
.trend-up { color: #27ae60; font-weight: bold; }
.trend-down { color: #e74c3c; font-weight: bold; }
.analysis-section { margin: 25px 0; line-height: 1.8; }
.analysis-section h3 { color: #2c3e50; border-left: 4px solid #3498db; padding-left: 15px; }
</style>"""

# 最终输出骨架里的完整样式
_OUTPUT_CSS = """<style>
.report-container {
    max-width: 1200px;
    margin: 0 auto;
    padding: 30px;
    font-family: 'Microsoft YaHei', 'Arial', sans-serif;
    background: #f8f9fa;
    color: #333;
    border-radius: 15px;
    box-shadow: 0 8px 16px rgba(0,0,0,0.1);
}
.report-title {
    text-align: center;
    color: #2c3e50;
    margin-bottom: 30px;
    font-size: 28px;
    font-weight: bold;
    text-shadow: 0 2px 4px rgba(0,0,0,0.1);
}
.info-card {
    background: white;
    border-radius: 12px;
    padding: 25px;
    margin: 20px 0;
    box-shadow: 0 4px 12px rgba(0,0,0,0.1);
    border: 1px solid #e3e8ee;
}
.info-card h2 {
    color: #2c3e50;
    margin-bottom: 20px;
    font-size: 20px;
    border-bottom: 2px solid #3498db;
    padding-bottom: 10px;
}
.data-table {
    width: 100%;
    border-collapse: collapse;
    margin: 20px 0;
    background: white;
    border-radius: 8px;
    overflow: hidden;
    box-shadow: 0 4px 12px rgba(0,0,0,0.1);
}
.data-table th {
    background: linear-gradient(135deg, #667eea 0%, #764ba2 100%);
    color: white;
    padding: 15px;
    text-align: center;
    font-weight: bold;
    font-size: 14px;
}
.data-table td {
    padding: 12px 15px;
    text-align: center;
    border-bottom: 1px solid #eee;
    font-size: 14px;
}
.data-table tr:hover {
    background-color: #f8f9fa;
}
.trend-up {
    color: #27ae60;
    font-weight: bold;
    background: rgba(39, 174, 96, 0.1);
    padding: 4px 8px;
    border-radius: 4px;
}
.trend-down {
    color: #e74c3c;
    font-weight: bold;
    background: rgba(231, 76, 60, 0.1);
    padding: 4px 8px;
    border-radius: 4px;
}
.analysis-section {
    margin: 25px 0;
    line-height: 1.8;
}
.analysis-section h3 {
    color: #2c3e50;
    border-left: 4px solid #3498db;
    padding-left: 15px;
    margin: 20px 0 15px 0;
    font-size: 18px;
}
.analysis-section p {
    margin: 12px 0;
    color: #555;
}
.highlight-box {
    background: linear-gradient(135deg, #667eea20, #764ba220);
    border-left: 4px solid #667eea;
    padding: 15px;
    margin: 15px 0;
    border-radius: 0 8px 8px 0;
}
</style>"""


def _n(value: object) -> str:
    return fmt_number(value)


def _promotion_section(promo: Optional[PromotionData]) -> str:
    if promo is None:
        return ""
    tw, lw = promo.this_week, promo.last_week
    return (
        "### 点金推广数据分析\n"
        f"- 本周推广花费：¥{_n(tw.cost)}（{calculate_change(tw.cost, lw.cost)}）\n"
        f"- 推广曝光量：{_n(tw.exposure_count)}（{calculate_change(tw.exposure_count, lw.exposure_count)}）\n"
        f"- 推广进店量：{_n(tw.visit_count)}\n"
        f"- 进店率：{_n(tw.visit_rate)}%\n"
        f"- 单次进店成本：¥{_n(tw.cost_per_visit)}\n"
    )


def _promotion_table_rows(promo: Optional[PromotionData]) -> str:
    if promo is None:
        return ""
    tw, lw = promo.this_week, promo.last_week
    return (
        "**核心数据总览表格必须包含以下推广指标行**：\n"
        f"- 推广花费：本周¥{_n(tw.cost)}，上周¥{_n(lw.cost)}\n"
        f"- 推广曝光量：本周{_n(tw.exposure_count)}，上周{_n(lw.exposure_count)}\n"
        f"- 推广进店量：本周{_n(tw.visit_count)}，上周{_n(lw.visit_count)}\n"
        f"- 推广进店率：本周{_n(tw.visit_rate)}%，上周{_n(lw.visit_rate)}%\n"
        f"- 单次进店成本：本周¥{_n(tw.cost_per_visit)}，上周¥{_n(lw.cost_per_visit)}\n"
    )


def _adjustment_section(adj: Optional[ShopAdjustmentData]) -> str:
    if adj is None or not (adj.this_week_adjustments or adj.last_week_adjustments):
        return ""

    def _join(items: Sequence) -> str:
        return "、".join(x.value for x in items) if items else "无"

    return (
        "### 店铺调整项目\n"
        f"- 本周调整：{_join(adj.this_week_adjustments)}\n"
        f"- 上周调整：{_join(adj.last_week_adjustments)}\n"
        "- 请结合上述调整项目解释数据变化，并评估各项调整的效果\n"
    )


def build_report_prompt(report: ReportData) -> str:
    """
    生成单条 user 消息（不拆 system/user：部分兼容网关会忽略 system）。
    """
    shop = report.shop_info
    tw = report.operation_data.this_week
    lw = report.operation_data.last_week
    promo = report.promotion_data
    has_promo = promo is not None

    exposure_change = calculate_change(tw.exposure_count, lw.exposure_count)
    visit_change = calculate_change(tw.visit_count, lw.visit_count)
    order_change = calculate_change(tw.order_count, lw.order_count)

    overview_hint = "，必须包含点金推广相关指标" if has_promo else ""
    promo_visual = ""
    if has_promo:
        promo_visual = (
            "   - **重要**：核心数据总览表格必须包含点金推广数据（推广花费、推广曝光量、推广进店量、进店率、单次进店成本），"
            "这些指标必须作为独立行添加到表格中\n"
            "   - 表格结构：指标列 | 本周数据列 | 上周数据列 | 变化趋势列 | 变化百分比列，推广数据行必须位于基础运营数据行之后\n"
        )

    parts: List[str] = [
        "**重要输出格式要求：你必须严格返回HTML代码片段，不要使用markdown格式或代码块标记**",
        "你是一名专业的美团外卖运营分析师，请为以下店铺生成一份详细的数据周报。报告需要包含数据分析、趋势判断和具体的运营建议。",
        "## 店铺信息\n"
        f"- 店铺名称：{shop.shop_name}\n"
        f"- 经营品类：{shop.category}\n"
        f"- 店铺地址：{shop.address}\n"
        f"- 营业时间：{shop.business_hours}",
        "## 本周运营数据\n"
        f"- 曝光人数：{_n(tw.exposure_count)}人（{exposure_change}）\n"
        f"- 入店人数：{_n(tw.visit_count)}人（{visit_change}）\n"
        f"- 入店转化率：{_n(tw.visit_conversion_rate)}%\n"
        f"- 下单转化率：{_n(tw.order_conversion_rate)}%\n"
        f"- 下单人数：{_n(tw.order_count)}人（{order_change}）\n"
        f"- 复购率：{_n(tw.repurchase_rate)}%",
        "## 上周对比数据\n"
        f"- 曝光人数：{_n(lw.exposure_count)}人\n"
        f"- 入店人数：{_n(lw.visit_count)}人\n"
        f"- 入店转化率：{_n(lw.visit_conversion_rate)}%\n"
        f"- 下单转化率：{_n(lw.order_conversion_rate)}%\n"
        f"- 下单人数：{_n(lw.order_count)}人\n"
        f"- 复购率：{_n(lw.repurchase_rate)}%",
    ]
    for section in (_promotion_section(promo), _adjustment_section(report.adjustment_data)):
        if section:
            parts.append(section.strip())

    parts.append(
        "**输出要求：直接返回HTML代码片段，格式如下（不要包含```html或任何markdown标记）：**\n\n"
        "请生成一份完整的HTML格式周报，要求：\n\n"
        "1. **报告结构**：\n"
        "   - 标题和店铺基本信息\n"
        f"   - 核心数据总览（使用表格{overview_hint}）\n"
        "   - 数据趋势分析（包含变化百分比）\n"
        "   - 关键指标分析\n"
        "   - 问题诊断和改进建议\n"
        "   - 下周行动计划"
    )
    if has_promo:
        parts.append(_promotion_table_rows(promo).strip())
    parts.append(
        "2. **数据可视化**：\n"
        "   - 使用HTML表格展示核心数据对比\n"
        "   - 用颜色区分增长（绿色）和下降（红色）趋势\n"
        "   - 突出显示关键指标和重要变化\n"
        + promo_visual
        + "\n"
        "3. **专业分析**：\n"
        "   - 基于美团外卖运营经验提供深度分析\n"
        "   - 识别数据异常和机会点\n"
        "   - 提供具体可执行的改进措施\n"
        "   - 给出ROI分析和效果预期\n\n"
        "4. **HTML样式**：\n"
        "   - 使用内联CSS样式\n"
        "   - 确保在浏览器中显示美观\n"
        "   - 适合打印和分享\n"
        "   - 使用专业的商务风格"
    )
    parts.append(
        "**严格输出格式要求**：\n"
        "你必须直接返回HTML代码片段，不要使用任何markdown格式或代码块标记。\n\n"
        "输出内容必须包含：\n"
        "1. **完整的CSS样式**（在<style>标签中）\n"
        "2. **详细的分析内容**，每个部分至少3-5段文字分析\n"
        "3. **专业的表格样式**，使用现代化的UI设计\n"
        "4. **丰富的内容结构**：\n"
        "   - 店铺基本信息展示区域\n"
        "   - 核心数据总览表格（包含推广数据）\n"
        "   - 详细的数据趋势分析（每个指标至少2-3行分析）\n"
        "   - 深度的关键指标分析（转化率、复购率、推广效果等）\n"
        "   - 具体的问题诊断和改进建议（至少5-8条建议）\n"
        "   - 详细的下周行动计划（具体可执行的措施）"
    )
    parts.append(
        "**样式要求**：\n"
        "- 使用现代化的卡片式布局\n"
        "- 表格必须有边框、背景色、悬浮效果\n"
        "- 增长数据用绿色显示，下降数据用红色显示\n"
        "- 使用阴影和圆角美化外观\n"
        "- 响应式设计，适配不同屏幕尺寸"
    )
    parts.append("**参考样式模板**：\n```html\n" + _REFERENCE_CSS + "\n```")
    parts.append(
        "**内容深度要求**：\n"
        "- 数据趋势分析：每个核心指标至少2-3句专业分析，解释变化原因和影响\n"
        "- 问题诊断：基于数据识别具体问题和机会点，提供根因分析\n"
        "- 改进建议：提供至少8-10条具体可执行的建议，包含优先级和预期效果\n"
        "- 行动计划：包含时间安排和执行步骤的详细计划，分为短期(1周)、中期(1月)、长期(3月)"
    )
    parts.append(
        "**必须包含的分析维度**：\n"
        "1. **运营效率分析**：转化漏斗分析，用户行为路径优化\n"
        "2. **市场竞争分析**：行业对标，竞争优势识别\n"
        "3. **用户体验分析**：基于转化率数据的用户体验问题诊断\n"
        "4. **推广效果分析**：ROI计算，推广渠道优化建议\n"
        "5. **复购策略分析**：客户留存和复购率提升方案\n"
        "6. **成本控制分析**：单客获取成本优化建议"
    )
    parts.append(
        "**报告结构必须包含**：\n"
        "- 执行摘要（关键发现和建议概述）\n"
        "- 详细数据分析（每个指标的深度解读）\n"
        "- 问题识别与机会分析\n"
        "- 具体改进方案（操作性强的建议）\n"
        "- 风险评估与应对策略\n"
        "- 下周具体行动清单"
    )
    parts.append(
        "**最终输出格式（重要）**：\n"
        "直接返回以下格式的HTML代码片段，不要包含任何markdown标记：\n"
        + _OUTPUT_CSS
        + "\n\n"
        + _html_skeleton(report)
    )
    parts.append(
        "**重要提醒**：\n"
        "- 直接输出HTML代码，不要使用```html标记\n"
        "- 不要返回完整的HTML文档（不要包含DOCTYPE、html、head、body标签）\n"
        "- 只返回上述格式的HTML代码片段\n"
        "- 确保CSS样式完整且位于内容前面\n"
        "- 不要使用markdown格式或代码块标记"
    )
    parts.append("现在请生成报告：")
    return "\n\n".join(parts) + "\n"


def _html_skeleton(report: ReportData) -> str:
    shop = report.shop_info
    return (
        '<div class="report-container">\n'
        f'  <h1 class="report-title">{shop.shop_name} - 周度运营数据分析报告</h1>\n'
        "\n"
        '  <div class="info-card">\n'
        "    <h2>店铺基本信息</h2>\n"
        f"    <p><strong>店铺名称：</strong>{shop.shop_name}</p>\n"
        f"    <p><strong>经营品类：</strong>{shop.category}</p>\n"
        f"    <p><strong>店铺地址：</strong>{shop.address}</p>\n"
        f"    <p><strong>营业时间：</strong>{shop.business_hours}</p>\n"
        "  </div>\n"
        "\n"
        '  <div class="info-card">\n'
        "    <h2>核心数据总览</h2>\n"
        '    <table class="data-table">\n'
        "      <thead>\n"
        "        <tr>\n"
        "          <th>指标</th>\n"
        "          <th>本周数据</th>\n"
        "          <th>上周数据</th>\n"
        "          <th>变化趋势</th>\n"
        "          <th>变化百分比</th>\n"
        "        </tr>\n"
        "      </thead>\n"
        "      <tbody>\n"
        "        <!-- 在这里填入所有数据行，包括推广数据 -->\n"
        "      </tbody>\n"
        "    </table>\n"
        "  </div>\n"
        "\n"
        '  <div class="info-card">\n'
        '    <div class="analysis-section">\n'
        "      <h3>数据趋势分析</h3>\n"
        "      <!-- 详细分析内容 -->\n"
        "    </div>\n"
        "  </div>\n"
        "</div>"
    )


def _now() -> str:
    return dt.datetime.now().isoformat(timespec="seconds")


def build_prompt_archive_md(prompt: str, model: str = "", provider: str = "") -> str:
    md = (
        "# 周报提示词（自动生成留档）\n\n"
        f"- generated_at: `{_now()}`\n"
    )
    if provider:
        md += f"- provider: `{provider}`\n"
    if model:
        md += f"- model: `{model}`\n"
    md += "\n## user\n\n```text\n" + prompt.strip() + "\n```\n"
    return md


def build_summary_md(report: ReportData, warnings: Sequence[str] = (), hints: Sequence[str] = (), status: str = "") -> str:
    shop = report.shop_info
    frame = build_metrics_frame(report)
    lines = [
        f"# {shop.shop_name} 周报摘要",
        "",
        f"- generated_at: `{report.generated_at}`",
        f"- 经营品类：{shop.category}",
        f"- 营业时间：{shop.business_hours}",
    ]
    if status:
        lines.append(f"- 报告状态：{status}")
    lines += [
        "",
        "## 1) 指标对比",
        "",
        df_to_md_table(frame, columns=["指标", "本周", "上周", "变化"]),
        "",
        "## 2) 业务校验警告",
        "",
        md_bullets(warnings),
        "",
        "## 3) 异常提示",
        "",
        md_bullets(hints),
        "",
    ]
    return "\n".join(lines)


def _write_failed(out_dir: Path, reason: str) -> Optional[Path]:
    """
    生成失败（或只生成提示词）时输出一个“可解释”的占位文件，避免输出目录里没有任何说明。
    """
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
        msg = (
            "# 数据周报（未生成）\n\n"
            f"- generated_at: `{_now()}`\n"
            f"- reason: {reason}\n\n"
            "## 如何启用\n\n"
            "1) 复制并填写 `.env.example`：\n\n"
            "```bash\n"
            "cp .env.example .env\n"
            "# 编辑 .env：填入 API_KEY（可选 API_BASE_URL / API_MODEL）\n"
            "```\n\n"
            "2) 重新运行（示例）：\n\n"
            "```bash\n"
            "python main.py --input report.json --out-dir output\n"
            "```\n\n"
            "3) 暂时不想配置密钥：可以打开 `prompt.md`，把提示词复制到聊天工具里手工生成。\n"
        )
        path = out_dir / "report_failed.md"
        path.write_text(msg, encoding="utf-8")
        return path
    except OSError as e:
        logger.warning("写入 report_failed.md 失败: %s", e)
        return None


def write_report_outputs(
    report: ReportData,
    out_dir: Path,
    result=None,
    prompt: Optional[str] = None,
    warnings: Sequence[str] = (),
    hints: Sequence[str] = (),
    model: str = "",
    provider: str = "",
    prompt_only: bool = False,
) -> Dict[str, Path]:
    """
    把一次生成的全部产物写到 out_dir，返回 {名称: 路径}。

    result 为 analysis.api_client.APIResponse；prompt_only=True 时不需要 result。
    单个文件写失败只记日志，不影响其它文件。
    """
    from src.reporting.figures import plot_funnel
    from src.reporting.report_display import build_download_document, process_report_html

    out_dir.mkdir(parents=True, exist_ok=True)
    written: Dict[str, Path] = {}

    prompt_text = prompt if prompt is not None else build_report_prompt(report)
    prompt_path = out_dir / "prompt.md"
    prompt_path.write_text(build_prompt_archive_md(prompt_text, model=model, provider=provider), encoding="utf-8")
    written["prompt"] = prompt_path

    # 输入数据留档（camelCase，可直接作为下一次 --input）
    data_path = out_dir / "report_data.json"
    data_path.write_text(json.dumps(report.to_wire(), ensure_ascii=False, indent=2), encoding="utf-8")
    written["data"] = data_path

    fig_path = plot_funnel(report, out_dir / "figures" / "funnel.png")
    if fig_path is not None:
        written["funnel"] = fig_path

    if prompt_only:
        status = "未生成（prompt-only）"
        failed = _write_failed(out_dir, reason="prompt_only=1（本次仅生成提示词留档，不调用接口）")
    elif result is not None and getattr(result, "success", False) and getattr(result, "data", None):
        status = "已生成"
        failed = None
        html_body = process_report_html(str(result.data))
        report_path = out_dir / "report.html"
        report_path.write_text(build_download_document(html_body, title=f"{report.shop_info.shop_name} - 数据周报"), encoding="utf-8")
        written["report"] = report_path
    else:
        err = getattr(result, "error", None) or "未知错误"
        status = f"生成失败：{err}"
        failed = _write_failed(out_dir, reason=f"报告生成失败：{err}")
    if failed is not None:
        written["failed"] = failed

    summary_path = out_dir / "summary.md"
    summary_path.write_text(build_summary_md(report, warnings=warnings, hints=hints, status=status), encoding="utf-8")
    written["summary"] = summary_path
    return written
