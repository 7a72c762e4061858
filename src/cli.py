# -*- coding: utf-8 -*-

from __future__ import annotations

import argparse
import datetime as dt
import json
import logging
from pathlib import Path
from typing import List, Optional

from src.analysis.ai_report import build_report_prompt, write_report_outputs
from src.analysis.api_client import ReportClient
from src.analysis.data_quality import collect_anomaly_hints, validate_business_logic
from src.core.config import load_settings
from src.core.schema import ReportData, parse_model

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_STRICT_WARNINGS = 2


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="数据周报生成器：校验周度运营数据，调用大模型生成 HTML 周报")
    ap.add_argument("--input", default="", help="输入 JSON（camelCase，结构同 ReportData：shopInfo/operationData/promotionData/adjustmentData）")
    ap.add_argument("--out-dir", default="output", help="输出目录（默认会在其下创建一个时间戳 run 子目录）")
    ap.add_argument("--no-timestamp", action="store_true", help="禁用时间戳 run 目录（直接输出到 --out-dir）")
    ap.add_argument(
        "--prompt-only",
        action="store_true",
        help="仅生成提示词留档（prompt.md）与摘要，不调用接口",
    )
    ap.add_argument("--strict", action="store_true", help="存在业务校验警告时不生成报告（退出码 2）")
    ap.add_argument("--env-prefix", default="API", help="环境变量前缀（默认 API；对应 {PREFIX}_KEY/{PREFIX}_MODEL 等）")
    ap.add_argument("--model", default="", help="覆盖 {PREFIX}_MODEL")
    ap.add_argument("--timeout", type=float, default=0.0, help="单次请求超时（秒；0 表示用配置值）")
    ap.add_argument("--serve", action="store_true", help="启动 Web 向导（Flask）")
    ap.add_argument("--host", default="127.0.0.1", help="--serve 监听地址")
    ap.add_argument("--port", type=int, default=5000, help="--serve 监听端口")
    ap.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="日志级别")
    return ap


def _load_input(path: Path) -> dict:
    data = json.loads(path.read_text(encoding="utf-8"))
    # 兼容接口请求体格式 {"reportData": {...}}
    if isinstance(data, dict) and isinstance(data.get("reportData"), dict):
        return data["reportData"]
    return data


def main(argv: Optional[List[str]] = None) -> int:
    ap = _build_parser()
    args = ap.parse_args(argv)
    logging.basicConfig(level=getattr(logging, str(args.log_level).upper(), logging.WARNING), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    settings = load_settings(prefix=str(args.env_prefix or "API").strip() or "API")
    settings = settings.with_overrides(
        model=str(args.model).strip() or None,
        timeout=float(args.timeout) if float(args.timeout or 0) > 0 else None,
    )

    if bool(args.serve):
        from src.web.app import create_app

        app = create_app(settings)
        print(f"[OK] serving on http://{args.host}:{args.port}")
        app.run(host=args.host, port=int(args.port))
        return EXIT_OK

    if not str(args.input).strip():
        print("[ERR] 需要 --input（或使用 --serve 启动 Web 向导）")
        return EXIT_ERROR

    input_path = Path(str(args.input).strip())
    try:
        raw = _load_input(input_path)
    except (OSError, ValueError) as e:
        print(f"[ERR] 读取输入失败: {input_path}: {e}")
        return EXIT_ERROR

    report, errors = parse_model(ReportData, raw)
    if errors or report is None:
        for key, msg in errors.items():
            print(f"[ERR] {key}: {msg}")
        return EXIT_ERROR

    warnings = validate_business_logic(report.operation_data, report.promotion_data)
    hints = collect_anomaly_hints(report)
    for w in warnings:
        print(f"[WARN] {w}")
    for h in hints:
        print(f"[WARN] {h}")
    if warnings and bool(args.strict):
        print("[ERR] --strict：存在业务校验警告，未生成报告")
        return EXIT_STRICT_WARNINGS

    base_out_dir = Path(args.out_dir)
    if bool(args.no_timestamp):
        out_dir = base_out_dir
    else:
        ts = dt.datetime.now().strftime("%Y%m%d_%H%M%S")
        out_dir = base_out_dir / ts

    prompt = build_report_prompt(report)
    common = dict(
        prompt=prompt,
        warnings=warnings,
        hints=hints,
        model=settings.model,
        provider=settings.provider,
    )

    if bool(args.prompt_only):
        write_report_outputs(report, out_dir, prompt_only=True, **common)
        print(f"[OK] outputs written to: {out_dir}")
        return EXIT_OK

    result = ReportClient(settings).generate_report(report)
    write_report_outputs(report, out_dir, result=result, **common)
    if not result.success:
        print(f"[ERR] 报告生成失败: {result.error}")
        print(f"[OK] outputs written to: {out_dir}")
        return EXIT_ERROR

    print(f"[OK] outputs written to: {out_dir}")
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
