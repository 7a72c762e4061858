# -*- coding: utf-8 -*-
"""
三步向导 Web 应用（Flask）：店铺信息 → 数据录入 →（生成中）→ 报告。

- 表单数据：FormCache + Flask session（签名 cookie，在浏览器端）
- 报告 HTML：进程内有界缓存（最近 50 份），session 里只放报告 id
- 报告生成：ReportClient（同步调用，自带有界重试）
"""

from __future__ import annotations

import io
import logging
import threading
import uuid
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Tuple

from flask import Flask, jsonify, redirect, render_template, request, send_file, session, url_for
from pydantic.alias_generators import to_camel

from src.analysis.api_client import ReportClient
from src.analysis.data_quality import validate_business_logic
from src.core.config import DEFAULT_SECRET_KEY, Settings, load_settings
from src.core.rules import derive_last_week
from src.core.schema import (
    PERIOD_LABELS,
    PROMOTION_LABELS,
    PromotionData,
    ReportData,
    ShopAdjustmentData,
    ShopAdjustmentOption,
    ShopBasicInfo,
    ShopOperationData,
    parse_model,
)
from src.core.utils import to_float, to_int
from src.reporting.report_display import (
    SAFETY_NOTICE,
    build_download_document,
    build_print_document,
    download_filename,
    process_report_html,
)
from src.web import form_cache as fc

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}

STEPS: List[Tuple[str, str]] = [("shop-info", "店铺信息"), ("data-input", "数据录入"), ("report", "生成报告")]

SHOP_FIELDS: List[Tuple[str, str, str]] = [
    ("shopName", "店铺名称", "请输入店铺名称"),
    ("category", "经营品类", "如：中式快餐、奶茶饮品等"),
    ("address", "店铺地址", "请输入详细地址"),
    ("businessHours", "营业时间", "如：06:30 - 15:30"),
]

_COUNT_KEYS = {"exposure_count", "visit_count", "order_count"}
# 参与“上周 = 本周 - 增长”推算的字段（复购率单独填）
_GROWTH_KEYS = ["exposure_count", "visit_count", "visit_conversion_rate", "order_conversion_rate", "order_count"]

REPORT_ID_KEY = "report_id"
MAX_STORED_REPORTS = 50


class ReportStore:
    """进程内报告缓存：超过上限时丢最早的一份。"""

    def __init__(self, max_items: int = MAX_STORED_REPORTS):
        self.max_items = max(1, int(max_items))
        self._items: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        self._lock = threading.Lock()

    def put(self, html_fragment: str, raw: str = "", title: str = "") -> str:
        report_id = uuid.uuid4().hex
        with self._lock:
            self._items[report_id] = {"html": html_fragment, "raw": raw, "title": title}
            while len(self._items) > self.max_items:
                self._items.popitem(last=False)
        return report_id

    def get(self, report_id: Optional[str]) -> Optional[Dict[str, Any]]:
        if not report_id:
            return None
        with self._lock:
            return self._items.get(report_id)

    def __len__(self) -> int:
        return len(self._items)


def _default_period() -> Dict[str, float]:
    return {to_camel(k): 0 for k in PERIOD_LABELS}


def _default_promotion_period() -> Dict[str, float]:
    return {to_camel(k): 0 for k in PROMOTION_LABELS}


def _default_form_state() -> Dict[str, Any]:
    return {
        "operation": {"thisWeek": _default_period(), "lastWeek": _default_period()},
        "growth": {to_camel(k): 0 for k in _GROWTH_KEYS},
        "include_promotion": False,
        "promotion": {"thisWeek": _default_promotion_period(), "lastWeek": _default_promotion_period()},
        "adjustment": {"thisWeekAdjustments": [], "lastWeekAdjustments": []},
    }


def _camel_keys(d: Dict[str, Any]) -> Dict[str, Any]:
    return {to_camel(k): v for k, v in d.items()}


def _period_from_form(form, prefix: str) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key in PERIOD_LABELS:
        raw = form.get(f"{prefix}.{to_camel(key)}")
        out[key] = to_int(raw) if key in _COUNT_KEYS else to_float(raw)
    return out


def _promotion_period_from_form(form, prefix: str) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key in PROMOTION_LABELS:
        raw = form.get(f"{prefix}.{to_camel(key)}")
        out[key] = to_int(raw) if key in _COUNT_KEYS else to_float(raw)
    return out


def parse_data_form(form) -> Dict[str, Any]:
    """
    数据录入表单 -> 各部分的 camelCase 字典（和缓存里的格式一致）。

    上周数据不从表单读：按“本周 - 增长”推算，复购率取表单里单独填写的上周值。
    """
    this_week = _period_from_form(form, "thisWeek")
    growth = {k: to_float(form.get(f"growth.{to_camel(k)}")) for k in _GROWTH_KEYS}
    last_week = derive_last_week(this_week, growth, to_float(form.get("lastWeek.repurchaseRate")))
    return {
        "operation": {"thisWeek": _camel_keys(this_week), "lastWeek": _camel_keys(last_week)},
        "growth": _camel_keys(growth),
        "include_promotion": str(form.get("includePromotion") or "").lower() in ("1", "on", "true", "yes"),
        "promotion": {
            "thisWeek": _camel_keys(_promotion_period_from_form(form, "promotion.thisWeek")),
            "lastWeek": _camel_keys(_promotion_period_from_form(form, "promotion.lastWeek")),
        },
        "adjustment": {
            "thisWeekAdjustments": form.getlist("thisWeekAdjustments"),
            "lastWeekAdjustments": form.getlist("lastWeekAdjustments"),
        },
    }


def _cache() -> fc.FormCache:
    return fc.FormCache(session)


def _load_form_state(cache: fc.FormCache) -> Dict[str, Any]:
    d = _default_form_state()
    return {
        "operation": cache.get(fc.OPERATION_DATA, d["operation"]),
        "growth": cache.get(fc.WEEKLY_GROWTH, d["growth"]),
        "include_promotion": bool(cache.get(fc.INCLUDE_PROMOTION, d["include_promotion"])),
        "promotion": cache.get(fc.PROMOTION_DATA, d["promotion"]),
        "adjustment": cache.get(fc.ADJUSTMENT_DATA, d["adjustment"]),
    }


def _save_form_state(cache: fc.FormCache, state: Dict[str, Any]) -> None:
    cache.set(fc.OPERATION_DATA, state["operation"])
    cache.set(fc.WEEKLY_GROWTH, state["growth"])
    cache.set(fc.INCLUDE_PROMOTION, state["include_promotion"])
    cache.set(fc.PROMOTION_DATA, state["promotion"])
    cache.set(fc.ADJUSTMENT_DATA, state["adjustment"])


def _prefixed(errors: Dict[str, str], prefix: str) -> Dict[str, str]:
    return {f"{prefix}.{k}": v for k, v in errors.items()}


def validate_form_state(state: Dict[str, Any]) -> Tuple[Optional[ShopOperationData], Optional[PromotionData], Optional[ShopAdjustmentData], Dict[str, str]]:
    """
    结构校验；错误键：运营数据不加前缀（thisWeek.exposureCount），推广加 promotion.，调整项目加 adjustment.。
    """
    errors: Dict[str, str] = {}
    op, op_errors = parse_model(ShopOperationData, state["operation"])
    errors.update(op_errors)

    promo = None
    if state["include_promotion"]:
        promo, promo_errors = parse_model(PromotionData, state["promotion"])
        errors.update(_prefixed(promo_errors, "promotion"))

    adj, adj_errors = parse_model(ShopAdjustmentData, state["adjustment"])
    errors.update(_prefixed(adj_errors, "adjustment"))
    return op, promo, adj, errors


def create_app(settings: Optional[Settings] = None, client: Optional[ReportClient] = None) -> Flask:
    settings = settings or load_settings()
    app = Flask(__name__)
    app.secret_key = settings.secret_key
    if settings.secret_key == DEFAULT_SECRET_KEY:
        logger.warning("未配置 FLASK_SECRET_KEY，session 正在使用内置的开发密钥签名，请勿用于对外部署")
    app.json.ensure_ascii = False  # type: ignore[attr-defined]

    report_client = client or ReportClient(settings)
    store = ReportStore()
    app.extensions["report_client"] = report_client
    app.extensions["report_store"] = store

    @app.after_request
    def _security_headers(resp):
        for k, v in SECURITY_HEADERS.items():
            resp.headers.setdefault(k, v)
        return resp

    @app.context_processor
    def _inject_steps():
        return {"steps": STEPS, "safety_notice": SAFETY_NOTICE}

    def _shop_info() -> Optional[ShopBasicInfo]:
        info, errors = parse_model(ShopBasicInfo, _cache().get(fc.SHOP_INFO, {}) or {})
        return info if not errors else None

    def _render_data_page(state: Dict[str, Any], errors: Optional[Dict[str, str]] = None, generate_error: str = ""):
        return render_template(
            "data_input.html",
            current_step="data-input",
            state=state,
            errors=errors or {},
            generate_error=generate_error,
            period_labels=[(to_camel(k), v, k not in _COUNT_KEYS) for k, v in PERIOD_LABELS.items()],
            growth_labels=[(to_camel(k), PERIOD_LABELS[k], k not in _COUNT_KEYS) for k in _GROWTH_KEYS],
            promotion_labels=[(to_camel(k), v) for k, v in PROMOTION_LABELS.items()],
            adjustment_options=[o.value for o in ShopAdjustmentOption],
        )

    @app.get("/")
    def shop_info_page():
        values = _cache().get(fc.SHOP_INFO, {}) or {}
        return render_template("shop_info.html", current_step="shop-info", fields=SHOP_FIELDS, values=values, errors={})

    @app.post("/shop-info")
    def submit_shop_info():
        values = {key: str(request.form.get(key) or "").strip() for key, _, _ in SHOP_FIELDS}
        cache = _cache()
        cache.set(fc.SHOP_INFO, values)
        _, errors = parse_model(ShopBasicInfo, values)
        if errors:
            return render_template("shop_info.html", current_step="shop-info", fields=SHOP_FIELDS, values=values, errors=errors)
        return redirect(url_for("data_page"))

    @app.get("/data")
    def data_page():
        if _shop_info() is None:
            return redirect(url_for("shop_info_page"))
        return _render_data_page(_load_form_state(_cache()))

    @app.post("/data")
    def submit_data():
        shop = _shop_info()
        if shop is None:
            return redirect(url_for("shop_info_page"))

        state = parse_data_form(request.form)
        _save_form_state(_cache(), state)

        op, promo, adj, errors = validate_form_state(state)
        if errors:
            return _render_data_page(state, errors=errors)

        warnings = validate_business_logic(op, promo)
        if warnings and request.form.get("confirm") != "1":
            return render_template(
                "confirm.html",
                current_step="data-input",
                warnings=warnings,
                form_items=list(request.form.items(multi=True)),
            )

        report = ReportData(shop_info=shop, operation_data=op, promotion_data=promo, adjustment_data=adj)
        result = report_client.generate_report(report)
        if not (result.success and result.data):
            return _render_data_page(state, generate_error=result.error or "生成报告失败")

        html_fragment = process_report_html(result.data)
        session[REPORT_ID_KEY] = store.put(html_fragment, raw=result.data, title=f"{shop.shop_name} - 数据周报")
        return redirect(url_for("report_page"))

    @app.post("/data/reset")
    def reset_data():
        # 清空所有表单缓存（包括旧版本遗留的键），店铺信息保留
        cache = _cache()
        shop_values = cache.get(fc.SHOP_INFO)
        cache.clear()
        if shop_values is not None:
            cache.set(fc.SHOP_INFO, shop_values)
        return redirect(url_for("data_page"))

    def _current_report() -> Optional[Dict[str, Any]]:
        return store.get(session.get(REPORT_ID_KEY))

    @app.get("/report")
    def report_page():
        item = _current_report()
        if item is None:
            return redirect(url_for("data_page"))
        view = "code" if request.args.get("view") == "code" else "preview"
        return render_template("report.html", current_step="report", report=item, view=view)

    @app.get("/report/download")
    def download_report():
        item = _current_report()
        if item is None:
            return redirect(url_for("data_page"))
        doc = build_download_document(item["html"], title=item.get("title") or "数据周报")
        return send_file(
            io.BytesIO(doc.encode("utf-8")),
            mimetype="text/html",
            as_attachment=True,
            download_name=download_filename(),
        )

    @app.get("/report/print")
    def print_report():
        item = _current_report()
        if item is None:
            return redirect(url_for("data_page"))
        doc = build_print_document(item["html"], title=item.get("title") or "数据周报")
        return app.response_class(doc, mimetype="text/html")

    @app.post("/restart")
    def restart():
        session.pop(REPORT_ID_KEY, None)
        _cache().remove(fc.SHOP_INFO)
        return redirect(url_for("shop_info_page"))

    @app.post("/api/generate-report")
    def api_generate_report():
        try:
            body = request.get_json(silent=True) or {}
            report_data = body.get("reportData") if isinstance(body, dict) else None
            if not report_data:
                return jsonify({"success": False, "error": "缺少必要参数"}), 400

            report, errors = parse_model(ReportData, report_data)
            if errors:
                return jsonify({"success": False, "error": "数据校验失败", "errors": errors}), 400

            result = report_client.generate_report(report)
            return jsonify(result.to_dict())
        except Exception:
            logger.exception("generate-report 接口异常")
            return jsonify({"success": False, "error": "服务器内部错误"}), 500

    return app
