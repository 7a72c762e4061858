# -*- coding: utf-8 -*-
from __future__ import annotations

import logging
from typing import Any, Dict, List
from urllib.parse import quote

import pytest
from werkzeug.datastructures import MultiDict

from src.analysis.api_client import APIResponse
from src.core.config import Settings
from src.web.app import ReportStore, create_app, parse_data_form

SHOP_FORM = {
    "shopName": "老王面馆",
    "category": "中式快餐",
    "address": "上海市徐汇区漕溪北路 100 号",
    "businessHours": "06:30 - 15:30",
}


def data_form(**overrides: Any) -> Dict[str, Any]:
    form: Dict[str, Any] = {
        "thisWeek.exposureCount": "1000",
        "thisWeek.visitCount": "100",
        "thisWeek.visitConversionRate": "10",
        "thisWeek.orderConversionRate": "20",
        "thisWeek.orderCount": "20",
        "thisWeek.repurchaseRate": "15",
        "growth.exposureCount": "200",
        "growth.visitCount": "20",
        "growth.visitConversionRate": "0",
        "growth.orderConversionRate": "-5",
        "growth.orderCount": "0",
        "lastWeek.repurchaseRate": "12",
        "thisWeekAdjustments": ["精准营销发券", "每日群发简报"],
    }
    form.update(overrides)
    return form


class FakeClient:
    def __init__(self, result: APIResponse = None, exc: Exception = None):
        self.result = result or APIResponse(
            success=True, data="```html\n<h1>周报</h1><script>alert(1)</script>\n```"
        )
        self.exc = exc
        self.reports: List[Any] = []

    def generate_report(self, report, cancel_event=None):
        self.reports.append(report)
        if self.exc is not None:
            raise self.exc
        return self.result


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def app(fake_client):
    app = create_app(Settings(api_key="k", secret_key="test"), client=fake_client)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def _fill_shop(client):
    resp = client.post("/shop-info", data=SHOP_FORM)
    assert resp.status_code == 302
    return resp


class TestReportStore:
    def test_evicts_oldest(self):
        store = ReportStore(max_items=2)
        a = store.put("<p>a</p>")
        b = store.put("<p>b</p>")
        c = store.put("<p>c</p>")
        assert store.get(a) is None
        assert store.get(b)["html"] == "<p>b</p>"
        assert store.get(c)["html"] == "<p>c</p>"
        assert len(store) == 2

    def test_missing_id(self):
        assert ReportStore().get(None) is None
        assert ReportStore().get("nope") is None


class TestCreateApp:
    def test_default_secret_key_is_reported(self, caplog):
        with caplog.at_level(logging.WARNING, logger="src.web.app"):
            create_app(Settings(api_key="k"), client=FakeClient())
        assert any("FLASK_SECRET_KEY" in r.getMessage() for r in caplog.records)

    def test_configured_secret_key_is_quiet(self, caplog):
        with caplog.at_level(logging.WARNING, logger="src.web.app"):
            create_app(Settings(api_key="k", secret_key="s3cret"), client=FakeClient())
        assert not any("FLASK_SECRET_KEY" in r.getMessage() for r in caplog.records)


class TestParseDataForm:
    def test_last_week_derived_from_growth(self):
        state = parse_data_form(MultiDict(data_form()))
        assert state["operation"]["lastWeek"] == {
            "exposureCount": 800,
            "visitCount": 80,
            "visitConversionRate": 10.0,
            "orderConversionRate": 25.0,
            "orderCount": 20,
            "repurchaseRate": 12.0,
        }
        assert state["growth"]["orderConversionRate"] == -5.0
        assert state["adjustment"]["thisWeekAdjustments"] == ["精准营销发券", "每日群发简报"]
        assert state["include_promotion"] is False

    def test_counts_floored_and_clamped(self):
        state = parse_data_form(MultiDict(data_form(**{"thisWeek.exposureCount": "99.7", "thisWeek.visitCount": "-3"})))
        assert state["operation"]["thisWeek"]["exposureCount"] == 99
        assert state["operation"]["thisWeek"]["visitCount"] == 0

    @pytest.mark.parametrize("raw", ["1e999", "NAN", "Infinity", "-inf"])
    def test_non_finite_numbers_become_zero(self, raw):
        form = data_form(**{"thisWeek.exposureCount": raw, "thisWeek.visitConversionRate": raw, "growth.visitCount": raw})
        state = parse_data_form(MultiDict(form))
        assert state["operation"]["thisWeek"]["exposureCount"] == 0
        assert state["operation"]["thisWeek"]["visitConversionRate"] == 0.0
        assert state["growth"]["visitCount"] == 0.0

    def test_promotion_toggle(self):
        state = parse_data_form(MultiDict(data_form(includePromotion="on", **{"promotion.thisWeek.cost": "200"})))
        assert state["include_promotion"] is True
        assert state["promotion"]["thisWeek"]["cost"] == 200.0


class TestShopInfo:
    def test_security_headers(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-XSS-Protection"] == "1; mode=block"
        assert resp.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"

    def test_invalid_shop_info_rerenders_with_errors(self, client):
        resp = client.post("/shop-info", data=dict(SHOP_FORM, shopName="", businessHours="6:30-15:30"))
        assert resp.status_code == 200
        body = resp.get_data(as_text=True)
        assert "店铺名称不能为空" in body
        assert "营业时间格式错误" in body

    def test_valid_shop_info_redirects_and_is_cached(self, client):
        resp = _fill_shop(client)
        assert resp.headers["Location"].endswith("/data")
        body = client.get("/").get_data(as_text=True)
        assert 'value="老王面馆"' in body

    def test_data_page_requires_shop_info(self, client):
        resp = client.get("/data")
        assert resp.status_code == 302
        assert resp.headers["Location"].endswith("/")


class TestDataFlow:
    def test_generate_and_view_report(self, client, fake_client):
        _fill_shop(client)
        resp = client.post("/data", data=data_form())
        assert resp.status_code == 302
        assert resp.headers["Location"].endswith("/report")

        report = fake_client.reports[0]
        assert report.shop_info.shop_name == "老王面馆"
        assert report.operation_data.last_week.exposure_count == 800
        assert report.promotion_data is None
        assert [o.value for o in report.adjustment_data.this_week_adjustments] == ["精准营销发券", "每日群发简报"]

        body = client.get("/report").get_data(as_text=True)
        assert "<h1>周报</h1>" in body
        assert "alert(1)" not in body
        assert "此报告内容由AI生成" in body

        code = client.get("/report?view=code").get_data(as_text=True)
        assert "&lt;h1&gt;周报&lt;/h1&gt;" in code

    def test_form_values_survive_reload(self, client):
        _fill_shop(client)
        client.post("/data", data=data_form(**{"thisWeek.repurchaseRate": "150"}))
        body = client.get("/data").get_data(as_text=True)
        assert 'value="1000"' in body
        assert 'value="精准营销发券" checked' in body

    @pytest.mark.parametrize("raw", ["1e999", "NAN", "Infinity"])
    def test_non_finite_count_is_not_a_server_error(self, app, client, fake_client, raw):
        app.config["TESTING"] = False
        _fill_shop(client)
        resp = client.post("/data", data=data_form(**{"thisWeek.exposureCount": raw}))
        assert resp.status_code == 200
        assert "本周入店人数不应超过曝光人数" in resp.get_data(as_text=True)
        assert fake_client.reports == []

    def test_field_errors_block_generation(self, client, fake_client):
        _fill_shop(client)
        resp = client.post("/data", data=data_form(**{"thisWeek.repurchaseRate": "150"}))
        assert resp.status_code == 200
        assert "不能超过100%" in resp.get_data(as_text=True)
        assert fake_client.reports == []

    def test_warnings_need_confirmation(self, client, fake_client):
        _fill_shop(client)
        form = data_form(**{"thisWeek.visitCount": "2000"})
        resp = client.post("/data", data=form)
        assert resp.status_code == 200
        body = resp.get_data(as_text=True)
        assert "检测到以下数据异常，是否继续生成报告？" in body
        assert "本周入店人数不应超过曝光人数" in body
        assert 'name="confirm" value="1"' in body
        assert fake_client.reports == []

        resp = client.post("/data", data=dict(form, confirm="1"))
        assert resp.status_code == 302
        assert len(fake_client.reports) == 1

    def test_generation_failure_shows_error(self, app, client, fake_client):
        fake_client.result = APIResponse(success=False, error="请求超时，请检查网络连接或稍后重试")
        _fill_shop(client)
        resp = client.post("/data", data=data_form())
        assert resp.status_code == 200
        assert "请求超时，请检查网络连接或稍后重试" in resp.get_data(as_text=True)
        assert len(app.extensions["report_store"]) == 0

    def test_reset_clears_form_but_keeps_shop_info(self, client):
        _fill_shop(client)
        client.post("/data", data=data_form(**{"thisWeek.repurchaseRate": "150"}))
        with client.session_transaction() as sess:
            sess["reportForm_legacyDraft"] = "{}"
            sess["report_id"] = "abc"
        resp = client.post("/data/reset")
        assert resp.status_code == 302
        body = client.get("/data").get_data(as_text=True)
        assert 'value="1000"' not in body
        with client.session_transaction() as sess:
            assert "reportForm_shopInfo" in sess
            assert "reportForm_operationData" not in sess
            assert "reportForm_legacyDraft" not in sess
            assert sess["report_id"] == "abc"


class TestReportActions:
    def _generate(self, client):
        _fill_shop(client)
        client.post("/data", data=data_form())

    def test_report_pages_redirect_without_report(self, client):
        for path in ("/report", "/report/download", "/report/print"):
            resp = client.get(path)
            assert resp.status_code == 302

    def test_download(self, client):
        self._generate(client)
        resp = client.get("/report/download")
        assert resp.status_code == 200
        assert resp.mimetype == "text/html"
        disposition = resp.headers["Content-Disposition"]
        assert disposition.startswith("attachment")
        assert quote("数据周报_") in disposition
        body = resp.get_data(as_text=True)
        assert body.startswith("<!DOCTYPE html>")
        assert "<title>老王面馆 - 数据周报</title>" in body
        assert "<h1>周报</h1>" in body

    def test_print(self, client):
        self._generate(client)
        resp = client.get("/report/print")
        assert resp.status_code == 200
        assert "window.print()" in resp.get_data(as_text=True)

    def test_restart(self, client):
        self._generate(client)
        resp = client.post("/restart")
        assert resp.status_code == 302
        assert client.get("/report").status_code == 302
        assert client.get("/data").headers["Location"].endswith("/")


class TestGenerateReportAPI:
    def test_missing_report_data(self, client):
        resp = client.post("/api/generate-report", json={})
        assert resp.status_code == 400
        assert resp.get_json() == {"success": False, "error": "缺少必要参数"}

    def test_invalid_report_data(self, client, report_dict):
        report_dict["operationData"]["thisWeek"]["exposureCount"] = -1
        resp = client.post("/api/generate-report", json={"reportData": report_dict})
        assert resp.status_code == 400
        payload = resp.get_json()
        assert payload["error"] == "数据校验失败"
        assert payload["errors"]["operationData.thisWeek.exposureCount"] == "不能为负数"

    def test_count_too_large_for_float(self, client, report_dict, fake_client):
        report_dict["operationData"]["thisWeek"]["exposureCount"] = 10**400
        resp = client.post("/api/generate-report", json={"reportData": report_dict})
        assert resp.status_code == 400
        assert resp.get_json()["errors"] == {"operationData.thisWeek.exposureCount": "必须为数字"}
        assert fake_client.reports == []

    def test_success(self, client, report_dict, fake_client):
        fake_client.result = APIResponse(success=True, data="<p>ok</p>")
        resp = client.post("/api/generate-report", json={"reportData": report_dict})
        assert resp.status_code == 200
        assert resp.get_json() == {"success": True, "data": "<p>ok</p>"}
        assert fake_client.reports[0].shop_info.shop_name == "老王面馆"

    def test_failure_is_passed_through(self, client, report_dict, fake_client):
        fake_client.result = APIResponse(success=False, error="未配置 API_KEY")
        resp = client.post("/api/generate-report", json={"reportData": report_dict})
        assert resp.status_code == 200
        assert resp.get_json() == {"success": False, "error": "未配置 API_KEY"}

    def test_unexpected_error(self, client, report_dict, fake_client):
        fake_client.exc = RuntimeError("boom")
        resp = client.post("/api/generate-report", json={"reportData": report_dict})
        assert resp.status_code == 500
        assert resp.get_json() == {"success": False, "error": "服务器内部错误"}
