# -*- coding: utf-8 -*-
from __future__ import annotations

import json

import pytest

from src import cli
from src.analysis.api_client import APIResponse


@pytest.fixture
def input_file(tmp_path, report_dict):
    path = tmp_path / "report.json"
    path.write_text(json.dumps(report_dict, ensure_ascii=False), encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def _no_api_env(monkeypatch):
    for name in ("API_KEY", "API_BASE_URL", "API_MODEL", "API_PROVIDER"):
        monkeypatch.delenv(name, raising=False)


class FakeReportClient:
    result = APIResponse(success=True, data="<p>ok</p>")
    settings = None

    def __init__(self, settings):
        FakeReportClient.settings = settings

    def generate_report(self, report, cancel_event=None):
        return FakeReportClient.result


class TestCLI:
    def test_missing_input(self, capsys):
        assert cli.main([]) == 1
        assert "[ERR]" in capsys.readouterr().out

    def test_unreadable_input(self, tmp_path, capsys):
        assert cli.main(["--input", str(tmp_path / "nope.json")]) == 1
        assert "读取输入失败" in capsys.readouterr().out

    def test_field_errors(self, tmp_path, report_dict, capsys):
        report_dict["shopInfo"]["businessHours"] = "全天"
        path = tmp_path / "bad.json"
        path.write_text(json.dumps(report_dict, ensure_ascii=False), encoding="utf-8")
        assert cli.main(["--input", str(path)]) == 1
        assert "[ERR] shopInfo.businessHours:" in capsys.readouterr().out

    def test_count_too_large(self, tmp_path, report_dict, capsys):
        report_dict["operationData"]["thisWeek"]["exposureCount"] = 10**400
        path = tmp_path / "huge.json"
        path.write_text(json.dumps(report_dict, ensure_ascii=False), encoding="utf-8")
        assert cli.main(["--input", str(path)]) == 1
        assert "[ERR] operationData.thisWeek.exposureCount: 必须为数字" in capsys.readouterr().out

    def test_prompt_only(self, input_file, tmp_path, capsys):
        out_dir = tmp_path / "out"
        code = cli.main(["--input", str(input_file), "--out-dir", str(out_dir), "--no-timestamp", "--prompt-only"])
        assert code == 0
        assert (out_dir / "prompt.md").exists()
        assert (out_dir / "summary.md").exists()
        assert not (out_dir / "report.html").exists()
        assert f"[OK] outputs written to: {out_dir}" in capsys.readouterr().out

    def test_wrapped_input_and_timestamp_dir(self, tmp_path, report_dict):
        path = tmp_path / "wrapped.json"
        path.write_text(json.dumps({"reportData": report_dict}, ensure_ascii=False), encoding="utf-8")
        out_dir = tmp_path / "out"
        assert cli.main(["--input", str(path), "--out-dir", str(out_dir), "--prompt-only"]) == 0
        runs = list(out_dir.iterdir())
        assert len(runs) == 1
        assert (runs[0] / "prompt.md").exists()

    def test_strict_with_warnings(self, tmp_path, report_dict, capsys):
        report_dict["operationData"]["thisWeek"]["visitCount"] = 2000
        path = tmp_path / "warn.json"
        path.write_text(json.dumps(report_dict, ensure_ascii=False), encoding="utf-8")
        code = cli.main(["--input", str(path), "--out-dir", str(tmp_path / "out"), "--no-timestamp", "--strict"])
        assert code == 2
        out = capsys.readouterr().out
        assert "[WARN] 本周入店人数不应超过曝光人数" in out
        assert not (tmp_path / "out").exists()

    def test_generate_success(self, input_file, tmp_path, monkeypatch):
        monkeypatch.setattr(cli, "ReportClient", FakeReportClient)
        monkeypatch.setattr(FakeReportClient, "result", APIResponse(success=True, data="<p>ok</p>"))
        out_dir = tmp_path / "out"
        code = cli.main(["--input", str(input_file), "--out-dir", str(out_dir), "--no-timestamp", "--model", "m2", "--timeout", "12"])
        assert code == 0
        assert "<p>ok</p>" in (out_dir / "report.html").read_text(encoding="utf-8")
        assert FakeReportClient.settings.model == "m2"
        assert FakeReportClient.settings.timeout == 12.0

    def test_generate_failure(self, input_file, tmp_path, monkeypatch, capsys):
        monkeypatch.setattr(cli, "ReportClient", FakeReportClient)
        monkeypatch.setattr(FakeReportClient, "result", APIResponse(success=False, error="未配置 API_KEY"))
        out_dir = tmp_path / "out"
        code = cli.main(["--input", str(input_file), "--out-dir", str(out_dir), "--no-timestamp"])
        assert code == 1
        assert "[ERR] 报告生成失败: 未配置 API_KEY" in capsys.readouterr().out
        assert (out_dir / "report_failed.md").exists()
