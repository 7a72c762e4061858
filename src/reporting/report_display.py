# -*- coding: utf-8 -*-
"""
报告展示处理：把模型返回的原始文本整理成可以安全嵌进页面的 HTML 片段。

处理顺序（process_report_html）：
1) 去掉 ```html 代码块标记
2) 完整 HTML 文档 -> 抽出 <style> + <body> 内容
3) 纯文本 -> 简单分段转 HTML
4) nh3 白名单净化（script 连内容一起丢弃，其余不在白名单的标签只去标签、保留文字）

下载/打印用的独立文档也在这里拼装。
"""

from __future__ import annotations

import datetime as dt
import html
import re
from typing import Optional

import nh3

SAFETY_NOTICE = "此报告内容由AI生成，已通过安全净化处理。请仔细核查数据准确性。"

ALLOWED_TAGS = {
    "h1", "h2", "h3", "h4", "h5", "h6",
    "p", "br", "div", "span",
    "table", "thead", "tbody", "tr", "th", "td",
    "ul", "ol", "li",
    "strong", "b", "em", "i", "u",
    "style",
}
ALLOWED_ATTRIBUTES = {"*": {"class", "style", "id"}}
# style 在白名单里，所以只有 script 需要连内容一起清掉
CLEAN_CONTENT_TAGS = {"script"}

_FENCE_HEAD_RE = re.compile(r"^```(?:html)?\s*", re.IGNORECASE)
_FENCE_TAIL_RE = re.compile(r"\s*```\s*$")
_HAS_TAG_RE = re.compile(r"<[^>]+>")
_STYLE_RE = re.compile(r"<style[^>]*>[\s\S]*?</style>", re.IGNORECASE)
_BODY_RE = re.compile(r"<body[^>]*>([\s\S]*?)</body>", re.IGNORECASE)
_CONTAINER_RE = re.compile(r"<div[^>]*class[^>]*report-container[^>]*>([\s\S]*?)(?=</html>|$)", re.IGNORECASE)
_HEADING_KEYWORDS = ("报告", "数据总览", "分析")

_TEXT_REPORT_CSS = """<style>
  .report-container {
    font-family: 'Arial', 'Microsoft YaHei', sans-serif;
    max-width: 1200px;
    margin: 0 auto;
    padding: 30px;
    background: #f8f9fa;
  }
  .trend-up { color: #27ae60; font-weight: bold; }
  .trend-down { color: #e74c3c; font-weight: bold; }
</style>"""


def strip_code_fences(text: str) -> str:
    s = str(text or "").strip()
    s = _FENCE_HEAD_RE.sub("", s, count=1)
    s = _FENCE_TAIL_RE.sub("", s, count=1)
    return s.strip()


def has_html_tags(text: str) -> bool:
    return bool(_HAS_TAG_RE.search(str(text or "")))


def is_full_document(text: str) -> bool:
    return "<!doctype html>" in str(text or "").lower()


def extract_fragment(text: str) -> str:
    """
    完整 HTML 文档 -> 片段：所有 <style> 块 + body 内容。

    没有 body 时找 report-container 容器；再找不到就直接去掉 doctype/html/head/body 标签。
    不是完整文档时原样返回。
    """
    s = str(text or "")
    if not (has_html_tags(s) and is_full_document(s)):
        return s

    styles = "\n".join(_STYLE_RE.findall(s))
    m = _BODY_RE.search(s)
    if m:
        body = m.group(1)
    else:
        m2 = _CONTAINER_RE.search(s)
        if m2:
            body = f'<div class="report-container">{m2.group(1)}</div>'
        else:
            body = re.sub(r"<!DOCTYPE[^>]*>", "", s, count=1, flags=re.IGNORECASE)
            body = re.sub(r"<html[^>]*>", "", body, count=1, flags=re.IGNORECASE)
            body = re.sub(r"</html>", "", body, count=1, flags=re.IGNORECASE)
            body = re.sub(r"<head[^>]*>[\s\S]*?</head>", "", body, count=1, flags=re.IGNORECASE)
            body = re.sub(r"<body[^>]*>", "", body, count=1, flags=re.IGNORECASE)
            body = re.sub(r"</body>", "", body, count=1, flags=re.IGNORECASE)
            body = body.strip()
    return f"{styles}\n{body}"


def text_to_html(text: str) -> str:
    """
    纯文本 -> HTML：按空行分段，含“报告/数据总览/分析”的段落当作小标题。
    """
    blocks = []
    for paragraph in str(text or "").split("\n\n"):
        p = paragraph.strip()
        if not p:
            continue
        escaped = html.escape(p, quote=False)
        if any(k in p for k in _HEADING_KEYWORDS):
            blocks.append(f'<h2 style="color: #2c3e50; margin: 25px 0 15px 0; font-size: 20px;">{escaped}</h2>')
        else:
            blocks.append(f'<p style="margin: 15px 0; line-height: 1.6;">{escaped}</p>')
    return f'{_TEXT_REPORT_CSS}\n<div class="report-container">\n{"".join(blocks)}\n</div>'


def sanitize_report_html(fragment: str) -> str:
    return nh3.clean(
        str(fragment or ""),
        tags=ALLOWED_TAGS,
        clean_content_tags=CLEAN_CONTENT_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        strip_comments=True,
    )


def process_report_html(raw: str) -> str:
    """模型原始输出 -> 已净化的 HTML 片段。"""
    content = strip_code_fences(raw)
    if has_html_tags(content):
        content = extract_fragment(content)
    else:
        content = text_to_html(content)
    return sanitize_report_html(content)


def download_filename(now: Optional[dt.datetime] = None) -> str:
    d = now or dt.datetime.now()
    return f"数据周报_{d.strftime('%Y%m%d')}.html"


def build_download_document(fragment: str, title: str = "数据周报") -> str:
    return (
        "<!DOCTYPE html>\n"
        '<html lang="zh-CN">\n'
        "<head>\n"
        '<meta charset="UTF-8">\n'
        '<meta name="viewport" content="width=device-width, initial-scale=1.0">\n'
        f"<title>{html.escape(title)}</title>\n"
        "</head>\n"
        "<body>\n"
        f"{fragment}\n"
        "</body>\n"
        "</html>\n"
    )


def build_print_document(fragment: str, title: str = "数据周报") -> str:
    """打印版：在独立窗口里打开，加载完成后自动弹出打印对话框。"""
    doc = build_download_document(fragment, title=title)
    print_script = (
        "<style>@media print { body { margin: 0; } }</style>\n"
        "<script>window.onload = function () { window.print(); };</script>\n"
    )
    return doc.replace("</head>\n", print_script + "</head>\n", 1)
