"""
Kestrel Debug Pages - self-contained HTML error pages.

- ``render_debug_exception_page``: traceback with source context and
  request details, shown when ``APP_DEBUG`` is on
- ``render_http_error_page``: plain status page used in production and
  for 4xx errors
"""

from __future__ import annotations

import html
import linecache
import os
import sys
import traceback
from typing import Any, Dict, List, Tuple


_BASE_CSS = r"""
:root { --bg:#0f172a; --card:#1e293b; --text:#e2e8f0; --muted:#94a3b8;
        --accent:#f59e0b; --error:#ef4444; --code:#020617; }
* { box-sizing:border-box; }
body { margin:0; background:var(--bg); color:var(--text);
       font-family:-apple-system,BlinkMacSystemFont,"Segoe UI",Roboto,sans-serif; }
.kv-container { max-width:1100px; margin:0 auto; padding:32px 24px; }
.kv-banner { background:var(--card); border-left:4px solid var(--error);
             border-radius:8px; padding:20px 24px; margin-bottom:24px; }
.kv-type { font-size:20px; font-weight:700; color:var(--error); }
.kv-message { margin-top:8px; font-size:15px; white-space:pre-wrap; }
.kv-badge { display:inline-block; font-size:12px; padding:2px 8px; margin:10px 8px 0 0;
            border-radius:999px; background:var(--code); color:var(--accent); }
.kv-frame { background:var(--card); border-radius:8px; margin-bottom:12px; overflow:hidden; }
.kv-frame-head { padding:10px 16px; font-size:13px; }
.kv-frame-head .fn { color:var(--accent); font-weight:600; }
.kv-frame-head .loc { color:var(--muted); }
.kv-frame.vendor { opacity:.6; }
.kv-code { background:var(--code); font-family:ui-monospace,Menlo,monospace; font-size:12px; }
.kv-line { display:flex; white-space:pre; }
.kv-line .no { width:56px; text-align:right; padding-right:12px; color:var(--muted); user-select:none; }
.kv-line.error { background:rgba(239,68,68,.18); }
h2 { font-size:14px; text-transform:uppercase; letter-spacing:.08em; color:var(--muted); }
table { width:100%; border-collapse:collapse; background:var(--card); border-radius:8px; font-size:13px; }
td { padding:6px 12px; border-bottom:1px solid var(--bg); vertical-align:top; word-break:break-all; }
td.key { width:220px; color:var(--accent); }
pre.raw { background:var(--code); padding:16px; border-radius:8px; font-size:12px; white-space:pre-wrap; }
.kv-status { text-align:center; padding-top:18vh; }
.kv-status .code { font-size:96px; font-weight:800; color:var(--accent); line-height:1; }
.kv-status .title { font-size:24px; margin-top:12px; }
.kv-status .detail { color:var(--muted); margin-top:12px; }
"""


def _esc(text: Any) -> str:
    return html.escape(str(text), quote=True)


def _read_source_lines(filename: str, lineno: int, context: int = 5) -> List[Tuple[int, str, bool]]:
    """(line number, source, is error line) around ``lineno``."""
    lines: List[Tuple[int, str, bool]] = []
    for i in range(max(1, lineno - context), lineno + context + 1):
        line = linecache.getline(filename, i)
        if line:
            lines.append((i, line.rstrip("\n"), i == lineno))
    return lines


def _extract_frames(exc: BaseException) -> List[Dict[str, Any]]:
    frames: List[Dict[str, Any]] = []
    cwd = os.getcwd()
    tb = exc.__traceback__
    while tb is not None:
        filename = tb.tb_frame.f_code.co_filename
        frames.append({
            "filename": os.path.relpath(filename, cwd) if filename.startswith(cwd) else filename,
            "lineno": tb.tb_lineno,
            "func_name": tb.tb_frame.f_code.co_name,
            "source_lines": _read_source_lines(filename, tb.tb_lineno),
            "is_app_code": "site-packages" not in filename,
        })
        tb = tb.tb_next
    return frames


def _extract_request_info(request: Any) -> Dict[str, Any]:
    if request is None:
        return {}
    return {
        "method": request.method,
        "url": request.url,
        "headers": dict(request.headers),
        "query": request.query(),
        "parameters": request.parameters,
    }


def _build_frames_html(frames: List[Dict[str, Any]]) -> str:
    parts = []
    # Innermost frame first
    for frame in reversed(frames):
        code = "".join(
            f'<div class="kv-line{" error" if is_error else ""}">'
            f'<span class="no">{lineno}</span><span>{_esc(source)}</span></div>'
            for lineno, source, is_error in frame["source_lines"]
        )
        parts.append(
            f'<div class="kv-frame{"" if frame["is_app_code"] else " vendor"}">'
            f'<div class="kv-frame-head"><span class="fn">{_esc(frame["func_name"])}</span> '
            f'<span class="loc">{_esc(frame["filename"])}:{frame["lineno"]}</span></div>'
            f'<div class="kv-code">{code}</div></div>'
        )
    return "\n".join(parts)


def _build_table(values: Dict[str, Any]) -> str:
    if not values:
        return '<p class="loc">None</p>'
    rows = "".join(
        f'<tr><td class="key">{_esc(key)}</td><td>{_esc(value)}</td></tr>'
        for key, value in values.items()
    )
    return f"<table>{rows}</table>"


def render_debug_exception_page(
    exc: BaseException,
    request: Any = None,
    *,
    version: str = "",
) -> str:
    """
    Debug page for an unhandled exception.

    Shows the exception type and message, fault code/domain when the
    exception is a Fault, every stack frame with source context, the
    request (method, URL, headers, query, route parameters) and the
    raw traceback.
    """
    exc_type = type(exc).__qualname__
    exc_message = str(exc)
    raw_tb = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    request_info = _extract_request_info(request)

    badges = ""
    if getattr(exc, "code", None):
        badges += f'<span class="kv-badge">Code: {_esc(exc.code)}</span>'
    if getattr(exc, "domain", None) is not None:
        badges += f'<span class="kv-badge">Domain: {_esc(exc.domain)}</span>'

    request_html = ""
    if request_info:
        request_html = (
            f"<h2>Request</h2>"
            f"<p>{_esc(request_info['method'])} {_esc(request_info['url'])}</p>"
            f"<h2>Headers</h2>{_build_table(request_info['headers'])}"
            f"<h2>Query</h2>{_build_table(request_info['query'])}"
            f"<h2>Route parameters</h2>{_build_table(request_info['parameters'])}"
        )

    py_version = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <title>{_esc(exc_type)}: {_esc(exc_message[:80])}</title>
  <style>{_BASE_CSS}</style>
</head>
<body>
  <div class="kv-container">
    <div class="kv-banner">
      <div class="kv-type">{_esc(exc_type)}</div>
      <div class="kv-message">{_esc(exc_message)}</div>
      {badges}
      <div class="loc" style="margin-top:10px;font-size:12px;">Kestrel {_esc(version)} &middot; Python {py_version}</div>
    </div>
    <h2>Stack trace</h2>
    {_build_frames_html(_extract_frames(exc))}
    {request_html}
    <h2>Raw traceback</h2>
    <pre class="raw">{_esc(raw_tb)}</pre>
  </div>
</body>
</html>"""


def debug_exception_payload(exc: BaseException) -> Dict[str, Any]:
    """JSON body describing an exception, for API clients in debug mode."""
    payload: Dict[str, Any] = {
        "success": False,
        "message": str(exc),
        "exception": type(exc).__qualname__,
        "trace": traceback.format_exception(type(exc), exc, exc.__traceback__),
    }
    if getattr(exc, "code", None):
        payload["code"] = exc.code
    return payload


def render_http_error_page(status: int, title: str, detail: str = "") -> str:
    """Minimal status page."""
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <title>{status} - {_esc(title)}</title>
  <style>{_BASE_CSS}</style>
</head>
<body>
  <div class="kv-status">
    <div class="code">{status}</div>
    <div class="title">{_esc(title)}</div>
    {f'<div class="detail">{_esc(detail)}</div>' if detail else ''}
  </div>
</body>
</html>"""
