import json
from pathlib import Path
from typing import Callable, Dict, Optional, Union

import httpx

from filterflow.models.config import ConfigSnapshot

ENDPOINT = "http://llm.test/v1/chat/completions"
FILTER_SYSTEM = "You are a strict news classifier."
SUMMARY_SYSTEM = "You are a concise summarizer."

GENERAL = {
    "endpoint": ENDPOINT,
    "interval_minutes": 10,
    "model": "test-model",
    "user_agent": "FilterFlowTest/1.0",
    "filter_max_tokens": 2,
    "filter_temperature": 0.0,
    "summary_max_tokens": 200,
    "summary_temperature": 0.3,
    "filter_system_prompt": FILTER_SYSTEM,
    "summary_system_prompt": SUMMARY_SYSTEM,
    "summary_user_prompt_template": "Summarize. Title: {} Description: {}",
}

FILTERS = {
    "relevance_indicators": ["flood", "storm"],
    "irrelevance_indicators": ["football"],
}


def make_snapshot(feeds=(), sitemaps=(), proxy=None, **general) -> ConfigSnapshot:
    return ConfigSnapshot.model_validate({
        "general": {**GENERAL, **general},
        "filter": FILTERS,
        "feeds": [{"name": name, "url": url} for name, url in feeds],
        "sitemaps": [{"name": name, "url": url} for name, url in sitemaps],
        "proxy": proxy or {"enabled": False, "address": ""},
    })


def config_toml(*, interval: int = 10, feeds=(), sitemaps=(), proxy_enabled: bool = False,
                proxy_address: str = "http://proxy.test:8080") -> str:
    lines = ["[general]"]
    for key, value in {**GENERAL, "interval_minutes": interval}.items():
        lines.append(f"{key} = {json.dumps(value)}")
    lines += [
        "",
        "[filter]",
        f"relevance_indicators = {json.dumps(FILTERS['relevance_indicators'])}",
        f"irrelevance_indicators = {json.dumps(FILTERS['irrelevance_indicators'])}",
    ]
    for section, entries in (("feeds", feeds), ("sitemaps", sitemaps)):
        for name, url in entries:
            lines += ["", f"[[{section}]]", f"name = {json.dumps(name)}", f"url = {json.dumps(url)}"]
    lines += [
        "",
        "[proxy]",
        f"enabled = {'true' if proxy_enabled else 'false'}",
        f"address = {json.dumps(proxy_address)}",
    ]
    return "\n".join(lines) + "\n"


def write_config(path: Path, **kwargs) -> Path:
    path.write_text(config_toml(**kwargs), encoding="utf-8")
    return path


def chat_response(content: Optional[str]) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def rss(*items: str) -> bytes:
    body = "".join(items)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<rss version="2.0"><channel><title>Test</title><link>https://news.test/</link>'
        f"<description>Test feed</description>{body}</channel></rss>"
    ).encode("utf-8")


def rss_item(title: str, link: str, description: str = "", pub_date: Optional[str] = None) -> str:
    parts = [f"<title>{title}</title>"]
    if link:
        parts.append(f"<link>{link}</link>")
    if description:
        parts.append(f"<description><![CDATA[{description}]]></description>")
    if pub_date:
        parts.append(f"<pubDate>{pub_date}</pubDate>")
    return "<item>" + "".join(parts) + "</item>"


def urlset(*locs: str) -> bytes:
    urls = "".join(f"<url><loc>{loc}</loc><lastmod>2024-05-01</lastmod></url>" for loc in locs)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f'<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{urls}</urlset>'
    ).encode("utf-8")


def sitemap_index(*locs: str) -> bytes:
    maps = "".join(f"<sitemap><loc>{loc}</loc></sitemap>" for loc in locs)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f'<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{maps}</sitemapindex>'
    ).encode("utf-8")


Page = Union[bytes, int, Exception]


class FakeWeb:
    """
    In-memory stand-in for the fetched sources and the inference endpoint.
    `verdict` is either a fixed answer or a callable receiving the filter user prompt.
    Pages and the `*_error` attributes may hold an exception, raised as a transport failure.
    """

    def __init__(self, pages: Optional[Dict[str, Page]] = None,
                 verdict: Union[str, Callable[[str], str]] = "1", summary: str = "A short summary."):
        self.pages: Dict[str, Page] = dict(pages or {})
        self.verdict = verdict
        self.summary = summary
        self.filter_status = 200
        self.summary_status = 200
        self.filter_error: Optional[Exception] = None
        self.summary_error: Optional[Exception] = None
        self.filter_calls = []
        self.summary_calls = []
        self.fetched = []
        self.read_timeouts = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.read_timeouts.append((url, request.extensions["timeout"]["read"]))
        if url == ENDPOINT:
            body = json.loads(request.content)
            system = body["messages"][0]["content"]
            user = body["messages"][1]["content"]
            if system == FILTER_SYSTEM:
                self.filter_calls.append(body)
                if self.filter_error is not None:
                    raise self.filter_error
                if self.filter_status != 200:
                    return httpx.Response(self.filter_status, text="filter unavailable")
                answer = self.verdict(user) if callable(self.verdict) else self.verdict
                return httpx.Response(200, json=chat_response(answer))
            self.summary_calls.append(body)
            if self.summary_error is not None:
                raise self.summary_error
            if self.summary_status != 200:
                return httpx.Response(self.summary_status, text="summary unavailable")
            return httpx.Response(200, json=chat_response(self.summary))

        self.fetched.append(url)
        page = self.pages.get(url)
        if page is None:
            return httpx.Response(404, text="not found")
        if isinstance(page, Exception):
            raise page
        if isinstance(page, int):
            return httpx.Response(page, text="error page")
        return httpx.Response(200, content=page)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport())
