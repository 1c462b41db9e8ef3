"""Shared fixtures: an in-memory HTTP client and page builders."""

import json
from typing import Optional, Union

import pytest
from mdgrab.http.protocols import HttpResponse


class FakeHttpClient:
    """HttpClient that serves registered responses and records every request."""

    def __init__(self) -> None:
        self.routes: dict[str, Union[HttpResponse, Exception]] = {}
        self.calls: list[tuple[str, dict]] = []

    async def __aenter__(self) -> "FakeHttpClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None

    def add(
        self,
        url: str,
        body: Union[str, bytes] = "",
        status: int = 200,
        content_type: str = "text/html; charset=utf-8",
    ) -> None:
        content = body.encode("utf-8") if isinstance(body, str) else body
        self.routes[url] = HttpResponse(
            status_code=status,
            content=content,
            content_type=content_type,
            headers={"Content-Type": content_type},
            url=url,
        )

    def add_json(self, url: str, data: object, status: int = 200) -> None:
        self.add(url, json.dumps(data, ensure_ascii=False), status=status, content_type="application/json")

    def fail(self, url: str, error: Exception) -> None:
        self.routes[url] = error

    def requested(self, url: str) -> int:
        return sum(1 for called, _ in self.calls if called == url)

    async def get(self, url: str, *, headers: Optional[dict[str, str]] = None) -> HttpResponse:
        self.calls.append((url, dict(headers or {})))
        route = self.routes.get(url)
        if route is None:
            return HttpResponse(status_code=404, content=b"", content_type="text/html", headers={}, url=url)
        if isinstance(route, Exception):
            raise route
        return route


def zhihu_article_html(
    title: str = "Real Title",
    author: str = "Alice",
    body: str = "<p>" + "正文内容 " * 80 + "</p>",
    published: str = "2023-05-06T08:00:00.000Z",
    initial_data: Optional[dict] = None,
    canonical: str = "https://zhuanlan.zhihu.com/p/111",
) -> str:
    """A Zhihu column article page."""
    script = ""
    if initial_data is not None:
        script = (
            '<script id="js-initialData" type="text/json">'
            + json.dumps(initial_data, ensure_ascii=False)
            + "</script>"
        )
    return f"""<html><head><title>{title} - 知乎</title>
<meta itemprop="url" content="{canonical}">
</head><body>
<h1 class="Post-Title">{title}</h1>
<div class="AuthorInfo"><meta itemprop="name" content="{author}"><span class="AuthorInfo-name">{author}</span></div>
<meta itemprop="datePublished" content="{published}">
<div class="Post-RichTextContainer">{body}</div>
{script}
</body></html>"""


@pytest.fixture
def fake_client() -> FakeHttpClient:
    """Empty in-memory HTTP client."""
    return FakeHttpClient()
