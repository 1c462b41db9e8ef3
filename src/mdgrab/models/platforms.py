"""Built-in per-platform extraction tables.

Each platform is a declarative record: ordered field-extraction rules,
network allow-list and referer table, and the optional fallback sources
(embedded JSON state, content API). Adding a platform is adding data here.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Platform(str, Enum):
    """Supported publishing platforms."""

    ZHIHU = "zhihu"
    CSDN = "csdn"
    WECHAT = "wechat"
    JUEJIN = "juejin"


class FieldRule(BaseModel):
    """
    One way of reading a metadata field from a document.

    The first element matching ``selector`` that yields a non-empty value
    wins. The value is the element's ``attribute`` if set, else its text;
    if ``pattern`` is set the value is its first capture group.
    """

    selector: str
    attribute: Optional[str] = None
    pattern: Optional[str] = None

    model_config = {"extra": "forbid", "frozen": True}


class ListRules(BaseModel):
    """Rules for discovering content links on a feed/listing page."""

    containers: list[str] = Field(default_factory=list, description="Container selectors, first match wins")
    item: str = Field(..., description="Selector for one content item inside the container")
    link: list[str] = Field(default_factory=list, description="Link selectors inside an item")
    url_pattern: str = Field(..., description="Regex a content URL must match")
    title: list[FieldRule] = Field(default_factory=list)
    author: list[FieldRule] = Field(default_factory=list)
    date: list[FieldRule] = Field(default_factory=list)
    timestamp_attribute: Optional[str] = Field(
        None,
        description="Item attribute holding tracking JSON with a publish timestamp",
    )

    model_config = {"extra": "forbid"}


class PlatformProfile(BaseModel):
    """Declarative extraction configuration for one platform."""

    name: Platform
    allowed_domains: list[str] = Field(..., description="Hosts (and their subdomains) requests may go to")
    default_referer: str
    referers: dict[str, str] = Field(default_factory=dict, description="Host to Referer overrides")

    title: list[FieldRule] = Field(default_factory=list)
    content: list[str] = Field(default_factory=list, description="Content container selectors")
    author: list[FieldRule] = Field(default_factory=list)
    date: list[FieldRule] = Field(default_factory=list)
    canonical_url: list[FieldRule] = Field(default_factory=list)

    # Truncation markers
    read_more_selectors: list[str] = Field(default_factory=list)
    read_more_pattern: Optional[str] = None
    # Controls stripped from every fragment before conversion
    removal_selectors: list[str] = Field(default_factory=list)

    # Embedded application state
    embedded_state_selector: Optional[str] = None
    embedded_buckets: list[str] = Field(default_factory=list, description="Preferred entity buckets, in order")
    entity_url_templates: dict[str, str] = Field(default_factory=dict)

    # Content API
    api_endpoint: Optional[str] = Field(None, description="Template with an {id} placeholder")
    api_canonical_url: Optional[str] = None

    list_rules: Optional[ListRules] = None

    model_config = {"extra": "forbid"}

    @property
    def has_embedded_state(self) -> bool:
        return self.embedded_state_selector is not None

    @property
    def has_api(self) -> bool:
        return self.api_endpoint is not None


_DATE_TEXT = r"(\d{4}-\d{2}-\d{2})"

ZHIHU = PlatformProfile(
    name=Platform.ZHIHU,
    allowed_domains=["zhihu.com", "zhimg.com"],
    default_referer="https://www.zhihu.com/",
    referers={"zhuanlan.zhihu.com": "https://zhuanlan.zhihu.com/"},
    title=[
        FieldRule(selector="h1.Post-Title"),
        FieldRule(selector="h1.QuestionHeader-title"),
        FieldRule(selector="title"),
    ],
    content=["div.Post-RichTextContainer", "div.RichContent-inner"],
    author=[
        FieldRule(selector='div.AuthorInfo meta[itemprop="name"]', attribute="content"),
        FieldRule(selector=".AuthorInfo-name"),
        FieldRule(selector='meta[itemprop="author"]', attribute="content"),
    ],
    date=[
        FieldRule(selector='meta[itemprop="datePublished"]', attribute="content"),
        FieldRule(selector='meta[itemprop="dateModified"]', attribute="content"),
        FieldRule(selector="div.ContentItem-time", pattern=_DATE_TEXT),
    ],
    canonical_url=[FieldRule(selector='meta[itemprop="url"]', attribute="content")],
    read_more_selectors=["button.ContentItem-more"],
    read_more_pattern="阅读全文",
    removal_selectors=[".ContentItem-more", "button.ContentItem-more"],
    embedded_state_selector="script#js-initialData",
    embedded_buckets=["articles", "answers", "posts", "zvideos"],
    entity_url_templates={
        "articles": "https://zhuanlan.zhihu.com/p/{id}",
        "answers": "https://www.zhihu.com/question/{question_id}/answer/{id}",
    },
    api_endpoint="https://www.zhihu.com/api/v4/articles/{id}?include=content,created,updated,title,url,author.name",
    api_canonical_url="https://zhuanlan.zhihu.com/p/{id}",
    list_rules=ListRules(
        containers=["#Profile-posts"],
        item=".ContentItem.ArticleItem, .ContentItem",
        link=[".ContentItem-title a", 'a[href*="/p/"]'],
        url_pattern=r"/p/\d+",
        title=[FieldRule(selector=".ContentItem-title")],
        author=[
            FieldRule(selector='meta[itemprop="name"]', attribute="content"),
            FieldRule(selector=".AuthorInfo-name"),
        ],
        date=[
            FieldRule(selector='meta[itemprop="datePublished"]', attribute="content"),
            FieldRule(selector='meta[itemprop="dateModified"]', attribute="content"),
        ],
        timestamp_attribute="data-za-extra-module",
    ),
)

CSDN = PlatformProfile(
    name=Platform.CSDN,
    allowed_domains=["csdn.net", "csdnimg.cn"],
    default_referer="https://blog.csdn.net/",
    title=[FieldRule(selector="h1.title-article"), FieldRule(selector="title")],
    content=["div#content_views"],
    author=[FieldRule(selector="div.bar-content a")],
    date=[FieldRule(selector="div.bar-content span.time", pattern=_DATE_TEXT)],
    canonical_url=[FieldRule(selector='link[rel="canonical"]', attribute="href")],
)

WECHAT = PlatformProfile(
    name=Platform.WECHAT,
    allowed_domains=["weixin.qq.com", "qpic.cn", "qlogo.cn"],
    default_referer="https://mp.weixin.qq.com/",
    title=[FieldRule(selector="h1#activity-name"), FieldRule(selector='meta[property="og:title"]', attribute="content")],
    content=["div#js_content"],
    author=[FieldRule(selector="div#meta_content a"), FieldRule(selector="#js_name")],
    date=[FieldRule(selector="script", pattern=r'var ct = "([^"]+)"')],
    canonical_url=[FieldRule(selector='meta[property="og:url"]', attribute="content")],
)

JUEJIN = PlatformProfile(
    name=Platform.JUEJIN,
    allowed_domains=["juejin.cn", "byteimg.com"],
    default_referer="https://juejin.cn/",
    title=[FieldRule(selector="h1.article-title"), FieldRule(selector="title")],
    content=["div.main", "div.article-content"],
    author=[FieldRule(selector="span.name")],
    date=[FieldRule(selector="time.time", attribute="datetime"), FieldRule(selector="time.time")],
    canonical_url=[FieldRule(selector='link[rel="canonical"]', attribute="href")],
)

PLATFORMS: dict[Platform, PlatformProfile] = {
    Platform.ZHIHU: ZHIHU,
    Platform.CSDN: CSDN,
    Platform.WECHAT: WECHAT,
    Platform.JUEJIN: JUEJIN,
}


def get_platform(name: Platform) -> PlatformProfile:
    """Look up the built-in profile for a platform."""
    return PLATFORMS[name]
