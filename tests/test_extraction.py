"""Tests for block-page detection, DOM, embedded-state and API extraction."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from bs4 import BeautifulSoup
from conftest import zhihu_article_html
from mdgrab.errors import FetchError, JsonParseError
from mdgrab.extraction import (
    ApiFallbackClient,
    DomExtractor,
    detect_block_page,
    extract_from_initial_data,
    find_entity_with_content,
    fragment_from_html,
)
from mdgrab.extraction.dom import select_value
from mdgrab.models.platforms import CSDN, WECHAT, ZHIHU, FieldRule
from mdgrab.models.records import BlockClassification


def _state_document(state) -> BeautifulSoup:
    import json

    html = (
        '<html><body><script id="js-initialData" type="text/json">'
        + json.dumps(state, ensure_ascii=False)
        + "</script></body></html>"
    )
    return BeautifulSoup(html, "html.parser")


class TestBlockPageDetection:
    """Tests for detect_block_page."""

    def test_security_check(self):
        assert detect_block_page("<html><p>请完成安全验证</p></html>") == BlockClassification.SECURITY_CHECK

    def test_security_check_case_insensitive(self):
        assert detect_block_page("<title>CAPTCHA required</title>") == BlockClassification.SECURITY_CHECK

    def test_login_wall(self):
        assert detect_block_page('<div class="SignFlow">登录知乎</div>') == BlockClassification.LOGIN_REQUIRED

    def test_security_check_wins_over_login(self):
        html = '<div class="SignFlow">请完成安全验证</div>'
        assert detect_block_page(html) == BlockClassification.SECURITY_CHECK

    def test_clean_page(self):
        assert detect_block_page("<p>hello world</p>") == BlockClassification.CLEAN

    @pytest.mark.parametrize("value", [None, "", 123, b"captcha"])
    def test_non_string_is_clean(self, value):
        assert detect_block_page(value) == BlockClassification.CLEAN


class TestSelectValue:
    """Tests for field rule evaluation."""

    def test_first_rule_with_value_wins(self):
        doc = BeautifulSoup('<h1 class="a"> </h1><h2 class="b">Second</h2>', "html.parser")
        rules = [FieldRule(selector="h1.a"), FieldRule(selector="h2.b")]
        assert select_value(doc, rules) == "Second"

    def test_all_matches_of_a_rule_are_tried(self):
        doc = BeautifulSoup('<span class="n"></span><span class="n">Bob</span>', "html.parser")
        assert select_value(doc, [FieldRule(selector="span.n")]) == "Bob"

    def test_attribute_and_pattern(self):
        doc = BeautifulSoup('<div class="t" data-x="id-42-end"></div>', "html.parser")
        rule = FieldRule(selector="div.t", attribute="data-x", pattern=r"id-(\d+)")
        assert select_value(doc, [rule]) == "42"

    def test_script_body_pattern(self):
        """Test reading a value out of an inline script."""
        doc = BeautifulSoup('<script>var ct = "1700000000";</script>', "html.parser")
        assert select_value(doc, WECHAT.date) == "1700000000"


class TestDomExtractor:
    """Tests for DomExtractor."""

    def test_extracts_fields(self):
        """Test extraction of every field from a Zhihu article."""
        doc = BeautifulSoup(zhihu_article_html(), "html.parser")
        record = DomExtractor(ZHIHU).extract(doc, "https://zhuanlan.zhihu.com/p/111?from=feed")

        assert record.title == "Real Title"
        assert record.author == "Alice"
        assert record.date == "2023-05-06"
        assert record.url == "https://zhuanlan.zhihu.com/p/111"
        assert record.source == "dom"
        assert "正文内容" in record.content.get_text()

    def test_content_is_detached_copy(self):
        """Test that mutating the record never touches the cached document."""
        doc = BeautifulSoup(zhihu_article_html(), "html.parser")
        record = DomExtractor(ZHIHU).extract(doc, "https://zhuanlan.zhihu.com/p/111")

        record.content.clear()

        assert record.content is not doc.select_one("div.Post-RichTextContainer")
        assert "正文内容" in doc.select_one("div.Post-RichTextContainer").get_text()

    def test_defaults_when_fields_missing(self):
        doc = BeautifulSoup("<html><body><p>nothing</p></body></html>", "html.parser")
        record = DomExtractor(ZHIHU).extract(doc, "https://zhuanlan.zhihu.com/p/5")

        assert record.title == "Untitled"
        assert record.author == "Unknown"
        assert record.date == ""
        assert record.content is None
        assert record.url == "https://zhuanlan.zhihu.com/p/5"

    def test_csdn_profile(self):
        html = """<html><head><link rel="canonical" href="https://blog.csdn.net/u/article/details/7"></head>
        <body><h1 class="title-article">Csdn Post</h1>
        <div class="bar-content"><a href="/u">writer</a><span class="time">于 2022-10-01 10:00 发布</span></div>
        <div id="content_views"><p>body</p></div></body></html>"""
        record = DomExtractor(CSDN).extract(BeautifulSoup(html, "html.parser"), "https://blog.csdn.net/x")

        assert record.title == "Csdn Post"
        assert record.author == "writer"
        assert record.date == "2022-10-01"
        assert record.url == "https://blog.csdn.net/u/article/details/7"


class TestTruncation:
    """Tests for DomExtractor.is_truncated."""

    def _record(self, body: str):
        doc = BeautifulSoup(zhihu_article_html(body=body), "html.parser")
        return DomExtractor(ZHIHU).extract(doc, "https://zhuanlan.zhihu.com/p/111")

    def test_full_content(self):
        extractor = DomExtractor(ZHIHU)
        assert not extractor.is_truncated(self._record("<p>" + "x" * 300 + "</p>"))

    def test_short_content(self):
        assert DomExtractor(ZHIHU).is_truncated(self._record("<p>short</p>"))

    def test_read_more_button(self):
        body = "<p>" + "x" * 300 + '</p><button class="ContentItem-more">more</button>'
        assert DomExtractor(ZHIHU).is_truncated(self._record(body))

    def test_read_more_text(self):
        body = "<p>" + "x" * 300 + "阅读全文</p>"
        assert DomExtractor(ZHIHU).is_truncated(self._record(body))

    def test_missing_content(self):
        doc = BeautifulSoup("<html></html>", "html.parser")
        record = DomExtractor(ZHIHU).extract(doc, "https://zhuanlan.zhihu.com/p/1")
        assert DomExtractor(ZHIHU).is_truncated(record)

    def test_threshold_is_configurable(self):
        assert not DomExtractor(ZHIHU, min_content_length=3).is_truncated(self._record("<p>short</p>"))


class TestEmbeddedState:
    """Tests for extract_from_initial_data."""

    def test_answer_entity(self):
        """Test that answers take the question title and build their URL."""
        doc = _state_document(
            {
                "initialState": {
                    "entities": {
                        "answers": {
                            "9": {
                                "id": 9,
                                "content": "<p>answer body</p>",
                                "question": {"id": 5, "title": "Q title"},
                                "author": {"urlToken": "bob"},
                                "updatedTime": 1700000000,
                            }
                        }
                    }
                }
            }
        )

        record = extract_from_initial_data(doc, "https://www.zhihu.com/question/5/answer/9")

        assert record is not None
        assert record.source == "embedded"
        assert record.title == "Q title"
        assert record.author == "bob"
        assert record.date == "2023-11-14"
        assert record.url == "https://www.zhihu.com/question/5/answer/9"
        assert record.content.get_text() == "answer body"

    def test_preferred_bucket_wins(self):
        doc = _state_document(
            {
                "initialState": {
                    "entities": {
                        "answers": {"1": {"id": 1, "content": "<p>answer</p>"}},
                        "articles": {"2": {"id": 2, "content": "<p>article</p>", "title": "Art"}},
                    }
                }
            }
        )

        record = extract_from_initial_data(doc, "https://zhuanlan.zhihu.com/p/2")

        assert record.title == "Art"
        assert record.url == "https://zhuanlan.zhihu.com/p/2"
        assert record.content.get_text() == "article"

    def test_explicit_url_kept(self):
        doc = _state_document(
            {"entities": {"articles": {"3": {"id": 3, "content": "<p>x</p>", "url": "//zhuanlan.zhihu.com/p/3"}}}}
        )

        record = extract_from_initial_data(doc, "https://zhuanlan.zhihu.com/p/3")

        assert record.url == "https://zhuanlan.zhihu.com/p/3"

    def test_empty_content_skipped(self):
        doc = _state_document(
            {
                "initialState": {
                    "entities": {
                        "articles": {"1": {"id": 1, "content": "  "}},
                        "pins": {"7": {"id": 7, "content": "<p>pin text</p>", "author": {"name": "Carol"}}},
                    }
                }
            }
        )

        record = extract_from_initial_data(doc, "https://www.zhihu.com/pin/7")

        assert record.content.get_text() == "pin text"
        assert record.author == "Carol"
        assert record.url == "https://www.zhihu.com/pin/7"

    def test_data_root(self):
        doc = _state_document({"data": {"title": "From state", "entities": {"posts": {"1": {"content": "<p>p</p>"}}}}})

        record = extract_from_initial_data(doc, "https://www.zhihu.com/")

        assert record.title == "From state"

    def test_missing_script(self):
        doc = BeautifulSoup("<html><body></body></html>", "html.parser")
        assert extract_from_initial_data(doc, "https://zhuanlan.zhihu.com/p/1") is None

    def test_malformed_json(self):
        doc = BeautifulSoup(
            '<script id="js-initialData" type="text/json">{not json</script>',
            "html.parser",
        )
        assert extract_from_initial_data(doc, "https://zhuanlan.zhihu.com/p/1") is None

    def test_no_entity_with_content(self):
        doc = _state_document({"initialState": {"entities": {"articles": {"1": {"id": 1}}}}})
        assert extract_from_initial_data(doc, "https://zhuanlan.zhihu.com/p/1") is None


class TestEntitySearch:
    """Tests for find_entity_with_content and fragment_from_html."""

    def test_non_preferred_bucket_order(self):
        entities = {"zz": {"1": {"content": "<p>z</p>"}}, "aa": {"1": {"content": "<p>a</p>"}}}
        bucket, entity = find_entity_with_content(entities, ["articles"])
        assert bucket == "zz"

    def test_not_a_dict(self):
        assert find_entity_with_content(None, ["articles"]) is None
        assert find_entity_with_content({"articles": []}, ["articles"]) is None

    def test_fragment_is_detached(self):
        fragment = fragment_from_html("<p>one</p><p>two</p>")
        assert fragment.name == "div"
        assert fragment.parent is None
        assert len(fragment.find_all("p")) == 2

    def test_fragment_rejects_non_strings(self):
        assert fragment_from_html(None) is None
        assert fragment_from_html(42) is None


class TestApiFallbackClient:
    """Tests for ApiFallbackClient."""

    @pytest.fixture
    def cache(self):
        cache = MagicMock()
        cache.profile = ZHIHU
        cache.fetch_json = AsyncMock()
        return cache

    def test_endpoint_for_article(self, cache):
        api = ApiFallbackClient(cache)
        assert api.endpoint_for("https://zhuanlan.zhihu.com/p/123") == (
            "https://www.zhihu.com/api/v4/articles/123?include=content,created,updated,title,url,author.name"
        )
        assert api.endpoint_for("https://www.zhihu.com/question/1/answer/2") is None

    @pytest.mark.asyncio
    async def test_fetch_builds_record(self, cache):
        cache.fetch_json.return_value = {
            "title": "API Title",
            "content": "<p>api body</p>",
            "author": {"name": "Dave"},
            "updated": 1700000000,
            "created": 1600000000,
        }

        record = await ApiFallbackClient(cache).fetch("https://zhuanlan.zhihu.com/p/123")

        assert record.source == "api"
        assert record.title == "API Title"
        assert record.author == "Dave"
        assert record.date == "2023-11-14"
        assert record.url == "https://zhuanlan.zhihu.com/p/123"
        assert record.content.get_text() == "api body"

    @pytest.mark.asyncio
    async def test_no_article_id_makes_no_request(self, cache):
        record = await ApiFallbackClient(cache).fetch("https://www.zhihu.com/question/1/answer/2")

        assert record is None
        cache.fetch_json.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [FetchError("https://www.zhihu.com/api", status=403), JsonParseError("https://www.zhihu.com/api")],
    )
    async def test_failures_give_none(self, cache, error):
        cache.fetch_json.side_effect = error
        assert await ApiFallbackClient(cache).fetch("https://zhuanlan.zhihu.com/p/1") is None

    @pytest.mark.asyncio
    async def test_empty_content_gives_none(self, cache):
        cache.fetch_json.return_value = {"title": "t", "content": ""}
        assert await ApiFallbackClient(cache).fetch("https://zhuanlan.zhihu.com/p/1") is None
