"""HTML fragment to Markdown conversion."""

from __future__ import annotations

import copy
import logging
import re
import uuid
from typing import Optional, Sequence

import html2text
from bs4 import BeautifulSoup, Comment, NavigableString, PageElement, Tag

from ..models.config import TableHeaderPolicy
from ..models.records import ContentRecord
from .protocols import MarkdownConverter

logger = logging.getLogger(__name__)

# Stripped from every fragment before conversion
DEFAULT_REMOVAL_SELECTORS = ("style", "script", "noscript", ".ContentItem-more", "button.ContentItem-more")

HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")


def prepare_fragment(fragment: Tag, removal_selectors: Sequence[str] = ()) -> Tag:
    """
    Return a cleaned deep copy of ``fragment``; the input is never mutated.

    Removes style, script and noscript elements, read-more controls and
    anything matching ``removal_selectors``.
    """
    prepared = copy.copy(fragment)
    for selector in (*DEFAULT_REMOVAL_SELECTORS, *removal_selectors):
        for element in prepared.select(selector):
            element.decompose()
    return prepared


class _Placeholders:
    """
    Markdown rendered by custom rules, parked behind alphanumeric tokens.

    Tokens survive html2text untouched (no characters it would escape) and
    are restored newest first, so a token inside another token's value is
    expanded afterwards.
    """

    def __init__(self) -> None:
        self._prefix = f"MDGRAB{uuid.uuid4().hex[:8].upper()}N"
        self._values: list[tuple[str, str]] = []

    def add(self, markdown: str) -> str:
        token = f"{self._prefix}{len(self._values)}Z"
        self._values.append((token, markdown))
        return token

    def restore(self, text: str) -> str:
        for token, markdown in reversed(self._values):
            text = text.replace(token, markdown)
        return text


def render_table(table: Tag, policy: TableHeaderPolicy = TableHeaderPolicy.ALWAYS) -> Optional[str]:
    """
    Render a table as pipe-delimited Markdown rows.

    Header and data cells are treated alike. Under ``ALWAYS`` a separator
    row follows the first row, sized by its ``th`` cells if it has any,
    else its ``td`` cells; under ``DETECT`` only when the first row has
    ``th`` cells.

    Returns:
        Markdown rows, or None for a table without rows
    """
    rows = table.find_all("tr")
    if not rows:
        return None

    lines = []
    for row in rows:
        cells = [cell.get_text().strip().replace("\n", " ") or " " for cell in row.find_all(["th", "td"])]
        lines.append("| " + " | ".join(cells) + " |")

    header_cells = rows[0].find_all("th")
    if header_cells:
        separator_width = len(header_cells)
    elif policy == TableHeaderPolicy.ALWAYS:
        separator_width = len(rows[0].find_all("td"))
    else:
        separator_width = 0

    if header_cells or policy == TableHeaderPolicy.ALWAYS:
        lines.insert(1, "| " + " | ".join(["---"] * separator_width) + " |")

    return "\n".join(lines)


def render_math(span: Tag) -> str:
    """Display math for formulas carrying ``\\tag``, inline math otherwise."""
    formula = span.get("data-tex") or ""
    if "\\tag" in formula:
        return f"\n$${formula}$$\n"
    return f"${formula}$"


def render_code_block(pre: Tag) -> str:
    code = pre.get_text().strip("\n")
    language = ""
    code_element = pre.find("code")
    if code_element is not None:
        for css_class in code_element.get("class") or []:
            if css_class.startswith("language-"):
                language = css_class[len("language-") :]
                break
    return f"```{language}\n{code}\n```"


class HtmlToMarkdown:
    """
    Converts content fragments to Markdown with html2text.

    Zhihu math spans, headings, tables and code blocks are rendered by
    custom rules before html2text sees the tree; everything else uses
    html2text with ATX headings, ``-`` bullets and no wrapping.

    Example:
        converter = HtmlToMarkdown(table_header_policy=TableHeaderPolicy.DETECT)
        markdown = converter.convert(fragment, "https://zhuanlan.zhihu.com/p/123")
    """

    def __init__(
        self,
        table_header_policy: TableHeaderPolicy = TableHeaderPolicy.ALWAYS,
        removal_selectors: Sequence[str] = (),
        body_width: int = 0,
        inline_links: bool = True,
        protect_links: bool = False,
        unicode_snob: bool = True,
        escape_snob: bool = False,
    ):
        """
        Initialize the Markdown converter.

        Args:
            table_header_policy: When the table rule inserts a separator row
            removal_selectors: Extra elements to strip before converting
            body_width: Max line width (0 = no wrapping)
            inline_links: Use inline [text](url) vs reference style
            protect_links: Wrap link targets in angle brackets
            unicode_snob: Use Unicode chars where possible
            escape_snob: Escape all special Markdown chars
        """
        self._table_header_policy = table_header_policy
        self._removal_selectors = tuple(removal_selectors)
        self._options = {
            "body_width": body_width,
            "inline_links": inline_links,
            "protect_links": protect_links,
            "unicode_snob": unicode_snob,
            "escape_snob": escape_snob,
        }
        self._fallback = SimpleMarkdownConverter(removal_selectors)

    def _new_engine(self, base_url: str = "") -> html2text.HTML2Text:
        engine = html2text.HTML2Text(baseurl=base_url)
        for name, value in self._options.items():
            setattr(engine, name, value)
        engine.ul_item_mark = "-"
        engine.default_image_alt = ""
        engine.single_line_break = False
        return engine

    def _handle(self, html: str, base_url: str = "") -> str:
        return self._new_engine(base_url).handle(html)

    def self_test(self) -> bool:
        """True if the engine converts a trivial paragraph."""
        try:
            return "test" in self._handle("<p>test</p>")
        except Exception as e:
            logger.warning(f"html2text self-test failed: {e}")
            return False

    def _block(self, soup: BeautifulSoup, element: Tag, token: str) -> None:
        paragraph = soup.new_tag("p")
        paragraph.string = token
        element.replace_with(paragraph)

    def _apply_rules(self, root: Tag, placeholders: _Placeholders, base_url: str) -> None:
        soup = BeautifulSoup("", "html.parser")

        for span in root.select("span.ztext-math[data-tex]"):
            span.replace_with(NavigableString(placeholders.add(render_math(span))))

        for table in root.find_all("table"):
            if table.find_parent("table") is not None:
                continue
            markdown = render_table(table, self._table_header_policy)
            if markdown is not None:
                self._block(soup, table, placeholders.add(markdown))

        for pre in root.find_all("pre"):
            self._block(soup, pre, placeholders.add(render_code_block(pre)))

        for heading in root.find_all(HEADING_TAGS):
            level = int(heading.name[1])
            inner = self._handle(heading.decode_contents(), base_url)
            inner = " ".join(inner.split())
            self._block(soup, heading, placeholders.add(f"{'#' * level} {inner}"))

    def _clean_output(self, markdown: str) -> str:
        """Clean up the converted Markdown."""
        markdown = "\n".join(line.rstrip() for line in markdown.split("\n"))
        markdown = re.sub(r"\n{3,}", "\n\n", markdown)
        return markdown.strip() + "\n"

    def convert(self, fragment: Tag, url: str = "") -> str:
        """
        Convert a content fragment to Markdown.

        Args:
            fragment: Content fragment (left untouched)
            url: Source URL for resolving relative links

        Returns:
            Markdown string
        """
        prepared = prepare_fragment(fragment, self._removal_selectors)
        try:
            placeholders = _Placeholders()
            self._apply_rules(prepared, placeholders, url)
            markdown = self._handle(prepared.decode_contents(), url)
            return self._clean_output(placeholders.restore(markdown))
        except Exception as e:
            logger.error(f"Failed to convert HTML to Markdown with html2text: {e}")
            return self._fallback.convert(fragment, url)


class SimpleMarkdownConverter:
    """
    Minimal converter used when html2text is unusable.

    A pure recursive fold over the fragment: headings, bold, italic,
    links, images, paragraphs, code blocks and inline code. Tables and
    math come out as plain text.
    """

    def __init__(self, removal_selectors: Sequence[str] = ()):
        self._removal_selectors = tuple(removal_selectors)

    def convert(self, fragment: Tag, url: str = "") -> str:
        prepared = prepare_fragment(fragment, self._removal_selectors)
        markdown = "".join(self._render(child) for child in prepared.children)
        return re.sub(r"\n{3,}", "\n\n", markdown).strip() + "\n"

    def _render(self, node: PageElement) -> str:
        if isinstance(node, Comment):
            return ""
        if isinstance(node, NavigableString):
            return str(node)
        if not isinstance(node, Tag):
            return ""

        name = node.name
        if name in HEADING_TAGS:
            return f"\n{'#' * int(name[1])} {node.get_text().strip()}\n\n"
        if name == "pre":
            return f"\n```\n{node.get_text().strip()}\n```\n\n"
        if name == "code":
            return f"`{node.get_text()}`"
        if name in ("strong", "b"):
            return f"**{node.get_text()}**"
        if name in ("em", "i"):
            return f"*{node.get_text()}*"
        if name == "img":
            src = node.get("src")
            if not src:
                return ""
            return f"\n![{node.get('alt') or 'image'}]({src})\n"
        if name == "br":
            return "\n"

        inner = "".join(self._render(child) for child in node.children)
        if name == "a":
            href = node.get("href")
            if not href:
                return inner
            return f"[{inner or href}]({href})"
        if name == "p":
            inner = inner.strip()
            return f"{inner}\n\n" if inner else ""
        return inner


def select_converter(
    table_header_policy: TableHeaderPolicy = TableHeaderPolicy.ALWAYS,
    removal_selectors: Sequence[str] = (),
) -> MarkdownConverter:
    """The html2text converter if its self-test passes, otherwise the simple fold."""
    primary = HtmlToMarkdown(table_header_policy=table_header_policy, removal_selectors=removal_selectors)
    if primary.self_test():
        return primary
    logger.warning("html2text is not working, using the simple Markdown converter")
    return SimpleMarkdownConverter(removal_selectors)


def build_document(record: ContentRecord, body: str) -> str:
    """
    Assemble the final Markdown file.

    A title heading, author, optional date and link lines, then the body.
    """
    document = f"# {record.title}\n\n"
    document += f"**Author:** {record.author}\n\n"
    if record.date:
        document += f"**Date:** {record.date}\n\n"
    document += f"**Link:** {record.url}\n\n"
    return document + body
