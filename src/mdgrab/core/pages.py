"""Recognition of the page types mdgrab can download."""

import re
from enum import Enum

from ..errors import UnsupportedPageError
from ..models.platforms import Platform


class PageType(str, Enum):
    """Downloadable page types."""

    ZHIHU_ARTICLE = "zhihu_article"
    ZHIHU_ANSWER = "zhihu_answer"
    ZHIHU_VIDEO = "zhihu_video"
    ZHIHU_LIST = "zhihu_list"
    CSDN_ARTICLE = "csdn_article"
    CSDN_CATEGORY = "csdn_category"
    WECHAT_ARTICLE = "wechat_article"
    JUEJIN_ARTICLE = "juejin_article"

    @property
    def platform(self) -> Platform:
        return Platform(self.value.split("_", 1)[0])

    @property
    def is_list(self) -> bool:
        return self in (PageType.ZHIHU_LIST, PageType.CSDN_CATEGORY)


_PEOPLE_POSTS = re.compile(r"zhihu\.com/people/.+/posts")


def is_zhihu_list_page(url: str) -> bool:
    """Profile article tabs and column pages."""
    return bool(_PEOPLE_POSTS.search(url)) or "www.zhihu.com/column/" in url


def match_page(url: str) -> PageType:
    """
    Classify a page URL; patterns are checked in a fixed order.

    Raises:
        UnsupportedPageError: If no page type matches
    """
    if "zhuanlan.zhihu.com/p/" in url:
        return PageType.ZHIHU_ARTICLE
    if "zhihu.com/question/" in url and "/answer/" in url:
        return PageType.ZHIHU_ANSWER
    if "zhihu.com/zvideo/" in url:
        return PageType.ZHIHU_VIDEO
    if is_zhihu_list_page(url):
        return PageType.ZHIHU_LIST
    if "blog.csdn.net" in url and "/article/" in url:
        return PageType.CSDN_ARTICLE
    if "blog.csdn.net" in url and "/category_" in url:
        return PageType.CSDN_CATEGORY
    if "mp.weixin.qq.com/s" in url:
        return PageType.WECHAT_ARTICLE
    if "juejin.cn/post/" in url:
        return PageType.JUEJIN_ARTICLE
    raise UnsupportedPageError(url)
