"""Classification of challenge and login-wall pages."""

import re

from ..models.records import BlockClassification

SECURITY_CHECK_PATTERN = re.compile(r"安全验证|captcha|验证码|verify|risk", re.IGNORECASE)
LOGIN_REQUIRED_PATTERN = re.compile(r"SignFlow|请登录|登录知乎|登录后查看", re.IGNORECASE)


def detect_block_page(html: object) -> BlockClassification:
    """
    Classify raw HTML (or a JSON body that failed to parse).

    Security checks take precedence over login walls. Anything that is
    not a non-empty string is CLEAN.
    """
    if not isinstance(html, str) or not html:
        return BlockClassification.CLEAN
    if SECURITY_CHECK_PATTERN.search(html):
        return BlockClassification.SECURITY_CHECK
    if LOGIN_REQUIRED_PATTERN.search(html):
        return BlockClassification.LOGIN_REQUIRED
    return BlockClassification.CLEAN
