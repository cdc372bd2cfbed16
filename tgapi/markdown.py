"""MarkdownV2 escaping for Telegram message text."""

import re

# Characters Telegram requires to be backslash-escaped in MarkdownV2 text.
MARKDOWN_V2_SPECIAL_CHARS = "_*[]()~`>#+-=|{}.!"

_SPECIAL_RE = re.compile("([" + re.escape(MARKDOWN_V2_SPECIAL_CHARS) + "])")


def escape_markdown_v2(text: str) -> str:
    """Prefix every MarkdownV2 special character in *text* with a backslash.

    This is a single left-to-right pass with no awareness of existing
    escapes or formatting, so escaping the same text twice doubles the
    backslashes.
    """
    return _SPECIAL_RE.sub(r"\\\1", text)
