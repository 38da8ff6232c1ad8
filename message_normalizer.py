"""Convert rendered Zulip message HTML into markdown.

Zulip wraps highlighted code in ``div.codehilite.zulip-code-block`` containers
whose markup (line spans, copy buttons) converts poorly. Each wrapper is first
rewritten into a plain ``<pre><code class="language-x">`` block, then the whole
fragment is handed to markdownify with ATX headings and fenced code.
"""

from __future__ import annotations

import copy
from typing import Optional, Union

from bs4 import BeautifulSoup, Tag
from markdownify import ATX, MarkdownConverter

CODE_BLOCK_SELECTOR = "div.codehilite.zulip-code-block"
CODE_LANGUAGE_ATTRIBUTE = "data-code-language"
LANGUAGE_CLASS_PREFIX = "language-"

Fragment = Union[str, Tag]


def _code_language(pre: Tag) -> Optional[str]:
    code = pre.find("code")
    if code is None:
        return None
    for css_class in code.get("class") or []:
        if css_class.startswith(LANGUAGE_CLASS_PREFIX):
            return css_class[len(LANGUAGE_CLASS_PREFIX):] or None
    return None


def build_converter() -> MarkdownConverter:
    return MarkdownConverter(
        heading_style=ATX,
        code_language_callback=_code_language,
    )


def parse_fragment(fragment: Fragment) -> Tag:
    """Return a private tree for ``fragment`` that is safe to mutate."""

    if isinstance(fragment, Tag):
        return copy.copy(fragment)
    return BeautifulSoup(fragment or "", "html.parser")


def transform_code_block(block: Tag) -> Optional[Tag]:
    """Build a standard ``<pre><code>`` replacement for a Zulip code block.

    Returns None when the wrapper lacks the ``pre`` > ``code`` payload.
    """

    pre = block.find("pre")
    if pre is None:
        return None
    code = pre.find("code")
    if code is None:
        return None

    raw_code = code.get_text()
    builder = BeautifulSoup("", "html.parser")
    new_pre = builder.new_tag("pre")
    new_code = builder.new_tag("code")

    language = block.get(CODE_LANGUAGE_ATTRIBUTE)
    if isinstance(language, str) and language.strip():
        new_code["class"] = [LANGUAGE_CLASS_PREFIX + language.lower().strip()]
    new_code.string = raw_code
    new_pre.append(new_code)
    return new_pre


def preprocess_message(fragment: Fragment) -> Tag:
    """Copy ``fragment`` and rewrite every Zulip code block in the copy."""

    tree = parse_fragment(fragment)
    for block in tree.select(CODE_BLOCK_SELECTOR):
        replacement = transform_code_block(block)
        if replacement is None:
            # Malformed wrapper: leave it for the converter as-is.
            continue
        block.replace_with(replacement)
    return tree


def normalize_message(
    fragment: Fragment, converter: Optional[MarkdownConverter] = None
) -> str:
    """Return the markdown text for a rendered message fragment."""

    tree = preprocess_message(fragment)
    converter = converter or build_converter()
    return converter.convert_soup(tree).strip()
