from __future__ import annotations

import re

_CODE_BLOCK_RE = re.compile(r"```[\s\S]*?```")
_INLINE_CODE_RE = re.compile(r"`[^`]+`")
_HEADING_RE = re.compile(r"^#+\s+", re.MULTILINE)
_BOLD_STAR_RE = re.compile(r"\*\*([^*]+)\*\*")
_ITALIC_STAR_RE = re.compile(r"\*([^*]+)\*")
_BOLD_UNDERSCORE_RE = re.compile(r"__([^_]+)__")
_ITALIC_UNDERSCORE_RE = re.compile(r"_([^_]+)_")
_IMAGE_RE = re.compile(r"!\[([^\]]*)\]\([^)]+\)")
_LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]+\)")
_REFERENCE_LINK_RE = re.compile(r"\[([^\]]+)\]\[[^\]]*\]")
_HTML_TAG_RE = re.compile(r"<[^>]+>")
_HTML_ENTITY_RE = re.compile(r"&[a-z]+;", re.IGNORECASE)
_FRONTMATTER_RE = re.compile(r"\A---\n[\s\S]*?\n---\n")
_RULE_RE = re.compile(r"^[-*_]{3,}\s*$", re.MULTILINE)
_BLOCKQUOTE_RE = re.compile(r"^>\s+", re.MULTILINE)
_BULLET_RE = re.compile(r"^[ \t]*[-*+]\s+", re.MULTILINE)
_NUMBERED_RE = re.compile(r"^[ \t]*\d+\.\s+", re.MULTILINE)
_STRIKE_RE = re.compile(r"~~([^~]+)~~")
_EXTRA_BLANK_LINES_RE = re.compile(r"\n{3,}")
_INLINE_SPACE_RE = re.compile(r"[ \t]+")


def strip_markdown(markdown: str) -> str:
    """Remove markdown formatting while keeping the readable text."""
    text = _CODE_BLOCK_RE.sub("", markdown)
    text = _INLINE_CODE_RE.sub("", text)
    text = _HEADING_RE.sub("", text)
    text = _strip_emphasis(text)
    # Images first, otherwise the link pattern eats their alt text.
    text = _IMAGE_RE.sub("", text)
    text = _LINK_RE.sub(r"\1", text)
    text = _HTML_TAG_RE.sub("", text)
    return _normalize_whitespace(text)


def extract_markdown_text(markdown: str) -> str:
    """Stricter variant of :func:`strip_markdown` that also drops structure markers."""
    text = _FRONTMATTER_RE.sub("", markdown)
    text = _CODE_BLOCK_RE.sub("", text)
    text = _INLINE_CODE_RE.sub("", text)
    text = _RULE_RE.sub("", text)
    text = _BLOCKQUOTE_RE.sub("", text)
    text = _BULLET_RE.sub("", text)
    text = _NUMBERED_RE.sub("", text)
    text = _HEADING_RE.sub("", text)
    text = _strip_emphasis(text)
    text = _STRIKE_RE.sub(r"\1", text)
    text = _IMAGE_RE.sub("", text)
    text = _LINK_RE.sub(r"\1", text)
    text = _REFERENCE_LINK_RE.sub(r"\1", text)
    text = _HTML_TAG_RE.sub("", text)
    text = _HTML_ENTITY_RE.sub("", text)
    return _normalize_whitespace(text)


def _strip_emphasis(text: str) -> str:
    text = _BOLD_STAR_RE.sub(r"\1", text)
    text = _ITALIC_STAR_RE.sub(r"\1", text)
    text = _BOLD_UNDERSCORE_RE.sub(r"\1", text)
    return _ITALIC_UNDERSCORE_RE.sub(r"\1", text)


def _normalize_whitespace(text: str) -> str:
    text = _EXTRA_BLANK_LINES_RE.sub("\n\n", text)
    text = _INLINE_SPACE_RE.sub(" ", text)
    return text.strip()
