"""Clean scraped description HTML before it reaches the content system.

The downstream sanitizer silently truncates a post when it meets attributes it
does not recognise, so a handful of legacy and word-processor artifacts are
stripped here. Each tag's attribute list is tokenized once per pass, so quoted
values are never rewritten and repeated attributes go in a single pass; the
whole transform is idempotent.
"""

from __future__ import annotations

import re
from typing import Callable, List, NamedTuple, Optional, Tuple

CONTAINER_TAGS = frozenset(
    {
        "p",
        "div",
        "span",
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        "section",
        "article",
        "header",
        "footer",
        "aside",
        "nav",
        "main",
        "blockquote",
    }
)

OFFICE_NAMESPACE_PREFIXES = frozenset({"xmlns", "o", "w", "v", "m", "x", "st1"})

_TAG_RE = re.compile(r"<([a-zA-Z][\w:.-]*)([^<>]*)>")
_ATTR_RE = re.compile(r"""(\s+)([^\s=>/"']+)(?:\s*=\s*("[^"]*"|'[^']*'|[^\s"'>]+))?""")
_HSPACE_RE = re.compile(r"[ \t]+")


class Attribute(NamedTuple):
    raw: str
    name: str
    value: Optional[str]


AttributeRewrite = Callable[[str, List[Attribute]], List[Attribute]]


def _split_attributes(body: str) -> Tuple[List[Attribute], str]:
    attrs: List[Attribute] = []
    pos = 0
    while True:
        match = _ATTR_RE.match(body, pos)
        if match is None:
            break
        attrs.append(Attribute(match.group(0), match.group(2), match.group(3)))
        pos = match.end()
    return attrs, body[pos:]


def _rewrite_tags(html: str, rewrite: AttributeRewrite) -> str:
    def _rewrite_tag(tag: re.Match[str]) -> str:
        name = tag.group(1)
        attrs, rest = _split_attributes(tag.group(2))
        kept = rewrite(name.lower(), attrs)
        return f"<{name}{''.join(a.raw for a in kept)}{rest}>"

    return _TAG_RE.sub(_rewrite_tag, html)


def _drop_container_attribute(attr_name: str) -> AttributeRewrite:
    def _rewrite(tag: str, attrs: List[Attribute]) -> List[Attribute]:
        if tag not in CONTAINER_TAGS:
            return attrs
        return [a for a in attrs if a.name.lower() != attr_name]

    return _rewrite


def strip_start_attributes(html: str) -> str:
    return _rewrite_tags(html, _drop_container_attribute("start"))


def strip_align_attributes(html: str) -> str:
    return _rewrite_tags(html, _drop_container_attribute("align"))


def _unquote(value: str) -> Tuple[str, str]:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1], value[0]
    return value, '"'


def _clean_style(attr: Attribute) -> Optional[Attribute]:
    if attr.value is None:
        return attr
    text, quote = _unquote(attr.value)

    declarations = [d.strip() for d in text.split(";") if d.strip()]
    kept = [d for d in declarations if not d.split(":", 1)[0].strip().lower().startswith("mso-")]

    if not kept:
        return None
    if len(kept) == len(declarations):
        return attr
    value = f"{quote}{'; '.join(kept)}{quote}"
    return Attribute(f" style={value}", attr.name, value)


def _strip_mso(tag: str, attrs: List[Attribute]) -> List[Attribute]:
    out: List[Attribute] = []
    for attr in attrs:
        cleaned = _clean_style(attr) if attr.name.lower() == "style" else attr
        if cleaned is not None:
            out.append(cleaned)
    return out


def strip_mso_styles(html: str) -> str:
    """Drop ``mso-*`` declarations and any style attribute left empty."""
    return _rewrite_tags(html, _strip_mso)


def _is_office_attribute(name: str) -> bool:
    prefix, sep, _ = name.partition(":")
    return bool(sep) and prefix.lower() in OFFICE_NAMESPACE_PREFIXES


def strip_office_namespace_attributes(html: str) -> str:
    return _rewrite_tags(html, lambda tag, attrs: [a for a in attrs if not _is_office_attribute(a.name)])


def collapse_whitespace(html: str) -> str:
    return _HSPACE_RE.sub(" ", html).strip()


def sanitize_description_html(html: str) -> str:
    if not html:
        return ""
    html = strip_start_attributes(html)
    html = strip_align_attributes(html)
    html = strip_mso_styles(html)
    html = strip_office_namespace_attributes(html)
    return collapse_whitespace(html)
