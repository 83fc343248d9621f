"""Selector synthesis: re-identifiable CSS selectors for recorded elements."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Protocol

logger = logging.getLogger(__name__)

# Class and attribute names matching any of these are framework-generated and
# unstable across loads.
_VOLATILE_NAME_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"^random-"),
    re.compile(r"_"),
]

# Runs in the page. Serializes an element into the shape ElementSnapshot.from_dict reads.
SNAPSHOT_JS = """
function __webflowSnapshot(el) {
    const attributes = Array.from(el.attributes).map(a => [a.name, a.value]);
    const path = [];
    let node = el;
    while (node && node.nodeType === Node.ELEMENT_NODE) {
        const parent = node.parentElement;
        let index = 1;
        let sameTag = false;
        if (parent) {
            const siblings = Array.from(parent.children);
            index = siblings.indexOf(node) + 1;
            sameTag = siblings.some(s => s !== node && s.tagName === node.tagName);
        }
        path.push({
            tag: node.tagName.toLowerCase(),
            id: node.id || '',
            index: index,
            sameTagSiblings: sameTag,
        });
        node = parent;
    }
    return {
        tag: el.tagName.toLowerCase(),
        id: el.id || '',
        attributes: attributes,
        classes: Array.from(el.classList),
        innerText: ((el.innerText || '').trim()).slice(0, 200),
        path: path,
    };
}
"""


class SupportsCount(Protocol):
    async def count(self, selector: str) -> int: ...


@dataclass
class PathSegment:
    tag: str
    id: str = ""
    index: int = 1  # 1-based position among all element siblings
    same_tag_siblings: bool = False


@dataclass
class ElementSnapshot:
    """What the recorder knows about an event target at capture time."""

    tag: str
    id: str = ""
    attributes: list[tuple[str, str]] = field(default_factory=list)
    classes: list[str] = field(default_factory=list)
    inner_text: str = ""
    path: list[PathSegment] = field(default_factory=list)  # element first, root last

    def get_attribute(self, name: str) -> str | None:
        for attr_name, value in self.attributes:
            if attr_name == name:
                return value
        return None

    @classmethod
    def from_dict(cls, d: dict) -> ElementSnapshot:
        return cls(
            tag=(d.get("tag") or "").lower(),
            id=d.get("id") or "",
            attributes=[(str(n), str(v)) for n, v in d.get("attributes", [])],
            classes=list(d.get("classes", [])),
            inner_text=d.get("innerText") or "",
            path=[
                PathSegment(
                    tag=(p.get("tag") or "").lower(),
                    id=p.get("id") or "",
                    index=int(p.get("index", 1)),
                    same_tag_siblings=bool(p.get("sameTagSiblings", False)),
                )
                for p in d.get("path", [])
            ],
        )


def css_escape(value: str) -> str:
    """Escape an identifier for use in a CSS selector (CSSOM ``CSS.escape``)."""
    out: list[str] = []
    for i, ch in enumerate(value):
        code = ord(ch)
        if code == 0:
            out.append("\ufffd")
        elif 0x01 <= code <= 0x1F or code == 0x7F:
            out.append(f"\\{code:x} ")
        elif i == 0 and "0" <= ch <= "9":
            out.append(f"\\{code:x} ")
        elif i == 1 and "0" <= ch <= "9" and value[0] == "-":
            out.append(f"\\{code:x} ")
        elif i == 0 and ch == "-" and len(value) == 1:
            out.append("\\-")
        elif code >= 0x80 or ch in "-_" or (ch.isascii() and ch.isalnum()):
            out.append(ch)
        else:
            out.append("\\" + ch)
    return "".join(out)


def quote_attr(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def is_volatile_name(name: str) -> bool:
    return any(p.search(name) for p in _VOLATILE_NAME_PATTERNS)


# ---------------------------------------------------------------------------
# Candidate strategies, in priority order
# ---------------------------------------------------------------------------


def id_selector(el: ElementSnapshot) -> str | None:
    return f"#{css_escape(el.id)}" if el.id else None


def name_selector(el: ElementSnapshot) -> str | None:
    name = el.get_attribute("name")
    return f"{el.tag}[name={quote_attr(name)}]" if name else None


def data_attribute_selector(el: ElementSnapshot) -> str | None:
    for attr_name, value in el.attributes:
        if attr_name.startswith("data-"):
            return f"[{attr_name}={quote_attr(value)}]"
    return None


def class_selector(el: ElementSnapshot) -> str | None:
    stable = [c for c in el.classes if c and not is_volatile_name(c)]
    if not stable:
        return None
    return "".join(f".{css_escape(c)}" for c in stable)


def path_selector(el: ElementSnapshot) -> str:
    """
    Structural fallback: ``tag`` or ``tag:nth-child(k)`` per level, from the
    element up to the root, cut short at the first ancestor with an id.
    Never empty.
    """
    segments = el.path or [PathSegment(tag=el.tag)]
    parts: list[str] = []
    for depth, seg in enumerate(segments):
        tag = seg.tag or "*"
        if depth > 0 and seg.id:
            parts.append(f"{tag}#{css_escape(seg.id)}")
            break
        if seg.same_tag_siblings:
            tag += f":nth-child({seg.index})"
        parts.append(tag)
    return " > ".join(reversed(parts))


_STRATEGIES = [id_selector, name_selector, data_attribute_selector, class_selector]


class SelectorSynthesizer:
    """
    Produces a selector that re-identifies an element later.

    Tries id, name, data attribute and class candidates in that order and
    keeps the first that matches exactly one element in the current
    document; otherwise falls back to the structural path. Uniqueness is
    only checked against the DOM at recording time.
    """

    def __init__(self, query: SupportsCount) -> None:
        self._query = query

    async def synthesize(self, element: ElementSnapshot) -> str:
        for strategy in _STRATEGIES:
            candidate = strategy(element)
            if candidate and await self._is_unique(candidate):
                return candidate
        return path_selector(element)

    async def _is_unique(self, selector: str) -> bool:
        try:
            return await self._query.count(selector) == 1
        except Exception as exc:
            # A candidate the engine cannot parse is simply not usable.
            logger.debug("Rejected selector %r: %s", selector, exc)
            return False
