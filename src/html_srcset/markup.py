"""Locate markable image references in HTML and rewrite them in place.

The parsed tree is never mutated. Each element that needs new attribute
values yields an ``ElementPatch``; patches are spliced into the original
markup by rewriting only that element's start tag, so everything else in the
document keeps its exact bytes.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from bs4 import BeautifulSoup, Tag

from .errors import ConfigurationError, ParseFailureError, SrcsetError
from .types import SourceSet

logger = logging.getLogger(__name__)

MARKER = "?srcset"
DEFAULT_SIZES = "(max-width: 768px) 100vw, (max-width: 1200px) 50vw, 33vw"
CANDIDATE_TAGS = ("img", "picture", "figure")

_WHITESPACE = " \t\n\r\f"
_TAG_OPEN_RE = re.compile(r"<([a-zA-Z][^\s/>]*)")
_ATTR_NAME_RE = re.compile(r"[^\t\n\f\r />][^\t\n\f\r />=]*")


class ReferenceKind(Enum):
    PLAIN = "plain"
    MARKABLE = "markable"


@dataclass(frozen=True)
class MarkableReference:
    kind: ReferenceKind
    raw: Optional[str]
    path: Optional[str] = None

    @classmethod
    def parse(cls, value: Optional[str]) -> "MarkableReference":
        if value is None:
            return cls(ReferenceKind.PLAIN, None)
        stripped = value.strip()
        if stripped.endswith(MARKER) and len(stripped) > len(MARKER):
            return cls(ReferenceKind.MARKABLE, value, stripped[: -len(MARKER)])
        return cls(ReferenceKind.PLAIN, value)

    @property
    def is_markable(self) -> bool:
        return self.kind is ReferenceKind.MARKABLE


@dataclass(frozen=True)
class AttributeSpan:
    name: str
    start: int
    end: int


@dataclass(frozen=True)
class StartTag:
    start: int
    end: int
    name_end: int
    attributes: tuple[AttributeSpan, ...]

    @property
    def insertion_point(self) -> int:
        if self.attributes:
            return self.attributes[-1].end
        return self.name_end


def scan_start_tag(html: str, pos: int) -> Optional[StartTag]:
    """Parse the start tag beginning at pos, recording where each attribute sits."""
    m = _TAG_OPEN_RE.match(html, pos)
    if m is None:
        return None
    i = name_end = m.end()
    n = len(html)
    attrs: list[AttributeSpan] = []

    while i < n:
        c = html[i]
        if c == ">":
            return StartTag(pos, i + 1, name_end, tuple(attrs))
        if html.startswith("/>", i):
            return StartTag(pos, i + 2, name_end, tuple(attrs))
        if c in _WHITESPACE or c == "/":
            i += 1
            continue

        name_match = _ATTR_NAME_RE.match(html, i)
        start = i
        i = name_match.end()
        j = i
        while j < n and html[j] in _WHITESPACE:
            j += 1
        if j < n and html[j] == "=":
            j += 1
            while j < n and html[j] in _WHITESPACE:
                j += 1
            if j < n and html[j] in "\"'":
                close = html.find(html[j], j + 1)
                if close == -1:
                    return None
                i = close + 1
            else:
                while j < n and html[j] not in _WHITESPACE and html[j] != ">":
                    j += 1
                i = j
        attrs.append(AttributeSpan(name_match.group(0).lower(), start, i))

    return None


def escape_attribute(value: str) -> str:
    return value.replace("&", "&amp;").replace('"', "&quot;")


@dataclass(frozen=True)
class Edit:
    start: int
    end: int
    text: str


def splice(text: str, edits: list[Edit]) -> str:
    """Apply non-overlapping edits; insertions at one offset keep their list order."""
    ordered = sorted(enumerate(edits), key=lambda item: (item[1].start, item[0]))
    out: list[str] = []
    cursor = 0
    for _, edit in ordered:
        out.append(text[cursor : edit.start])
        out.append(edit.text)
        cursor = edit.end
    out.append(text[cursor:])
    return "".join(out)


class SourceLocator:
    """Maps parsed tags back to offsets in the markup they were parsed from."""

    def __init__(self, html: str):
        self.html = html
        self._line_starts = [0]
        for i, ch in enumerate(html):
            if ch == "\n":
                self._line_starts.append(i + 1)

    def start_tag(self, tag: Tag) -> Optional[StartTag]:
        if tag.sourceline is None or tag.sourcepos is None:
            return None
        if tag.sourceline > len(self._line_starts):
            return None
        offset = self._line_starts[tag.sourceline - 1] + tag.sourcepos
        scanned = scan_start_tag(self.html, offset)
        if scanned is None:
            return None
        if self.html[offset + 1 : scanned.name_end].lower() != tag.name:
            return None
        return scanned


@dataclass
class ElementPatch:
    element: Tag
    start_tag: StartTag
    attributes: dict[str, str] = field(default_factory=dict)

    def edits(self) -> list[Edit]:
        out: list[Edit] = []
        for name, value in self.attributes.items():
            rendered = f'{name}="{escape_attribute(value)}"'
            spans = [a for a in self.start_tag.attributes if a.name == name]
            if spans:
                out.extend(Edit(a.start, a.end, rendered) for a in spans)
            else:
                point = self.start_tag.insertion_point
                out.append(Edit(point, point, " " + rendered))
        return out


@dataclass
class RewriteResult:
    html: str
    rewritten: int = 0
    failures: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.rewritten > 0


def parse_document(html: str) -> BeautifulSoup:
    try:
        return BeautifulSoup(html, "html.parser", multi_valued_attributes=None)
    except Exception as e:
        raise ParseFailureError(f"Could not parse HTML: {e}") from e


class MarkupRewriter:
    """Rewrites every markable img/picture/figure reference of one document."""

    def __init__(
        self,
        generate: Callable[[str], SourceSet],
        default_sizes: str = DEFAULT_SIZES,
    ):
        self.generate = generate
        self.default_sizes = default_sizes

    def rewrite(self, html: str) -> RewriteResult:
        soup = parse_document(html)
        current = _RewritePass(self, html)
        for element in soup.find_all(list(CANDIDATE_TAGS)):
            if element.name == "img":
                current.visit_img(element)
            elif element.name == "picture":
                for source in element.find_all("source"):
                    current.visit_source(source)
                for img in element.find_all("img"):
                    current.visit_img(img)
            else:
                for img in element.find_all("img"):
                    current.visit_img(img)
        return current.finish()


class _RewritePass:
    def __init__(self, rewriter: MarkupRewriter, html: str):
        self.rewriter = rewriter
        self.html = html
        self.locator = SourceLocator(html)
        self.patches: list[ElementPatch] = []
        self.failures: list[str] = []
        self._visited: set[int] = set()
        self._source_sets: dict[str, SourceSet] = {}
        self._errors: dict[str, SrcsetError] = {}

    def _first_visit(self, element: Tag) -> bool:
        key = id(element)
        if key in self._visited:
            return False
        self._visited.add(key)
        return True

    def _source_set(self, path: str) -> SourceSet:
        if path in self._errors:
            raise self._errors[path]
        if path not in self._source_sets:
            try:
                self._source_sets[path] = self.rewriter.generate(path)
            except ConfigurationError:
                raise
            except SrcsetError as e:
                self._errors[path] = e
                raise
        return self._source_sets[path]

    def _prepare(self, element: Tag, ref: MarkableReference) -> Optional[tuple[StartTag, SourceSet]]:
        start_tag = self.locator.start_tag(element)
        if start_tag is None:
            logger.warning("Could not locate <%s> for %s in the markup; left unchanged", element.name, ref.path)
            self.failures.append(ref.path)
            return None
        try:
            source_set = self._source_set(ref.path)
        except ConfigurationError:
            raise
        except SrcsetError as e:
            logger.warning("Failed to process image %s: %s", ref.path, e)
            self.failures.append(ref.path)
            return None
        return start_tag, source_set

    def visit_img(self, img: Tag) -> None:
        if not self._first_visit(img):
            return
        ref = MarkableReference.parse(img.get("src"))
        if not ref.is_markable:
            return
        prepared = self._prepare(img, ref)
        if prepared is None:
            return
        start_tag, source_set = prepared

        patch = ElementPatch(img, start_tag)
        patch.attributes["src"] = source_set.fallback
        patch.attributes["srcset"] = source_set.srcset
        if not img.has_attr("sizes"):
            patch.attributes["sizes"] = self.rewriter.default_sizes
        self.patches.append(patch)

    def visit_source(self, source: Tag) -> None:
        if not self._first_visit(source):
            return
        ref = MarkableReference.parse(source.get("srcset"))
        if not ref.is_markable:
            return
        prepared = self._prepare(source, ref)
        if prepared is None:
            return
        start_tag, source_set = prepared

        srcset = source_set.srcset
        mime_type = (source.get("type") or "").strip().lower()
        if mime_type:
            entry = source_set.source_for(mime_type)
            if entry is not None:
                srcset = entry.srcset
        self.patches.append(ElementPatch(source, start_tag, {"srcset": srcset}))

    def finish(self) -> RewriteResult:
        if not self.patches:
            return RewriteResult(self.html, 0, self.failures)
        edits: list[Edit] = []
        for patch in self.patches:
            edits.extend(patch.edits())
        return RewriteResult(splice(self.html, edits), len(self.patches), self.failures)


def rewrite_html(html: str, generate: Callable[[str], SourceSet], default_sizes: str = DEFAULT_SIZES) -> RewriteResult:
    return MarkupRewriter(generate, default_sizes).rewrite(html)


def has_markers(html: str) -> bool:
    return MARKER in html
