from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from unittest.mock import patch

import pytest

from html_srcset.errors import ConfigurationError, ParseFailureError, SourceNotFoundError
from html_srcset.markup import (
    DEFAULT_SIZES,
    MarkableReference,
    MarkupRewriter,
    ReferenceKind,
    escape_attribute,
    has_markers,
    rewrite_html,
    scan_start_tag,
)
from html_srcset.types import SourceEntry, SourceSet


class FakeGenerator:
    """Stands in for the pipeline: two widths, webp + jpeg, no filesystem."""

    def __init__(self, missing=()):
        self.missing = set(missing)
        self.calls = []

    def __call__(self, src):
        self.calls.append(src)
        if src in self.missing:
            raise SourceNotFoundError(Path("public") / src.lstrip("/"))
        stem = PurePosixPath(src).stem
        webp = f"/assets/{stem}-320w.webp 320w, /assets/{stem}-640w.webp 640w"
        jpeg = f"/assets/{stem}-320w.jpeg 320w, /assets/{stem}-640w.jpeg 640w"
        return SourceSet(
            srcset=jpeg,
            fallback=f"/assets/{stem}-320w.jpeg",
            sources=(SourceEntry("image/webp", webp), SourceEntry("image/jpeg", jpeg)),
            widths=(320, 640),
        )


IMAGE_SRCSET = "/assets/image-320w.jpeg 320w, /assets/image-640w.jpeg 640w"
IMAGE_WEBP = "/assets/image-320w.webp 320w, /assets/image-640w.webp 640w"


@pytest.fixture
def generate():
    return FakeGenerator()


class TestMarkableReference:
    def test_markable(self):
        ref = MarkableReference.parse("/images/a.jpg?srcset")
        assert ref.kind is ReferenceKind.MARKABLE
        assert ref.path == "/images/a.jpg"

    def test_surrounding_whitespace(self):
        assert MarkableReference.parse("  /a.jpg?srcset\n").path == "/a.jpg"

    @pytest.mark.parametrize("value", [None, "", "/a.jpg", "?srcset", "/a.jpg?srcset=1", "/a.jpg?SRCSET"])
    def test_plain(self, value):
        assert not MarkableReference.parse(value).is_markable


class TestScanStartTag:
    def test_attribute_spans(self):
        html = '<img src="a" alt=\'b c\' hidden data-x=y>'
        tag = scan_start_tag(html, 0)
        assert [a.name for a in tag.attributes] == ["src", "alt", "hidden", "data-x"]
        assert [html[a.start : a.end] for a in tag.attributes] == ['src="a"', "alt='b c'", "hidden", "data-x=y"]
        assert tag.end == len(html)

    def test_self_closing(self):
        html = '<img src="a"/>rest'
        tag = scan_start_tag(html, 0)
        assert html[tag.start : tag.end] == '<img src="a"/>'
        assert tag.insertion_point == len('<img src="a"')

    def test_gt_inside_quotes(self):
        html = '<img alt="a > b" src="x">'
        assert scan_start_tag(html, 0).end == len(html)

    def test_unterminated_quote(self):
        assert scan_start_tag('<img src="oops>', 0) is None

    def test_no_attributes(self):
        tag = scan_start_tag("<img>", 0)
        assert tag.attributes == ()
        assert tag.insertion_point == 4


class TestImgRewrite:
    def test_exact_output(self, generate):
        html = '<img src="/image.jpg?srcset" alt="Test image">'
        result = rewrite_html(html, generate)
        assert result.html == (
            f'<img src="/assets/image-320w.jpeg" alt="Test image" srcset="{IMAGE_SRCSET}" sizes="{DEFAULT_SIZES}">'
        )
        assert result.rewritten == 1
        assert result.changed

    def test_plain_img_is_untouched(self, generate):
        html = '<img src="/image.jpg" alt="Test image">'
        result = rewrite_html(html, generate)
        assert result.html == html
        assert not result.changed
        assert generate.calls == []

    def test_existing_sizes_preserved(self, generate):
        html = '<img src="/image.jpg?srcset" alt="Test image" sizes="100vw">'
        result = rewrite_html(html, generate).html
        assert 'sizes="100vw"' in result
        assert result.count("sizes=") == 1

    def test_existing_srcset_replaced_in_place(self, generate):
        html = '<img srcset="old.jpg 1x" src="/image.jpg?srcset">'
        result = rewrite_html(html, generate).html
        assert result.startswith(f'<img srcset="{IMAGE_SRCSET}" src="/assets/image-320w.jpeg"')
        assert result.count("srcset=") == 1

    def test_custom_default_sizes(self, generate):
        result = MarkupRewriter(generate, "50vw").rewrite('<img src="/image.jpg?srcset">')
        assert result.html.endswith('sizes="50vw">')

    def test_no_marker_remains(self, generate):
        html = '<div><img src="/a.jpg?srcset"><img src="/b.png?srcset"></div>'
        result = rewrite_html(html, generate)
        assert "?srcset" not in result.html
        assert result.rewritten == 2

    def test_self_closing(self, generate):
        result = rewrite_html('<img src="/image.jpg?srcset" />', generate).html
        assert result == (
            f'<img src="/assets/image-320w.jpeg" srcset="{IMAGE_SRCSET}" sizes="{DEFAULT_SIZES}" />'
        )

    def test_unquoted_and_uppercase(self, generate):
        result = rewrite_html("<IMG SRC=/image.jpg?srcset ALT=x>", generate).html
        assert result == (
            f'<IMG src="/assets/image-320w.jpeg" ALT=x srcset="{IMAGE_SRCSET}" sizes="{DEFAULT_SIZES}">'
        )

    def test_multiline_tag(self, generate):
        html = '<p>intro</p>\n<img\n  alt="multi"\n  src="/image.jpg?srcset"\n>\n<p>outro</p>\n'
        result = rewrite_html(html, generate).html
        assert result == (
            '<p>intro</p>\n<img\n  alt="multi"\n  src="/assets/image-320w.jpeg"'
            f' srcset="{IMAGE_SRCSET}" sizes="{DEFAULT_SIZES}"\n>\n<p>outro</p>\n'
        )

    def test_rest_of_document_keeps_its_bytes(self, generate):
        head = (
            "<!DOCTYPE html>\n<html lang=en>\n<head><meta charset=utf-8>"
            "<!-- keep  me --><title>A &amp; B&nbsp;</title></head>\n<body CLASS='x'   >\n"
        )
        tag = '<img src="/image.jpg?srcset" alt="">'
        tail = "\n<br><p>unclosed\n</body></html>"
        result = rewrite_html(head + tag + tail, generate).html
        assert result.startswith(head)
        assert result.endswith(tail)

    def test_rewrite_is_idempotent(self, generate):
        html = '<p>x</p><img src="/image.jpg?srcset" alt="a">'
        once = rewrite_html(html, generate)
        twice = rewrite_html(once.html, generate)
        assert twice.html == once.html
        assert twice.rewritten == 0

    def test_same_source_generated_once(self, generate):
        html = '<img src="/image.jpg?srcset"><img src="/image.jpg?srcset" alt="again">'
        result = rewrite_html(html, generate)
        assert result.rewritten == 2
        assert generate.calls == ["/image.jpg"]

    def test_attribute_values_are_escaped(self):
        def generate(src):
            return SourceSet(srcset='/a.jpg?v=1&w=2 320w', fallback='/a"b.jpg')

        result = rewrite_html('<img src="/a.jpg?srcset">', generate).html
        assert 'src="/a&quot;b.jpg"' in result
        assert 'srcset="/a.jpg?v=1&amp;w=2 320w"' in result


class TestContainers:
    def test_picture(self, generate):
        html = (
            "<picture>\n"
            '  <source srcset="/image.jpg?srcset" type="image/webp">\n'
            '  <source srcset="/image.jpg?srcset">\n'
            '  <img src="/image.jpg?srcset" alt="Test image">\n'
            "</picture>"
        )
        result = rewrite_html(html, generate)
        assert result.rewritten == 3
        assert f'<source srcset="{IMAGE_WEBP}" type="image/webp">' in result.html
        assert f'<source srcset="{IMAGE_SRCSET}">' in result.html
        assert 'src="/assets/image-320w.jpeg"' in result.html
        assert generate.calls == ["/image.jpg"]

    def test_source_with_unknown_type_gets_native_srcset(self, generate):
        html = '<picture><source srcset="/image.jpg?srcset" type="image/avif"></picture>'
        result = rewrite_html(html, generate).html
        assert result == f'<picture><source srcset="{IMAGE_SRCSET}" type="image/avif"></picture>'

    def test_source_outside_picture_is_ignored(self, generate):
        html = '<video><source srcset="/image.jpg?srcset"></video>'
        assert rewrite_html(html, generate).html == html

    def test_figure(self, generate):
        html = (
            "<figure>\n"
            '  <img src="/image.jpg?srcset" alt="Test image">\n'
            "  <figcaption>A test image</figcaption>\n"
            "</figure>"
        )
        result = rewrite_html(html, generate)
        assert result.rewritten == 1
        assert "<figcaption>A test image</figcaption>" in result.html
        assert "?srcset" not in result.html

    def test_figure_inside_picture_counted_once(self, generate):
        html = '<figure><picture><img src="/image.jpg?srcset"></picture></figure>'
        assert rewrite_html(html, generate).rewritten == 1


class TestFailures:
    def test_missing_source_leaves_element_unchanged(self, caplog):
        generate = FakeGenerator(missing={"/missing.jpg"})
        html = '<img src="/missing.jpg?srcset" alt="gone">\n<img src="/image.jpg?srcset" alt="ok">'

        with caplog.at_level(logging.WARNING, logger="html_srcset.markup"):
            result = rewrite_html(html, generate)

        first, second = result.html.split("\n")
        assert first == '<img src="/missing.jpg?srcset" alt="gone">'
        assert second.startswith('<img src="/assets/image-320w.jpeg" alt="ok" srcset=')
        assert result.rewritten == 1
        assert result.failures == ["/missing.jpg"]
        assert "Failed to process image /missing.jpg" in caplog.text

    def test_failed_source_not_retried(self):
        generate = FakeGenerator(missing={"/missing.jpg"})
        html = '<img src="/missing.jpg?srcset"><img src="/missing.jpg?srcset">'
        result = rewrite_html(html, generate)
        assert result.html == html
        assert generate.calls == ["/missing.jpg"]
        assert result.failures == ["/missing.jpg", "/missing.jpg"]

    def test_configuration_error_propagates(self):
        def generate(src):
            raise ConfigurationError("roots missing")

        with pytest.raises(ConfigurationError):
            rewrite_html('<img src="/a.jpg?srcset">', generate)

    def test_parse_failure(self, generate):
        with patch("html_srcset.markup.BeautifulSoup", side_effect=ValueError("boom")):
            with pytest.raises(ParseFailureError):
                rewrite_html('<img src="/a.jpg?srcset">', generate)


def test_has_markers():
    assert has_markers('<img src="/a.jpg?srcset">')
    assert not has_markers('<img src="/a.jpg">')


def test_escape_attribute():
    assert escape_attribute('a&b"c<') == "a&amp;b&quot;c<"
