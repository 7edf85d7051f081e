"""Unit tests for document parsing and inner markup rewriting."""

import pytest
from lxml import etree

from epub_translator.core.epub.exceptions import DocumentParseError
from epub_translator.core.epub.xml_helpers import (
    HTML,
    XML,
    document_method,
    inner_markup,
    local_name,
    parse_document,
    replace_inner_markup,
    serialize_document,
)
from epub_translator.core.llm.base import FAILURE_MARKER

XHTML_NS = "http://www.w3.org/1999/xhtml"


class TestParseDocument:
    """Test parser selection and failures."""

    def test_strict_xhtml(self, sample_xhtml):
        root = parse_document(sample_xhtml, "OEBPS/ch1.xhtml")
        assert document_method(root) == XML
        assert etree.QName(root).namespace == XHTML_NS

    def test_html_falls_back_to_html_parser(self):
        data = b"<!DOCTYPE html><html><body><p>Line<br>break &nbsp;here</p></body></html>"
        root = parse_document(data, "text/page.html")
        assert document_method(root) == HTML
        assert root.find(".//p") is not None

    def test_broken_xhtml_is_recovered(self):
        data = b'<html xmlns="http://www.w3.org/1999/xhtml"><body><p>Open<p>Second</body></html>'
        root = parse_document(data, "ch.xhtml")
        assert local_name(root) == "html"

    def test_unparseable_document_raises(self):
        with pytest.raises(DocumentParseError) as exc_info:
            parse_document(b"", "empty.xhtml")
        assert exc_info.value.entry_name == "empty.xhtml"


class TestSerializeDocument:
    """Test serialization keeps the document envelope."""

    def test_xml_declaration_and_doctype_kept(self, sample_xhtml):
        root = parse_document(sample_xhtml, "ch.xhtml")

        output = serialize_document(root, "ch.xhtml")

        assert output.startswith(b"<?xml version='1.0' encoding='utf-8'?>")
        assert b"<!DOCTYPE html>" in output
        assert b'xmlns:epub="http://www.idpf.org/2007/ops"' in output

    def test_untouched_document_round_trips_its_body(self, sample_xhtml):
        root = parse_document(sample_xhtml, "ch.xhtml")
        output = serialize_document(root, "ch.xhtml")
        assert b'<p id="p1">Hello <em>world</em></p>' in output
        assert b'<span epub:type="footnote">A note</span> tail text' in output


class TestInnerMarkup:
    """Test inner markup extraction."""

    def test_plain_text(self):
        el = etree.fromstring("<p>Just &amp; text</p>")
        assert inner_markup(el) == "Just &amp; text"

    def test_html_element(self):
        root = parse_document(b"<html><body><br><p>A &lt; B <i>c</i></p></body></html>", "x.html")
        assert inner_markup(root.find(".//p")) == "A &lt; B <i>c</i>"


class TestReplaceInnerMarkup:
    """Test write-back into an element."""

    def test_scenario_paragraph_with_emphasis(self):
        root = etree.fromstring("<html><body><p>Hello <em>world</em></p></body></html>")
        p = root.find(".//p")

        replace_inner_markup(p, "Hallo <em>Welt</em>")

        assert etree.tostring(p, encoding="unicode") == "<p>Hallo <em>Welt</em></p>"

    def test_attributes_tail_and_siblings_untouched(self):
        root = etree.fromstring('<div><p id="a" class="b">Hi <b>x</b></p> tail<p>Next</p></div>')
        p = root[0]

        replace_inner_markup(p, "Salut")

        assert etree.tostring(root, encoding="unicode") == '<div><p id="a" class="b">Salut</p> tail<p>Next</p></div>'

    def test_namespaced_elements_stay_in_namespace(self, sample_xhtml):
        root = parse_document(sample_xhtml, "ch.xhtml")
        p = root.find(f".//{{{XHTML_NS}}}p")

        replace_inner_markup(p, 'Hallo <em>Welt</em> <span epub:type="noteref">1</span>')

        em = p.find(f"{{{XHTML_NS}}}em")
        assert em is not None and em.text == "Welt"
        assert b'<p id="p1">Hallo <em>Welt</em> <span epub:type="noteref">1</span></p>' in serialize_document(root)

    def test_failure_marker_is_parsed_as_markup(self):
        root = etree.fromstring("<html><body><p>Hello</p></body></html>")
        p = root.find(".//p")

        replace_inner_markup(p, "Hello" + FAILURE_MARKER)

        assert p.text == "Hello "
        assert p[0].tag == "span"
        assert "Translation failed" in p[0].text

    def test_text_is_never_lost_on_bad_markup(self):
        root = etree.fromstring("<html><body><p>x</p></body></html>")
        p = root.find(".//p")

        replace_inner_markup(p, "Fish & chips <b>bold")

        assert "Fish" in etree.tostring(p, encoding="unicode", method="text")

    def test_html_write_back(self):
        root = parse_document(b"<html><body><br><p class='k'>Hello <b>you</b></p><p>x</p></body></html>", "x.html")
        p = root.find(".//p")

        replace_inner_markup(p, "Hallo <b>du</b>")

        assert p.get("class") == "k"
        assert p.text == "Hallo "
        assert p[0].tag == "b" and p[0].text == "du"

    def test_empty_markup_clears_content(self):
        el = etree.fromstring("<p>Hello <b>x</b></p>")
        replace_inner_markup(el, "")
        assert el.text is None
        assert len(el) == 0


class TestMalformedTranslatedMarkup:
    """Service output that is not well-formed XML must keep all of its text."""

    def test_bare_ampersand_is_kept(self):
        root = etree.fromstring("<html><body><p>x</p></body></html>")
        p = root.find(".//p")

        replace_inner_markup(p, "Tom & Jerry")

        assert p.text == "Tom & Jerry"
        assert etree.tostring(p, encoding="unicode") == "<p>Tom &amp; Jerry</p>"

    def test_bare_ampersand_next_to_inline_markup(self, sample_xhtml):
        root = parse_document(sample_xhtml, "ch.xhtml")
        p = root.find(f".//{{{XHTML_NS}}}p")

        replace_inner_markup(p, "Fish & chips <em>bien</em>")

        assert p.text == "Fish & chips "
        assert p.find(f"{{{XHTML_NS}}}em").text == "bien"

    def test_html_named_entity_becomes_character(self):
        root = etree.fromstring("<html><body><p>x</p></body></html>")
        p = root.find(".//p")

        replace_inner_markup(p, "A&nbsp;B &amp; C")

        assert p.text == "A\u00a0B & C"

    def test_bare_less_than_is_stored_as_text(self):
        root = etree.fromstring("<html><body><p>x</p></body></html>")
        p = root.find(".//p")

        replace_inner_markup(p, "1 < 2 <b>vrai</b>")

        text = etree.tostring(p, encoding="unicode", method="text")
        assert "1 < 2" in text
        assert "vrai" in text
