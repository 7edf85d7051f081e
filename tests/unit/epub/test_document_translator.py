"""Unit tests for per-document orchestration."""

import httpx
import pytest
from lxml import etree

from epub_translator.core.epub.document_translator import DocumentTranslator, DocumentStats
from epub_translator.core.epub.xml_helpers import parse_document, serialize_document


def _translator(client, sleep, pacing_delay=0.5):
    return DocumentTranslator(client, pacing_delay=pacing_delay, sleep=sleep)


class TestDocumentTranslatorScenarios:
    """End-to-end behaviour on small trees."""

    @pytest.mark.asyncio
    async def test_paragraph_with_inline_markup(self, fake_service, make_client, completion, sleep):
        service = fake_service([httpx.Response(200, json=completion("Hallo <em>Welt</em>"))])
        root = etree.fromstring("<html><body><p>Hello <em>world</em></p></body></html>")

        await _translator(make_client(service), sleep).run(root, "German")

        assert etree.tostring(root.find(".//p"), encoding="unicode") == "<p>Hallo <em>Welt</em></p>"

    @pytest.mark.asyncio
    async def test_whitespace_only_span_is_untouched(self, fake_service, make_client, sleep):
        service = fake_service()
        root = etree.fromstring("<html><body><span>   </span></body></html>")
        before = etree.tostring(root)

        translator = _translator(make_client(service), sleep)
        await translator.run(root, "German")

        assert etree.tostring(root) == before
        assert service.calls == 0
        assert translator.stats.blank == 1

    @pytest.mark.asyncio
    async def test_failed_unit_is_marked_and_run_continues(self, fake_service, make_client, completion, sleep):
        service = fake_service([500, 500, httpx.Response(200, json=completion("Zwei"))])
        root = etree.fromstring("<html><body><p>One</p><p>Two</p></body></html>")

        translator = _translator(make_client(service, max_retries=1), sleep)
        await translator.run(root, "German")

        first, second = root.findall(".//p")
        assert etree.tostring(first, encoding="unicode", method="text").startswith("One ")
        assert "Translation failed" in etree.tostring(first, encoding="unicode")
        assert second.text == "Zwei"
        assert translator.stats.failed == 1
        assert translator.stats.translated == 1
        assert translator.stats.requests == 3


class TestOrderingAndStructure:
    """Units are processed in document order; surrounding structure is preserved."""

    @pytest.mark.asyncio
    async def test_requests_follow_document_order(self, fake_service, make_client, echo, sleep, sample_xhtml):
        service = fake_service(default=echo("DE:"))
        root = parse_document(sample_xhtml, "ch.xhtml")

        await _translator(make_client(service), sleep).run(root, "German")

        assert service.user_contents() == ["Chapter One", "Hello <em>world</em>", "A note"]

    @pytest.mark.asyncio
    async def test_attributes_siblings_and_tails_preserved(self, fake_service, make_client, echo, sleep, sample_xhtml):
        service = fake_service(default=echo("DE:"))
        root = parse_document(sample_xhtml, "ch.xhtml")

        await _translator(make_client(service), sleep).run(root, "German")
        output = serialize_document(root, "ch.xhtml")

        assert b'<h1 class="chapter">DE:Chapter One</h1>' in output
        assert b'<p id="p1">DE:Hello <em>world</em></p>' in output
        assert b'<p>   </p>' in output
        assert b'<div class="note"><span epub:type="footnote">DE:A note</span> tail text</div>' in output
        assert b'<style>p { margin: 0; }</style>' in output

    @pytest.mark.asyncio
    async def test_nested_span_is_translated_once(self, fake_service, make_client, echo, sleep):
        service = fake_service(default=echo("DE:"))
        root = etree.fromstring("<html><body><p>Hi <span>there</span></p></body></html>")

        await _translator(make_client(service), sleep).run(root, "German")

        assert service.calls == 1
        assert etree.tostring(root.find(".//p"), encoding="unicode") == "<p>DE:Hi <span>there</span></p>"


class TestPacing:
    """Test the inter-request pacing delay."""

    @pytest.mark.asyncio
    async def test_pacing_between_calls_only(self, fake_service, make_client, echo, sleep):
        service = fake_service(default=echo())
        root = etree.fromstring("<html><body><p>A</p><p> </p><p>B</p><p>C</p></body></html>")

        await _translator(make_client(service), sleep, pacing_delay=0.5).run(root, "German")

        assert service.calls == 3
        assert sleep.delays == [0.5, 0.5]

    @pytest.mark.asyncio
    async def test_pacing_spans_documents(self, fake_service, make_client, echo, sleep):
        service = fake_service(default=echo())
        translator = _translator(make_client(service), sleep, pacing_delay=1.0)

        await translator.run(etree.fromstring("<html><body><p>A</p></body></html>"), "German")
        await translator.run(etree.fromstring("<html><body><p>B</p></body></html>"), "German")

        assert sleep.delays == [1.0]
        assert translator.stats.translated == 2

    @pytest.mark.asyncio
    async def test_pacing_is_independent_of_backoff(self, fake_service, make_client, completion, sleep):
        service = fake_service([503, httpx.Response(200, json=completion("a")),
                                httpx.Response(200, json=completion("b"))])
        root = etree.fromstring("<html><body><p>A</p><p>B</p></body></html>")

        await _translator(make_client(service, base_delay=2.0), sleep, pacing_delay=0.25).run(root, "German")

        # backoff for unit A, then pacing before unit B
        assert sleep.delays == [2.0, 0.25]

    @pytest.mark.asyncio
    async def test_zero_pacing_never_sleeps(self, fake_service, make_client, echo, sleep):
        service = fake_service(default=echo())
        root = etree.fromstring("<html><body><p>A</p><p>B</p></body></html>")

        await _translator(make_client(service), sleep, pacing_delay=0).run(root, "German")

        assert sleep.delays == []


class TestDocumentStats:
    """Test statistics aggregation."""

    def test_merge_and_to_dict(self):
        total = DocumentStats()
        total.merge(DocumentStats(units=3, blank=1, translated=1, failed=1, requests=5))
        total.merge(DocumentStats(units=2, translated=2, requests=2))

        assert total.to_dict() == {'units': 5, 'blank': 1, 'completed': 3, 'failed': 1, 'requests': 7}
