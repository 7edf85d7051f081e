"""
XML/HTML helper utilities for document parsing and element manipulation

This module wraps lxml for the operations the translator needs: parsing an
archive entry into a tree, serializing it back, reading an element's inner
markup and replacing it while leaving the element's tag, attributes and tail
untouched.
"""
import html
import logging
import re
from html.entities import name2codepoint
from typing import Optional

import lxml.html
from lxml import etree

from .exceptions import DocumentParseError

logger = logging.getLogger(__name__)

XML = "xml"
HTML = "html"

_OPENING_TAG = re.compile(r'^<[^>]+>')
_CLOSING_TAG = re.compile(r'</[^>]+>$')
_TAG = re.compile(r'<[^<>]*>')
_STRAY_AMPERSAND = re.compile(r'&(?!#?\w+;)')
_NAMED_ENTITY = re.compile(r'&([A-Za-z]\w*);')
_XML_ENTITIES = frozenset(['amp', 'lt', 'gt', 'quot', 'apos'])


def local_name(element: etree._Element) -> str:
    """Tag name without namespace, lower-cased ('' for comments and PIs)"""
    tag = element.tag
    if not isinstance(tag, str):
        return ""
    return etree.QName(tag).localname.lower()


def document_method(root: etree._Element) -> str:
    """Whether a parsed tree came from the XML or the HTML parser"""
    return HTML if isinstance(root, lxml.html.HtmlElement) else XML


def parse_document(data: bytes, entry_name: str = "") -> etree._Element:
    """
    Parse a markup document.

    XHTML is parsed strictly first. If that fails, `.xhtml` entries are
    re-parsed in recovery mode and `.html`/`.htm` entries with the HTML
    parser.

    Args:
        data: Raw entry bytes
        entry_name: Archive entry name (selects the fallback parser)

    Returns:
        Root element

    Raises:
        DocumentParseError: if no parser can build a tree
    """
    strict = etree.XMLParser(encoding=None, recover=False, remove_blank_text=False,
                             resolve_entities=False)
    try:
        return etree.fromstring(data, strict)
    except (etree.XMLSyntaxError, ValueError) as e_strict:
        strict_error = e_strict

    is_xhtml = entry_name.lower().endswith('.xhtml')
    try:
        if is_xhtml:
            logger.warning(f"{entry_name}: strict XML parsing failed ({strict_error}), retrying in recovery mode")
            parser = etree.XMLParser(recover=True, remove_blank_text=False, resolve_entities=False)
            root = etree.fromstring(data, parser)
        else:
            root = lxml.html.document_fromstring(data)
    except (etree.ParserError, etree.XMLSyntaxError, ValueError) as e_fallback:
        raise DocumentParseError(f"Could not parse {entry_name or 'document'}: {e_fallback}",
                                 entry_name=entry_name, original_error=e_fallback)

    if root is None:
        raise DocumentParseError(f"Could not parse {entry_name or 'document'}: {strict_error}",
                                 entry_name=entry_name, original_error=strict_error)
    return root


def serialize_document(root: etree._Element, entry_name: str = "") -> bytes:
    """
    Serialize a parsed document, keeping its doctype.

    Raises:
        DocumentParseError: if lxml cannot serialize the tree
    """
    try:
        if document_method(root) == HTML:
            return lxml.html.tostring(root.getroottree(), encoding='utf-8', method='html')
        return etree.tostring(root.getroottree(), encoding='utf-8', xml_declaration=True, method='xml')
    except (etree.SerialisationError, ValueError) as e:
        raise DocumentParseError(f"Could not serialize {entry_name or 'document'}: {e}",
                                 entry_name=entry_name, original_error=e)


def text_content(element: etree._Element) -> str:
    """All text of the element's subtree (comments excluded), tail excluded"""
    return etree.tostring(element, encoding='unicode', method='text', with_tail=False)


def inner_markup(element: etree._Element) -> str:
    """
    Serialize the element's content while preserving nested tags.

    Namespace declarations end up on the outer tag only, so stripping it
    leaves clean inner markup such as 'Hello <em>world</em>'.
    """
    if document_method(element) == HTML:
        parts = [html.escape(element.text, quote=False)] if element.text else []
        parts.extend(lxml.html.tostring(child, encoding='unicode', method='html', with_tail=True)
                     for child in element)
        return "".join(parts)

    content = etree.tostring(element, encoding='unicode', method='xml', with_tail=False)
    opening = _OPENING_TAG.match(content)
    closing = _CLOSING_TAG.search(content)
    if not opening or not closing or opening.group(0).endswith('/>'):
        # Self-closing element: <p/>
        return ""
    return content[opening.end():closing.start()]


def _namespace_declarations(element: etree._Element) -> str:
    declarations = []
    for prefix, uri in element.nsmap.items():
        attr = "xmlns" if prefix is None else f"xmlns:{prefix}"
        declarations.append(f'{attr}="{html.escape(uri)}"')
    return " ".join(declarations)


def _wrap_fragment(element: etree._Element, markup: str) -> bytes:
    declarations = _namespace_declarations(element)
    wrapped = f"<fragment {declarations}>{markup}</fragment>" if declarations else f"<fragment>{markup}</fragment>"
    return wrapped.encode('utf-8')


def _expected_text(markup: str) -> str:
    return " ".join(html.unescape(_TAG.sub("", markup)).split())


def _named_entity(match) -> str:
    name = match.group(1)
    if name in _XML_ENTITIES:
        return match.group(0)
    codepoint = name2codepoint.get(name)
    return f"&#{codepoint};" if codepoint is not None else f"&amp;{name};"


def _escape_for_xml(markup: str) -> str:
    """Escape bare ampersands and turn HTML-only entities into character references"""
    return _NAMED_ENTITY.sub(_named_entity, _STRAY_AMPERSAND.sub('&amp;', markup))


def _parse_xml_fragment(element: etree._Element, markup: str) -> Optional[etree._Element]:
    """
    Parse markup inside a wrapper carrying the element's in-scope namespaces.

    Bare ampersands and HTML-only entities such as &nbsp; are escaped
    before giving up on a strict parse. A
    recovered tree is only accepted if it kept all of the text; otherwise
    None is returned.
    """
    strict = etree.XMLParser(resolve_entities=False)
    try:
        return etree.fromstring(_wrap_fragment(element, markup), strict)
    except etree.XMLSyntaxError:
        pass

    escaped = _escape_for_xml(markup)
    try:
        return etree.fromstring(_wrap_fragment(element, escaped), strict)
    except etree.XMLSyntaxError as e:
        logger.warning(f"Translated markup is not well-formed ({e}), recovering")

    try:
        recovered = etree.fromstring(_wrap_fragment(element, escaped),
                                     etree.XMLParser(recover=True, resolve_entities=False))
    except etree.XMLSyntaxError:
        return None
    if recovered is None or " ".join(text_content(recovered).split()) != _expected_text(markup):
        return None
    return recovered


def replace_inner_markup(element: etree._Element, markup: str) -> None:
    """
    Replace the element's content with new markup.

    The element's tag, attributes and tail are left untouched. If the markup
    cannot be parsed without losing text it is stored as plain text instead.

    Args:
        element: lxml element to rewrite
        markup: New inner markup (may contain inline tags)
    """
    for child in list(element):
        element.remove(child)
    element.text = None

    if not markup:
        return

    if document_method(element) == HTML:
        try:
            fragments = lxml.html.fragments_fromstring(markup)
        except (etree.ParserError, etree.XMLSyntaxError) as e:
            logger.warning(f"Translated markup could not be parsed as HTML ({e}), storing as text")
            element.text = markup
            return
        if fragments and isinstance(fragments[0], str):
            element.text = fragments.pop(0)
        for fragment in fragments:
            element.append(fragment)
        return

    temp = _parse_xml_fragment(element, markup)
    if temp is None:
        logger.warning("Translated markup could not be recovered, storing as text")
        element.text = markup
        return

    element.text = temp.text
    for child in list(temp):
        element.append(child)
