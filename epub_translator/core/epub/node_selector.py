"""
Translation unit selection for EPUB documents

This module walks a parsed XHTML tree and yields, in document order, the
elements whose inner markup is sent to the translation service as one
request each.
"""
from dataclasses import dataclass, field
from typing import Iterator, FrozenSet

from lxml import etree

from .xml_helpers import inner_markup, local_name, text_content

TRANSLATABLE_TAGS: FrozenSet[str] = frozenset(
    ['p', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6', 'li', 'span']
)
"""Elements whose content is translated"""

SKIPPED_TAGS: FrozenSet[str] = frozenset(['script', 'style', 'head'])
"""Subtrees never searched for units"""


@dataclass
class TranslationUnit:
    """
    One markup fragment eligible for translation.

    Attributes:
        index: Position in document order (0-based)
        element: The element the result is written back into
        content: Serialized inner markup, nested tags included
        text: Text content of the element
    """
    index: int
    element: etree._Element = field(repr=False)
    content: str
    text: str = field(repr=False)

    @property
    def is_blank(self) -> bool:
        """True when the element holds nothing but whitespace"""
        return not self.text.strip()

    @property
    def tag(self) -> str:
        return local_name(self.element)

    def __repr__(self) -> str:
        content_preview = self.content[:50] + "..." if len(self.content) > 50 else self.content
        return f"TranslationUnit(index={self.index}, tag={self.tag}, content='{content_preview}')"


def _walk(element: etree._Element, translatable_tags: FrozenSet[str]) -> Iterator[etree._Element]:
    # Children are snapshotted so write-back during iteration cannot disturb the walk
    for child in list(element):
        name = local_name(child)
        if not name or name in SKIPPED_TAGS:
            continue
        if name in translatable_tags:
            # The outermost selected element owns its whole subtree
            yield child
            continue
        yield from _walk(child, translatable_tags)


def select_units(root: etree._Element,
                 translatable_tags: FrozenSet[str] = TRANSLATABLE_TAGS) -> Iterator[TranslationUnit]:
    """
    Lazily yield translation units in document (pre-)order.

    An allow-listed element nested inside another selected element (a span in
    a paragraph, a nested list item) is not selected again: its text travels
    with the ancestor's inner markup. The generator is one-shot; call again to
    re-scan the tree.

    Args:
        root: Root of the parsed document (or any subtree)
        translatable_tags: Local tag names to select

    Yields:
        TranslationUnit for every selected element, blank ones included
    """
    if local_name(root) in translatable_tags:
        candidates = iter([root])
    else:
        candidates = _walk(root, translatable_tags)

    for index, element in enumerate(candidates):
        text = text_content(element)
        content = inner_markup(element) if text.strip() else ""
        yield TranslationUnit(index=index, element=element, content=content, text=text)
