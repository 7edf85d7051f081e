"""
EPUB translation module

Main entry point:
    translate_epub_file() in .translator - Translate an EPUB archive

Components:
    - node_selector: Translation unit selection from XHTML trees
    - document_translator: Per-document orchestration and pacing
    - xml_helpers: Document parsing/serialization and inner markup rewriting
    - exceptions: Error taxonomy
"""

from .exceptions import (
    EpubTranslationError,
    ConfigurationError,
    DocumentParseError,
    InvalidArchiveError,
    TranslationFailure,
    FailureKind,
)
from .node_selector import TranslationUnit, select_units, TRANSLATABLE_TAGS

__all__ = [
    'EpubTranslationError',
    'ConfigurationError',
    'DocumentParseError',
    'InvalidArchiveError',
    'TranslationFailure',
    'FailureKind',
    'TranslationUnit',
    'select_units',
    'TRANSLATABLE_TAGS',
]
