"""
Per-document translation orchestration

Drives the units of one parsed document through the translation client,
strictly in document order, and writes every outcome back into the tree.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from lxml import etree

from .node_selector import select_units, TRANSLATABLE_TAGS
from .xml_helpers import replace_inner_markup
from ..llm.client import SleepFunc, TranslationClient

logger = logging.getLogger(__name__)


@dataclass
class DocumentStats:
    """Counters for one or more documents"""
    units: int = 0
    blank: int = 0
    translated: int = 0
    failed: int = 0
    requests: int = 0

    def merge(self, other: 'DocumentStats') -> None:
        self.units += other.units
        self.blank += other.blank
        self.translated += other.translated
        self.failed += other.failed
        self.requests += other.requests

    def to_dict(self) -> dict:
        return {
            'units': self.units,
            'blank': self.blank,
            'completed': self.translated,
            'failed': self.failed,
            'requests': self.requests,
        }


class DocumentTranslator:
    """Translates the selected units of parsed documents one at a time."""

    def __init__(self, client: TranslationClient,
                 pacing_delay: float = 1.0,
                 sleep: SleepFunc = asyncio.sleep,
                 translatable_tags=TRANSLATABLE_TAGS,
                 log_callback: Optional[Callable] = None):
        """
        Args:
            client: Translation client (owns the retry loop)
            pacing_delay: Seconds to wait between two successive service calls
            sleep: Coroutine used for pacing waits
            translatable_tags: Local tag names treated as units
            log_callback: Callback for logging (key, message)
        """
        self.client = client
        self.pacing_delay = pacing_delay
        self.sleep = sleep
        self.translatable_tags = translatable_tags
        self.log_callback = log_callback
        self.stats = DocumentStats()
        # Pacing applies across documents handled by the same instance
        self._has_called_service = False

    def _log(self, key: str, message: str):
        if self.log_callback:
            self.log_callback(key, message)
        else:
            logger.debug(message)

    async def _pace(self):
        if self._has_called_service and self.pacing_delay > 0:
            await self.sleep(self.pacing_delay)
        self._has_called_service = True

    async def run(self, root: etree._Element, target_language: str) -> etree._Element:
        """
        Translate every non-blank unit of the tree in place.

        A failed unit keeps its original markup plus the failure marker and
        never stops the remaining units.

        Args:
            root: Parsed document root
            target_language: Language to translate into

        Returns:
            The same (mutated) root
        """
        doc_stats = DocumentStats()

        for unit in select_units(root, self.translatable_tags):
            doc_stats.units += 1
            if unit.is_blank:
                doc_stats.blank += 1
                continue

            await self._pace()
            outcome = await self.client.translate(unit.content, target_language)
            doc_stats.requests += outcome.attempts

            replace_inner_markup(unit.element, outcome.text)
            if outcome.succeeded:
                doc_stats.translated += 1
            else:
                doc_stats.failed += 1

        self._log("document_units_processed",
                  f"  {doc_stats.translated} translated, {doc_stats.failed} failed, "
                  f"{doc_stats.blank} blank ({doc_stats.requests} requests)")
        self.stats.merge(doc_stats)
        return root
