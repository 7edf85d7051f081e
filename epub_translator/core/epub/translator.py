"""
EPUB translation orchestration

This module walks the EPUB archive entry by entry: markup documents go
through the DocumentTranslator, every other entry is copied byte-for-byte.
"""
import os
import tempfile
import zipfile
from datetime import datetime
from typing import Callable, List, Optional

from tqdm.auto import tqdm

from epub_translator.config import MARKUP_EXTENSIONS, TranslationConfig
from .document_translator import DocumentStats, DocumentTranslator
from .exceptions import InvalidArchiveError
from .xml_helpers import parse_document, serialize_document
from ..llm.client import TranslationClient


def is_markup_entry(name: str) -> bool:
    """True for archive entries that are translated (.xhtml, .html, .htm)"""
    return name.lower().endswith(MARKUP_EXTENSIONS)


def default_output_path(input_filepath: str, now: Optional[datetime] = None) -> str:
    """translated-<YYYYmmdd-HHMM>-<name> next to the input file"""
    timestamp = (now or datetime.now()).strftime("%Y%m%d-%H%M")
    directory, filename = os.path.split(input_filepath)
    return os.path.join(directory, f"translated-{timestamp}-{filename}")


async def translate_epub_file(
    input_filepath: str,
    output_filepath: str,
    config: TranslationConfig,
    log_callback: Optional[Callable] = None,
    client: Optional[TranslationClient] = None,
    document_translator: Optional[DocumentTranslator] = None
) -> DocumentStats:
    """
    Translate an EPUB file using the configured translation service

    Entries are processed sequentially in archive order. The output is written
    to a temporary file and only moved to `output_filepath` once every entry
    has been written, so an aborted run never leaves a partial EPUB behind.

    Args:
        input_filepath: Path to input EPUB
        output_filepath: Path to output EPUB
        config: Validated translation configuration
        log_callback: Logging callback (key, message)
        client: Translation client (built from config if None)
        document_translator: Orchestrator (built from config if None)

    Returns:
        Aggregated statistics for the whole archive

    Raises:
        FileNotFoundError: if the input file does not exist
        InvalidArchiveError: if the input is not a zip archive
        DocumentParseError: if a markup entry cannot be parsed or serialized
    """
    if not os.path.exists(input_filepath):
        raise FileNotFoundError(f"Input EPUB file '{input_filepath}' not found.")

    try:
        reader = zipfile.ZipFile(input_filepath, 'r')
    except zipfile.BadZipFile as e:
        raise InvalidArchiveError(f"Could not open input EPUB '{input_filepath}': {e}", original_error=e)

    own_client = client is None
    if client is None:
        client = TranslationClient.from_config(config, log_callback=log_callback)
    if document_translator is None:
        document_translator = DocumentTranslator(
            client, pacing_delay=config.pacing_delay, log_callback=log_callback
        )

    output_dir = os.path.dirname(os.path.abspath(output_filepath))
    fd, temp_path = tempfile.mkstemp(suffix=".epub", dir=output_dir)
    os.close(fd)

    try:
        with reader, zipfile.ZipFile(temp_path, 'w') as writer:
            await _translate_entries(reader, writer, config, document_translator, log_callback)
        os.replace(temp_path, output_filepath)
    except BaseException:
        if os.path.exists(temp_path):
            os.remove(temp_path)
        raise
    finally:
        if own_client:
            await client.close()

    _log(log_callback, "epub_save_success", f"Translated EPUB saved: '{output_filepath}'")
    return document_translator.stats


async def _translate_entries(
    reader: zipfile.ZipFile,
    writer: zipfile.ZipFile,
    config: TranslationConfig,
    document_translator: DocumentTranslator,
    log_callback: Optional[Callable]
) -> None:
    """Copy or translate every entry, keeping order and compression settings"""
    entries: List[zipfile.ZipInfo] = reader.infolist()
    markup_total = sum(1 for info in entries if is_markup_entry(info.filename))
    markup_index = 0

    progress = tqdm(total=markup_total, desc="Translating EPUB", unit="file") if not log_callback else None
    try:
        for info in entries:
            data = reader.read(info)

            if is_markup_entry(info.filename) and not info.is_dir():
                markup_index += 1
                _log(log_callback, "epub_translating_file",
                     f"Translating {info.filename}... ({markup_index}/{markup_total})")
                data = await _translate_document(data, info.filename, config, document_translator)
                if progress is not None:
                    progress.update(1)

            writer.writestr(info, data)
    finally:
        if progress is not None:
            progress.close()


async def _translate_document(
    data: bytes,
    entry_name: str,
    config: TranslationConfig,
    document_translator: DocumentTranslator
) -> bytes:
    root = parse_document(data, entry_name)
    await document_translator.run(root, config.target_language)
    return serialize_document(root, entry_name)


def _log(log_callback: Optional[Callable], key: str, message: str) -> None:
    if log_callback:
        log_callback(key, message)
    else:
        tqdm.write(message)


__all__ = [
    'translate_epub_file',
    'default_output_path',
    'is_markup_entry',
]
