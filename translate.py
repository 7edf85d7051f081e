"""
Command-line interface for EPUB translation
"""
import sys
import logging
import argparse
import asyncio

from epub_translator.config import TranslationConfig, DEFAULT_TARGET_LANGUAGE
from epub_translator.core.epub.exceptions import ConfigurationError, EpubTranslationError
from epub_translator.core.epub.translator import translate_epub_file, default_output_path
from epub_translator.core.llm.retry_policy import RetryPolicy
from epub_translator.utils.unified_logger import setup_cli_logger, LogType


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Translate the text of an EPUB file while keeping its markup intact.",
        epilog="Settings default to GEMINI_API_KEY, GEMINI_API_URL, GEMINI_MODEL and "
               "TARGET_LANGUAGE from the environment or a .env file."
    )
    parser.add_argument("input", help="Path to the input EPUB file.")
    parser.add_argument("-o", "--output", default=None,
                        help="Path to the output file (default: translated-<timestamp>-<input>).")
    parser.add_argument("-tl", "--target_lang", default=None,
                        help=f"Target language (default: $TARGET_LANGUAGE or {DEFAULT_TARGET_LANGUAGE}).")
    parser.add_argument("-m", "--model", default=None, help="Model identifier (default: $GEMINI_MODEL).")
    parser.add_argument("--api_endpoint", default=None, help="Chat-completions URL (default: $GEMINI_API_URL).")
    parser.add_argument("--api_key", default=None, help="API key (default: $GEMINI_API_KEY).")
    parser.add_argument("--max_retries", type=int, default=None, help="Retries per unit after the first attempt.")
    parser.add_argument("--retry_delay", type=float, default=None, help="Base backoff delay in seconds.")
    parser.add_argument("--pacing_delay", type=float, default=None, help="Seconds to wait between requests.")
    parser.add_argument("--timeout", type=float, default=None, help="Request timeout in seconds.")
    parser.add_argument("--env_file", default=".env", help="Path to the .env file (default: .env).")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output.")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = TranslationConfig.from_cli_args(args, TranslationConfig.from_env(args.env_file)).validate()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    if config.debug:
        logging.basicConfig(level=logging.DEBUG, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    logger = setup_cli_logger(enable_colors=config.enable_colors, debug=config.debug)
    output_path = args.output or default_output_path(args.input)
    retry_policy = RetryPolicy(base_delay=config.retry_delay, max_retries=config.max_retries)

    logger.info("Translation Started", LogType.TRANSLATION_START, {
        'target_lang': config.target_language,
        'model': config.model,
        'input_file': args.input,
        'output_file': output_path,
        'retry_schedule': ", ".join(f"{d:g}s" for d in retry_policy.delay_schedule())
    })
    logger.debug(f"Configuration: {config.to_dict()}")

    log_callback = logger.create_legacy_callback()

    try:
        stats = asyncio.run(translate_epub_file(args.input, output_path, config, log_callback=log_callback))
    except (EpubTranslationError, FileNotFoundError) as e:
        logger.error(f"Translation failed: {e}", LogType.ERROR_DETAIL, {
            'details': repr(e),
            'entry': getattr(e, 'entry_name', None) or args.input
        })
        return 1

    logger.info("Translation Completed Successfully", LogType.TRANSLATION_END, {
        'output_file': output_path,
        'stats': stats.to_dict()
    })
    return 0


if __name__ == "__main__":
    sys.exit(main())
