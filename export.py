#!/usr/bin/env python3
"""
Document Export Tool - Main CLI Entry Point

This script provides the command-line interface for exporting a rendered HTML
document (headings, lists, code, tables and SVG diagrams) to a Word document
or a printed PDF.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from bs4 import BeautifulSoup

from cancellation import CancellationToken, ExportCancelledError
from config_loader import DEFAULT_CONFIG, ConfigLoader, get_nested
from logger import log_config, log_section, setup_logging
from models import ExportOptions, ExportProgress
from orchestrator import ExportError, ExportOrchestrator, UnsupportedFormatError

# Version
__version__ = "1.0.0"


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        description="Export a rendered HTML document to DOCX or PDF",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Export to a Word document
  python export.py page.html

  # Print to PDF on landscape Letter paper
  python export.py page.html --format pdf --page-size Letter --orientation landscape

  # Use a configuration file and a custom output directory
  python export.py page.html --config config.yaml --output-dir ./out

  # Explicit file name, title heading and author
  python export.py page.html --filename report --include-title --author "Docs Team"

  # Verbose logging
  python export.py page.html -vv
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        'input',
        type=str,
        help='Path to the rendered HTML document'
    )

    parser.add_argument(
        '--format',
        choices=['docx', 'pdf'],
        help='Export format (default: docx)'
    )

    parser.add_argument(
        '--config',
        type=str,
        help='Path to configuration YAML file'
    )

    parser.add_argument(
        '--output-dir',
        type=str,
        help='Directory receiving the exported file (default: ./exports)'
    )

    parser.add_argument(
        '--filename',
        type=str,
        help='Output file name (default: derived from the document title)'
    )

    parser.add_argument(
        '--page-size',
        type=str,
        help='Paper size such as A4, A3, Letter or Legal (default: A4)'
    )

    parser.add_argument(
        '--orientation',
        choices=['portrait', 'landscape'],
        help='Page orientation (default: portrait)'
    )

    parser.add_argument(
        '--margins',
        type=str,
        help='Page margins as a CSS length, e.g. 2cm, 20mm, 1in'
    )

    parser.add_argument(
        '--author',
        type=str,
        help='Author recorded in the document properties'
    )

    parser.add_argument(
        '--include-title',
        action='store_true',
        help='Add the document title as a title heading (DOCX only)'
    )

    parser.add_argument(
        '--no-diagrams',
        action='store_true',
        help='Skip diagram conversion'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        help='Also write logs to this file'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help='Increase verbosity (-v for INFO, -vv for DEBUG)'
    )

    return parser


def load_document(path: str):
    """Parse the HTML file and return its export root (the body when present)."""
    html = Path(path).read_text(encoding='utf-8')
    soup = BeautifulSoup(html, 'lxml')
    return soup.body or soup


def run_export(config: dict, args: argparse.Namespace, logger: logging.Logger) -> int:
    """Execute the export pipeline."""
    input_path = Path(args.input)
    if not input_path.is_file():
        logger.error(f"Input document not found: {input_path}")
        return 1

    logger.info(f"Loading document from {input_path}")
    root = load_document(str(input_path))

    options = ExportOptions.from_config(config)
    orchestrator = ExportOrchestrator(config, logger=logging.getLogger('document_exporter.orchestrator'))
    cancel_token = CancellationToken()

    def on_progress(progress: ExportProgress) -> None:
        logger.info(f"[{progress.stage.value}] {progress.percent:.0f}% {progress.message}")

    try:
        result = asyncio.run(orchestrator.export(root, options, on_progress, cancel_token))
    except KeyboardInterrupt:
        cancel_token.cancel("Interrupted by user")
        logger.error("Export interrupted by user")
        return 130
    except ExportCancelledError as e:
        logger.error(str(e))
        return 130
    except (ExportError, UnsupportedFormatError) as e:
        logger.error(str(e), exc_info=logger.isEnabledFor(logging.DEBUG))
        return 1

    if result.path:
        print(f"Exported '{result.title}' to {result.path} ({result.size_bytes} bytes)")
    else:
        print(f"Printed '{result.title}'")
    logger.info(
        f"{result.node_count} elements, {result.diagram_count} diagrams, "
        f"{result.word_count} words"
    )
    return 0


def main() -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args()

    try:
        setup_logging(verbosity=args.verbose)
        logger = logging.getLogger('document_exporter.cli')

        log_section("Document Export Tool")
        logger.info(f"Version: {__version__}")

        # Load configuration
        if args.config:
            logger.info(f"Loading configuration from {args.config}")
            config = ConfigLoader.load(args.config)
        else:
            config = ConfigLoader.with_defaults(DEFAULT_CONFIG)

        # Merge with CLI arguments (CLI takes precedence)
        config = ConfigLoader.merge_with_args(config, args)
        ConfigLoader.validate(config)

        # Reconfigure logging with config file settings
        setup_logging(
            verbosity=args.verbose,
            log_file=get_nested(config, 'logging.file'),
            level=get_nested(config, 'logging.level'),
        )

        log_config(config)

        return run_export(config, args, logger)

    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nExport interrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"ERROR: Unexpected error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
