"""Output filenames and delivery of finished export buffers."""

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

logger = logging.getLogger('document_exporter.exporters.file_delivery')

MAX_FILENAME_LENGTH = 200
DEFAULT_TEMPLATE = '{title}'
FALLBACK_NAME = 'document'

_ILLEGAL_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_WHITESPACE = re.compile(r'\s+')
_DASHES = re.compile(r'-+')


def sanitize_filename(name: str) -> str:
    """
    Make ``name`` safe as a file name.

    Illegal characters are removed, whitespace becomes dashes, dash runs are
    collapsed and trimmed, and the result is capped at 200 characters.
    """
    cleaned = _ILLEGAL_CHARS.sub('', name or '')
    cleaned = _WHITESPACE.sub('-', cleaned)
    cleaned = _DASHES.sub('-', cleaned).strip('-')
    cleaned = cleaned[:MAX_FILENAME_LENGTH].strip('-')
    return cleaned or FALLBACK_NAME


class FilenameGenerator:
    """Builds filenames from templates with title and date variables."""

    @staticmethod
    def variables(title: str, now: Optional[datetime] = None) -> dict:
        now = now or datetime.now()
        return {
            'title': sanitize_filename(title or FALLBACK_NAME).lower(),
            'date': now.strftime('%Y-%m-%d'),
            'datetime': now.strftime('%Y-%m-%d_%H-%M'),
            'timestamp': str(int(now.timestamp() * 1000)),
            'year': now.strftime('%Y'),
            'month': now.strftime('%m'),
            'day': now.strftime('%d'),
        }

    @classmethod
    def generate(cls, title: str, extension: str, template: str = DEFAULT_TEMPLATE,
                 now: Optional[datetime] = None) -> str:
        """
        Generate a filename.

        Args:
            title: Document title
            extension: Extension without the dot
            template: Template using {title} {date} {datetime} {timestamp}
                {year} {month} {day}
            now: Clock override

        Returns:
            Lower-cased filename including the extension
        """
        result = template or DEFAULT_TEMPLATE
        for key, value in cls.variables(title, now).items():
            result = result.replace('{' + key + '}', value)

        name = _ILLEGAL_CHARS.sub('', result)
        name = _DASHES.sub('-', name).strip('-').lower()
        name = name[:MAX_FILENAME_LENGTH] or FALLBACK_NAME
        return f"{name}.{extension.lstrip('.')}"


class FileDelivery:
    """Writes finished buffers into an output directory."""

    def __init__(self, output_directory: str = './exports', logger: logging.Logger = None):
        self.output_directory = Path(output_directory)
        self.logger = logger or logging.getLogger('document_exporter.exporters.file_delivery')

    def deliver(self, data: bytes, filename: str) -> Path:
        """
        Save ``data`` as ``filename``.

        Args:
            data: File contents
            filename: Target file name (no directories)

        Returns:
            Path of the written file

        Raises:
            OSError: If the file cannot be written
        """
        self.output_directory.mkdir(parents=True, exist_ok=True)
        path = self.output_directory / Path(filename).name
        path.write_bytes(data)
        self.logger.info(f"Saved {path} ({len(data)} bytes)")
        return path


__all__ = ['FilenameGenerator', 'FileDelivery', 'sanitize_filename', 'MAX_FILENAME_LENGTH']
