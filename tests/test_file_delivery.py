"""Tests for output filenames and file delivery."""

from datetime import datetime

import pytest

from exporters.file_delivery import (
    MAX_FILENAME_LENGTH,
    FileDelivery,
    FilenameGenerator,
    sanitize_filename,
)

NOW = datetime(2024, 3, 5, 14, 7, 9)


@pytest.mark.parametrize('name, expected', [
    ('Release Notes', 'Release-Notes'),
    ('  Hello   World  ', 'Hello-World'),
    ('a/b: c?', 'ab-c'),
    ('one---two', 'one-two'),
    ('<>|*', 'document'),
    ('', 'document'),
])
def test_sanitize_filename(name, expected):
    """Test filename sanitization."""
    assert sanitize_filename(name) == expected


def test_sanitize_filename_length_cap():
    """Test sanitize filename length cap."""
    assert len(sanitize_filename('x' * 500)) == MAX_FILENAME_LENGTH


class TestFilenameGenerator:
    """Test output filename generation."""

    def test_title_template(self):
        """Test title template."""
        assert FilenameGenerator.generate('Release Notes', 'docx', now=NOW) == 'release-notes.docx'

    def test_date_variables(self):
        """Test date variables."""
        name = FilenameGenerator.generate('Guide', 'pdf', '{title}-{date}', now=NOW)
        assert name == 'guide-2024-03-05.pdf'

    def test_datetime_and_parts(self):
        """Test datetime and parts."""
        name = FilenameGenerator.generate('Guide', '.pdf', '{year}{month}{day}_{datetime}', now=NOW)
        assert name == '20240305_2024-03-05_14-07.pdf'

    def test_timestamp(self):
        """Test the millisecond timestamp variable."""
        name = FilenameGenerator.generate('Guide', 'docx', '{timestamp}', now=NOW)
        assert name == f"{int(NOW.timestamp() * 1000)}.docx"

    def test_untitled(self):
        """Test an empty title falls back to document."""
        assert FilenameGenerator.generate('', 'docx', now=NOW) == 'document.docx'

    def test_empty_template_uses_title(self):
        """Test empty template uses title."""
        assert FilenameGenerator.generate('Guide', 'docx', '', now=NOW) == 'guide.docx'


class TestFileDelivery:
    """Test writing exported files to disk."""

    def test_creates_directory_and_writes(self, tmp_path):
        """Test creates directory and writes."""
        target = tmp_path / 'nested' / 'exports'
        path = FileDelivery(str(target)).deliver(b'payload', 'report.docx')
        assert path == target / 'report.docx'
        assert path.read_bytes() == b'payload'

    def test_directories_in_filename_ignored(self, tmp_path):
        """Test directories in filename ignored."""
        path = FileDelivery(str(tmp_path)).deliver(b'x', '../escape.pdf')
        assert path == tmp_path / 'escape.pdf'
        assert path.exists()

    def test_overwrites_existing(self, tmp_path):
        """Test overwrites existing."""
        delivery = FileDelivery(str(tmp_path))
        delivery.deliver(b'first', 'a.pdf')
        delivery.deliver(b'second', 'a.pdf')
        assert (tmp_path / 'a.pdf').read_bytes() == b'second'
