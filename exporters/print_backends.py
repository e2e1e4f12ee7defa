"""Print facilities used by the print exporter."""

import logging
from typing import Awaitable, Callable, Optional

from bs4 import Tag

from exporters.page_geometry import PageGeometry

logger = logging.getLogger('document_exporter.exporters.print_backends')


class PrintBackend:
    """
    Interface of a print facility.

    ``submit`` prints the prepared document synchronously. It may return an
    awaitable that resolves once the facility reports completion (the
    equivalent of a browser's ``afterprint`` event); ``None`` means printing
    is already complete.
    """

    def submit(self, document: Tag, geometry: PageGeometry) -> Optional[Awaitable[None]]:
        raise NotImplementedError


class WeasyPrintBackend(PrintBackend):
    """Renders the prepared document to PDF with WeasyPrint."""

    def __init__(self, base_url: str = None, sink: Callable[[bytes], None] = None,
                 logger: logging.Logger = None):
        """
        Args:
            base_url: Base for resolving relative resource URLs
            sink: Receives the PDF bytes of every print
            logger: Optional logger instance
        """
        self.base_url = base_url
        self.sink = sink
        self.output: Optional[bytes] = None
        self.logger = logger or logging.getLogger('document_exporter.exporters.print_backends')

    def submit(self, document: Tag, geometry: PageGeometry) -> None:
        try:
            from weasyprint import HTML
        except ImportError as e:
            raise RuntimeError("WeasyPrint not found. Please install: pip install weasyprint") from e

        html = str(document)
        self.logger.debug(f"Rendering {len(html)} characters of HTML to PDF")
        self.output = HTML(string=html, base_url=self.base_url).write_pdf()
        self.logger.info(f"Rendered PDF ({len(self.output)} bytes)")
        if self.sink is not None:
            self.sink(self.output)
        return None


__all__ = ['PrintBackend', 'WeasyPrintBackend']
