"""Print export: temporarily prepare a live document, print it, then restore it."""

import asyncio
import copy
import logging
from contextlib import ExitStack
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup, Tag

from cancellation import CancellationToken, check_cancelled
from converters.content_collector import DEFAULT_DIAGRAM_CLASSES
from converters.svg_markup import Measure, parse_view_box, resolve_svg_dimensions
from exporters.page_geometry import PageGeometry
from exporters.print_backends import PrintBackend, WeasyPrintBackend
from models import ExportProgress, ExportStage

logger = logging.getLogger('document_exporter.exporters.print_exporter')

PRINT_STYLE_ID = 'document-exporter-print-styles'
PRINTING_CLASS = 'document-exporter-printing'
RESERVED_SPACE_PX = 40

ProgressCallback = Callable[[ExportProgress], None]


@dataclass
class PrintOptions:
    """Page setup and timing for a print export."""

    paper_size: str = 'A4'
    orientation: str = 'portrait'
    margins: str = '2cm'
    convert_diagrams: bool = True
    completion_timeout: float = 2.0
    settle_delay: float = 0.1


def _document_of(element: Tag) -> Tag:
    top = element
    for ancestor in element.parents:
        top = ancestor
    return top


def fit_to_box(natural: Tuple[float, float], box: Tuple[float, float],
               reserved: float = RESERVED_SPACE_PX) -> Tuple[int, int]:
    """
    Scale a natural size down (never up) into a content box.

    Args:
        natural: Natural width and height
        box: Printable width and height
        reserved: Space kept free on each axis for captions and spacing

    Returns:
        Rounded target width and height
    """
    natural_w, natural_h = natural
    available_w = max(1.0, box[0] - reserved)
    available_h = max(1.0, box[1] - reserved)
    scale = min(1.0, available_w / natural_w, available_h / natural_h)
    return max(1, round(natural_w * scale)), max(1, round(natural_h * scale))


class DiagramSubstitution:
    """Reversible replacement of live diagrams by print-sized copies."""

    def __init__(self, logger: logging.Logger = None):
        self.logger = logger or logging.getLogger('document_exporter.exporters.print_exporter')
        self._records: List[Tuple[Tag, Tag, str]] = []

    def __len__(self) -> int:
        return len(self._records)

    def substitute(self, original: Tag, replacement: Tag) -> None:
        markup = str(original)
        original.replace_with(replacement)
        self._records.append((replacement, original, markup))

    def release(self) -> None:
        """Put every original diagram back, most recent first."""
        restored = 0
        while self._records:
            replacement, original, markup = self._records.pop()
            try:
                replacement.replace_with(original)
                restored += 1
            except ValueError as e:
                self.logger.error(f"Could not restore diagram: {e}")
                continue
            if str(original) != markup:
                self.logger.warning("Restored diagram markup differs from the original")
        if restored:
            self.logger.debug(f"Restored {restored} diagrams")


class PrintStyleInjection:
    """Transient print stylesheet and body marker class."""

    def __init__(self, root: Tag, geometry: PageGeometry):
        self.document = _document_of(root)
        body = root if root.name == 'body' else self.document.find('body')
        self.body = body or root
        self._original_class = copy.copy(self.body.get('class'))

        for stale in self.document.find_all('style', id=PRINT_STYLE_ID):
            stale.decompose()

        factory = self.document if isinstance(self.document, BeautifulSoup) else BeautifulSoup('', 'lxml')
        self.style = factory.new_tag('style', id=PRINT_STYLE_ID)
        self.style.string = self.stylesheet(geometry)

        head = self.document.find('head')
        if head is not None:
            head.append(self.style)
        else:
            self.body.insert(0, self.style)

        classes = list(self._original_class or [])
        if PRINTING_CLASS not in classes:
            classes.append(PRINTING_CLASS)
        self.body['class'] = classes

    @staticmethod
    def stylesheet(geometry: PageGeometry) -> str:
        return (
            "@media print {\n"
            f"  {geometry.css_page_rule()}\n"
            f"  body.{PRINTING_CLASS} svg {{ page-break-inside: avoid; break-inside: avoid; }}\n"
            f"  body.{PRINTING_CLASS} pre, body.{PRINTING_CLASS} table "
            f"{{ page-break-inside: avoid; }}\n"
            "}"
        )

    def release(self) -> None:
        self.style.decompose()
        if self._original_class is None:
            if 'class' in self.body.attrs:
                del self.body['class']
        else:
            self.body['class'] = self._original_class


class PrintExporter:
    """
    Prints a live document through a ``PrintBackend``.

    Diagrams are swapped for copies sized to the printable area and a print
    stylesheet is injected for the duration of the call; both changes are
    undone before ``print`` returns or raises.
    """

    def __init__(self, backend: PrintBackend = None, renderer=None,
                 diagram_classes: Sequence[str] = DEFAULT_DIAGRAM_CLASSES,
                 measure: Measure = None, logger: logging.Logger = None):
        """
        Initialize print exporter.

        Args:
            backend: Print facility (defaults to WeasyPrint)
            renderer: Optional object with ``async render_all(root)`` that
                renders pending diagrams
            diagram_classes: Class names marking diagram containers
            measure: Optional callable returning the rendered size of an svg
            logger: Optional logger instance
        """
        self.backend = backend or WeasyPrintBackend()
        self.renderer = renderer
        self.diagram_classes = tuple(diagram_classes)
        self.measure = measure
        self.logger = logger or logging.getLogger('document_exporter.exporters.print_exporter')

    async def print(self, root: Tag, options: Optional[PrintOptions] = None,
                    on_progress: Optional[ProgressCallback] = None,
                    cancel_token: Optional[CancellationToken] = None) -> None:
        """
        Print ``root``'s document.

        Args:
            root: Rendered document container
            options: Page setup and timing
            on_progress: Progress callback
            cancel_token: Cooperative cancellation flag

        Raises:
            ExportCancelledError: If cancelled at a checkpoint
        """
        options = options or PrintOptions()
        geometry = PageGeometry.create(options.paper_size, options.orientation, options.margins)

        def report(stage: ExportStage, percent: float, message: str) -> None:
            if on_progress is not None:
                on_progress(ExportProgress(stage, percent, message))

        check_cancelled(cancel_token)
        report(ExportStage.COLLECTING, 5, "Preparing document")

        await self._render_pending(root)
        report(ExportStage.COLLECTING, 15, "Diagrams rendered")

        pending = self._pending_diagrams(root)
        if pending:
            self.logger.warning(f"{pending} diagrams have not been rendered and will print empty")
        if options.settle_delay:
            await asyncio.sleep(options.settle_delay)

        check_cancelled(cancel_token)
        report(ExportStage.COLLECTING, 25, "Document ready")

        with ExitStack() as stack:
            substitution = DiagramSubstitution(logger=self.logger)
            stack.callback(substitution.release)

            if options.convert_diagrams:
                report(ExportStage.CONVERTING, 30, "Sizing diagrams for print")
                self._substitute_diagrams(root, geometry, substitution, report, cancel_token)

            check_cancelled(cancel_token)
            report(ExportStage.GENERATING, 85, "Applying print styles")
            injection = PrintStyleInjection(root, geometry)
            stack.callback(injection.release)

            if options.settle_delay:
                await asyncio.sleep(options.settle_delay)
            check_cancelled(cancel_token)

            report(ExportStage.GENERATING, 90, "Printing")
            completion = self.backend.submit(injection.document, geometry)
            if completion is not None:
                await self._await_completion(completion, options.completion_timeout)

        self.logger.info(
            f"Printed document ({geometry.paper_size} {geometry.orientation.value}, "
            f"{len(substitution)} diagrams resized)"
        )
        report(ExportStage.GENERATING, 100, "Print complete")

    def diagram_graphics(self, root: Tag) -> List[Tag]:
        graphics = []
        for element in root.find_all(True):
            classes = element.get('class') or []
            if any(cls in self.diagram_classes for cls in classes):
                svg = element.find('svg')
                if svg is not None:
                    graphics.append(svg)
        return graphics

    def _pending_diagrams(self, root: Tag) -> int:
        pending = 0
        for element in root.find_all(True):
            classes = element.get('class') or []
            if any(cls in self.diagram_classes for cls in classes) and element.find('svg') is None:
                pending += 1
        return pending

    async def _render_pending(self, root: Tag) -> None:
        if self.renderer is None:
            return
        try:
            await self.renderer.render_all(root)
        except Exception as e:
            self.logger.warning(f"Rendering pending diagrams failed: {e}")

    def _substitute_diagrams(self, root: Tag, geometry: PageGeometry,
                             substitution: DiagramSubstitution, report,
                             cancel_token: Optional[CancellationToken]) -> None:
        graphics = self.diagram_graphics(root)
        box = geometry.content_box_px()

        for index, svg in enumerate(graphics):
            check_cancelled(cancel_token)
            try:
                replacement = self.sized_copy(svg, box)
                substitution.substitute(svg, replacement)
            except Exception as e:
                self.logger.warning(f"Could not resize diagram for print: {e}")
            report(
                ExportStage.CONVERTING,
                35 + (index + 1) / len(graphics) * 45,
                f"Prepared diagram {index + 1} of {len(graphics)}",
            )

    def sized_copy(self, svg: Tag, box: Tuple[float, float]) -> Tag:
        """Copy of ``svg`` scaled to fit ``box`` with print-friendly styling."""
        natural = resolve_svg_dimensions(svg, self.measure)
        width, height = fit_to_box(natural, box)

        replacement = copy.copy(svg)
        if parse_view_box(replacement.get('viewbox') or replacement.get('viewBox')) is None:
            replacement['viewBox'] = f"0 0 {natural[0]:g} {natural[1]:g}"
        replacement['width'] = str(width)
        replacement['height'] = str(height)
        replacement['style'] = (
            f"display:block;width:{width}px;height:{height}px;"
            f"max-width:{width}px;max-height:{height}px;margin:8pt auto;"
            f"page-break-inside:avoid;break-inside:avoid"
        )
        return replacement

    async def _await_completion(self, completion: Awaitable[None], timeout: float) -> None:
        try:
            await asyncio.wait_for(completion, timeout)
        except asyncio.TimeoutError:
            self.logger.warning(
                f"Print completion not reported within {timeout:g}s; restoring document"
            )


__all__ = [
    'PrintExporter',
    'PrintOptions',
    'DiagramSubstitution',
    'PrintStyleInjection',
    'fit_to_box',
    'PRINT_STYLE_ID',
    'PRINTING_CLASS',
]
