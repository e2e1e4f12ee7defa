"""
Export orchestrator coordinating the document export pipeline.

The orchestrator sequences the export phases for one request:
Collect → Convert diagrams → Generate (or Print) → Deliver, reporting
monotonic progress and mapping failures onto a small error taxonomy.
"""

import logging
from typing import Any, Callable, Coroutine, Dict, List, Optional, Union

from bs4 import Tag

from cancellation import CancellationToken, ExportCancelledError, check_cancelled
from config_loader import ConfigLoader, get_nested
from converters.content_collector import ContentCollector
from converters.svg_converter import SvgConverter
from exporters.docx_generator import DocxGenerator, DocxGeneratorOptions
from exporters.file_delivery import FileDelivery, FilenameGenerator, sanitize_filename
from exporters.page_geometry import CSS_DPI, parse_margin
from exporters.print_backends import PrintBackend, WeasyPrintBackend
from exporters.print_exporter import PrintExporter, PrintOptions
from models import (
    CollectedContent,
    ExportFormat,
    ExportOptions,
    ExportProgress,
    ExportResult,
    ExportStage,
    UnsupportedFormatError,
)

logger = logging.getLogger('document_exporter.orchestrator')

ProgressCallback = Callable[[ExportProgress], None]
BackendFactory = Callable[[Callable[[bytes], None]], PrintBackend]


class ExportError(Exception):
    """An export failed; the cause is chained."""


class ProgressReporter:
    """Forwards progress to a callback, clamped to 0-100 and never decreasing."""

    def __init__(self, callback: Optional[ProgressCallback] = None,
                 logger: logging.Logger = None):
        self.callback = callback
        self.percent = 0.0
        self.logger = logger or logging.getLogger('document_exporter.orchestrator')

    def __call__(self, stage: ExportStage, percent: float, message: str = "") -> None:
        percent = max(self.percent, min(100.0, max(0.0, float(percent))))
        self.percent = percent
        self.logger.debug(f"[{stage.value}] {percent:.0f}% {message}")
        if self.callback is not None:
            self.callback(ExportProgress(stage, percent, message))

    def scaled(self, low: float, high: float) -> ProgressCallback:
        """Callback mapping a nested 0-100 progress into ``low``-``high``."""
        def forward(progress: ExportProgress) -> None:
            self(progress.stage, low + progress.percent / 100.0 * (high - low), progress.message)
        return forward


class ExportOrchestrator:
    """Runs export requests end to end."""

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 delivery: Optional[FileDelivery] = None,
                 renderer=None,
                 backend_factory: Optional[BackendFactory] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize export orchestrator.

        Args:
            config: Configuration dictionary (defaults filled in)
            delivery: Destination for finished buffers
            renderer: Optional object with ``async render_all(root)`` used to
                render pending diagrams before collecting
            backend_factory: Builds the print backend for a PDF export from a
                sink receiving the PDF bytes
            logger: Optional logger instance
        """
        self.config = ConfigLoader.with_defaults(config or {})
        self.logger = logger or logging.getLogger('document_exporter.orchestrator')
        self.delivery = delivery or FileDelivery(
            get_nested(self.config, 'export.output_directory', './exports'), logger=self.logger
        )
        self.renderer = renderer
        self.backend_factory = backend_factory or (lambda sink: WeasyPrintBackend(sink=sink))

        diagram_classes = get_nested(self.config, 'diagrams.container_classes')
        self.diagram_classes = tuple(diagram_classes)
        self.collector = ContentCollector(diagram_classes=self.diagram_classes)
        self.svg_converter = SvgConverter(diagram_classes=self.diagram_classes)
        self.docx_generator = DocxGenerator()

    def export(self, root: Tag, options: Optional[ExportOptions] = None,
               on_progress: Optional[ProgressCallback] = None,
               cancel_token: Optional[CancellationToken] = None) -> Coroutine[Any, Any, ExportResult]:
        """
        Start an export of ``root``.

        The format is validated before any work starts; the returned
        coroutine runs the pipeline.

        Args:
            root: Rendered document container
            options: Export options (defaults from configuration)
            on_progress: Progress callback
            cancel_token: Cooperative cancellation flag

        Returns:
            Coroutine resolving to an ``ExportResult``

        Raises:
            UnsupportedFormatError: If the requested format is unknown
        """
        options = options or ExportOptions.from_config(self.config)
        export_format = self.resolve_format(options.format)
        return self._run(root, options, export_format, on_progress, cancel_token)

    @staticmethod
    def resolve_format(value: Union[ExportFormat, str]) -> ExportFormat:
        return ExportFormat.parse(value)

    async def _run(self, root: Tag, options: ExportOptions, export_format: ExportFormat,
                   on_progress: Optional[ProgressCallback],
                   cancel_token: Optional[CancellationToken]) -> ExportResult:
        reporter = ProgressReporter(on_progress, logger=self.logger)
        self.logger.info(f"Starting {export_format.value} export")
        try:
            if export_format is ExportFormat.DOCX:
                result = await self._export_docx(root, options, reporter, cancel_token)
            else:
                result = await self._export_pdf(root, options, reporter, cancel_token)
        except ExportCancelledError:
            self.logger.info("Export cancelled")
            raise
        except Exception as e:
            self.logger.error(f"Export failed: {e}")
            raise ExportError(f"Export failed: {e}") from e

        self.logger.info(f"Export complete: {result.filename or 'printed'}")
        return result

    async def _collect(self, root: Tag, reporter: ProgressReporter,
                       cancel_token: Optional[CancellationToken]) -> CollectedContent:
        check_cancelled(cancel_token)
        reporter(ExportStage.COLLECTING, 2, "Rendering diagrams")
        if self.renderer is not None:
            try:
                await self.renderer.render_all(root)
            except Exception as e:
                self.logger.warning(f"Rendering pending diagrams failed: {e}")

        reporter(ExportStage.COLLECTING, 5, "Collecting content")
        content = self.collector.collect(root)
        reporter(ExportStage.COLLECTING, 20, f"Found {len(content.nodes)} elements")
        check_cancelled(cancel_token)
        return content

    async def _export_docx(self, root: Tag, options: ExportOptions, reporter: ProgressReporter,
                           cancel_token: Optional[CancellationToken]) -> ExportResult:
        content = await self._collect(root, reporter, cancel_token)

        reporter(ExportStage.CONVERTING, 25, "Converting diagrams")
        images = {}
        if options.convert_diagrams and content.metadata.diagram_count:
            images = self.svg_converter.convert_all(
                self.collector.collect_diagrams(root),
                on_progress=lambda fraction: reporter(
                    ExportStage.CONVERTING, 25 + 25 * fraction, "Converting diagrams"
                ),
            )
        reporter(ExportStage.CONVERTING, 50, f"Converted {len(images)} diagrams")
        check_cancelled(cancel_token)

        reporter(ExportStage.GENERATING, 55, "Generating document")
        data = self.docx_generator.generate(content, images, self._docx_options(content, options))
        reporter(ExportStage.GENERATING, 90, "Document generated")
        check_cancelled(cancel_token)

        return self._deliver(data, content, options, ExportFormat.DOCX, reporter)

    async def _export_pdf(self, root: Tag, options: ExportOptions, reporter: ProgressReporter,
                          cancel_token: Optional[CancellationToken]) -> ExportResult:
        content = await self._collect(root, reporter, cancel_token)

        outputs: List[bytes] = []
        exporter = PrintExporter(
            backend=self.backend_factory(outputs.append),
            diagram_classes=self.diagram_classes,
            logger=self.logger,
        )
        await exporter.print(
            root,
            self._print_options(options),
            on_progress=reporter.scaled(20, 90),
            cancel_token=cancel_token,
        )
        check_cancelled(cancel_token)

        if not outputs:
            reporter(ExportStage.DOWNLOADING, 100, "Printed")
            return self._result(ExportFormat.PDF, '', 0, None, content)
        return self._deliver(outputs[-1], content, options, ExportFormat.PDF, reporter)

    def _deliver(self, data: bytes, content: CollectedContent, options: ExportOptions,
                 export_format: ExportFormat, reporter: ProgressReporter) -> ExportResult:
        reporter(ExportStage.DOWNLOADING, 95, "Saving file")
        filename = self.filename_for(content.title, options, export_format)
        path = self.delivery.deliver(data, filename)
        reporter(ExportStage.DOWNLOADING, 100, f"Saved {filename}")
        return self._result(export_format, filename, len(data), str(path), content)

    @staticmethod
    def filename_for(title: str, options: ExportOptions, export_format: ExportFormat) -> str:
        if options.filename:
            stem = options.filename
            suffix = f".{export_format.extension}"
            if stem.lower().endswith(suffix):
                stem = stem[:-len(suffix)]
            return f"{sanitize_filename(stem)}{suffix}"
        return FilenameGenerator.generate(title, export_format.extension, options.filename_template)

    @staticmethod
    def _result(export_format: ExportFormat, filename: str, size: int, path: Optional[str],
                content: CollectedContent) -> ExportResult:
        return ExportResult(
            format=export_format,
            filename=filename,
            size_bytes=size,
            path=path,
            title=content.title,
            node_count=len(content.nodes),
            diagram_count=content.metadata.diagram_count,
            word_count=content.metadata.word_count,
        )

    def _docx_options(self, content: CollectedContent, options: ExportOptions) -> DocxGeneratorOptions:
        margins_inches = 1.0
        if options.margins:
            margins_inches = parse_margin(options.margins) / CSS_DPI
        return DocxGeneratorOptions(
            title=content.title,
            author=options.author,
            page_size=options.page_size,
            orientation=options.orientation,
            margins_inches=margins_inches,
            include_title=options.include_title,
            max_image_width=get_nested(self.config, 'diagrams.max_image_width', 600),
        )

    def _print_options(self, options: ExportOptions) -> PrintOptions:
        return PrintOptions(
            paper_size=options.page_size,
            orientation=options.orientation,
            margins=options.margins or '2cm',
            convert_diagrams=options.convert_diagrams,
            completion_timeout=get_nested(self.config, 'print.completion_timeout', 2.0),
            settle_delay=get_nested(self.config, 'print.settle_delay', 0.1),
        )


__all__ = [
    'ExportOrchestrator',
    'ExportError',
    'UnsupportedFormatError',
    'ProgressReporter',
]
