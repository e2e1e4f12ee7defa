"""Convert live SVG diagrams into self-contained, embeddable vector images."""

import base64
import itertools
import logging
import re
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

from bs4 import BeautifulSoup, Tag
from lxml import etree

from converters.content_collector import DEFAULT_DIAGRAM_CLASSES
from converters.foreign_object_converter import ForeignObjectConverter
from converters.svg_markup import (
    Measure,
    clone_svg,
    local_name,
    resolve_svg_dimensions,
    serialize_svg,
)
from converters.svg_style_resolver import (
    StyleResolutionError,
    SvgStyleResolver,
    presentation_attributes,
)
from logger import ProgressTracker
from models import ConvertedImage, DiagramSource, ImageFormat

logger = logging.getLogger('document_exporter.converters.svg_converter')

STYLED_ELEMENTS = frozenset([
    'path', 'line', 'polyline', 'polygon', 'rect', 'circle', 'ellipse',
    'text', 'tspan', 'g',
])
DEFS_SHAPES = frozenset(['path', 'polygon', 'circle', 'rect', 'line', 'polyline'])

_ZERO = r'0(?:\.0+)?(?:px)?'
_ZERO_PATTERN = rf'{_ZERO}(?:[\s,]+{_ZERO})*'
_DASH_STYLE_ZERO = re.compile(rf'stroke-dasharray\s*:\s*{_ZERO_PATTERN}\s*(?=;|"|\'|$)')
_DASH_ATTR_ZERO = re.compile(rf'stroke-dasharray="\s*{_ZERO_PATTERN}\s*"')
_DASH_ATTR_NONE = re.compile(r'\s*stroke-dasharray="none"')

_generated_ids = itertools.count(1)


def fix_for_word_compatibility(markup: str) -> str:
    """
    Remove zero-length dash patterns, which make strokes vanish in Word.

    Style declarations are rewritten to ``none``; dash attributes equal to
    zero or ``none`` are dropped entirely.
    """
    fixed = _DASH_STYLE_ZERO.sub('stroke-dasharray:none', markup)
    fixed = _DASH_ATTR_ZERO.sub('stroke-dasharray="none"', fixed)
    return _DASH_ATTR_NONE.sub('', fixed)


class SvgConverter:
    """
    Produces ``ConvertedImage`` payloads from live ``<svg>`` tags.

    Every styling fact the diagram depends on is written into the copy as
    attributes, so the result renders the same outside its page.
    """

    def __init__(self, diagram_classes: Sequence[str] = DEFAULT_DIAGRAM_CLASSES,
                 measure: Measure = None, include_page_styles: bool = True,
                 logger: logging.Logger = None):
        """
        Initialize converter.

        Args:
            diagram_classes: Class names marking diagram containers
            measure: Optional callable returning the rendered size of an svg
            include_page_styles: Apply ``<style>`` elements found elsewhere in
                the document when resolving styles
            logger: Optional logger instance
        """
        self.diagram_classes = tuple(diagram_classes)
        self.measure = measure
        self.include_page_styles = include_page_styles
        self.logger = logger or logging.getLogger('document_exporter.converters.svg_converter')
        self.foreign_objects = ForeignObjectConverter(logger=self.logger)

    def convert(self, graphic: Tag, diagram_id: Optional[str] = None) -> ConvertedImage:
        """
        Convert one live SVG graphic.

        Args:
            graphic: Live ``<svg>`` tag (left untouched)
            diagram_id: Id to use instead of the derived one

        Returns:
            Vector image with base64 encoded UTF-8 markup

        Raises:
            ValueError: If ``graphic`` is not an ``<svg>`` tag
        """
        if not isinstance(graphic, Tag) or (graphic.name or '').lower() != 'svg':
            raise ValueError("Expected an <svg> element")

        image_id = diagram_id or self.resolve_id(graphic)
        width, height = resolve_svg_dimensions(graphic, self.measure)

        clone, pairs = clone_svg(graphic)
        clone.set('width', _fmt(width))
        clone.set('height', _fmt(height))

        resolver = SvgStyleResolver(graphic, self._page_styles(graphic), logger=self.logger)
        self._inline_styles(pairs, resolver)
        self._inline_defs_styles(pairs, resolver)

        self.foreign_objects.convert(clone)

        markup = fix_for_word_compatibility(serialize_svg(clone))
        data = base64.b64encode(markup.encode('utf-8')).decode('ascii')

        self.logger.debug(f"Converted diagram {image_id} ({_fmt(width)}x{_fmt(height)})")
        return ConvertedImage(
            id=image_id,
            data=data,
            width=width,
            height=height,
            format=ImageFormat.SVG,
        )

    def convert_all(self, sources: Iterable[Union[DiagramSource, Tag]],
                    on_progress: Optional[Callable[[float], None]] = None) -> Dict[str, ConvertedImage]:
        """
        Convert a batch of diagrams.

        Failures are logged and omitted; the first diagram wins when two
        share an id.

        Args:
            sources: ``DiagramSource`` pairs or bare ``<svg>`` tags
            on_progress: Called with the processed fraction (0.0 - 1.0)
                after each diagram

        Returns:
            Mapping of diagram id to converted image
        """
        sources = list(sources)
        images: Dict[str, ConvertedImage] = {}

        with ProgressTracker(len(sources), "diagrams", logger=self.logger) as tracker:
            for source in sources:
                if isinstance(source, DiagramSource):
                    graphic, diagram_id = source.graphic, source.id or None
                else:
                    graphic, diagram_id = source, None
                try:
                    image = self.convert(graphic, diagram_id)
                except Exception as e:
                    self.logger.error(f"Failed to convert diagram {diagram_id or '?'}: {e}")
                    tracker.increment(success=False)
                else:
                    if image.id in images:
                        self.logger.warning(f"Duplicate diagram id {image.id}; keeping the first")
                        tracker.increment(success=False)
                    else:
                        images[image.id] = image
                        tracker.increment(success=True)

                if on_progress is not None:
                    on_progress(tracker.fraction)

        stats = tracker.get_stats()
        self.logger.debug(
            f"Diagram conversion: {stats['success_rate']:.0f}% succeeded "
            f"in {stats['elapsed_time_formatted']}"
        )
        return images

    def resolve_id(self, graphic: Tag) -> str:
        """Container id, then graphic id, then a generated one."""
        for ancestor in graphic.parents:
            classes = ancestor.get('class') or []
            if isinstance(classes, str):
                classes = classes.split()
            if any(cls in self.diagram_classes for cls in classes):
                if ancestor.get('id'):
                    return ancestor['id']
                break
        if graphic.get('id'):
            return graphic['id']
        return f"svg-{next(_generated_ids)}"

    def _page_styles(self, graphic: Tag) -> List[str]:
        if not self.include_page_styles:
            return []
        document = graphic
        for ancestor in graphic.parents:
            document = ancestor
        if not isinstance(document, BeautifulSoup):
            return []
        own = set(id(style) for style in graphic.find_all('style'))
        return [style.get_text() for style in document.find_all('style') if id(style) not in own]

    def _inline_styles(self, pairs, resolver: SvgStyleResolver) -> None:
        for live, clone in pairs:
            name = local_name(clone)
            if name not in STYLED_ELEMENTS:
                continue
            try:
                computed = resolver.computed(live)
            except StyleResolutionError as e:
                self.logger.debug(f"No computed style for <{name}>: {e}")
                continue
            for attr, value in presentation_attributes(live, computed).items():
                clone.set(attr, value)

    def _inline_defs_styles(self, pairs, resolver: SvgStyleResolver) -> None:
        for live, clone in pairs:
            if local_name(clone) not in DEFS_SHAPES or not _inside_defs(clone):
                continue
            try:
                computed = resolver.computed(live)
                fill, stroke = computed.get('fill'), computed.get('stroke')
            except StyleResolutionError:
                fill, stroke = live.get('fill'), live.get('stroke')
                fill = None if fill == 'none' else fill
                stroke = None if stroke == 'none' else stroke
            if fill and fill != 'none':
                clone.set('fill', fill)
            if stroke and stroke != 'none':
                clone.set('stroke', stroke)


def _inside_defs(element: etree._Element) -> bool:
    parent = element.getparent()
    while parent is not None:
        if local_name(parent) == 'defs':
            return True
        parent = parent.getparent()
    return False


def _fmt(value: float) -> str:
    if value == int(value):
        return str(int(value))
    return f"{round(value, 3):g}"


__all__ = ['SvgConverter', 'fix_for_word_compatibility']
