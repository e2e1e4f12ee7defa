"""Converters package turning a rendered HTML document into exportable content."""

import logging

from .content_collector import ContentCollector, collect_content
from .foreign_object_converter import ForeignObjectConverter
from .inline_markup import InlineMarkupExtractor, InlineMarkupParser, parse_inline
from .svg_converter import SvgConverter, fix_for_word_compatibility
from .svg_style_resolver import SvgStyleResolver

logger = logging.getLogger('document_exporter.converters')


def convert_diagrams(root, diagram_classes=None, logger=None):
    """
    Convenience function to convert every diagram under ``root`` to an image.

    This runs the diagram half of the pipeline:
    1. Diagram discovery (containers marked with a diagram class, keyed by id)
    2. Computed style inlining on a detached copy of each graphic
    3. foreignObject labels rewritten as native SVG text
    4. Serialization with Word compatibility fixes, base64 encoded

    Args:
        root: Rendered document container (bs4 Tag)
        diagram_classes: Optional class names marking diagram containers
        logger: Optional logger instance (uses module logger if not provided)

    Returns:
        dict: Diagram id to ConvertedImage; failed diagrams are absent

    Example:
        >>> from bs4 import BeautifulSoup
        >>> from converters import convert_diagrams
        >>> soup = BeautifulSoup(html, 'lxml')
        >>> images = convert_diagrams(soup.body)
        >>> images['flow'].width
        400.0
    """
    if logger is None:
        logger = logging.getLogger('document_exporter.converters')

    kwargs = {'logger': logger}
    if diagram_classes is not None:
        kwargs['diagram_classes'] = tuple(diagram_classes)

    collector = ContentCollector(**kwargs)
    converter = SvgConverter(**kwargs)
    return converter.convert_all(collector.collect_diagrams(root))


__all__ = [
    'convert_diagrams',
    'collect_content',
    'ContentCollector',
    'InlineMarkupExtractor',
    'InlineMarkupParser',
    'parse_inline',
    'SvgConverter',
    'SvgStyleResolver',
    'ForeignObjectConverter',
    'fix_for_word_compatibility',
]
