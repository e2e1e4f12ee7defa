"""Replace HTML islands (``foreignObject``) in SVG clones with native text."""

import logging
from typing import Dict, List, Optional

from lxml import etree

from converters.svg_markup import local_name, svg_tag
from converters.svg_style_resolver import split_declarations

logger = logging.getLogger('document_exporter.converters.foreign_object_converter')

DEFAULT_FONT_SIZE = '14px'
DEFAULT_FONT_FAMILY = 'sans-serif'
DEFAULT_FILL = '#333'
LINE_HEIGHT_FACTOR = 1.2

BLOCK_TAGS = frozenset(['div', 'p', 'br', 'li', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6'])
STYLE_CARRIERS = frozenset(['span', 'div', 'p'])


def _number(value: Optional[str], default: float) -> float:
    if value is None:
        return default
    try:
        return float(str(value).strip().rstrip('px') or default)
    except ValueError:
        return default


def _fmt(value: float) -> str:
    """Render a coordinate without a trailing ``.0``."""
    if value == int(value):
        return str(int(value))
    return f"{round(value, 3):g}"


def _font_size_px(value: str) -> float:
    return _number(value, 14.0) if value else 14.0


class ForeignObjectConverter:
    """Turns ``foreignObject`` elements of an lxml SVG tree into ``<text>``."""

    def __init__(self, logger: logging.Logger = None):
        self.logger = logger or logging.getLogger(
            'document_exporter.converters.foreign_object_converter'
        )

    def convert(self, svg_root: etree._Element) -> int:
        """
        Replace every ``foreignObject`` below ``svg_root``.

        Empty islands and islands that fail to convert are removed.

        Args:
            svg_root: Root of a standalone SVG tree (modified in place)

        Returns:
            Number of text elements created
        """
        foreign_objects = [
            element for element in svg_root.iter()
            if local_name(element) == 'foreignObject'
        ]
        created = 0

        for foreign in foreign_objects:
            parent = foreign.getparent()
            if parent is None:
                continue
            try:
                text_element = self._to_text(foreign)
            except Exception as e:
                self.logger.warning(f"Failed to convert foreignObject: {e}")
                text_element = None

            if text_element is None:
                _remove_preserving_tail(foreign)
            else:
                text_element.tail = foreign.tail
                parent.replace(foreign, text_element)
                created += 1

        if foreign_objects:
            self.logger.debug(
                f"Converted {created} of {len(foreign_objects)} foreignObject elements"
            )
        return created

    def _to_text(self, foreign: etree._Element) -> Optional[etree._Element]:
        lines = self._lines(foreign)
        if not lines:
            return None

        x = _number(foreign.get('x'), 0.0)
        y = _number(foreign.get('y'), 0.0)
        width = _number(foreign.get('width'), 100.0)
        height = _number(foreign.get('height'), 20.0)
        center_x = x + width / 2
        center_y = y + height / 2

        styles = self.extract_styles(foreign)
        font_size = styles.get('font-size', DEFAULT_FONT_SIZE)

        text = etree.Element(svg_tag('text'))
        text.set('x', _fmt(center_x))
        text.set('y', _fmt(center_y))
        text.set('text-anchor', 'middle')
        text.set('dominant-baseline', 'middle')
        text.set('font-size', font_size)
        text.set('font-family', styles.get('font-family', DEFAULT_FONT_FAMILY))
        text.set('fill', styles.get('fill', DEFAULT_FILL))
        if styles.get('font-weight'):
            text.set('font-weight', styles['font-weight'])

        if len(lines) == 1:
            text.text = lines[0]
            return text

        line_height = _font_size_px(font_size) * LINE_HEIGHT_FACTOR
        start_y = center_y - (len(lines) - 1) * line_height / 2
        text.set('y', _fmt(start_y))
        for index, line in enumerate(lines):
            tspan = etree.SubElement(text, svg_tag('tspan'))
            tspan.set('x', _fmt(center_x))
            tspan.set('dy', '0' if index == 0 else _fmt(line_height))
            tspan.text = line
        return text

    def _lines(self, foreign: etree._Element) -> List[str]:
        raw = extract_text(foreign)
        return [line.strip() for line in raw.strip().split('\n') if line.strip()]

    @staticmethod
    def extract_styles(foreign: etree._Element) -> Dict[str, str]:
        """
        Text styling declared inside the island.

        The first descendant carrying a ``style`` attribute provides each
        property; ``color`` becomes ``fill``. The island's own ``style`` may
        supply the font size.
        """
        styles: Dict[str, str] = {}
        for element in foreign.iter():
            if element is foreign:
                continue
            if local_name(element) not in STYLE_CARRIERS and element.get('style') is None:
                continue
            declarations = {prop: value for prop, value, _ in split_declarations(element.get('style') or '')}
            for prop, target in (('font-size', 'font-size'), ('font-family', 'font-family'),
                                 ('color', 'fill'), ('font-weight', 'font-weight')):
                if target not in styles and declarations.get(prop):
                    value = declarations[prop]
                    if prop == 'font-family':
                        value = value.replace('"', '').replace("'", '')
                    styles[target] = value

        if 'font-size' not in styles:
            own = {prop: value for prop, value, _ in split_declarations(foreign.get('style') or '')}
            if own.get('font-size'):
                styles['font-size'] = own['font-size']

        if styles.get('font-weight') in ('normal', '400'):
            del styles['font-weight']
        return styles


def extract_text(element: etree._Element) -> str:
    """Visible text of an HTML fragment; block boundaries become newlines."""
    parts: List[str] = []
    if element.text:
        parts.append(element.text)
    for child in element:
        if isinstance(child.tag, str):
            name = local_name(child).lower()
            if name in BLOCK_TAGS and _has_previous_sibling(child):
                parts.append('\n')
            parts.append(extract_text(child))
        if child.tail:
            parts.append(child.tail)
    return ''.join(parts)


def _has_previous_sibling(element: etree._Element) -> bool:
    if element.getprevious() is not None:
        return True
    parent = element.getparent()
    return parent is not None and bool(parent.text)


def _remove_preserving_tail(element: etree._Element) -> None:
    parent = element.getparent()
    tail = element.tail
    if tail:
        previous = element.getprevious()
        if previous is not None:
            previous.tail = (previous.tail or '') + tail
        else:
            parent.text = (parent.text or '') + tail
    parent.remove(element)


__all__ = [
    'ForeignObjectConverter',
    'extract_text',
]
