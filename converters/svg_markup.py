"""SVG naming tables, lxml cloning of parsed SVG tags and dimension lookup."""

import logging
import re
from typing import Callable, Dict, List, Optional, Tuple

from bs4 import NavigableString, Tag
from bs4.element import Comment, Declaration, Doctype, ProcessingInstruction
from lxml import etree

logger = logging.getLogger('document_exporter.converters.svg_markup')

SVG_NS = 'http://www.w3.org/2000/svg'
XLINK_NS = 'http://www.w3.org/1999/xlink'
XHTML_NS = 'http://www.w3.org/1999/xhtml'
XML_NS = 'http://www.w3.org/XML/1998/namespace'

SVG_NSMAP = {None: SVG_NS, 'xlink': XLINK_NS}

DEFAULT_WIDTH = 800.0
DEFAULT_HEIGHT = 600.0

# HTML parsers lower-case names; SVG is case sensitive
_CAMEL_TAGS = [
    'altGlyph', 'altGlyphDef', 'altGlyphItem', 'animateColor', 'animateMotion',
    'animateTransform', 'clipPath', 'feBlend', 'feColorMatrix',
    'feComponentTransfer', 'feComposite', 'feConvolveMatrix',
    'feDiffuseLighting', 'feDisplacementMap', 'feDistantLight', 'feDropShadow',
    'feFlood', 'feFuncA', 'feFuncB', 'feFuncG', 'feFuncR', 'feGaussianBlur',
    'feImage', 'feMerge', 'feMergeNode', 'feMorphology', 'feOffset',
    'fePointLight', 'feSpecularLighting', 'feSpotLight', 'feTile',
    'feTurbulence', 'foreignObject', 'glyphRef', 'linearGradient',
    'radialGradient', 'textPath',
]
_CAMEL_ATTRIBUTES = [
    'attributeName', 'attributeType', 'baseFrequency', 'baseProfile',
    'calcMode', 'clipPathUnits', 'diffuseConstant', 'edgeMode',
    'filterUnits', 'glyphRef', 'gradientTransform', 'gradientUnits',
    'kernelMatrix', 'kernelUnitLength', 'keyPoints', 'keySplines', 'keyTimes',
    'lengthAdjust', 'limitingConeAngle', 'markerHeight', 'markerUnits',
    'markerWidth', 'maskContentUnits', 'maskUnits', 'numOctaves', 'pathLength',
    'patternContentUnits', 'patternTransform', 'patternUnits', 'pointsAtX',
    'pointsAtY', 'pointsAtZ', 'preserveAlpha', 'preserveAspectRatio',
    'primitiveUnits', 'refX', 'refY', 'repeatCount', 'repeatDur',
    'requiredExtensions', 'requiredFeatures', 'specularConstant',
    'specularExponent', 'spreadMethod', 'startOffset', 'stdDeviation',
    'stitchTiles', 'surfaceScale', 'systemLanguage', 'tableValues', 'targetX',
    'targetY', 'textLength', 'viewBox', 'viewTarget', 'xChannelSelector',
    'yChannelSelector', 'zoomAndPan',
]
SVG_TAG_CASE: Dict[str, str] = {name.lower(): name for name in _CAMEL_TAGS}
SVG_ATTRIBUTE_CASE: Dict[str, str] = {name.lower(): name for name in _CAMEL_ATTRIBUTES}

_PREFIXED_NAMESPACES = {'xlink': XLINK_NS, 'xml': XML_NS}
_SKIPPED_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction)
_INVALID_XML_CHARS = re.compile('[\x00-\x08\x0b\x0c\x0e-\x1f]')

_LENGTH = re.compile(
    r'^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)\s*(px|pt|pc|in|cm|mm)?\s*$'
)
_LENGTH_UNITS = {
    None: 1.0, 'px': 1.0, 'pt': 96 / 72, 'pc': 16.0,
    'in': 96.0, 'cm': 96 / 2.54, 'mm': 96 / 25.4,
}

Measure = Callable[[Tag], Optional[Tuple[float, float]]]


def restore_tag_case(name: str) -> str:
    return SVG_TAG_CASE.get(name.lower(), name)


def restore_attribute_case(name: str) -> str:
    return SVG_ATTRIBUTE_CASE.get(name.lower(), name)


def local_name(element: etree._Element) -> str:
    """Local part of an lxml element's tag."""
    tag = element.tag
    if not isinstance(tag, str):
        return ''
    return tag.rsplit('}', 1)[-1]


def svg_tag(name: str) -> str:
    return f"{{{SVG_NS}}}{name}"


def parse_length(value) -> Optional[float]:
    """
    Parse an absolute SVG length into pixels.

    Percentages and font-relative units are not concrete and yield ``None``,
    as do zero and negative lengths.
    """
    if value is None:
        return None
    match = _LENGTH.match(str(value))
    if not match:
        return None
    number = float(match.group(1)) * _LENGTH_UNITS[match.group(2)]
    return number if number > 0 else None


def parse_view_box(value) -> Optional[Tuple[float, float]]:
    """Width and height of a ``viewBox`` attribute, if usable."""
    if not value:
        return None
    parts = [part for part in re.split(r'[\s,]+', str(value).strip()) if part]
    if len(parts) != 4:
        return None
    try:
        width, height = float(parts[2]), float(parts[3])
    except ValueError:
        return None
    if width <= 0 or height <= 0:
        return None
    return width, height


def _attr(tag: Tag, name: str):
    value = tag.get(name)
    if value is None:
        value = tag.get(name.lower())
    return value


def resolve_svg_dimensions(svg: Tag, measure: Measure = None) -> Tuple[float, float]:
    """
    Natural size of an SVG graphic.

    Explicit width/height attributes win, then the viewBox, then the
    ``measure`` callback (rendered size), then 800x600.
    """
    width = parse_length(_attr(svg, 'width'))
    height = parse_length(_attr(svg, 'height'))
    if width and height:
        return width, height

    view_box = parse_view_box(_attr(svg, 'viewBox'))
    if view_box:
        return view_box

    if measure is not None:
        try:
            measured = measure(svg)
        except Exception as e:
            logger.debug(f"Measuring svg failed: {e}")
            measured = None
        if measured and measured[0] > 0 and measured[1] > 0:
            return float(measured[0]), float(measured[1])

    return DEFAULT_WIDTH, DEFAULT_HEIGHT


def _attribute_key(name: str, namespace: str) -> Optional[str]:
    if name == 'xmlns' or name.startswith('xmlns:'):
        return None
    if ':' in name:
        prefix, local = name.split(':', 1)
        ns = _PREFIXED_NAMESPACES.get(prefix.lower())
        if ns is None:
            return None
        return f"{{{ns}}}{local}"
    if namespace == SVG_NS:
        return restore_attribute_case(name)
    return name


def _attribute_value(value) -> str:
    if isinstance(value, (list, tuple)):
        value = ' '.join(value)
    return _INVALID_XML_CHARS.sub('', str(value))


def clone_svg(svg: Tag) -> Tuple[etree._Element, List[Tuple[Tag, etree._Element]]]:
    """
    Deep-copy a parsed ``<svg>`` tag into a standalone lxml element tree.

    The clone carries the SVG and XLink namespace declarations and restored
    camelCase names. Content of ``foreignObject`` lives in the XHTML
    namespace.

    Args:
        svg: Live ``<svg>`` tag

    Returns:
        Tuple of (clone root, list of (live tag, clone element) pairs in
        document order)
    """
    pairs: List[Tuple[Tag, etree._Element]] = []
    root = _clone_tag(svg, None, SVG_NS, pairs)
    return root, pairs


def _clone_tag(tag: Tag, parent: Optional[etree._Element], namespace: str,
               pairs: List[Tuple[Tag, etree._Element]]) -> etree._Element:
    name = tag.name.split(':')[-1]
    if namespace == SVG_NS:
        name = restore_tag_case(name)
    qualified = f"{{{namespace}}}{name}"

    if parent is None:
        element = etree.Element(qualified, nsmap=SVG_NSMAP)
    else:
        element = etree.SubElement(parent, qualified)

    for attr_name, value in tag.attrs.items():
        key = _attribute_key(attr_name, namespace)
        if key is None:
            continue
        try:
            element.set(key, _attribute_value(value))
        except ValueError:
            logger.debug(f"Dropping attribute {attr_name!r} from <{name}>")

    pairs.append((tag, element))

    child_namespace = XHTML_NS if name == 'foreignObject' else namespace
    last_child = None
    for child in tag.children:
        if isinstance(child, Tag):
            last_child = _clone_tag(child, element, child_namespace, pairs)
        elif isinstance(child, NavigableString) and not isinstance(child, _SKIPPED_STRINGS):
            text = _INVALID_XML_CHARS.sub('', str(child))
            if last_child is None:
                element.text = (element.text or '') + text
            else:
                last_child.tail = (last_child.tail or '') + text

    return element


def serialize_svg(element: etree._Element) -> str:
    return etree.tostring(element, encoding='unicode')


__all__ = [
    'SVG_NS',
    'XLINK_NS',
    'XHTML_NS',
    'SVG_NSMAP',
    'DEFAULT_WIDTH',
    'DEFAULT_HEIGHT',
    'clone_svg',
    'local_name',
    'parse_length',
    'parse_view_box',
    'resolve_svg_dimensions',
    'restore_attribute_case',
    'restore_tag_case',
    'serialize_svg',
    'svg_tag',
]
