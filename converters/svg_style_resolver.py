"""
Computed style resolution for SVG elements of a parsed document.

A ``SvgStyleResolver`` applies the CSS cascade for the handful of properties
that matter when an SVG is moved into a document without its stylesheets:
property initial values, inheritance from the parent, presentation
attributes, ``<style>`` rules ordered by specificity, the inline ``style``
attribute, and ``!important``. Results are memoised per element.
"""

import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple

import soupsieve
from bs4 import Tag

logger = logging.getLogger('document_exporter.converters.svg_style_resolver')

INITIAL_VALUES: Dict[str, str] = {
    'color': 'black',
    'fill': 'black',
    'stroke': 'none',
    'stroke-width': '1px',
    'stroke-dasharray': 'none',
    'stroke-linecap': 'butt',
    'stroke-linejoin': 'miter',
    'opacity': '1',
    'font-size': '16px',
    'font-family': 'sans-serif',
    'font-weight': '400',
    'text-anchor': 'start',
    'dominant-baseline': 'auto',
    'marker-start': 'none',
    'marker-mid': 'none',
    'marker-end': 'none',
}

INHERITED_PROPERTIES = frozenset([
    'color', 'fill', 'stroke', 'stroke-width', 'stroke-dasharray',
    'stroke-linecap', 'stroke-linejoin', 'font-size', 'font-family',
    'font-weight', 'text-anchor', 'dominant-baseline',
    'marker-start', 'marker-mid', 'marker-end',
])

TEXT_ELEMENTS = frozenset(['text', 'tspan'])

_FONT_WEIGHTS = {'normal': '400', 'bold': '700'}
_COMMENT = re.compile(r'/\*.*?\*/', re.DOTALL)
_ID_SELECTOR = re.compile(r'#[\w-]+')
_CLASS_SELECTOR = re.compile(r'\.[\w-]+')
_ATTR_SELECTOR = re.compile(r'\[[^\]]*\]')
_PSEUDO_ELEMENT = re.compile(r'::[\w-]+')
_PSEUDO_CLASS = re.compile(r':[\w-]+(?:\([^)]*\))?')
_TYPE_SELECTOR = re.compile(r'(?:^|[\s>+~(])([a-zA-Z][\w-]*)')
_RELATIVE_SIZE = re.compile(r'^\s*([\d.]+)\s*(em|%)\s*$')
_PX_SIZE = re.compile(r'^\s*([\d.]+)\s*px\s*$')

Declaration = Tuple[str, str, bool]  # property, value, important


class StyleResolutionError(Exception):
    """Raised when an element's style cannot be computed."""


def split_declarations(body: str) -> List[Declaration]:
    """Parse ``prop: value; ...`` respecting parentheses and quotes."""
    declarations: List[Declaration] = []
    for chunk in _split_top_level(body, ';'):
        if ':' not in chunk:
            continue
        prop, value = chunk.split(':', 1)
        prop = prop.strip().lower()
        value = value.strip()
        important = False
        if value.lower().endswith('!important'):
            important = True
            value = value[:-len('!important')].strip()
        if prop and value:
            declarations.append((prop, value, important))
    return declarations


def _split_top_level(text: str, separator: str) -> List[str]:
    parts: List[str] = []
    depth = 0
    quote = None
    current: List[str] = []
    for ch in text:
        if quote:
            if ch == quote:
                quote = None
        elif ch in ('"', "'"):
            quote = ch
        elif ch == '(':
            depth += 1
        elif ch == ')':
            depth = max(0, depth - 1)
        elif ch == separator and depth == 0:
            parts.append(''.join(current))
            current = []
            continue
        current.append(ch)
    parts.append(''.join(current))
    return parts


def parse_stylesheet(css: str) -> List[Tuple[str, List[Declaration]]]:
    """
    Split a stylesheet into (selector group, declarations) rules.

    At-rules are skipped together with their blocks.
    """
    css = _COMMENT.sub('', css or '')
    rules: List[Tuple[str, List[Declaration]]] = []
    i = 0
    n = len(css)
    while i < n:
        brace = css.find('{', i)
        if brace == -1:
            break
        prelude = css[i:brace].strip()
        depth = 1
        j = brace + 1
        while j < n and depth:
            if css[j] == '{':
                depth += 1
            elif css[j] == '}':
                depth -= 1
            j += 1
        body = css[brace + 1:j - 1]
        i = j

        # Statement at-rules (@import ...;) may precede the prelude
        if ';' in prelude and prelude.lstrip().startswith('@'):
            prelude = prelude.rsplit(';', 1)[-1].strip()
        if not prelude or prelude.startswith('@'):
            continue
        rules.append((prelude, split_declarations(body)))
    return rules


def specificity(selector: str) -> Tuple[int, int, int]:
    """Approximate (ids, classes, types) specificity of one selector."""
    stripped = _ATTR_SELECTOR.sub(' ', selector)
    pseudo_elements = len(_PSEUDO_ELEMENT.findall(stripped))
    stripped = _PSEUDO_ELEMENT.sub(' ', stripped)
    ids = len(_ID_SELECTOR.findall(stripped))
    classes = (
        len(_CLASS_SELECTOR.findall(stripped))
        + len(_ATTR_SELECTOR.findall(selector))
        + len(_PSEUDO_CLASS.findall(stripped))
    )
    bare = _PSEUDO_CLASS.sub(' ', _CLASS_SELECTOR.sub(' ', _ID_SELECTOR.sub(' ', stripped)))
    types = len(_TYPE_SELECTOR.findall(bare)) + pseudo_elements
    return ids, classes, types


def _normalize(prop: str, value: str) -> str:
    if prop == 'font-weight':
        return _FONT_WEIGHTS.get(value.lower(), value)
    return value


class SvgStyleResolver:
    """Memoising computed-style helper scoped to one SVG root."""

    def __init__(self, root: Tag, stylesheets: Iterable[str] = (),
                 logger: logging.Logger = None):
        """
        Args:
            root: ``<svg>`` tag whose elements will be resolved
            stylesheets: Extra CSS (e.g. page styles) applied before the
                SVG's own ``<style>`` elements
            logger: Optional logger instance
        """
        self.root = root
        self.logger = logger or logging.getLogger(
            'document_exporter.converters.svg_style_resolver'
        )
        css = list(stylesheets)
        css.extend(style.get_text() for style in root.find_all('style'))
        self._rules = [rule for sheet in css for rule in parse_stylesheet(sheet)]
        self._matches: Optional[Dict[int, List[Tuple[Tuple[int, int, int], int, List[Declaration]]]]] = None
        self._cache: Dict[int, Dict[str, str]] = {}

    def computed(self, element: Tag) -> Dict[str, str]:
        """
        Computed values of the tracked properties for ``element``.

        Raises:
            StyleResolutionError: If ``element`` is not inside the root
        """
        key = id(element)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        if not self._contains(element):
            raise StyleResolutionError(f"<{element.name}> is not part of the resolved svg")

        parent_style = None
        if element is not self.root and isinstance(element.parent, Tag):
            parent_style = self.computed(element.parent)

        style = self._cascade(element, parent_style)
        self._cache[key] = style
        return style

    def _contains(self, element: Tag) -> bool:
        node = element
        while node is not None:
            if node is self.root:
                return True
            node = node.parent
        return False

    def _ensure_matches(self) -> None:
        if self._matches is not None:
            return
        self._matches = {}
        order = 0
        for group, declarations in self._rules:
            for selector in _split_top_level(group, ','):
                selector = selector.strip()
                if not selector:
                    continue
                try:
                    compiled = soupsieve.compile(selector)
                    matched = compiled.select(self.root)
                    if compiled.match(self.root):
                        matched.append(self.root)
                except (soupsieve.SelectorSyntaxError, NotImplementedError, ValueError) as e:
                    self.logger.debug(f"Ignoring unsupported selector {selector!r}: {e}")
                    continue
                weight = specificity(selector)
                for element in matched:
                    self._matches.setdefault(id(element), []).append(
                        (weight, order, declarations)
                    )
                order += 1

    def _cascade(self, element: Tag, parent_style: Optional[Dict[str, str]]) -> Dict[str, str]:
        self._ensure_matches()

        style: Dict[str, str] = {}
        for prop, initial in INITIAL_VALUES.items():
            if parent_style is not None and prop in INHERITED_PROPERTIES:
                style[prop] = parent_style[prop]
            else:
                style[prop] = initial

        normal: List[Declaration] = []
        important: List[Declaration] = []

        # Presentation attributes rank below every author rule
        for prop in INITIAL_VALUES:
            value = element.get(prop)
            if isinstance(value, str) and value.strip():
                normal.append((prop, value.strip(), False))

        matched = sorted(self._matches.get(id(element), []), key=lambda m: (m[0], m[1]))
        for _, _, declarations in matched:
            for declaration in declarations:
                (important if declaration[2] else normal).append(declaration)

        inline = split_declarations(element.get('style') or '')
        normal.extend(d for d in inline if not d[2])
        important.extend(d for d in inline if d[2])

        for prop, value, _ in normal + important:
            if prop in INITIAL_VALUES:
                style[prop] = self._resolve_value(prop, value, style, parent_style)

        for prop in ('fill', 'stroke'):
            if style[prop].lower() == 'currentcolor':
                style[prop] = style['color']
        return style

    @staticmethod
    def _resolve_value(prop: str, value: str, style: Dict[str, str],
                       parent_style: Optional[Dict[str, str]]) -> str:
        keyword = value.lower()
        if keyword == 'inherit':
            return parent_style[prop] if parent_style else INITIAL_VALUES[prop]
        if keyword in ('initial', 'unset'):
            if keyword == 'unset' and prop in INHERITED_PROPERTIES and parent_style:
                return parent_style[prop]
            return INITIAL_VALUES[prop]
        if prop == 'font-size':
            relative = _RELATIVE_SIZE.match(value)
            base = _PX_SIZE.match(parent_style['font-size'] if parent_style else INITIAL_VALUES['font-size'])
            if relative and base:
                factor = float(relative.group(1))
                if relative.group(2) == '%':
                    factor /= 100
                return f"{float(base.group(1)) * factor:g}px"
        return _normalize(prop, value)


def _is_zero_length(value: str) -> bool:
    return value.strip().lower() in ('0', '0px')


def _is_zero_pattern(value: str) -> bool:
    parts = [p for p in re.split(r'[\s,]+', value.strip()) if p]
    return bool(parts) and all(_is_zero_length(p) for p in parts)


def presentation_attributes(element: Tag, computed: Dict[str, str]) -> Dict[str, str]:
    """
    Attributes to write on a standalone copy of ``element``.

    Values equal to the rendering default, or that would confuse consumers
    without CSS support, are left out.
    """
    attributes: Dict[str, str] = {}
    tag_name = (element.name or '').lower()

    fill = computed.get('fill')
    if fill and fill != 'none' and not fill.startswith('url('):
        attributes['fill'] = fill

    stroke = computed.get('stroke')
    if stroke and stroke != 'none':
        attributes['stroke'] = stroke

    stroke_width = computed.get('stroke-width')
    if stroke_width and not _is_zero_length(stroke_width):
        attributes['stroke-width'] = stroke_width

    dasharray = computed.get('stroke-dasharray')
    if dasharray and dasharray != 'none' and not _is_zero_pattern(dasharray):
        attributes['stroke-dasharray'] = dasharray

    linecap = computed.get('stroke-linecap')
    if linecap and linecap != 'butt':
        attributes['stroke-linecap'] = linecap

    linejoin = computed.get('stroke-linejoin')
    if linejoin and linejoin != 'miter':
        attributes['stroke-linejoin'] = linejoin

    opacity = computed.get('opacity')
    if opacity and opacity != '1':
        attributes['opacity'] = opacity

    if tag_name in TEXT_ELEMENTS:
        if computed.get('font-size'):
            attributes['font-size'] = computed['font-size']
        if computed.get('font-family'):
            attributes['font-family'] = re.sub(r'["\']', '', computed['font-family'])
        weight = computed.get('font-weight')
        if weight and weight not in ('normal', '400'):
            attributes['font-weight'] = weight
        anchor = computed.get('text-anchor')
        if anchor and anchor != 'start':
            attributes['text-anchor'] = anchor
        baseline = computed.get('dominant-baseline')
        if baseline and baseline != 'auto':
            attributes['dominant-baseline'] = baseline

    # Marker references are copied as authored
    for marker in ('marker-start', 'marker-mid', 'marker-end'):
        value = element.get(marker)
        if value:
            attributes[marker] = value

    return attributes


__all__ = [
    'INITIAL_VALUES',
    'INHERITED_PROPERTIES',
    'StyleResolutionError',
    'SvgStyleResolver',
    'parse_stylesheet',
    'presentation_attributes',
    'specificity',
    'split_declarations',
]
