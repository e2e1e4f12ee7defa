"""Paper sizes, margins and printable content box calculations."""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple, Union

logger = logging.getLogger('document_exporter.exporters.page_geometry')

CSS_DPI = 96
MIN_CONTENT_PX = 200
DEFAULT_PAPER_SIZE = 'A4'
DEFAULT_MARGIN = '2cm'

# Portrait width x height in inches
PAPER_SIZES: Dict[str, Tuple[float, float]] = {
    'A0': (33.11, 46.81),
    'A1': (23.39, 33.11),
    'A3': (11.69, 16.54),
    'A4': (8.27, 11.69),
    'A5': (5.83, 8.27),
    'A6': (4.13, 5.83),
    'Letter': (8.5, 11.0),
    'Legal': (8.5, 14.0),
    'Tabloid': (11.0, 17.0),
    'Executive': (7.25, 10.5),
}

_UNIT_TO_PX = {
    'px': 1.0,
    'in': CSS_DPI,
    'cm': CSS_DPI / 2.54,
    'mm': CSS_DPI / 25.4,
    'pt': CSS_DPI / 72,
}

MARGIN_PATTERN = re.compile(r'^\s*([\d.]+)\s*(cm|mm|in|px|pt)?\s*$', re.IGNORECASE)


class Orientation(Enum):
    """Page orientation."""
    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"

    @classmethod
    def parse(cls, value: Union[str, 'Orientation', None]) -> 'Orientation':
        if isinstance(value, Orientation):
            return value
        if value and str(value).lower() == cls.LANDSCAPE.value:
            return cls.LANDSCAPE
        return cls.PORTRAIT


def normalize_paper_size(name: str) -> str:
    """Map a paper size name to its canonical spelling, falling back to A4."""
    if name:
        for canonical in PAPER_SIZES:
            if canonical.lower() == str(name).strip().lower():
                return canonical
        logger.warning(f"Unknown paper size '{name}', using {DEFAULT_PAPER_SIZE}")
    return DEFAULT_PAPER_SIZE


def parse_margin(value: str, strict: bool = False) -> float:
    """
    Convert a CSS length such as ``2cm`` into CSS pixels.

    Unitless numbers are pixels.

    Args:
        value: Length string
        strict: Raise instead of falling back to the default margin

    Returns:
        Length in CSS pixels (96 per inch)

    Raises:
        ValueError: If ``strict`` and the value cannot be parsed
    """
    match = MARGIN_PATTERN.match(str(value)) if value is not None else None
    if match:
        try:
            number = float(match.group(1))
        except ValueError:
            number = None
        if number is not None:
            unit = (match.group(2) or 'px').lower()
            return number * _UNIT_TO_PX[unit]

    if strict:
        raise ValueError(f"Invalid margin value: {value!r}")
    logger.debug(f"Unparseable margin {value!r}, using {DEFAULT_MARGIN}")
    return parse_margin(DEFAULT_MARGIN, strict=True)


@dataclass(frozen=True)
class PageGeometry:
    """Page size, orientation and uniform margin."""

    paper_size: str = DEFAULT_PAPER_SIZE
    orientation: Orientation = Orientation.PORTRAIT
    margin: str = DEFAULT_MARGIN

    @classmethod
    def create(cls, paper_size: str = None, orientation=None, margin: str = None) -> 'PageGeometry':
        return cls(
            paper_size=normalize_paper_size(paper_size or DEFAULT_PAPER_SIZE),
            orientation=Orientation.parse(orientation),
            margin=margin or DEFAULT_MARGIN,
        )

    @property
    def size_inches(self) -> Tuple[float, float]:
        """Oriented page width and height in inches."""
        width, height = PAPER_SIZES.get(self.paper_size, PAPER_SIZES[DEFAULT_PAPER_SIZE])
        if self.orientation is Orientation.LANDSCAPE:
            return height, width
        return width, height

    @property
    def margin_px(self) -> float:
        return parse_margin(self.margin)

    @property
    def margin_inches(self) -> float:
        return self.margin_px / CSS_DPI

    def content_box_px(self) -> Tuple[float, float]:
        """Printable width and height in CSS pixels, each at least 200."""
        width_in, height_in = self.size_inches
        margin = self.margin_px
        width = width_in * CSS_DPI - 2 * margin
        height = height_in * CSS_DPI - 2 * margin
        return max(MIN_CONTENT_PX, width), max(MIN_CONTENT_PX, height)

    def css_page_rule(self) -> str:
        """``@page`` rule describing this geometry."""
        width_in, height_in = self.size_inches
        return (
            f"@page {{ size: {width_in:g}in {height_in:g}in; "
            f"margin: {self.margin}; }}"
        )


__all__ = [
    'PAPER_SIZES',
    'CSS_DPI',
    'MIN_CONTENT_PX',
    'Orientation',
    'PageGeometry',
    'normalize_paper_size',
    'parse_margin',
]
