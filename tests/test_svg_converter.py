"""Tests for SVG diagram conversion."""

import base64
import unittest

import pytest
from bs4 import BeautifulSoup
from lxml import etree

from converters import convert_diagrams
from converters.svg_converter import SvgConverter, fix_for_word_compatibility
from converters.svg_markup import SVG_NS, parse_length, parse_view_box, resolve_svg_dimensions
from models import DiagramSource, ImageFormat

SVG = f'{{{SVG_NS}}}'


def _document(body, head=''):
    return BeautifulSoup(f'<html><head>{head}</head><body>{body}</body></html>', 'lxml')


def _decode(image):
    return etree.fromstring(image.raw_bytes())


class TestWordCompatibilityFix:
    """Zero dash patterns are neutralised."""

    def test_style_declaration_rewritten(self):
        """Test style declaration rewritten."""
        fixed = fix_for_word_compatibility('<path style="stroke:red;stroke-dasharray: 0;fill:none"/>')
        assert fixed == '<path style="stroke:red;stroke-dasharray:none;fill:none"/>'

    def test_style_declaration_at_end(self):
        """Test style declaration at end."""
        fixed = fix_for_word_compatibility('<path style="stroke-dasharray:0px, 0px"/>')
        assert fixed == '<path style="stroke-dasharray:none"/>'

    def test_zero_attribute_removed(self):
        """Test zero attribute removed."""
        fixed = fix_for_word_compatibility('<line x1="0" stroke-dasharray="0 0" y1="1"/>')
        assert fixed == '<line x1="0" y1="1"/>'

    def test_none_attribute_removed(self):
        """Test none attribute removed."""
        fixed = fix_for_word_compatibility('<line stroke-dasharray="none"/>')
        assert fixed == '<line/>'

    def test_real_dash_pattern_kept(self):
        """Test real dash pattern kept."""
        markup = '<line stroke-dasharray="5 3" style="stroke-dasharray: 4 2"/>'
        assert fix_for_word_compatibility(markup) == markup


class TestDimensions:
    """Test SVG length and viewBox parsing."""

    @pytest.mark.parametrize('value, expected', [
        ('400', 400.0),
        ('400px', 400.0),
        ('1in', 96.0),
        ('1pc', 16.0),
        ('100%', None),
        ('2em', None),
        ('0', None),
        (None, None),
    ])
    def test_parse_length(self, value, expected):
        """Test length parsing with units."""
        assert parse_length(value) == expected

    def test_parse_view_box(self):
        """Test viewBox parsing."""
        assert parse_view_box('0 0 300 150') == (300.0, 150.0)
        assert parse_view_box('0,0,10,20') == (10.0, 20.0)
        assert parse_view_box('0 0 0 10') is None
        assert parse_view_box('junk') is None

    def test_attributes_first(self):
        """Test attributes first."""
        svg = _document('<svg width="400" height="200" viewBox="0 0 10 10"></svg>').find('svg')
        assert resolve_svg_dimensions(svg) == (400.0, 200.0)

    def test_view_box_when_percent(self):
        """Test view box when percent."""
        svg = _document('<svg width="100%" viewBox="0 0 320 240"></svg>').find('svg')
        assert resolve_svg_dimensions(svg) == (320.0, 240.0)

    def test_measure_then_default(self):
        """Test measure then default."""
        svg = _document('<svg></svg>').find('svg')
        assert resolve_svg_dimensions(svg, lambda tag: (123, 45)) == (123.0, 45.0)
        assert resolve_svg_dimensions(svg, lambda tag: (0, 0)) == (800.0, 600.0)
        assert resolve_svg_dimensions(svg) == (800.0, 600.0)


class TestSvgConverter(unittest.TestCase):
    """Test converting a diagram to an image."""

    def setUp(self):
        self.converter = SvgConverter()

    def test_basic_conversion(self):
        """Test a basic diagram converts to a base64 svg image."""
        soup = _document(
            '<div class="diagram" id="flow"><svg viewBox="0 0 300 150">'
            '<rect x="1" y="1" width="10" height="10"></rect></svg></div>'
        )
        image = self.converter.convert(soup.find('svg'))

        self.assertEqual(image.id, 'flow')
        self.assertEqual(image.format, ImageFormat.SVG)
        self.assertEqual((image.width, image.height), (300.0, 150.0))
        root = _decode(image)
        self.assertEqual(root.tag, f'{SVG}svg')
        self.assertEqual(root.get('width'), '300')
        self.assertEqual(root.get('height'), '150')
        self.assertEqual(root.get('viewBox'), '0 0 300 150')
        self.assertEqual(base64.b64decode(image.data), image.raw_bytes())

    def test_page_styles_inlined(self):
        """Test page styles inlined."""
        soup = _document(
            '<div class="diagram" id="d"><svg width="100" height="50">'
            '<g class="edges"><path class="edge" d="M0 0 L10 10"></path></g></svg></div>',
            head='<style>.edges .edge { stroke: #123456; stroke-width: 2px; fill: none; '
                 'stroke-dasharray: 0 }</style>',
        )
        root = _decode(self.converter.convert(soup.find('svg')))
        path = root.find(f'.//{SVG}path')

        self.assertEqual(path.get('stroke'), '#123456')
        self.assertEqual(path.get('stroke-width'), '2px')
        self.assertIsNone(path.get('fill'))
        self.assertIsNone(path.get('stroke-dasharray'))

    def test_page_styles_can_be_ignored(self):
        """Test page styles can be ignored."""
        soup = _document(
            '<svg width="10" height="10"><rect class="box"></rect></svg>',
            head='<style>.box { stroke: red }</style>',
        )
        converter = SvgConverter(include_page_styles=False)
        rect = _decode(converter.convert(soup.find('svg'))).find(f'.//{SVG}rect')
        self.assertIsNone(rect.get('stroke'))

    def test_text_styles_inlined(self):
        """Test text styles inlined."""
        soup = _document(
            '<svg width="10" height="10"><text class="label">Hi</text></svg>',
            head='<style>.label { font-size: 18px; font-family: Arial; text-anchor: middle }</style>',
        )
        text = _decode(self.converter.convert(soup.find('svg'))).find(f'.//{SVG}text')
        self.assertEqual(text.get('font-size'), '18px')
        self.assertEqual(text.get('font-family'), 'Arial')
        self.assertEqual(text.get('text-anchor'), 'middle')

    def test_defs_shapes_get_colors(self):
        """Test defs shapes get colors."""
        soup = _document(
            '<svg width="10" height="10"><defs><marker id="arrow">'
            '<path class="head" d="M0 0 L5 5"></path></marker></defs>'
            '<line x1="0" y1="0" x2="5" y2="5" marker-end="url(#arrow)"></line></svg>',
            head='<style>.head { fill: #333333; stroke: #333333 }</style>',
        )
        root = _decode(self.converter.convert(soup.find('svg')))
        head = root.find(f'.//{SVG}marker/{SVG}path')
        line = root.find(f'.//{SVG}line')

        self.assertEqual(head.get('fill'), '#333333')
        self.assertEqual(head.get('stroke'), '#333333')
        self.assertEqual(line.get('marker-end'), 'url(#arrow)')

    def test_foreign_object_becomes_text(self):
        """Test foreign object becomes text."""
        soup = _document(
            '<svg width="200" height="100"><g>'
            '<foreignObject x="0" y="0" width="200" height="100">'
            '<div><span>Node label</span></div></foreignObject></g></svg>'
        )
        root = _decode(self.converter.convert(soup.find('svg')))
        self.assertEqual(root.findall(f'.//{SVG}foreignObject'), [])
        self.assertEqual(root.find(f'.//{SVG}text').text, 'Node label')

    def test_live_graphic_untouched(self):
        """Test live graphic untouched."""
        soup = _document(
            '<div class="diagram"><svg viewBox="0 0 10 10"><foreignObject><div>x</div>'
            '</foreignObject><rect class="r"></rect></svg></div>',
            head='<style>.r { fill: red }</style>',
        )
        before = str(soup)
        self.converter.convert(soup.find('svg'))
        self.assertEqual(str(soup), before)

    def test_rejects_non_svg(self):
        """Test non-svg elements are rejected."""
        soup = _document('<p>not a graphic</p>')
        with self.assertRaises(ValueError):
            self.converter.convert(soup.find('p'))

    def test_id_resolution(self):
        """Test diagram ids from container, svg or generated."""
        soup = _document(
            '<div class="diagram"><svg id="inner"></svg></div>'
            '<div class="diagram"><svg></svg></div>'
        )
        first, second = soup.find_all('svg')
        self.assertEqual(self.converter.resolve_id(first), 'inner')
        self.assertTrue(self.converter.resolve_id(second).startswith('svg-'))
        self.assertEqual(self.converter.convert(first, diagram_id='explicit').id, 'explicit')


class TestConvertAll:
    """Test converting several diagrams."""

    def test_failures_skipped_and_first_duplicate_kept(self):
        """Test failures skipped and first duplicate kept."""
        soup = _document(
            '<svg id="a" width="10" height="10"></svg>'
            '<svg id="a" width="20" height="20"></svg>'
            '<p id="bad">x</p>'
        )
        first, second = soup.find_all('svg')
        sources = [
            DiagramSource('a', first),
            DiagramSource('a', second),
            DiagramSource('bad', soup.find('p')),
        ]
        images = SvgConverter().convert_all(sources)

        assert list(images) == ['a']
        assert images['a'].width == 10.0

    def test_progress_reported_per_diagram(self):
        """Processed fraction is reported after every diagram, failures included."""
        soup = _document(
            '<svg id="a" width="10" height="10"></svg>'
            '<p id="bad">x</p>'
            '<svg id="b" width="10" height="10"></svg>'
            '<svg id="c" width="10" height="10"></svg>'
        )
        sources = [DiagramSource(tag['id'], tag) for tag in soup.find_all(['svg', 'p'])]
        fractions = []
        images = SvgConverter().convert_all(sources, on_progress=fractions.append)

        assert list(images) == ['a', 'b', 'c']
        assert fractions == [0.25, 0.5, 0.75, 1.0]

    def test_convert_diagrams_helper(self):
        """Test convert diagrams helper."""
        soup = _document(
            '<div class="mermaid-container" id="m1"><svg width="40" height="30"></svg></div>'
            '<div class="diagram" id="empty"></div>'
        )
        images = convert_diagrams(soup.body)
        assert list(images) == ['m1']
        assert (images['m1'].width, images['m1'].height) == (40.0, 30.0)
