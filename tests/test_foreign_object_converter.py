"""Tests for foreignObject to SVG text conversion."""

import unittest

from lxml import etree

from converters.foreign_object_converter import ForeignObjectConverter, extract_text
from converters.svg_markup import SVG_NS, XHTML_NS

SVG = f'{{{SVG_NS}}}'


def _svg(body):
    return etree.fromstring(
        f'<svg xmlns="{SVG_NS}" xmlns:h="{XHTML_NS}">{body}</svg>'
    )


class TestForeignObjectConverter(unittest.TestCase):
    """Test foreignObject to native SVG text conversion."""

    def setUp(self):
        self.converter = ForeignObjectConverter()

    def test_single_line_centered(self):
        """Test single line centered."""
        root = _svg(
            '<foreignObject x="10" y="20" width="100" height="40">'
            '<h:div><h:span style="color: red; font-size: 12px; font-family: \'Fira Sans\'">Hello</h:span></h:div>'
            '</foreignObject>'
        )
        created = self.converter.convert(root)

        self.assertEqual(created, 1)
        text = root.find(f'{SVG}text')
        self.assertEqual(text.text, 'Hello')
        self.assertEqual(text.get('x'), '60')
        self.assertEqual(text.get('y'), '40')
        self.assertEqual(text.get('text-anchor'), 'middle')
        self.assertEqual(text.get('dominant-baseline'), 'middle')
        self.assertEqual(text.get('fill'), 'red')
        self.assertEqual(text.get('font-size'), '12px')
        self.assertEqual(text.get('font-family'), 'Fira Sans')
        self.assertIsNone(root.find(f'{SVG}foreignObject'))

    def test_defaults(self):
        """Test default position, size, font and colour."""
        root = _svg('<foreignObject><h:div>Label</h:div></foreignObject>')
        self.converter.convert(root)
        text = root.find(f'{SVG}text')
        self.assertEqual((text.get('x'), text.get('y')), ('50', '10'))
        self.assertEqual(text.get('font-size'), '14px')
        self.assertEqual(text.get('font-family'), 'sans-serif')
        self.assertEqual(text.get('fill'), '#333')
        self.assertIsNone(text.get('font-weight'))

    def test_multi_line_uses_tspans(self):
        """Test multi line uses tspans."""
        root = _svg(
            '<foreignObject x="0" y="0" width="100" height="40">'
            '<h:div>Line one<h:br/>Line two</h:div>'
            '</foreignObject>'
        )
        self.converter.convert(root)
        text = root.find(f'{SVG}text')
        tspans = text.findall(f'{SVG}tspan')

        self.assertEqual([t.text for t in tspans], ['Line one', 'Line two'])
        self.assertEqual([t.get('dy') for t in tspans], ['0', '16.8'])
        self.assertEqual([t.get('x') for t in tspans], ['50', '50'])
        self.assertEqual(text.get('y'), '11.6')

    def test_bold_weight_kept(self):
        """Test bold weight kept."""
        root = _svg(
            '<foreignObject><h:p style="font-weight: bold">Strong</h:p></foreignObject>'
        )
        self.converter.convert(root)
        self.assertEqual(root.find(f'{SVG}text').get('font-weight'), 'bold')

    def test_empty_island_removed_keeping_tail(self):
        """Test empty island removed keeping tail."""
        root = _svg('<g><rect/><foreignObject><h:div>  </h:div></foreignObject>after</g>')
        created = self.converter.convert(root)

        self.assertEqual(created, 0)
        group = root.find(f'{SVG}g')
        self.assertEqual(len(group), 1)
        self.assertEqual(group[0].tail, 'after')

    def test_multiple_islands(self):
        """Test multiple islands."""
        root = _svg(
            '<foreignObject><h:span>A</h:span></foreignObject>'
            '<foreignObject><h:span>B</h:span></foreignObject>'
        )
        self.assertEqual(self.converter.convert(root), 2)
        self.assertEqual([t.text for t in root.findall(f'{SVG}text')], ['A', 'B'])


class TestExtractText:
    """Test text extraction from HTML labels."""

    def test_block_boundaries_become_newlines(self):
        """Test block boundaries become newlines."""
        root = etree.fromstring(
            f'<div xmlns="{XHTML_NS}"><p>first</p><p>second <b>bold</b></p></div>'
        )
        assert extract_text(root) == 'first\nsecond bold'

    def test_inline_text_joined(self):
        """Test inline text joined."""
        root = etree.fromstring(f'<div xmlns="{XHTML_NS}">a <span>b</span> c</div>')
        assert extract_text(root) == 'a b c'
