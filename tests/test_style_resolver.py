"""Tests for SVG computed style resolution."""

import pytest
from bs4 import BeautifulSoup

from converters.svg_style_resolver import (
    StyleResolutionError,
    SvgStyleResolver,
    parse_stylesheet,
    presentation_attributes,
    specificity,
    split_declarations,
)


def _svg(markup):
    soup = BeautifulSoup(f'<html><body><div>{markup}</div></body></html>', 'lxml')
    return soup.find('svg')


class TestCascade:
    """Cascade order, inheritance and keywords."""

    def test_rule_beats_presentation_attribute(self):
        """Test rule beats presentation attribute."""
        svg = _svg('<svg><g class="node"><rect id="r" fill="green"></rect></g></svg>')
        resolver = SvgStyleResolver(svg, ['.node rect { fill: #f00; stroke: blue }'])
        style = resolver.computed(svg.find('rect'))
        assert style['fill'] == '#f00'
        assert style['stroke'] == 'blue'

    def test_inline_style_beats_rule(self):
        """Test inline style beats rule."""
        svg = _svg('<svg><rect style="fill: yellow"></rect></svg>')
        resolver = SvgStyleResolver(svg, ['rect { fill: red }'])
        assert resolver.computed(svg.find('rect'))['fill'] == 'yellow'

    def test_important_rule_beats_inline(self):
        """Test important rule beats inline."""
        svg = _svg('<svg><rect style="fill: blue"></rect></svg>')
        resolver = SvgStyleResolver(svg, ['rect { fill: red !important }'])
        assert resolver.computed(svg.find('rect'))['fill'] == 'red'

    def test_specificity_orders_rules(self):
        """Test specificity orders rules."""
        svg = _svg('<svg><rect id="box" class="shape"></rect></svg>')
        resolver = SvgStyleResolver(svg, ['#box { fill: navy } .shape { fill: olive } rect { fill: red }'])
        assert resolver.computed(svg.find('rect'))['fill'] == 'navy'

    def test_later_rule_wins_on_equal_specificity(self):
        """Test later rule wins on equal specificity."""
        svg = _svg('<svg><rect class="a b"></rect></svg>')
        resolver = SvgStyleResolver(svg, ['.a { stroke: red } .b { stroke: green }'])
        assert resolver.computed(svg.find('rect'))['stroke'] == 'green'

    def test_inherited_from_parent(self):
        """Test inherited from parent."""
        svg = _svg('<svg><g fill="purple" stroke-width="3"><rect></rect></g></svg>')
        style = SvgStyleResolver(svg).computed(svg.find('rect'))
        assert style['fill'] == 'purple'
        assert style['stroke-width'] == '3'

    def test_opacity_not_inherited(self):
        """Test opacity not inherited."""
        svg = _svg('<svg><g opacity="0.5"><rect></rect></g></svg>')
        assert SvgStyleResolver(svg).computed(svg.find('rect'))['opacity'] == '1'

    def test_initial_values(self):
        """Test unset properties use initial values."""
        svg = _svg('<svg><circle></circle></svg>')
        style = SvgStyleResolver(svg).computed(svg.find('circle'))
        assert style['fill'] == 'black'
        assert style['stroke'] == 'none'
        assert style['font-size'] == '16px'

    def test_inherit_and_initial_keywords(self):
        """Test inherit and initial keywords."""
        svg = _svg(
            '<svg><g fill="teal" stroke="red">'
            '<rect style="fill: initial; stroke: inherit"></rect></g></svg>'
        )
        style = SvgStyleResolver(svg).computed(svg.find('rect'))
        assert style['fill'] == 'black'
        assert style['stroke'] == 'red'

    def test_current_color(self):
        """Test currentColor resolves to the color property."""
        svg = _svg('<svg><g style="color: teal"><rect fill="currentColor"></rect></g></svg>')
        assert SvgStyleResolver(svg).computed(svg.find('rect'))['fill'] == 'teal'

    def test_relative_font_size(self):
        """Test relative font size."""
        svg = _svg(
            '<svg><text style="font-size: 20px">'
            '<tspan style="font-size: 1.5em">a</tspan><tspan style="font-size: 50%">b</tspan>'
            '</text></svg>'
        )
        resolver = SvgStyleResolver(svg)
        big, small = svg.find_all('tspan')
        assert resolver.computed(big)['font-size'] == '30px'
        assert resolver.computed(small)['font-size'] == '10px'

    def test_font_weight_keyword_normalized(self):
        """Test font weight keyword normalized."""
        svg = _svg('<svg><text font-weight="bold">x</text></svg>')
        assert SvgStyleResolver(svg).computed(svg.find('text'))['font-weight'] == '700'

    def test_results_memoised(self):
        """Test results memoised."""
        svg = _svg('<svg><rect></rect></svg>')
        resolver = SvgStyleResolver(svg)
        rect = svg.find('rect')
        assert resolver.computed(rect) is resolver.computed(rect)

    def test_unsupported_selector_ignored(self):
        """Test unsupported selector ignored."""
        svg = _svg('<svg><rect></rect></svg>')
        resolver = SvgStyleResolver(svg, ['rect:::bogus { fill: red } rect { stroke: blue }'])
        style = resolver.computed(svg.find('rect'))
        assert style['fill'] == 'black'
        assert style['stroke'] == 'blue'

    def test_element_outside_root_rejected(self):
        """Test element outside root rejected."""
        soup = BeautifulSoup('<div><svg><rect></rect></svg><p>x</p></div>', 'lxml')
        resolver = SvgStyleResolver(soup.find('svg'))
        with pytest.raises(StyleResolutionError):
            resolver.computed(soup.find('p'))


class TestStylesheetParsing:
    """Test stylesheet parsing helpers."""

    def test_split_declarations(self):
        """Test split declarations."""
        declarations = split_declarations('fill: url(#a;b); stroke: red !important; bogus')
        assert declarations == [('fill', 'url(#a;b)', False), ('stroke', 'red', True)]

    def test_at_rules_skipped(self):
        """Test at rules skipped."""
        rules = parse_stylesheet(
            '/* note */ @import url(x.css); @media print { rect { fill: red } } circle { fill: blue }'
        )
        assert rules == [('circle', [('fill', 'blue', False)])]

    @pytest.mark.parametrize('selector, expected', [
        ('rect', (0, 0, 1)),
        ('#a .b rect', (1, 1, 1)),
        ('rect:first-child', (0, 1, 1)),
        ('g[data-x] > path', (0, 1, 2)),
        ('a::before', (0, 0, 2)),
    ])
    def test_specificity(self, selector, expected):
        """Test selector specificity tuples."""
        assert specificity(selector) == expected


class TestPresentationAttributes:
    """Test presentation attribute output."""

    def test_defaults_and_zero_values_left_out(self):
        """Test defaults and zero values left out."""
        svg = _svg('<svg><path></path></svg>')
        computed = {
            'fill': 'none', 'stroke': '#333', 'stroke-width': '0',
            'stroke-dasharray': '0 0', 'stroke-linecap': 'butt',
            'stroke-linejoin': 'round', 'opacity': '1',
        }
        attributes = presentation_attributes(svg.find('path'), computed)
        assert attributes == {'stroke': '#333', 'stroke-linejoin': 'round'}

    def test_gradient_fill_left_out(self):
        """Test gradient fill left out."""
        svg = _svg('<svg><rect></rect></svg>')
        attributes = presentation_attributes(svg.find('rect'), {'fill': 'url(#grad)'})
        assert 'fill' not in attributes

    def test_text_properties(self):
        """Test text properties."""
        svg = _svg('<svg><text>x</text></svg>')
        computed = {
            'fill': 'black', 'font-size': '12px', 'font-family': '"Trebuchet MS", sans-serif',
            'font-weight': '700', 'text-anchor': 'middle', 'dominant-baseline': 'auto',
        }
        attributes = presentation_attributes(svg.find('text'), computed)
        assert attributes['font-family'] == 'Trebuchet MS, sans-serif'
        assert attributes['font-weight'] == '700'
        assert attributes['text-anchor'] == 'middle'
        assert 'dominant-baseline' not in attributes

    def test_markers_copied_as_authored(self):
        """Test markers copied as authored."""
        svg = _svg('<svg><path marker-end="url(#arrow)"></path></svg>')
        attributes = presentation_attributes(svg.find('path'), {})
        assert attributes == {'marker-end': 'url(#arrow)'}
