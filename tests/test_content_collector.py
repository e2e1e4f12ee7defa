"""Tests for the content collector."""

import unittest

from bs4 import BeautifulSoup

from converters.content_collector import DEFAULT_TITLE, ContentCollector, collect_content
from models import NodeType


def _root(html):
    return BeautifulSoup(f'<html><body>{html}</body></html>', 'lxml').body


class TestContentCollector(unittest.TestCase):
    """Test collecting HTML into content nodes."""

    def setUp(self):
        self.collector = ContentCollector()

    def collect(self, html):
        return self.collector.collect(_root(html))

    def test_headings_and_title(self):
        """Test headings and title."""
        content = self.collect('<h2>Intro</h2><h1 id="top">Main <em>Title</em></h1><h1>Second</h1>')
        self.assertEqual(content.title, 'Main Title')
        self.assertEqual(content.nodes[0].attributes, {'level': 2})
        self.assertEqual(content.nodes[1].text, 'Main Title')
        self.assertEqual(content.nodes[1].attributes, {'level': 1, 'id': 'top'})

    def test_untitled_document(self):
        """Test untitled document."""
        content = self.collect('<p>No heading here</p>')
        self.assertEqual(content.title, DEFAULT_TITLE)

    def test_paragraph_markup(self):
        """Test paragraphs keep their inline markup."""
        content = self.collect('<p>Some <strong>bold</strong> text</p>')
        node = content.nodes[0]
        self.assertIs(node.type, NodeType.PARAGRAPH)
        self.assertEqual(node.text, 'Some **bold** text')

    def test_nested_lists(self):
        """Test nested lists."""
        content = self.collect(
            '<ol><li>First<ul><li>Inner</li></ul></li><li><em>Second</em></li></ol>'
        )
        node = content.nodes[0]
        self.assertIs(node.type, NodeType.LIST)
        self.assertTrue(node.attributes['ordered'])
        self.assertEqual(len(node.child_nodes), 2)

        first, second = node.child_nodes
        self.assertEqual(first.text, 'First')
        self.assertEqual(second.text, '*Second*')
        nested = first.child_nodes[0]
        self.assertIs(nested.type, NodeType.LIST)
        self.assertFalse(nested.attributes['ordered'])
        self.assertEqual(nested.child_nodes[0].text, 'Inner')

    def test_code_block(self):
        """Test code blocks keep text and language."""
        content = self.collect('<pre><code class="language-python">print(1)\n</code></pre>')
        node = content.nodes[0]
        self.assertIs(node.type, NodeType.CODE)
        self.assertEqual(node.text, 'print(1)')
        self.assertEqual(node.attributes['language'], 'python')

    def test_code_block_without_language(self):
        """Test code block without language."""
        content = self.collect('<pre>a\n  b\n\n</pre>')
        node = content.nodes[0]
        self.assertEqual(node.text, 'a\n  b\n')
        self.assertNotIn('language', node.attributes)

    def test_table_sections_ordered_and_padded(self):
        """Test table sections ordered and padded."""
        content = self.collect(
            '<table>'
            '<tbody><tr><td>1</td></tr></tbody>'
            '<thead><tr><th>A</th><th>B</th></tr></thead>'
            '</table>'
        )
        node = content.nodes[0]
        self.assertIs(node.type, NodeType.TABLE)
        self.assertEqual(node.table_rows(), [['A', 'B'], ['1', '']])
        self.assertEqual(node.attributes, {'rows': 2, 'cols': 2})

    def test_table_without_sections(self):
        """Test table without sections."""
        content = self.collect('<table><tr><td><b>x</b></td><td>y</td></tr></table>')
        self.assertEqual(content.nodes[0].table_rows(), [['**x**', 'y']])

    def test_blockquote_children(self):
        """Test blockquote children."""
        content = self.collect(
            '<blockquote>loose <em>text</em><p>Para</p><blockquote><p>Deep</p></blockquote></blockquote>'
        )
        quote = content.nodes[0]
        self.assertIs(quote.type, NodeType.BLOCKQUOTE)
        kinds = [child.type for child in quote.child_nodes]
        self.assertEqual(kinds, [NodeType.PARAGRAPH, NodeType.PARAGRAPH, NodeType.BLOCKQUOTE])
        self.assertEqual(quote.child_nodes[0].text, 'loose *text*')

    def test_rule(self):
        """Test horizontal rules become rule nodes."""
        content = self.collect('<p>a</p><hr/><p>b</p>')
        self.assertIs(content.nodes[1].type, NodeType.RULE)

    def test_diagram_node(self):
        """Test diagram containers become diagram nodes."""
        content = self.collect(
            '<div class="mermaid-container" id="flow"><svg width="400" height="200"></svg></div>'
        )
        node = content.nodes[0]
        self.assertIs(node.type, NodeType.DIAGRAM)
        self.assertEqual(node.attributes, {'id': 'flow', 'width': '400', 'height': '200'})
        self.assertEqual(content.metadata.diagram_count, 1)
        self.assertEqual(content.diagram_ids, ['flow'])

    def test_diagram_id_falls_back_to_svg(self):
        """Test diagram id falls back to svg."""
        content = self.collect('<div class="diagram"><svg id="g1"></svg></div>')
        self.assertEqual(content.nodes[0].attributes['id'], 'g1')

    def test_single_child_container_unwrapped(self):
        """Test single child container unwrapped."""
        content = self.collect('<section><div><p>Only</p></div></section>')
        self.assertEqual(len(content.nodes), 1)
        self.assertEqual(content.nodes[0].text, 'Only')

    def test_multi_child_container_dropped(self):
        """Test multi child container dropped."""
        content = self.collect('<div><p>One</p><p>Two</p></div><p>Three</p>')
        self.assertEqual([node.text for node in content.nodes], ['Three'])

    def test_multi_child_container_grouped(self):
        """Test multi child container grouped."""
        collector = ContentCollector(preserve_groups=True)
        content = collector.collect(_root('<div><p>One</p><p>Two</p></div>'))
        group = content.nodes[0]
        self.assertIs(group.type, NodeType.GROUP)
        self.assertEqual([child.text for child in group.child_nodes], ['One', 'Two'])
        self.assertEqual(content.metadata.word_count, 2)

    def test_unknown_elements_ignored(self):
        """Test unknown elements ignored."""
        content = self.collect('<nav>menu</nav><span>inline</span><p>kept</p>')
        self.assertEqual(len(content.nodes), 1)

    def test_metadata_counts(self):
        """Test word, image and diagram counts."""
        content = self.collect(
            '<h1>Two words</h1><p>three <b>more</b> words <img src="a.png"/></p>'
            '<blockquote><p>quoted text</p></blockquote><img src="b.png"/>'
            '<ul><li>list words not counted</li></ul>'
        )
        self.assertEqual(content.metadata.word_count, 7)
        self.assertEqual(content.metadata.image_count, 2)
        self.assertEqual(content.metadata.diagram_count, 0)

    def test_word_count_of_heading_and_paragraph(self):
        """Heading and paragraph words are counted."""
        content = self.collect('<h1>A B</h1><p>C D E</p>')
        self.assertEqual(content.metadata.word_count, 5)

    def test_word_count_excludes_code_and_tables(self):
        """Code blocks and table cells do not add to the word count."""
        content = self.collect(
            '<p>one two</p>'
            '<pre><code>x = compute(a, b)\nprint(x)</code></pre>'
            '<table><tr><th>Header words</th></tr><tr><td>cell words here</td></tr></table>'
        )
        self.assertEqual([node.type for node in content.nodes],
                         [NodeType.PARAGRAPH, NodeType.CODE, NodeType.TABLE])
        self.assertEqual(content.metadata.word_count, 2)

    def test_failing_element_is_skipped(self):
        """Test failing element is skipped."""
        collector = ContentCollector()
        original = collector._table

        def broken(element):
            raise RuntimeError("boom")

        collector._table = broken
        with self.assertLogs('document_exporter.converters.content_collector', level='WARNING'):
            content = collector.collect(_root('<table><tr><td>x</td></tr></table><p>after</p>'))
        collector._table = original
        self.assertEqual([node.text for node in content.nodes], ['after'])


class TestCollectDiagrams:
    """Diagram discovery for conversion."""

    def test_sources_in_document_order(self):
        """Test sources in document order."""
        root = _root(
            '<div class="diagram" id="a"><svg></svg></div>'
            '<section><div class="mermaid-container"><svg id="b"></svg></div></section>'
            '<div class="diagram" id="pending"></div>'
        )
        sources = ContentCollector().collect_diagrams(root)
        assert [source.id for source in sources] == ['a', 'b']
        assert all(source.graphic.name == 'svg' for source in sources)

    def test_custom_classes(self):
        """Test custom diagram marker classes."""
        root = _root('<figure class="chart" id="c"><svg></svg></figure>')
        collector = ContentCollector(diagram_classes=['chart'])
        assert [source.id for source in collector.collect_diagrams(root)] == ['c']
        assert collector.collect(root).nodes[0].type is NodeType.DIAGRAM

    def test_collect_content_helper(self):
        """Test collect content helper."""
        content = collect_content(_root('<h1>T</h1>'))
        assert content.title == 'T'
        assert content.to_dict()['nodes'][0] == {
            'type': 'heading', 'content': 'T', 'attributes': {'level': 1},
        }
