"""Walk a rendered HTML document and build the structured content model."""

import json
import logging
import re
from typing import Iterable, List, Optional, Sequence

from bs4 import NavigableString, Tag

from converters.inline_markup import InlineMarkupExtractor, to_plain_text
from models import (
    CollectedContent,
    ContentMetadata,
    ContentNode,
    DiagramSource,
    NodeType,
)

logger = logging.getLogger('document_exporter.converters.content_collector')

DEFAULT_DIAGRAM_CLASSES = ('diagram', 'mermaid-container')
DEFAULT_TITLE = "Untitled Document"

HEADING_TAGS = frozenset(['h1', 'h2', 'h3', 'h4', 'h5', 'h6'])
LIST_TAGS = frozenset(['ul', 'ol'])
CONTAINER_TAGS = frozenset([
    'div', 'section', 'article', 'main', 'aside', 'header', 'footer', 'figure',
])

_WHITESPACE = re.compile(r'\s+')
_LANGUAGE_CLASS = re.compile(r'^(?:language|lang)-(.+)$')


def _classes(element: Tag) -> List[str]:
    value = element.get('class') or []
    if isinstance(value, str):
        value = value.split()
    return list(value)


def _child_tags(element: Tag) -> List[Tag]:
    return [child for child in element.children if isinstance(child, Tag)]


def _plain(element: Tag) -> str:
    return _WHITESPACE.sub(' ', element.get_text()).strip()


class ContentCollector:
    """
    Builds a ``CollectedContent`` model from a rendered document subtree.

    Only the direct children of the root are dispatched; generic containers
    are unwrapped when they produce exactly one structured node.
    """

    def __init__(self, diagram_classes: Sequence[str] = DEFAULT_DIAGRAM_CLASSES,
                 preserve_groups: bool = False, logger: logging.Logger = None):
        """
        Initialize collector.

        Args:
            diagram_classes: Class names marking diagram containers
            preserve_groups: Wrap multi-child containers in a group node
                instead of dropping them
            logger: Optional logger instance
        """
        self.diagram_classes = tuple(diagram_classes)
        self.preserve_groups = preserve_groups
        self.logger = logger or logging.getLogger(
            'document_exporter.converters.content_collector'
        )
        self._image_count = 0
        self._extractor = InlineMarkupExtractor(on_image=self._count_image)

    def collect(self, root: Tag) -> CollectedContent:
        """
        Collect structured content from ``root``.

        Args:
            root: Rendered document container

        Returns:
            Collected nodes with title and metadata
        """
        self._image_count = 0
        nodes: List[ContentNode] = []

        for child in _child_tags(root):
            node = self._safe_process(child)
            if node is not None:
                nodes.append(node)

        title = self._find_title(nodes)
        metadata = ContentMetadata(
            word_count=self._count_words(nodes),
            image_count=self._image_count,
            diagram_count=self._count_diagrams(nodes),
        )

        self.logger.info(
            f"Collected {len(nodes)} nodes from '{title}' "
            f"({metadata.word_count} words, {metadata.diagram_count} diagrams)"
        )
        return CollectedContent(title=title, nodes=nodes, metadata=metadata)

    def collect_diagrams(self, root: Tag) -> List[DiagramSource]:
        """
        Pair every diagram container under ``root`` with its graphic.

        Containers without an inner ``<svg>`` are skipped. Ids follow the
        same rules as the diagram nodes produced by ``collect``.
        """
        sources: List[DiagramSource] = []
        for container in self._diagram_containers(root):
            svg = container.find('svg')
            if svg is None:
                self.logger.debug("Diagram container without svg skipped")
                continue
            diagram_id = container.get('id') or svg.get('id') or ''
            sources.append(DiagramSource(id=diagram_id, graphic=svg))
        return sources

    def is_diagram_container(self, element: Tag) -> bool:
        return any(cls in self.diagram_classes for cls in _classes(element))

    def _diagram_containers(self, root: Tag) -> Iterable[Tag]:
        for element in root.find_all(True):
            if self.is_diagram_container(element):
                yield element

    def _count_image(self, element: Tag) -> None:
        self._image_count += 1

    def _safe_process(self, element: Tag) -> Optional[ContentNode]:
        try:
            return self._process(element)
        except Exception as e:
            self.logger.warning(f"Skipping <{element.name}> element: {e}")
            return None

    def _process(self, element: Tag) -> Optional[ContentNode]:
        name = (element.name or '').lower()

        if name in HEADING_TAGS:
            return self._heading(element, int(name[1]))
        if name == 'p':
            return ContentNode(NodeType.PARAGRAPH, self._extractor.extract(element))
        if name in LIST_TAGS:
            return self._list(element)
        if name == 'pre':
            return self._code(element)
        if name == 'table':
            return self._table(element)
        if name == 'blockquote':
            return self._blockquote(element)
        if name == 'hr':
            return ContentNode(NodeType.RULE, '')
        if self.is_diagram_container(element):
            return self._diagram(element)
        if name == 'img':
            self._count_image(element)
            return None
        if name in CONTAINER_TAGS:
            return self._container(element)

        self.logger.debug(f"Ignoring <{name}> element")
        return None

    def _heading(self, element: Tag, level: int) -> ContentNode:
        attributes = {'level': level}
        if element.get('id'):
            attributes['id'] = element['id']
        return ContentNode(NodeType.HEADING, _plain(element), attributes)

    def _list(self, element: Tag) -> ContentNode:
        ordered = element.name.lower() == 'ol'
        items = []

        for li in _child_tags(element):
            if li.name.lower() != 'li':
                continue
            inline_nodes = []
            nested = []
            for child in li.children:
                if isinstance(child, Tag) and child.name.lower() in LIST_TAGS:
                    nested.append(self._list(child))
                else:
                    inline_nodes.append(child)
            items.append(ContentNode(
                NodeType.PARAGRAPH,
                self._extractor.extract_nodes(inline_nodes),
                children=tuple(nested) if nested else None,
            ))

        items = tuple(items)
        return ContentNode(NodeType.LIST, items, {'ordered': ordered}, children=items)

    def _code(self, element: Tag) -> ContentNode:
        code = element.find('code')
        source = code if code is not None else element
        text = source.get_text()
        if text.endswith('\n'):
            text = text[:-1]

        attributes = {}
        for candidate in (code, element):
            if candidate is None:
                continue
            for cls in _classes(candidate):
                match = _LANGUAGE_CLASS.match(cls)
                if match:
                    attributes['language'] = match.group(1)
                    break
            if attributes:
                break

        return ContentNode(NodeType.CODE, text, attributes)

    def _table(self, element: Tag) -> ContentNode:
        rows = []
        for tr in self._table_rows(element):
            cells = [
                self._extractor.extract(cell)
                for cell in _child_tags(tr)
                if cell.name.lower() in ('th', 'td')
            ]
            rows.append(cells)

        cols = max((len(row) for row in rows), default=0)
        rows = [row + [''] * (cols - len(row)) for row in rows]

        return ContentNode(
            NodeType.TABLE,
            json.dumps(rows, ensure_ascii=False, separators=(',', ':')),
            {'rows': len(rows), 'cols': cols},
        )

    @staticmethod
    def _table_rows(table: Tag) -> List[Tag]:
        sections = [
            child for child in _child_tags(table)
            if child.name.lower() in ('thead', 'tbody', 'tfoot')
        ]
        if not sections:
            return [tr for tr in table.find_all('tr') if tr.find_parent('table') is table]

        order = {'thead': 0, 'tbody': 1, 'tfoot': 2}
        sections.sort(key=lambda section: order[section.name.lower()])
        rows = []
        for section in sections:
            rows.extend(tr for tr in _child_tags(section) if tr.name.lower() == 'tr')
        return rows

    def _blockquote(self, element: Tag) -> ContentNode:
        children: List[ContentNode] = []
        loose_inline = []

        def flush_inline():
            text = self._extractor.extract_nodes(loose_inline)
            loose_inline.clear()
            if text:
                children.append(ContentNode(NodeType.PARAGRAPH, text))

        for child in element.children:
            if isinstance(child, Tag) and self._is_block(child):
                flush_inline()
                node = self._safe_process(child)
                if node is not None:
                    children.append(node)
            elif isinstance(child, (Tag, NavigableString)):
                loose_inline.append(child)
        flush_inline()

        children = tuple(children)
        return ContentNode(NodeType.BLOCKQUOTE, children, children=children)

    def _is_block(self, element: Tag) -> bool:
        name = element.name.lower()
        return (
            name in HEADING_TAGS or name in LIST_TAGS or name in CONTAINER_TAGS
            or name in ('p', 'pre', 'table', 'blockquote', 'hr')
            or self.is_diagram_container(element)
        )

    def _diagram(self, element: Tag) -> ContentNode:
        svg = element.find('svg')
        attributes = {
            'id': element.get('id') or (svg.get('id') if svg is not None else '') or '',
            'width': (svg.get('width') if svg is not None else '') or '',
            'height': (svg.get('height') if svg is not None else '') or '',
        }
        return ContentNode(NodeType.DIAGRAM, '', attributes)

    def _container(self, element: Tag) -> Optional[ContentNode]:
        nodes = []
        for child in _child_tags(element):
            node = self._safe_process(child)
            if node is not None:
                nodes.append(node)

        if len(nodes) == 1:
            return nodes[0]
        if len(nodes) > 1 and self.preserve_groups:
            group = tuple(nodes)
            return ContentNode(NodeType.GROUP, group, children=group)
        if nodes:
            self.logger.debug(
                f"Dropping <{element.name}> container with {len(nodes)} children"
            )
        return None

    @staticmethod
    def _find_title(nodes: List[ContentNode]) -> str:
        for node in nodes:
            if node.type is NodeType.HEADING and node.attributes.get('level') == 1:
                return node.text or DEFAULT_TITLE
        return DEFAULT_TITLE

    def _count_words(self, nodes: Iterable[ContentNode]) -> int:
        total = 0
        for node in nodes:
            if node.type is NodeType.HEADING:
                total += len(node.text.split())
            elif node.type is NodeType.PARAGRAPH:
                total += len(to_plain_text(node.text).split())
            elif node.type in (NodeType.BLOCKQUOTE, NodeType.GROUP):
                total += self._count_words(node.child_nodes)
        return total

    def _count_diagrams(self, nodes: Iterable[ContentNode]) -> int:
        total = 0
        for node in nodes:
            if node.type is NodeType.DIAGRAM:
                total += 1
            elif node.type is not NodeType.TABLE:
                total += self._count_diagrams(node.child_nodes)
        return total


def collect_content(root: Tag, **kwargs) -> CollectedContent:
    """Collect content from ``root`` with a default collector."""
    return ContentCollector(**kwargs).collect(root)


__all__ = [
    'ContentCollector',
    'collect_content',
    'DEFAULT_DIAGRAM_CLASSES',
    'DEFAULT_TITLE',
]
