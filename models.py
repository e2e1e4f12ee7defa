"""Data models for the document export pipeline."""

import base64
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

logger = logging.getLogger('document_exporter')


class NodeType(Enum):
    """Kinds of structured content nodes."""
    HEADING = "heading"
    PARAGRAPH = "paragraph"
    LIST = "list"
    CODE = "code"
    TABLE = "table"
    BLOCKQUOTE = "blockquote"
    DIAGRAM = "diagram"
    RULE = "rule"
    GROUP = "group"


class ImageFormat(Enum):
    """Payload formats of converted images."""
    SVG = "svg"
    PNG = "png"
    JPEG = "jpeg"

    @property
    def is_vector(self) -> bool:
        return self is ImageFormat.SVG


class UnsupportedFormatError(ValueError):
    """Raised for an export format the pipeline cannot produce."""


class ExportFormat(Enum):
    """Supported export formats."""
    DOCX = "docx"
    PDF = "pdf"

    @property
    def extension(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Union['ExportFormat', str]) -> 'ExportFormat':
        """
        Resolve a format name case-insensitively.

        Raises:
            UnsupportedFormatError: If ``value`` names no supported format
        """
        if isinstance(value, ExportFormat):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnsupportedFormatError(f"Unsupported export format: {value}") from None


class ExportStage(Enum):
    """Coarse stages reported through export progress."""
    COLLECTING = "collecting"
    CONVERTING = "converting"
    GENERATING = "generating"
    DOWNLOADING = "downloading"


@dataclass(frozen=True)
class ContentNode:
    """
    One structured block of exported content.

    ``content`` is a string for leaf nodes (inline markup, code text or a
    JSON encoded table matrix) and a tuple of child nodes for lists,
    blockquotes and groups.
    """

    type: NodeType
    content: Union[str, Tuple['ContentNode', ...]] = ""
    attributes: Dict[str, Any] = field(default_factory=dict)
    children: Optional[Tuple['ContentNode', ...]] = None

    @property
    def text(self) -> str:
        """String content, or an empty string for container nodes."""
        return self.content if isinstance(self.content, str) else ""

    @property
    def child_nodes(self) -> Tuple['ContentNode', ...]:
        """Child nodes, whichever field carries them."""
        if self.children:
            return self.children
        if isinstance(self.content, tuple):
            return self.content
        return ()

    def table_rows(self) -> List[List[str]]:
        """Decode the serialized cell matrix of a table node."""
        if self.type is not NodeType.TABLE:
            raise ValueError(f"Node of type {self.type.value} is not a table")
        rows = json.loads(self.content) if self.content else []
        return [[str(cell) for cell in row] for row in rows]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize node to dictionary."""
        if isinstance(self.content, tuple):
            content: Any = [child.to_dict() for child in self.content]
        else:
            content = self.content
        data = {
            'type': self.type.value,
            'content': content,
        }
        if self.attributes:
            data['attributes'] = dict(self.attributes)
        if self.children is not None and self.children is not self.content:
            data['children'] = [child.to_dict() for child in self.children]
        return data


@dataclass
class ContentMetadata:
    """Statistics gathered while collecting content."""

    word_count: int = 0
    image_count: int = 0
    diagram_count: int = 0
    exported_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'word_count': self.word_count,
            'image_count': self.image_count,
            'diagram_count': self.diagram_count,
            'exported_at': self.exported_at,
        }


@dataclass
class CollectedContent:
    """Result of walking a rendered document."""

    title: str
    nodes: List[ContentNode] = field(default_factory=list)
    metadata: ContentMetadata = field(default_factory=ContentMetadata)

    @property
    def diagram_ids(self) -> List[str]:
        """Ids of every diagram node, in document order."""
        ids: List[str] = []

        def walk(nodes):
            for node in nodes:
                if node.type is NodeType.DIAGRAM:
                    ids.append(node.attributes.get('id', ''))
                else:
                    walk(node.child_nodes)

        walk(self.nodes)
        return ids

    def to_dict(self) -> Dict[str, Any]:
        return {
            'title': self.title,
            'nodes': [node.to_dict() for node in self.nodes],
            'metadata': self.metadata.to_dict(),
        }


@dataclass(frozen=True)
class ConvertedImage:
    """A diagram turned into a self-contained, embeddable image payload."""

    id: str
    data: str  # base64 encoded payload
    width: float
    height: float
    format: ImageFormat = ImageFormat.SVG

    def raw_bytes(self) -> bytes:
        """Decode the base64 payload."""
        return base64.b64decode(self.data)


@dataclass(frozen=True)
class DiagramSource:
    """A diagram id paired with the live graphic it identifies."""

    id: str
    graphic: Any  # bs4.Tag of the <svg> element


@dataclass(frozen=True)
class ExportProgress:
    """One progress notification."""

    stage: ExportStage
    percent: float
    message: str = ""


@dataclass
class ExportOptions:
    """User-facing export options."""

    format: ExportFormat = ExportFormat.DOCX
    filename: Optional[str] = None
    filename_template: str = "{title}"
    page_size: str = "A4"
    orientation: str = "portrait"
    margins: Optional[str] = None
    include_title: bool = False
    author: Optional[str] = None
    convert_diagrams: bool = True

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'ExportOptions':
        """Build options from the ``export`` section of a configuration."""
        export = config.get('export', {}) or {}
        fmt = export.get('format', ExportFormat.DOCX.value)
        return cls(
            format=ExportFormat.parse(fmt),
            filename=export.get('filename'),
            filename_template=export.get('filename_template', "{title}"),
            page_size=export.get('page_size', "A4"),
            orientation=export.get('orientation', "portrait"),
            margins=export.get('margins') or None,
            include_title=bool(export.get('include_title', False)),
            author=export.get('author') or None,
            convert_diagrams=bool(export.get('convert_diagrams', True)),
        )


@dataclass
class ExportResult:
    """Summary of a completed export."""

    format: ExportFormat
    filename: str
    size_bytes: int = 0
    path: Optional[str] = None
    title: str = ""
    node_count: int = 0
    diagram_count: int = 0
    word_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'format': self.format.value,
            'filename': self.filename,
            'size_bytes': self.size_bytes,
            'path': self.path,
            'title': self.title,
            'node_count': self.node_count,
            'diagram_count': self.diagram_count,
            'word_count': self.word_count,
        }


__all__ = [
    'NodeType',
    'ImageFormat',
    'ExportFormat',
    'UnsupportedFormatError',
    'ExportStage',
    'ContentNode',
    'ContentMetadata',
    'CollectedContent',
    'ConvertedImage',
    'DiagramSource',
    'ExportProgress',
    'ExportOptions',
    'ExportResult',
]
