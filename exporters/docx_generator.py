"""Assemble Word (.docx) documents from collected content."""

import base64
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from io import BytesIO
from itertools import groupby
from typing import Dict, List, Mapping, Optional

from docx import Document
from docx.enum.section import WD_ORIENT
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.opc.constants import RELATIONSHIP_TYPE as RT
from docx.opc.part import Part
from docx.oxml import OxmlElement
from docx.oxml.ns import nsmap, qn
from docx.shared import Emu, Inches, Pt, RGBColor, Twips
from docx.text.run import Run

from converters.inline_markup import InlineRun, parse_inline, to_plain_text
from exporters.docx_numbering import ListNumbering
from exporters.page_geometry import CSS_DPI, PageGeometry
from logger import ProgressTracker
from models import CollectedContent, ContentNode, ConvertedImage, NodeType

logger = logging.getLogger('document_exporter.exporters.docx_generator')

_ASVG_NS = "http://schemas.microsoft.com/office/drawing/2016/SVG/main"
_SVG_BLIP_EXT_URI = "{96DAC541-7B7A-43D3-8B79-37D633B846F1}"
nsmap.setdefault("asvg", _ASVG_NS)

# Raster stand-in shown by consumers that cannot render the SVG extension
_TRANSPARENT_1PX_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVQImWNgYGBgAAAABQABDQottAAAAABJRU5ErkJggg=="
)

EMU_PER_PX = 9525
QUOTE_INDENT_TWIPS = 720
LIST_INDENT_TWIPS = 720
CODE_FONT = 'Consolas'
BODY_FONT = 'Aptos'
HEADING_FONT = 'Aptos Display'
HEADING_COLOR = RGBColor(0x0F, 0x47, 0x61)
HEADING_SIZES = {1: 20, 2: 16, 3: 14, 4: 12, 5: 12, 6: 12}
HYPERLINK_COLOR = RGBColor(0x05, 0x63, 0xC1)
TABLE_IN_QUOTE_PLACEHOLDER = "[Table in blockquote]"
DEFAULT_AUTHOR = "document-exporter"


@dataclass
class DocxGeneratorOptions:
    """Options controlling document assembly."""

    title: Optional[str] = None
    author: Optional[str] = None
    page_size: str = 'A4'
    orientation: str = 'portrait'
    margins_inches: float = 1.0
    include_title: bool = False
    max_image_width: float = 600


@dataclass
class _RenderContext:
    document: object
    images: Mapping[str, ConvertedImage]
    numbering: ListNumbering
    max_image_px: float
    stats: Dict[str, int] = field(default_factory=lambda: {'images': 0, 'skipped': 0})


def _border(tag: str, val: str, size: int = 0, color: str = 'auto') -> OxmlElement:
    element = OxmlElement(tag)
    element.set(qn('w:val'), val)
    if val != 'nil':
        element.set(qn('w:sz'), str(size))
        element.set(qn('w:space'), '0')
        element.set(qn('w:color'), color)
    return element


class DocxGenerator:
    """Builds a .docx byte buffer from a ``CollectedContent`` model."""

    def __init__(self, logger: logging.Logger = None):
        self.logger = logger or logging.getLogger('document_exporter.exporters.docx_generator')

    def generate(self, content: CollectedContent,
                 images: Optional[Mapping[str, ConvertedImage]] = None,
                 options: Optional[DocxGeneratorOptions] = None) -> bytes:
        """
        Generate a Word document.

        A node that fails to render is logged and left out; the document is
        always completed.

        Args:
            content: Collected content
            images: Converted diagrams keyed by diagram id
            options: Page and metadata options

        Returns:
            The serialized .docx file
        """
        options = options or DocxGeneratorOptions()
        images = images or {}

        document = Document()
        self._configure_styles(document)
        geometry = PageGeometry.create(
            options.page_size, options.orientation, f"{options.margins_inches}in"
        )
        self._configure_page(document, geometry, options.margins_inches)
        self._configure_properties(document, content, options)

        content_width_px = (geometry.size_inches[0] - 2 * options.margins_inches) * CSS_DPI
        ctx = _RenderContext(
            document=document,
            images=images,
            numbering=ListNumbering(document, logger=self.logger),
            max_image_px=max(1.0, min(options.max_image_width, content_width_px)),
        )

        if options.include_title:
            document.add_heading(options.title or content.title, 0)

        body = document.element.body
        with ProgressTracker(len(content.nodes), "nodes", logger=self.logger) as tracker:
            for node in content.nodes:
                snapshot = list(body)
                try:
                    self._render_node(ctx, node)
                    tracker.increment(success=True)
                except Exception as e:
                    self.logger.warning(f"Skipping {node.type.value} node: {e}")
                    _rollback(body, snapshot)
                    ctx.stats['skipped'] += 1
                    tracker.increment(success=False)

        buffer = BytesIO()
        document.save(buffer)
        data = buffer.getvalue()
        self.logger.info(
            f"Generated document with {len(content.nodes) - ctx.stats['skipped']} nodes "
            f"and {ctx.stats['images']} images ({len(data)} bytes)"
        )
        return data

    # -- document setup -------------------------------------------------

    @staticmethod
    def _configure_styles(document) -> None:
        normal = document.styles['Normal']
        normal.font.name = BODY_FONT
        normal.font.size = Pt(12)
        normal.paragraph_format.space_after = Pt(10)

        for level, size in HEADING_SIZES.items():
            style = document.styles[f'Heading {level}']
            style.font.name = HEADING_FONT
            style.font.size = Pt(size)
            style.font.color.rgb = RGBColor(0x59, 0x59, 0x59) if level == 6 else HEADING_COLOR
            style.font.italic = level in (4, 6)

    @staticmethod
    def _configure_page(document, geometry: PageGeometry, margins_inches: float) -> None:
        width, height = geometry.size_inches
        section = document.sections[0]
        section.orientation = (
            WD_ORIENT.LANDSCAPE if geometry.orientation.value == 'landscape' else WD_ORIENT.PORTRAIT
        )
        section.page_width = Inches(width)
        section.page_height = Inches(height)
        for side in ('top_margin', 'bottom_margin', 'left_margin', 'right_margin'):
            setattr(section, side, Inches(margins_inches))

    @staticmethod
    def _configure_properties(document, content: CollectedContent,
                              options: DocxGeneratorOptions) -> None:
        properties = document.core_properties
        properties.title = options.title or content.title
        properties.author = options.author or DEFAULT_AUTHOR
        properties.comments = (
            f"{content.metadata.word_count} words, "
            f"{content.metadata.diagram_count} diagrams"
        )
        properties.created = datetime.now(timezone.utc).replace(tzinfo=None)

    # -- nodes ----------------------------------------------------------

    def _render_node(self, ctx: _RenderContext, node: ContentNode, quote_depth: int = 0) -> None:
        node_type = node.type

        if node_type is NodeType.HEADING:
            level = max(1, min(int(node.attributes.get('level', 1)), 6))
            paragraph = ctx.document.add_heading(node.text, level)
            self._indent(paragraph, quote_depth)
        elif node_type is NodeType.PARAGRAPH:
            paragraph = ctx.document.add_paragraph()
            self._add_runs(paragraph, node.text)
            self._indent(paragraph, quote_depth)
        elif node_type is NodeType.LIST:
            self._render_list(ctx, node, 0, quote_depth)
        elif node_type is NodeType.CODE:
            self._render_code(ctx, node, quote_depth)
        elif node_type is NodeType.TABLE:
            if quote_depth:
                paragraph = ctx.document.add_paragraph(TABLE_IN_QUOTE_PLACEHOLDER)
                self._indent(paragraph, quote_depth)
            else:
                self._render_table(ctx, node)
        elif node_type is NodeType.BLOCKQUOTE:
            for child in node.child_nodes:
                self._render_node(ctx, child, quote_depth + 1)
        elif node_type is NodeType.GROUP:
            for child in node.child_nodes:
                self._render_node(ctx, child, quote_depth)
        elif node_type is NodeType.DIAGRAM:
            self._render_diagram(ctx, node)
        elif node_type is NodeType.RULE:
            self._render_rule(ctx)
        else:
            self.logger.debug(f"No renderer for {node_type}")

    @staticmethod
    def _indent(paragraph, quote_depth: int, extra_twips: int = 0) -> None:
        if quote_depth or extra_twips:
            paragraph.paragraph_format.left_indent = Twips(
                QUOTE_INDENT_TWIPS * quote_depth + extra_twips
            )

    def _render_list(self, ctx: _RenderContext, node: ContentNode, level: int,
                     quote_depth: int) -> None:
        num_id = ctx.numbering.new_list(bool(node.attributes.get('ordered')))
        for item in node.child_nodes:
            paragraph = ctx.document.add_paragraph()
            ctx.numbering.apply(paragraph, num_id, level)
            self._add_runs(paragraph, item.text)
            if quote_depth:
                self._indent(paragraph, quote_depth,
                             LIST_INDENT_TWIPS * (ListNumbering.clamp_level(level) + 1))
            for nested in item.children or ():
                if nested.type is NodeType.LIST:
                    self._render_list(ctx, nested, level + 1, quote_depth)
                else:
                    self._render_node(ctx, nested, quote_depth)

    def _render_code(self, ctx: _RenderContext, node: ContentNode, quote_depth: int) -> None:
        lines = node.text.split('\n')
        for index, line in enumerate(lines):
            paragraph = ctx.document.add_paragraph()
            paragraph.paragraph_format.space_after = Pt(10) if index == len(lines) - 1 else Pt(0)
            run = paragraph.add_run(line if line else ' ')
            run.font.name = CODE_FONT
            run.font.size = Pt(10)
            self._indent(paragraph, quote_depth)

    def _render_table(self, ctx: _RenderContext, node: ContentNode) -> None:
        rows = node.table_rows()
        if not rows:
            return
        cols = max(len(row) for row in rows)
        if cols == 0:
            return

        table = ctx.document.add_table(rows=len(rows), cols=cols)
        self._set_table_properties(table)

        for row_index, row in enumerate(rows):
            for col_index in range(cols):
                cell = table.cell(row_index, col_index)
                markup = row[col_index] if col_index < len(row) else ''
                paragraph = cell.paragraphs[0]
                if row_index == 0:
                    text = to_plain_text(markup)
                    if text:
                        paragraph.add_run(text).bold = True
                    self._set_cell_borders(cell, bottom=True)
                else:
                    self._add_runs(paragraph, markup)
                    self._set_cell_borders(cell, bottom=False)

    @staticmethod
    def _set_table_properties(table) -> None:
        tbl_pr = table._tbl.tblPr

        tbl_w = tbl_pr.find(qn('w:tblW'))
        if tbl_w is None:
            tbl_w = OxmlElement('w:tblW')
            tbl_pr.append(tbl_w)
        tbl_w.set(qn('w:type'), 'pct')
        tbl_w.set(qn('w:w'), '5000')

        borders = OxmlElement('w:tblBorders')
        for side in ('top', 'left', 'bottom', 'right', 'insideH', 'insideV'):
            borders.append(_border(f'w:{side}', 'nil'))
        successor = None
        for tag in ('w:shd', 'w:tblLayout', 'w:tblCellMar', 'w:tblLook'):
            successor = tbl_pr.find(qn(tag))
            if successor is not None:
                break
        if successor is not None:
            successor.addprevious(borders)
        else:
            tbl_pr.append(borders)

    @staticmethod
    def _set_cell_borders(cell, bottom: bool) -> None:
        tc_pr = cell._tc.get_or_add_tcPr()
        borders = OxmlElement('w:tcBorders')
        borders.append(_border('w:top', 'nil'))
        borders.append(_border('w:left', 'nil'))
        if bottom:
            borders.append(_border('w:bottom', 'single', 6, '000000'))
        else:
            borders.append(_border('w:bottom', 'nil'))
        borders.append(_border('w:right', 'nil'))
        tc_w = tc_pr.find(qn('w:tcW'))
        if tc_w is not None:
            tc_w.addnext(borders)
        else:
            tc_pr.insert(0, borders)

    def _render_diagram(self, ctx: _RenderContext, node: ContentNode) -> None:
        diagram_id = node.attributes.get('id', '')
        image = ctx.images.get(diagram_id)
        if image is None:
            self.logger.warning(f"No converted image for diagram '{diagram_id}', skipping")
            return

        width, height = float(image.width), float(image.height)
        if width <= 0 or height <= 0:
            raise ValueError(f"Diagram '{diagram_id}' has no usable size")
        scale = min(1.0, ctx.max_image_px / width)
        width_emu = Emu(int(round(width * scale * EMU_PER_PX)))
        height_emu = Emu(int(round(height * scale * EMU_PER_PX)))

        paragraph = ctx.document.add_paragraph()
        paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
        run = paragraph.add_run()

        if image.format.is_vector:
            shape = run.add_picture(BytesIO(_TRANSPARENT_1PX_PNG), width=width_emu, height=height_emu)
            self._attach_svg_blip(ctx.document, shape, image.raw_bytes())
        else:
            shape = run.add_picture(BytesIO(image.raw_bytes()), width=width_emu, height=height_emu)

        doc_pr = shape._inline.find(qn('wp:docPr'))
        if doc_pr is not None and diagram_id:
            doc_pr.set('descr', diagram_id)
        ctx.stats['images'] += 1

    @staticmethod
    def _attach_svg_blip(document, inline_shape, svg_bytes: bytes) -> None:
        package = document.part.package
        partname = package.next_partname("/word/media/image%d.svg")
        svg_part = Part(partname, "image/svg+xml", svg_bytes, package)
        rid_svg = document.part.relate_to(svg_part, RT.IMAGE)

        blips = inline_shape._inline.xpath(".//a:blip")
        if not blips:
            raise ValueError("Picture has no blip to extend")
        ext_lst = OxmlElement("a:extLst")
        ext = OxmlElement("a:ext")
        ext.set("uri", _SVG_BLIP_EXT_URI)
        svg_blip = OxmlElement("asvg:svgBlip")
        svg_blip.set(qn("r:embed"), rid_svg)
        ext.append(svg_blip)
        ext_lst.append(ext)
        blips[0].append(ext_lst)

    @staticmethod
    def _render_rule(ctx: _RenderContext) -> None:
        paragraph = ctx.document.add_paragraph()
        p_pr = paragraph._p.get_or_add_pPr()
        p_bdr = OxmlElement('w:pBdr')
        p_bdr.append(_border('w:bottom', 'single', 6, 'auto'))
        p_pr.append(p_bdr)

    # -- inline runs ----------------------------------------------------

    def _add_runs(self, paragraph, markup: str) -> None:
        runs = parse_inline(markup)
        for href, group in groupby(runs, key=lambda run: run.href):
            group = list(group)
            if href:
                self._add_hyperlink(paragraph, href, group)
            else:
                for inline in group:
                    _format_run(paragraph.add_run(inline.text), inline)

    @staticmethod
    def _add_hyperlink(paragraph, href: str, runs: List[InlineRun]) -> None:
        r_id = paragraph.part.relate_to(href, RT.HYPERLINK, is_external=True)
        hyperlink = OxmlElement('w:hyperlink')
        hyperlink.set(qn('r:id'), r_id)
        for inline in runs:
            r = OxmlElement('w:r')
            hyperlink.append(r)
            run = Run(r, paragraph)
            run.text = inline.text
            _format_run(run, inline)
            run.font.color.rgb = HYPERLINK_COLOR
            run.font.underline = True
        paragraph._p.append(hyperlink)


def _format_run(run, inline: InlineRun) -> None:
    if inline.bold:
        run.bold = True
    if inline.italic:
        run.italic = True
    if inline.code:
        run.font.name = CODE_FONT


def _rollback(body, snapshot) -> None:
    kept = set(id(element) for element in snapshot)
    for element in list(body):
        if id(element) not in kept:
            body.remove(element)


__all__ = ['DocxGenerator', 'DocxGeneratorOptions', 'TABLE_IN_QUOTE_PLACEHOLDER']
