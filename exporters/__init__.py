"""Export package producing finished documents from collected content.

Package Structure:
- docx_generator: Builds a Word document from content nodes and diagram images
- docx_numbering: Numbering definitions for ordered and bulleted lists
- page_geometry: Paper sizes, orientation, margins and the printable box
- print_exporter: Prepares the live document for printing and restores it
- print_backends: Print facilities (WeasyPrint PDF rendering)
- file_delivery: Output filenames and writing finished buffers

Configuration Referenced:
- export.page_size / export.orientation / export.margins: Page geometry
- export.filename_template: Output naming
- diagrams.max_image_width: Upper bound for embedded diagram width
"""

from .docx_generator import DocxGenerator, DocxGeneratorOptions
from .docx_numbering import ListNumbering
from .file_delivery import FileDelivery, FilenameGenerator, sanitize_filename
from .page_geometry import PageGeometry, parse_margin
from .print_backends import PrintBackend, WeasyPrintBackend
from .print_exporter import PrintExporter, PrintOptions

__all__ = [
    'DocxGenerator',
    'DocxGeneratorOptions',
    'ListNumbering',
    'FileDelivery',
    'FilenameGenerator',
    'sanitize_filename',
    'PageGeometry',
    'parse_margin',
    'PrintBackend',
    'WeasyPrintBackend',
    'PrintExporter',
    'PrintOptions',
]
