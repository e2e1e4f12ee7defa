"""List numbering definitions for generated Word documents."""

import logging
from typing import Dict

from docx.oxml import parse_xml
from docx.oxml.ns import nsdecls, qn

logger = logging.getLogger('document_exporter.exporters.docx_numbering')

MAX_LEVELS = 6
INDENT_STEP_TWIPS = 720  # 0.5in per nesting level
HANGING_TWIPS = 360  # 0.25in
BULLET_SYMBOLS = ('•', '◦', '▪')  # bullet, white bullet, small square


def _level_xml(level: int, ordered: bool) -> str:
    if ordered:
        num_fmt = 'decimal'
        text = f'%{level + 1}.'
        run_props = ''
    else:
        num_fmt = 'bullet'
        text = BULLET_SYMBOLS[level % len(BULLET_SYMBOLS)]
        run_props = '<w:rPr><w:rFonts w:ascii="Arial" w:hAnsi="Arial" w:hint="default"/></w:rPr>'
    return (
        f'<w:lvl w:ilvl="{level}">'
        f'<w:start w:val="1"/>'
        f'<w:numFmt w:val="{num_fmt}"/>'
        f'<w:lvlText w:val="{text}"/>'
        f'<w:lvlJc w:val="left"/>'
        f'<w:pPr><w:ind w:left="{INDENT_STEP_TWIPS * (level + 1)}" w:hanging="{HANGING_TWIPS}"/></w:pPr>'
        f'{run_props}'
        f'</w:lvl>'
    )


class ListNumbering:
    """
    Registers ordered and bulleted list definitions in a document.

    Each ordered list gets its own numbering instance so that numbering
    restarts at 1; bulleted lists share one instance.
    """

    def __init__(self, document, logger: logging.Logger = None):
        self.logger = logger or logging.getLogger('document_exporter.exporters.docx_numbering')
        self._numbering = document.part.numbering_part.element
        self._abstract_ids: Dict[bool, int] = {
            True: self._add_abstract(ordered=True),
            False: self._add_abstract(ordered=False),
        }
        self._bullet_num_id = self._add_num(self._abstract_ids[False])

    def new_list(self, ordered: bool) -> int:
        """Numbering instance id to use for a new top-level list."""
        if not ordered:
            return self._bullet_num_id
        return self._add_num(self._abstract_ids[True], restart=True)

    @staticmethod
    def clamp_level(level: int) -> int:
        return max(0, min(level, MAX_LEVELS - 1))

    def apply(self, paragraph, num_id: int, level: int) -> None:
        """Attach ``paragraph`` to a numbering instance at ``level``."""
        p_pr = paragraph._p.get_or_add_pPr()
        num_pr = p_pr.get_or_add_numPr()
        num_pr.get_or_add_ilvl().val = self.clamp_level(level)
        num_pr.get_or_add_numId().val = num_id

    def _next_id(self, tag: str, attribute: str) -> int:
        ids = [
            int(element.get(qn(attribute)))
            for element in self._numbering.findall(qn(tag))
            if (element.get(qn(attribute)) or '').isdigit()
        ]
        return max(ids, default=0) + 1

    def _add_abstract(self, ordered: bool) -> int:
        abstract_id = self._next_id('w:abstractNum', 'w:abstractNumId')
        levels = ''.join(_level_xml(level, ordered) for level in range(MAX_LEVELS))
        abstract = parse_xml(
            f'<w:abstractNum {nsdecls("w")} w:abstractNumId="{abstract_id}">'
            f'<w:multiLevelType w:val="hybridMultilevel"/>'
            f'{levels}'
            f'</w:abstractNum>'
        )
        # Every abstractNum must precede the first num
        first_num = self._numbering.find(qn('w:num'))
        if first_num is not None:
            first_num.addprevious(abstract)
        else:
            self._numbering.append(abstract)
        self.logger.debug(
            f"Registered {'ordered' if ordered else 'bullet'} list definition {abstract_id}"
        )
        return abstract_id

    def _add_num(self, abstract_id: int, restart: bool = False) -> int:
        num_id = self._next_id('w:num', 'w:numId')
        overrides = ''
        if restart:
            overrides = ''.join(
                f'<w:lvlOverride w:ilvl="{level}"><w:startOverride w:val="1"/></w:lvlOverride>'
                for level in range(MAX_LEVELS)
            )
        num = parse_xml(
            f'<w:num {nsdecls("w")} w:numId="{num_id}">'
            f'<w:abstractNumId w:val="{abstract_id}"/>'
            f'{overrides}'
            f'</w:num>'
        )
        self._numbering.append(num)
        return num_id


__all__ = ['ListNumbering', 'MAX_LEVELS', 'BULLET_SYMBOLS']
