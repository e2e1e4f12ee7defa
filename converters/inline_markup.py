"""
Lightweight inline markup shared by the collector and the document generator.

The collector flattens inline HTML formatting into a small markup language:

    **bold**   *italic*   `code`   [link text](href)

Literal ``\\ * ` [ ]`` characters in text are backslash-escaped (inside code
spans only ``\\`` and backtick, inside hrefs ``\\`` and ``)``) so that
``parse_inline(extract(element))`` recovers exactly the text and formatting
of the original element.
"""

import logging
import re
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Tuple

from bs4 import NavigableString, Tag
from bs4.element import Comment, Declaration, Doctype, ProcessingInstruction

logger = logging.getLogger('document_exporter.converters.inline_markup')

BOLD_TAGS = frozenset(['strong', 'b'])
ITALIC_TAGS = frozenset(['em', 'i'])
SKIPPED_TAGS = frozenset(['script', 'style', 'template', 'noscript'])

_WHITESPACE = re.compile(r'\s+')
_TEXT_SPECIALS = re.compile(r'([\\*`\[\]])')
_CODE_SPECIALS = re.compile(r'([\\`])')
_HREF_SPECIALS = re.compile(r'([\\)])')


def escape_text(text: str) -> str:
    return _TEXT_SPECIALS.sub(r'\\\1', text)


def escape_code(text: str) -> str:
    return _CODE_SPECIALS.sub(r'\\\1', text)


def escape_href(href: str) -> str:
    return _HREF_SPECIALS.sub(r'\\\1', href)


@dataclass(frozen=True)
class InlineRun:
    """A stretch of text sharing one set of formatting flags."""

    text: str
    bold: bool = False
    italic: bool = False
    code: bool = False
    href: Optional[str] = None

    def same_format(self, other: 'InlineRun') -> bool:
        return (self.bold, self.italic, self.code, self.href) == \
            (other.bold, other.italic, other.code, other.href)


@dataclass(frozen=True)
class _Piece:
    """Flattened inline content: a text, code or link piece with its formatting."""

    kind: str
    text: str = ''
    bold: bool = False
    italic: bool = False
    href: Optional[str] = None
    children: Tuple['_Piece', ...] = ()

    @property
    def has_content(self) -> bool:
        return self.kind != 'text' or bool(self.text.strip())


_DELIMITERS = {'bold': '**', 'italic': '*'}


class InlineMarkupExtractor:
    """
    Converts the inline content of an HTML element into inline markup.

    Inline HTML is first flattened into pieces carrying their own bold and
    italic flags, whatever the element nesting was. Delimiters are then
    written in one canonical order: bold opens outside italic and spans
    close innermost first, which is the order ``InlineMarkupParser``
    resolves runs such as ``***``.
    """

    def __init__(self, on_image: Callable[[Tag], None] = None):
        """
        Args:
            on_image: Called for every ``<img>`` met while extracting
        """
        self.on_image = on_image

    def extract(self, element: Tag) -> str:
        """
        Extract the inline markup of ``element``'s children.

        Args:
            element: Block element whose inline content is converted

        Returns:
            Markup string, leading and trailing whitespace removed
        """
        return self.extract_nodes(element.children)

    def extract_nodes(self, nodes) -> str:
        """Extract markup from an iterable of sibling nodes."""
        pieces: List[_Piece] = []
        for node in nodes:
            pieces.extend(self._node(node, False, False, False))
        return _emit(_trim(_merge(pieces)), False, False)

    def _children(self, element: Tag, bold: bool, italic: bool, in_link: bool) -> List[_Piece]:
        pieces: List[_Piece] = []
        for child in element.children:
            pieces.extend(self._node(child, bold, italic, in_link))
        return pieces

    def _node(self, node, bold: bool, italic: bool, in_link: bool) -> List[_Piece]:
        if isinstance(node, (Comment, Declaration, Doctype, ProcessingInstruction)):
            return []
        if isinstance(node, NavigableString):
            text = _WHITESPACE.sub(' ', str(node))
            return [_Piece('text', text, bold, italic)] if text else []
        if not isinstance(node, Tag):
            return []

        name = (node.name or '').lower()

        if name in SKIPPED_TAGS:
            return []

        if name == 'br':
            return [_Piece('text', '\n', bold, italic)]

        if name == 'img':
            if self.on_image:
                self.on_image(node)
            return []

        if name in BOLD_TAGS:
            pieces = self._children(node, True, italic, in_link)
            if not any(piece.has_content for piece in pieces):
                return [replace(piece, bold=bold) for piece in pieces]
            return pieces

        if name in ITALIC_TAGS:
            pieces = self._children(node, bold, True, in_link)
            if not any(piece.has_content for piece in pieces):
                return [replace(piece, italic=italic) for piece in pieces]
            return pieces

        if name == 'code':
            text = node.get_text()
            return [_Piece('code', text, bold, italic)] if text else []

        if name == 'a':
            href = node.get('href')
            pieces = self._children(node, bold, italic, True)
            if not href or href.startswith('#') or in_link or \
                    not any(piece.has_content for piece in pieces):
                return pieces
            return [_Piece('link', '', bold, italic, href, tuple(_merge(pieces)))]

        return self._children(node, bold, italic, in_link)


def _merge(pieces: List[_Piece]) -> List[_Piece]:
    merged: List[_Piece] = []
    for piece in pieces:
        previous = merged[-1] if merged else None
        if previous is not None and previous.kind == piece.kind == 'text' and \
                (previous.bold, previous.italic) == (piece.bold, piece.italic):
            merged[-1] = replace(previous, text=previous.text + piece.text)
        else:
            merged.append(piece)
    return merged


def _trim(pieces: List[_Piece]) -> List[_Piece]:
    pieces = list(pieces)
    while pieces and pieces[0].kind == 'text' and not pieces[0].text.strip():
        pieces.pop(0)
    while pieces and pieces[-1].kind == 'text' and not pieces[-1].text.strip():
        pieces.pop()
    if pieces and pieces[0].kind == 'text':
        pieces[0] = replace(pieces[0], text=pieces[0].text.lstrip())
    if pieces and pieces[-1].kind == 'text':
        pieces[-1] = replace(pieces[-1], text=pieces[-1].text.rstrip())
    return pieces


def _emit(pieces, base_bold: bool, base_italic: bool) -> str:
    """Write pieces as markup; flags already set by the context are not repeated."""
    out: List[str] = []
    stack: List[str] = []

    for piece in pieces:
        wanted = set()
        if piece.bold and not base_bold:
            wanted.add('bold')
        if piece.italic and not base_italic:
            wanted.add('italic')

        # A span still wanted but below an unwanted one is closed and reopened
        while any(flag not in wanted for flag in stack):
            out.append(_DELIMITERS[stack.pop()])
        for flag in ('bold', 'italic'):
            if flag in wanted and flag not in stack:
                stack.append(flag)
                out.append(_DELIMITERS[flag])

        if piece.kind == 'code':
            out.append(f"`{escape_code(piece.text)}`")
        elif piece.kind == 'link':
            inner = _emit(piece.children, piece.bold, piece.italic)
            out.append(f"[{inner}]({escape_href(piece.href)})")
        else:
            out.append(escape_text(piece.text))

    while stack:
        out.append(_DELIMITERS[stack.pop()])
    return ''.join(out)


class InlineMarkupParser:
    """
    Recursive-descent scanner turning inline markup back into runs.

    Spans are tried in priority order (bold, italic, code, link); an opener
    without a matching closer is kept as literal text.
    """

    def parse(self, markup: str) -> List[InlineRun]:
        if not markup:
            return []
        result = self._parse(markup, 0, None, InlineRun(''))
        if result is None:
            # Top level has no closer, so this only guards against misuse
            return [InlineRun(markup)]
        runs, _ = result
        return _coalesce(runs)

    def _parse(self, s: str, i: int, closer: Optional[str],
               fmt: InlineRun) -> Optional[Tuple[List[InlineRun], int]]:
        runs: List[InlineRun] = []
        buf: List[str] = []
        n = len(s)

        def flush():
            if buf:
                runs.append(replace(fmt, text=''.join(buf)))
                buf.clear()

        def has_content() -> bool:
            return bool(buf) or any(run.text for run in runs)

        while i < n:
            ch = s[i]

            if ch == '\\' and i + 1 < n:
                buf.append(s[i + 1])
                i += 2
                continue

            if ch == '*':
                run_length = _run_length(s, i, '*')

                if closer == '**':
                    if run_length >= 2:
                        if not has_content():
                            return None
                        flush()
                        return runs, i + 2
                    if not fmt.italic:
                        opened = self._open(s, i, '*', fmt, runs, buf)
                        if opened is not None:
                            i = opened
                            continue
                    buf.append('*')
                    i += 1
                    continue

                if closer == '*':
                    if run_length == 2 and not fmt.bold:
                        opened = self._open(s, i, '**', fmt, runs, buf)
                        if opened is not None:
                            i = opened
                            continue
                    if not has_content():
                        return None
                    flush()
                    return runs, i + 1

                if run_length >= 2 and not fmt.bold:
                    opened = self._open(s, i, '**', fmt, runs, buf)
                    if opened is not None:
                        i = opened
                        continue
                if not fmt.italic:
                    opened = self._open(s, i, '*', fmt, runs, buf)
                    if opened is not None:
                        i = opened
                        continue
                buf.append('*')
                i += 1
                continue

            if ch == '`':
                end, text = _scan_code(s, i + 1)
                if end is not None and text:
                    flush()
                    runs.append(replace(fmt, text=text, code=True))
                    i = end
                    continue
                buf.append(ch)
                i += 1
                continue

            if ch == '[' and fmt.href is None and closer != ']':
                linked = self._link(s, i, fmt)
                if linked is not None:
                    link_runs, i = linked
                    flush()
                    runs.extend(link_runs)
                    continue
                buf.append(ch)
                i += 1
                continue

            if ch == ']' and closer == ']':
                flush()
                return runs, i + 1

            buf.append(ch)
            i += 1

        if closer is not None:
            return None
        flush()
        return runs, i

    def _open(self, s: str, i: int, delimiter: str, fmt: InlineRun,
              runs: List[InlineRun], buf: List[str]) -> Optional[int]:
        """Try a bold or italic span at ``i``; return the index after it."""
        if delimiter == '**':
            inner_fmt = replace(fmt, bold=True)
        else:
            inner_fmt = replace(fmt, italic=True)
        result = self._parse(s, i + len(delimiter), delimiter, inner_fmt)
        if result is None:
            return None
        inner_runs, end = result
        if buf:
            runs.append(replace(fmt, text=''.join(buf)))
            buf.clear()
        runs.extend(inner_runs)
        return end

    def _link(self, s: str, i: int, fmt: InlineRun) -> Optional[Tuple[List[InlineRun], int]]:
        # Link text is parsed with a placeholder href so nested links stay literal
        result = self._parse(s, i + 1, ']', replace(fmt, href=''))
        if result is None:
            return None
        text_runs, end = result
        if end >= len(s) or s[end] != '(':
            return None
        href_end, href = _scan_until(s, end + 1, ')')
        if href_end is None or not text_runs:
            return None
        return [replace(run, href=href) for run in text_runs], href_end


def _run_length(s: str, i: int, ch: str) -> int:
    j = i
    while j < len(s) and s[j] == ch:
        j += 1
    return j - i


def _scan_until(s: str, i: int, terminator: str) -> Tuple[Optional[int], str]:
    """Read escaped text up to ``terminator``; return (index after it, text)."""
    out: List[str] = []
    n = len(s)
    while i < n:
        ch = s[i]
        if ch == '\\' and i + 1 < n:
            out.append(s[i + 1])
            i += 2
            continue
        if ch == terminator:
            return i + 1, ''.join(out)
        out.append(ch)
        i += 1
    return None, ''


def _scan_code(s: str, i: int) -> Tuple[Optional[int], str]:
    return _scan_until(s, i, '`')


def _coalesce(runs: List[InlineRun]) -> List[InlineRun]:
    merged: List[InlineRun] = []
    for run in runs:
        if not run.text:
            continue
        if merged and merged[-1].same_format(run):
            merged[-1] = replace(merged[-1], text=merged[-1].text + run.text)
        else:
            merged.append(run)
    return merged


_parser = InlineMarkupParser()


def parse_inline(markup: str) -> List[InlineRun]:
    """Parse inline markup into formatted runs."""
    return _parser.parse(markup)


def to_plain_text(markup: str) -> str:
    """Strip inline markup, keeping only the visible text."""
    return ''.join(run.text for run in parse_inline(markup))


def extract_inline(element: Tag) -> str:
    """Convenience wrapper around ``InlineMarkupExtractor.extract``."""
    return InlineMarkupExtractor().extract(element)


__all__ = [
    'InlineRun',
    'InlineMarkupExtractor',
    'InlineMarkupParser',
    'escape_text',
    'escape_code',
    'escape_href',
    'extract_inline',
    'parse_inline',
    'to_plain_text',
]
