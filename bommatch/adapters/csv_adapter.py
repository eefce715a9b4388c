import csv
import io
import logging
import re
import chardet
from typing import List, Optional, Tuple

from ..errors import FileRejectedError
from ..schema import MIME_CSV, MIME_XLS

logger = logging.getLogger(__name__)

_LINE_BREAK = re.compile(r'\r\n|\r|\n')
_DELIMITER_CANDIDATES = re.compile(r"[,;\t]")


class CsvAdapter:
    """CSV adapter for reading uploaded delimited text.

    Handles:
    - Multiple encodings (UTF-8, UTF-8-BOM, Windows-1250/1252, ISO-8859-2, etc.)
    - Different delimiters (comma, semicolon, tab)
    - Malformed quoting, isolated to the row it occurs on

    Every physical line is one row. A line that cannot be split is reported
    as a row error instead of aborting the whole file; when a quoted field
    breaks across lines, the continuation lines are folded into that error.
    """

    def can_handle(self, mime_type: str, content: bytes) -> bool:
        """Check if this adapter can handle the given upload."""
        return mime_type in (MIME_CSV, MIME_XLS)

    def _decode(self, content: bytes) -> str:
        """Decode the upload, preferring UTF-8 and falling back to chardet."""
        try:
            # utf-8-sig also accepts input without a BOM
            return content.decode('utf-8-sig')
        except UnicodeDecodeError:
            pass

        result = chardet.detect(content[:100000])
        encoding = result.get('encoding') or 'cp1252'
        logger.warning(f"Upload is not valid UTF-8, decoding as {encoding} (confidence {result.get('confidence')})")

        for candidate in (encoding, 'cp1252', 'latin-1'):
            try:
                return content.decode(candidate)
            except (UnicodeDecodeError, LookupError):
                continue

        raise FileRejectedError("could not decode file", mime_type=MIME_CSV, size=len(content))

    def _detect_delimiter(self, header_line: str) -> str:
        """Detect the delimiter by counting candidates in the first delimited line."""
        comma_count = header_line.count(',')
        semicolon_count = header_line.count(';')
        tab_count = header_line.count('\t')

        # Return delimiter with highest count, comma on ties
        if tab_count > comma_count and tab_count > semicolon_count:
            return '\t'
        elif semicolon_count > comma_count:
            return ';'
        else:
            return ','

    def _split_line(self, line: str, delimiter: str) -> List[str]:
        """Split one line quote-aware. Raises csv.Error on malformed quoting."""
        reader = csv.reader([line], delimiter=delimiter, quotechar='"', doublequote=True, strict=True)
        for cells in reader:
            return cells
        return []

    def _quoted_line_break_end(self, lines: List[str], start: int, delimiter: str) -> Optional[int]:
        """Index of the line closing a quoted field opened on lines[start], or None.

        Only a continuation that forms exactly one well-formed record counts,
        so an unrelated stray quote further down never swallows good rows.
        """
        if lines[start].count('"') % 2 == 0:
            return None

        for end in range(start + 1, len(lines)):
            if lines[end].count('"') % 2 == 0:
                continue
            record = '\n'.join(lines[start:end + 1])
            try:
                records = list(csv.reader(io.StringIO(record), delimiter=delimiter, quotechar='"', strict=True))
            except csv.Error:
                return None
            return end if len(records) == 1 else None
        return None

    def read(self, content: bytes) -> Tuple[List[Tuple[int, List[str]]], List[Tuple[int, str]]]:
        """Read delimited text into numbered rows.

        Args:
            content: Raw upload bytes

        Returns:
            (rows, errors): rows is a list of (row_number, cells) for every
            line that could be split, errors a list of (row_number, reason).
            Row numbers are 1-based physical line numbers.

        Raises:
            FileRejectedError: If the content cannot be decoded at all
        """
        if not content:
            return [], []

        text = self._decode(content)
        lines = _LINE_BREAK.split(text)
        delimiter = self._detect_delimiter(next((line for line in lines if _DELIMITER_CANDIDATES.search(line)), ''))
        logger.debug(f"Detected delimiter {delimiter!r}")

        rows = []
        errors = []
        skip_through = 0

        for index, line in enumerate(lines):
            line_number = index + 1
            if line_number <= skip_through or not line.strip():
                continue

            try:
                cells = self._split_line(line, delimiter)
            except csv.Error as e:
                end = self._quoted_line_break_end(lines, index, delimiter)
                if end is None:
                    errors.append((line_number, f"malformed quoted field ({e})"))
                else:
                    # The continuation lines belong to this row's error
                    skip_through = end + 1
                    errors.append((line_number, f"malformed quoted field (line break inside quotes, continued to line {end + 1})"))
                continue

            rows.append((line_number, cells))

        return rows, errors
