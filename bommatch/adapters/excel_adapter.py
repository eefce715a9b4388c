import zipfile
from io import BytesIO

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from ..errors import FileRejectedError
from ..schema import MIME_XLSX

ZIP_SIGNATURE = b"PK\x03\x04"


class ExcelAdapter:
    def can_handle(self, mime_type, content):
        return content.startswith(ZIP_SIGNATURE)

    def read(self, content):
        """Read the first sheet of an XLSX workbook into numbered rows.

        Returns the same (rows, errors) shape as CsvAdapter.read; cell
        values keep their spreadsheet types (numbers stay numbers).
        """
        try:
            wb = openpyxl.load_workbook(BytesIO(content), read_only=True, data_only=True)
        except (zipfile.BadZipFile, InvalidFileException, KeyError, OSError) as e:
            raise FileRejectedError(f"unreadable XLSX workbook: {e}", mime_type=MIME_XLSX, size=len(content)) from e

        try:
            ws = wb.worksheets[0]
            rows = []
            for row_number, values in enumerate(ws.iter_rows(values_only=True), start=1):
                rows.append((row_number, list(values)))
        finally:
            wb.close()

        return rows, []
