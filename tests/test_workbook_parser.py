from __future__ import annotations

import io
import unittest
from datetime import datetime

from openpyxl import Workbook

from app.domain.imports import FormatError
from app.parsing.workbook_parser import SourceFormat, WorkbookParser, detect_delimiter


def _xlsx_bytes(rows: list[list[object]]) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


class TestDetectDelimiter(unittest.TestCase):
    def test_picks_most_frequent_candidate(self) -> None:
        self.assertEqual(detect_delimiter("nombre;tipo;rubro"), ";")
        self.assertEqual(detect_delimiter("nombre\ttipo\trubro"), "\t")
        self.assertEqual(detect_delimiter("nombre,tipo;rubro,email"), ",")

    def test_defaults_to_comma(self) -> None:
        self.assertEqual(detect_delimiter("nombre"), ",")


class TestDelimitedParsing(unittest.TestCase):
    def setUp(self) -> None:
        self.parser = WorkbookParser()

    def test_semicolon_file_keeps_row_order_and_numbers(self) -> None:
        content = "nombre;tipo\nAcme;empresa\nBeta;profesional\n".encode("utf-8")

        workbook = self.parser.parse(content, content_type="text/csv", filename="listado.csv")

        self.assertEqual(workbook.source_format, SourceFormat.DELIMITED)
        self.assertEqual(workbook.delimiter, ";")
        self.assertEqual(workbook.headers, ("nombre", "tipo"))
        self.assertEqual([row.row_number for row in workbook.rows], [1, 2])
        self.assertEqual(workbook.rows[0].values, {"nombre": "Acme", "tipo": "empresa"})

    def test_quoted_cells_keep_delimiters_and_escaped_quotes(self) -> None:
        content = b'nombre,direccion\n"Acme, S.A.","Calle ""Mayor"" 12"\n'

        workbook = self.parser.parse(content)

        self.assertEqual(workbook.rows[0].values["nombre"], "Acme, S.A.")
        self.assertEqual(workbook.rows[0].values["direccion"], 'Calle "Mayor" 12')

    def test_blank_rows_are_skipped_without_renumbering(self) -> None:
        content = b"nombre,tipo\nAcme,empresa\n,\n\nBeta,profesional\n"

        workbook = self.parser.parse(content)

        self.assertEqual([row.row_number for row in workbook.rows], [1, 4])

    def test_short_rows_fill_missing_cells_with_empty_string(self) -> None:
        content = b"nombre,tipo,email\nAcme\n"

        workbook = self.parser.parse(content)

        self.assertEqual(workbook.rows[0].values, {"nombre": "Acme", "tipo": "", "email": ""})

    def test_utf8_bom_and_unicode_normalization(self) -> None:
        content = "\ufeffnombre,contacto\nJose\u0301 Pe\u0301rez\u00a0, Ana\n".encode("utf-8")

        workbook = self.parser.parse(content)

        self.assertEqual(workbook.headers, ("nombre", "contacto"))
        self.assertEqual(workbook.rows[0].values["nombre"], "Jos\u00e9 P\u00e9rez")
        self.assertEqual(workbook.rows[0].encoding_issues, ())

    def test_windows_1252_cells_are_recovered_with_warning(self) -> None:
        content = b"nombre,rubro\nAcme,Construcci\xf3n\nBeta,Servicios\n"

        workbook = self.parser.parse(content)

        self.assertEqual(workbook.rows[0].values["rubro"], "Construcci\u00f3n")
        self.assertEqual(len(workbook.rows[0].encoding_issues), 1)
        issue = workbook.rows[0].encoding_issues[0]
        self.assertEqual(issue.row_number, 1)
        self.assertEqual(issue.field, "rubro")
        self.assertEqual(workbook.rows[1].encoding_issues, ())

    def test_replacement_characters_in_source_are_flagged(self) -> None:
        content = "nombre\nConstrucci\ufffdn\n".encode("utf-8")

        workbook = self.parser.parse(content)

        self.assertEqual(len(workbook.rows[0].encoding_issues), 1)
        self.assertIn("replacement characters", workbook.rows[0].encoding_issues[0].message)

    def test_empty_upload_is_a_format_error(self) -> None:
        with self.assertRaises(FormatError):
            self.parser.parse(b"")

    def test_header_without_data_rows_is_a_format_error(self) -> None:
        with self.assertRaises(FormatError):
            self.parser.parse(b"nombre,tipo\n\n")

    def test_legacy_xls_is_rejected(self) -> None:
        content = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1" + b"\x00" * 64

        with self.assertRaises(FormatError) as ctx:
            self.parser.parse(content, filename="old.xls")

        self.assertIn(".xls", str(ctx.exception))

    def test_declared_xlsx_that_is_not_a_workbook_is_rejected(self) -> None:
        with self.assertRaises(FormatError):
            self.parser.parse(b"nombre\nAcme\n", filename="listado.xlsx")

    def test_binary_payload_is_rejected(self) -> None:
        with self.assertRaises(FormatError):
            self.parser.parse(b"\x00\x01\x02binary", filename="blob.bin")


class TestXlsxParsing(unittest.TestCase):
    def setUp(self) -> None:
        self.parser = WorkbookParser()

    def test_reads_first_sheet_as_display_strings(self) -> None:
        content = _xlsx_bytes(
            [
                ["nombre", "telefono", "alta"],
                ["Acme", 99123456, datetime(2024, 1, 2)],
                [None, None, None],
                ["Beta", None, None],
            ]
        )

        workbook = self.parser.parse(content, filename="listado.xlsx")

        self.assertEqual(workbook.source_format, SourceFormat.XLSX)
        self.assertEqual(workbook.headers, ("nombre", "telefono", "alta"))
        self.assertEqual(workbook.rows[0].values, {"nombre": "Acme", "telefono": "99123456", "alta": "2024-01-02"})
        self.assertEqual([row.row_number for row in workbook.rows], [1, 3])
        self.assertEqual(workbook.rows[1].values["telefono"], "")

    def test_workbook_with_only_a_header_is_a_format_error(self) -> None:
        content = _xlsx_bytes([["nombre", "tipo"]])

        with self.assertRaises(FormatError):
            self.parser.parse(content, filename="vacio.xlsx")


if __name__ == "__main__":
    unittest.main()
