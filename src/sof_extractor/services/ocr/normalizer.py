from __future__ import annotations

from sof_extractor.services.ocr.types import NormalizedDocument, OCRResult, Table

TABLE_SECTION_HEADER = "=== STRUCTURED TABLE DATA ==="
PARAGRAPH_SECTION_HEADER = "=== STRUCTURED PARAGRAPHS ==="


def build_table_grid(table: Table) -> list[list[str]]:
    grid = [["" for _ in range(table.column_count)] for _ in range(table.row_count)]
    for cell in table.cells:
        # OCR occasionally reports spans past the declared shape; those cells are dropped.
        if 0 <= cell.row < table.row_count and 0 <= cell.column < table.column_count:
            grid[cell.row][cell.column] = cell.content
    return grid


def _serialize_tables(tables: tuple[Table, ...]) -> list[str]:
    lines = [TABLE_SECTION_HEADER]
    for table_index, table in enumerate(tables):
        lines.append(f"Table {table_index + 1}:")
        for row_index, row in enumerate(build_table_grid(table)):
            lines.append(f"Row {row_index}: {' | '.join(row)}")
    return lines


def _serialize_paragraphs(paragraphs: tuple[str, ...]) -> list[str]:
    lines = [PARAGRAPH_SECTION_HEADER]
    for index, paragraph in enumerate(paragraphs):
        lines.append(f"Paragraph {index + 1}: {paragraph}")
    return lines


def normalize_ocr_result(result: OCRResult, *, source_index: int) -> NormalizedDocument:
    """Merge raw OCR text with a canonical rendering of its tables.

    Tables take precedence; paragraphs are only serialized when the document
    has no tables at all. The output is a pure function of ``result``.
    """
    if result.tables:
        section = _serialize_tables(result.tables)
    elif result.paragraphs:
        section = _serialize_paragraphs(result.paragraphs)
    else:
        section = []

    enriched_text = result.text
    if section:
        enriched_text = f"{enriched_text}\n\n" + "\n".join(section) + "\n"

    return NormalizedDocument(source_index=source_index, enriched_text=enriched_text)
