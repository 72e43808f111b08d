"""Unit tests for the IPC extractor."""
import pytest

from conftest import make_sheet, task_row
from monitor.ipc import IPC_LABELS, extract_ipc, ipc_from_cells, parse_ipc_status, summarize_ipc


class TestParseIPCStatus:
    """Closed status vocabulary."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Released", "released"),
            (" IN PROCESS ", "in process"),
            ("submitted", "submitted"),
            ("Not Submitted", "not submitted"),
            (None, "unknown"),
            ("", "unknown"),
            ("approved", "unknown"),
            ("in-process", "unknown"),
            (3, "unknown"),
        ],
    )
    def test_vocabulary(self, raw, expected):
        assert parse_ipc_status(raw) == expected


class TestExtractIPC:
    """Fixed-position extraction."""

    def test_example_cells(self, ipc_cells):
        sheet = make_sheet([task_row()], ipc=ipc_cells)
        records = extract_ipc(sheet)
        assert [r.label for r in records] == list(IPC_LABELS)
        assert [r.status for r in records] == [
            "released",
            "in process",
            "submitted",
            "not submitted",
            "unknown",
            "released",
        ]

    def test_missing_sheet_yields_no_records(self):
        assert extract_ipc(None) == []

    def test_blank_cells_still_yield_six_records(self):
        records = extract_ipc(make_sheet([task_row()]))
        assert len(records) == 6
        assert {r.status for r in records} == {"unknown"}

    def test_narrow_sheet_reads_out_of_range_cells_as_unknown(self):
        sheet = make_sheet([task_row()])
        records = extract_ipc(sheet, first_column=sheet.shape[1] - 2)
        assert len(records) == 6
        assert all(r.status == "unknown" for r in records)

    def test_ignores_header_names(self, ipc_cells):
        sheet = make_sheet([task_row()], ipc=ipc_cells)
        sheet.grid.iloc[0, 24:30] = ["junk"] * 6
        assert extract_ipc(sheet)[0].status == "released"

    def test_custom_position(self):
        sheet = make_sheet([task_row(), task_row("S-2")])
        sheet.grid.iloc[2, 1:7] = ["released"] * 6
        records = extract_ipc(sheet, row=2, first_column=1)
        assert all(r.status == "released" for r in records)

    def test_ipc_from_cells_requires_six(self):
        with pytest.raises(ValueError):
            ipc_from_cells(["released"] * 5)


class TestSummarizeIPC:
    """Badge counts for the dashboard."""

    def test_counts(self, ipc_cells):
        summary = summarize_ipc(ipc_from_cells(ipc_cells))
        assert summary == {"released": 2, "in_process": 1, "submitted": 1, "not_submitted": 1, "unknown": 1}

    def test_empty(self):
        assert sum(summarize_ipc([]).values()) == 0
