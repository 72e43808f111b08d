"""Unit tests for the task mapper."""
from datetime import date

import pytest

from conftest import task_row
from monitor.config import Source
from monitor.tasks import drive_direct_url, map_row_to_task, map_rows


class TestMapRowToTask:
    """Row -> TaskRecord mapping."""

    def test_maps_display_headers(self):
        task = map_row_to_task(task_row("S-001"), "PKG-1", "Package One")
        assert task is not None
        assert task.package_id == "PKG-1"
        assert task.package_name == "Package One"
        assert task.site_id == "S-001"
        assert task.district == "Kabul"
        assert task.planned_start == date(2024, 2, 1)
        assert task.planned_finish == date(2024, 3, 15)
        assert task.planned_duration_days == 43.0
        assert task.progress_pct == 40.0
        assert task.variance == -2.0
        assert task.actual_finish is None
        assert task.delay_flag == "On Track"
        assert task.remarks == ""

    def test_maps_snake_case_headers(self):
        row = {
            "site_id": "S-9",
            "site_name": "Clinic",
            "task_name": "Roofing",
            "planned_start": "01-06-2024",
            "progress_pct": 75,
            "delay_flag_calc": "Delayed",
            "cover_photo_share_url": "https://drive.google.com/file/d/1AbCdEfGhIjKlMnOp/view?usp=sharing",
        }
        task = map_row_to_task(row, "PKG-2", "Package Two")
        assert task.site_name == "Clinic"
        assert task.task_name == "Roofing"
        assert task.planned_start == date(2024, 6, 1)
        assert task.progress_pct == 75.0
        assert task.delay_flag == "Delayed"
        assert task.cover_photo_url.startswith("https://drive.google.com/file/d/")
        assert task.cover_photo_direct_url == "https://drive.google.com/uc?export=view&id=1AbCdEfGhIjKlMnOp"
        assert task.before_photo_direct_url is None

    def test_first_spelling_wins(self):
        row = {"Site ID": "A", "site_id": "B", "District": "", "district": "Herat"}
        task = map_row_to_task(row, "P", "P")
        assert task.site_id == "A"
        assert task.district == "Herat"

    @pytest.mark.parametrize("site", [None, "", "   "])
    def test_row_without_site_id_is_dropped(self, site):
        row = task_row(site_id=site)
        row["site_id"] = site
        assert map_row_to_task(row, "P", "P") is None

    def test_row_without_site_id_is_dropped_even_when_full(self):
        row = task_row()
        del row["Site ID"]
        assert map_row_to_task(row, "P", "P") is None

    def test_only_site_id_is_required(self):
        task = map_row_to_task({"site_id": 101.0}, "P", "P")
        assert task.site_id == "101"
        assert task.task_name == ""
        assert task.progress_pct is None
        assert task.planned_start is None

    def test_malformed_cells_degrade(self):
        row = task_row(**{"Progress %": "about half", "Planned Start": "next week", "Variance": True})
        task = map_row_to_task(row, "P", "P")
        assert task is not None
        assert task.progress_pct is None
        assert task.planned_start is None
        assert task.variance is None

    def test_zero_progress_is_kept(self):
        task = map_row_to_task(task_row(**{"Progress %": 0}), "P", "P")
        assert task.progress_pct == 0.0

    def test_custom_headers(self):
        headers = {"task_name": ("Activity", "activity")}
        task = map_row_to_task({"Site ID": "S", "Activity": "Plastering"}, "P", "P", headers=headers)
        assert task.task_name == "Plastering"


class TestMapRows:
    """Batch mapping."""

    def test_skips_rows_without_site(self):
        source = Source("PKG-1", "Package One", "https://example.test")
        rows = [task_row("S-1"), {"Remarks": "totals"}, task_row("S-2")]
        tasks = map_rows(rows, source)
        assert [t.site_id for t in tasks] == ["S-1", "S-2"]
        assert all(t.package_id == "PKG-1" for t in tasks)


class TestDriveDirectUrl:
    """Share link rewriting."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://drive.google.com/file/d/1AbCdEfGhIjKlMnOp/view",
            "https://drive.google.com/open?id=1AbCdEfGhIjKlMnOp",
            "https://drive.google.com/uc?export=download&id=1AbCdEfGhIjKlMnOp",
        ],
    )
    def test_recognized(self, url):
        assert drive_direct_url(url) == "https://drive.google.com/uc?export=view&id=1AbCdEfGhIjKlMnOp"

    @pytest.mark.parametrize("url", ["", "https://example.com/photo.jpg", "https://drive.google.com/drive/folders/1AbCdEfGhIjKlMnOp"])
    def test_unrecognized(self, url):
        assert drive_direct_url(url) is None
