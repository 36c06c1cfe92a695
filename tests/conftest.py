"""
Pytest configuration for local imports and shared sample data.
"""

# Standard Library
import os
import sys

# PIP3 modules
import pytest

#============================================


def _ensure_repo_on_path() -> None:
	"""
	Ensure the repository root is on sys.path.
	"""
	repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
	if repo_root not in sys.path:
		sys.path.insert(0, repo_root)


_ensure_repo_on_path()

import asset_label_sheets.config  # noqa: E402
import asset_label_sheets.records  # noqa: E402


#============================================
def build_small_template(**changes) -> asset_label_sheets.config.SheetTemplate:
	"""
	A 2 x 2 sheet of 190 x 90 pt labels on a 400 x 200 pt page.
	"""
	values = dict(
		page_width=400.0,
		page_height=200.0,
		margin_top=10.0,
		margin_right=10.0,
		margin_bottom=10.0,
		margin_left=10.0,
		label_width=None,
		label_height=None,
		h_gap=0.0,
		v_gap=0.0,
		columns=2,
		rows=2,
	)
	values.update(changes)
	return asset_label_sheets.config.SheetTemplate(**values)


#============================================
def build_records(*asset_ids: str) -> list[asset_label_sheets.records.AssetRecord]:
	"""
	Records named after their ids, located in "Shelf <id>".
	"""
	return [
		asset_label_sheets.records.AssetRecord(asset_id, f"Item {asset_id}", f"Shelf {asset_id}")
		for asset_id in asset_ids
	]


@pytest.fixture
def small_template() -> asset_label_sheets.config.SheetTemplate:
	return build_small_template()


@pytest.fixture
def five_records() -> list[asset_label_sheets.records.AssetRecord]:
	return build_records("A001", "A002", "A003", "A004", "A005")


@pytest.fixture
def make_template():
	return build_small_template


@pytest.fixture
def make_records():
	return build_records
