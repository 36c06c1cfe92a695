import pytest

import asset_label_sheets.config
import asset_label_sheets.template


#============================================
def compute_cell_box(
	template: asset_label_sheets.config.SheetTemplate,
	x: float,
	y: float,
) -> tuple[float, float, float, float]:
	"""
	Bounding box for a slot offset.

	Args:
		template: Validated template.
		x: Slot left edge.
		y: Slot top edge.

	Returns:
		Tuple of (x0, y0, x1, y1), top-left origin.
	"""
	return (x, y, x + template.label_width, y + template.label_height)


#============================================
@pytest.mark.parametrize("name", sorted(asset_label_sheets.config.PRESETS))
def test_grid_boxes_within_margins(name: str) -> None:
	"""
	Ensure all label slots sit inside the page margins.
	"""
	template = asset_label_sheets.template.validate_template(asset_label_sheets.config.PRESETS[name])
	epsilon = 0.001
	grid = asset_label_sheets.template.compute_slot_grid(template)
	assert len(grid) == template.capacity
	for x, y in grid:
		x0, y0, x1, y1 = compute_cell_box(template, x, y)
		assert x0 >= template.margin_left - epsilon
		assert y0 >= template.margin_top - epsilon
		assert x1 <= template.page_width - template.margin_right + epsilon
		assert y1 <= template.page_height - template.margin_bottom + epsilon


#============================================
@pytest.mark.parametrize("name", sorted(asset_label_sheets.config.PRESETS))
def test_grid_boxes_non_overlapping(name: str) -> None:
	"""
	Ensure no two slots on a page overlap.
	"""
	template = asset_label_sheets.template.validate_template(asset_label_sheets.config.PRESETS[name])
	epsilon = 0.001
	boxes = [compute_cell_box(template, x, y) for x, y in asset_label_sheets.template.compute_slot_grid(template)]
	assert len(set(boxes)) == len(boxes)
	for index, first in enumerate(boxes):
		for second in boxes[index + 1:]:
			apart_x = first[2] <= second[0] + epsilon or second[2] <= first[0] + epsilon
			apart_y = first[3] <= second[1] + epsilon or second[3] <= first[1] + epsilon
			assert apart_x or apart_y


#============================================
def test_row_fill_order(make_template) -> None:
	"""
	Row order fills left to right, then top to bottom.
	"""
	template = asset_label_sheets.template.validate_template(make_template())
	positions = [
		(slot.row, slot.column)
		for slot in (asset_label_sheets.template.compute_slot(template, index) for index in range(4))
	]
	assert positions == [(0, 0), (0, 1), (1, 0), (1, 1)]


#============================================
def test_column_fill_order(make_template) -> None:
	"""
	Column order fills top to bottom, then left to right.
	"""
	template = asset_label_sheets.template.validate_template(make_template(fill_order="column"))
	positions = [
		(slot.row, slot.column)
		for slot in (asset_label_sheets.template.compute_slot(template, index) for index in range(4))
	]
	assert positions == [(0, 0), (1, 0), (0, 1), (1, 1)]


#============================================
def test_global_index_wraps_to_next_page(make_template) -> None:
	"""
	Slot index C starts page 1 at the first slot.
	"""
	template = asset_label_sheets.template.validate_template(make_template())
	first = asset_label_sheets.template.compute_slot(template, 0)
	wrapped = asset_label_sheets.template.compute_slot(template, 4)
	assert wrapped.page == 1
	assert (wrapped.x, wrapped.y) == (first.x, first.y)
	assert asset_label_sheets.template.compute_slot(template, 9).page == 2


#============================================
def test_gaps_offset_slots(make_template) -> None:
	"""
	Gaps separate neighbouring slots by label size plus gap.
	"""
	template = asset_label_sheets.template.validate_template(make_template(h_gap=20.0, v_gap=10.0))
	grid = asset_label_sheets.template.compute_slot_grid(template)
	assert grid[1][0] - grid[0][0] == pytest.approx(template.label_width + 20.0)
	assert grid[2][1] - grid[0][1] == pytest.approx(template.label_height + 10.0)
