import pytest

import asset_label_sheets.config
import asset_label_sheets.errors
import asset_label_sheets.template


InvalidTemplate = asset_label_sheets.errors.InvalidTemplate
mm_to_points = asset_label_sheets.config.mm_to_points


#============================================
@pytest.mark.parametrize("name", sorted(asset_label_sheets.config.PRESETS))
def test_presets_validate(name: str) -> None:
	"""
	Every preset is a valid template with a derived grid.
	"""
	template = asset_label_sheets.template.validate_template(asset_label_sheets.config.PRESETS[name])
	assert template.columns >= 1
	assert template.rows >= 1
	assert template.label_width > 0.0
	assert template.label_height > 0.0


#============================================
def test_homebox_preset_derives_label_size() -> None:
	"""
	The A4 preset sizes its labels from the grid, margins and gaps.
	"""
	template = asset_label_sheets.template.validate_template(asset_label_sheets.config.HOMEBOX_A4)
	assert template.capacity == 65
	assert template.label_width == pytest.approx(mm_to_points(38.0))
	assert template.label_height == pytest.approx(mm_to_points(277.0 / 13.0))


#============================================
def test_label_size_derives_columns(make_template) -> None:
	"""
	A label width without a column count gives the largest count that fits.
	"""
	template = make_template(columns=None, label_width=90.0)
	derived = asset_label_sheets.template.validate_template(template)
	assert derived.columns == 4
	assert derived.label_width == 90.0


#============================================
def test_validate_returns_new_template(small_template) -> None:
	"""
	Validation does not touch the input template.
	"""
	derived = asset_label_sheets.template.validate_template(small_template)
	assert small_template.label_width is None
	assert derived.label_width == pytest.approx(190.0)
	assert derived.label_height == pytest.approx(90.0)


#============================================
def test_negative_margin_rejected(make_template) -> None:
	"""
	Negative margins are an invalid template.
	"""
	with pytest.raises(InvalidTemplate) as excinfo:
		asset_label_sheets.template.validate_template(make_template(margin_left=-1.0))
	assert any("margin_left" in problem for problem in excinfo.value.problems)


#============================================
def test_grid_exceeding_page_rejected(make_template) -> None:
	"""
	Explicit labels that do not fit the page are rejected.
	"""
	template = make_template(label_width=200.0, label_height=90.0)
	with pytest.raises(InvalidTemplate) as excinfo:
		asset_label_sheets.template.validate_template(template)
	assert any("page width" in problem for problem in excinfo.value.problems)


#============================================
def test_no_fields_and_no_code_rejected(make_template) -> None:
	"""
	A label must carry at least one field or a code.
	"""
	template = make_template(fields=(), include_code=False)
	with pytest.raises(InvalidTemplate):
		asset_label_sheets.template.validate_template(template)


#============================================
def test_code_only_template_is_valid(make_template) -> None:
	"""
	An empty field list is fine while codes are on.
	"""
	template = asset_label_sheets.template.validate_template(make_template(fields=()))
	assert template.include_code


#============================================
def test_problems_are_collected(make_template) -> None:
	"""
	Several problems are reported together.
	"""
	template = make_template(code_ec_level="X", code_corner="middle", fill_order="diagonal")
	with pytest.raises(InvalidTemplate) as excinfo:
		asset_label_sheets.template.validate_template(template)
	assert len(excinfo.value.problems) == 3
	assert str(excinfo.value).startswith("Invalid sheet template: ")


#============================================
@pytest.mark.parametrize(
	"changes",
	[
		{"code_max_version": 0},
		{"code_max_version": 41},
		{"code_size_fraction": 0.0},
		{"code_size_fraction": 1.5},
		{"code_payload": "{serial}"},
		{"missing_policy": "retry"},
		{"grid_skip": -1},
		{"grid_skip": 4},
		{"columns": 0},
		{"columns": None, "label_width": None},
		{"inset": 50.0},
		{"fields": (asset_label_sheets.config.FieldSpec("name", "huge"),)},
	],
)
def test_invalid_options_rejected(make_template, changes: dict) -> None:
	"""
	Out of range content and policy options are invalid.
	"""
	with pytest.raises(InvalidTemplate):
		asset_label_sheets.template.validate_template(make_template(**changes))


#============================================
@pytest.mark.parametrize("payload_format", ["{asset_id.x}", "{name[x]}", "{asset_id:d}", "{0}"])
def test_bad_code_payload_is_invalid_template(make_template, payload_format: str) -> None:
	"""
	Broken payload formats become InvalidTemplate problems.
	"""
	with pytest.raises(InvalidTemplate) as excinfo:
		asset_label_sheets.template.validate_template(make_template(code_payload=payload_format))
	assert "code_payload" in str(excinfo.value)


#============================================
def test_indexed_code_payload_is_valid(make_template) -> None:
	"""
	Indexing into a field is a usable payload format.
	"""
	template = asset_label_sheets.template.validate_template(make_template(code_payload="{asset_id}-{name[0]}"))
	assert template.code_payload == "{asset_id}-{name[0]}"


#============================================
def test_code_without_room_for_text_rejected(make_template) -> None:
	"""
	A code filling the whole label width leaves no text column.
	"""
	template = make_template(label_width=30.0, label_height=30.0, code_size_fraction=1.0)
	with pytest.raises(InvalidTemplate) as excinfo:
		asset_label_sheets.template.validate_template(template)
	assert "no room for text" in str(excinfo.value)


#============================================
def test_content_boxes_keep_text_beside_code(small_template) -> None:
	"""
	The text column does not overlap the code square.
	"""
	template = asset_label_sheets.template.validate_template(small_template)
	code_size, text_box = asset_label_sheets.template.compute_content_boxes(template)
	code_x, _code_y = asset_label_sheets.template.compute_code_offset(template, code_size)
	text_x, _text_y, text_width, _text_height = text_box
	assert code_x + code_size <= text_x
	assert text_x + text_width <= template.label_width - template.inset + 1e-6
