import json
import pathlib

import pytest

import asset_label_sheets.config
import asset_label_sheets.errors
import asset_label_sheets.template
import asset_label_sheets.template_io


InvalidTemplate = asset_label_sheets.errors.InvalidTemplate
mm_to_points = asset_label_sheets.config.mm_to_points

GLABELS_XML = b"""<?xml version="1.0"?>
<Glabels-templates>
  <Template brand="Avery" part="5160" size="US-Letter" description="Address Labels">
    <Meta category="label"/>
    <Label-rectangle id="0" width="189pt" height="72pt" round="5pt" x_waste="0pt" y_waste="0pt">
      <Markup-margin size="5pt"/>
      <Layout nx="3" ny="10" x0="11.25pt" y0="36pt" dx="200.25pt" dy="72pt"/>
    </Label-rectangle>
  </Template>
  <Template brand="Example" part="round-2in" size="Other" width="8.5in" height="11in" description="Round">
    <Label-round id="0" radius="1in">
      <Layout nx="3" ny="4" x0="0.5in" y0="0.5in" dx="2.5in" dy="2.5in"/>
    </Label-round>
  </Template>
</Glabels-templates>
"""


#============================================
@pytest.mark.parametrize(
	"value,expected",
	[
		(10, 10.0),
		("12pt", 12.0),
		("1in", 72.0),
		("25.4mm", 72.0),
		("2.54 cm", 72.0),
		("1pc", 12.0),
		("", 3.0),
		(None, 3.0),
	],
)
def test_parse_length(value, expected: float) -> None:
	"""
	Lengths accept numbers in points and unit suffixes.
	"""
	assert asset_label_sheets.template_io.parse_length(value, 3.0) == pytest.approx(expected)


#============================================
def test_parse_length_rejects_garbage() -> None:
	"""
	Unparseable lengths raise ValueError.
	"""
	with pytest.raises(ValueError):
		asset_label_sheets.template_io.parse_length("wide", 0.0)


#============================================
def test_json_template_file(tmp_path: pathlib.Path) -> None:
	"""
	JSON templates override a preset with unit lengths and field specs.
	"""
	path = tmp_path / "sheet.json"
	data = {
		"base": "avery5163",
		"margin_top": "10mm",
		"columns": 2,
		"rows": 4,
		"label_height": None,
		"fields": ["asset_id:title", {"key": "name"}, "serialNumber:mono"],
		"code_corner": "bottom-left",
		"include_code": True,
	}
	path.write_text(json.dumps(data), encoding="utf-8")
	template = asset_label_sheets.template_io.load_template(str(path))
	assert template.margin_top == pytest.approx(mm_to_points(10.0))
	assert template.rows == 4
	assert template.label_height is None
	assert [(field.key, field.style) for field in template.fields] == [
		("asset_id", "title"),
		("name", "normal"),
		("serialNumber", "mono"),
	]
	derived = asset_label_sheets.template.validate_template(template)
	assert derived.label_height > 0.0


#============================================
def test_json_template_unknown_key(tmp_path: pathlib.Path) -> None:
	"""
	Unknown template options are rejected.
	"""
	path = tmp_path / "sheet.json"
	path.write_text(json.dumps({"colums": 3}), encoding="utf-8")
	with pytest.raises(InvalidTemplate) as excinfo:
		asset_label_sheets.template_io.load_template(str(path))
	assert "colums" in str(excinfo.value)


#============================================
def test_json_template_bad_values() -> None:
	"""
	Wrong value types are collected as problems.
	"""
	with pytest.raises(InvalidTemplate) as excinfo:
		asset_label_sheets.template_io.template_from_mapping({"rows": "many", "text_fit": "yes", "h_gap": "wide"})
	assert len(excinfo.value.problems) == 3


#============================================
def test_glabels_rectangle_template() -> None:
	"""
	gLabels layouts map to margins, gaps and a grid.
	"""
	template = asset_label_sheets.template_io.template_from_glabels(GLABELS_XML)
	derived = asset_label_sheets.template.validate_template(template)
	assert (derived.columns, derived.rows) == (3, 10)
	assert derived.label_width == pytest.approx(189.0)
	assert derived.h_gap == pytest.approx(11.25)
	assert derived.v_gap == pytest.approx(0.0)
	assert derived.margin_right == pytest.approx(11.25)
	assert derived.margin_bottom == pytest.approx(36.0)
	assert derived.inset == pytest.approx(5.0)


#============================================
def test_glabels_round_template_by_part() -> None:
	"""
	Round labels use their diameter; templates are chosen by part.
	"""
	template = asset_label_sheets.template_io.template_from_glabels(GLABELS_XML, part="round-2in")
	derived = asset_label_sheets.template.validate_template(template)
	assert derived.label_width == pytest.approx(144.0)
	assert derived.h_gap == pytest.approx(36.0)
	assert derived.page_width == pytest.approx(612.0)


#============================================
def test_glabels_file_loaded_by_suffix(tmp_path: pathlib.Path) -> None:
	"""
	Non-JSON template files are read as gLabels XML.
	"""
	path = tmp_path / "avery.xml"
	path.write_bytes(GLABELS_XML)
	template = asset_label_sheets.template_io.load_template(str(path), part="5160")
	assert template.columns == 3


#============================================
@pytest.mark.parametrize(
	"data",
	[
		b"<not xml",
		b"<Glabels-templates></Glabels-templates>",
		b'<!DOCTYPE x [<!ENTITY a "boom">]><Template size="A4">&a;</Template>',
	],
)
def test_glabels_invalid_documents(data: bytes) -> None:
	"""
	Broken, empty or entity-laden XML is an invalid template.
	"""
	with pytest.raises(InvalidTemplate):
		asset_label_sheets.template_io.template_from_glabels(data)


#============================================
def test_unknown_preset() -> None:
	"""
	Unknown names that are not files are unknown presets.
	"""
	with pytest.raises(InvalidTemplate) as excinfo:
		asset_label_sheets.template_io.load_template("avery9999")
	assert "avery9999" in str(excinfo.value)


#============================================
def test_default_preset() -> None:
	"""
	No template selects the default preset.
	"""
	assert asset_label_sheets.template_io.load_template(None) == asset_label_sheets.config.HOMEBOX_A4
