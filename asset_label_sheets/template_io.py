"""
Template loading from presets, JSON files and gLabels XML templates.
"""

# Standard Library
import dataclasses
import json
import pathlib
import xml.etree.ElementTree as StdElementTree

# PIP3 modules
import defusedxml.ElementTree as ElementTree

# local repo modules
import asset_label_sheets as als
import asset_label_sheets.config
import asset_label_sheets.errors


SheetTemplate = als.config.SheetTemplate
FieldSpec = als.config.FieldSpec
InvalidTemplate = als.errors.InvalidTemplate

PRESETS = als.config.PRESETS
PAGE_SIZES = als.config.PAGE_SIZES
DEFAULT_PRESET = als.config.DEFAULT_PRESET
GEOMETRY_EPSILON = als.config.GEOMETRY_EPSILON

UNIT_POINTS = {
	"pt": 1.0,
	"in": als.config.POINTS_PER_INCH,
	"mm": als.config.mm_to_points(1.0),
	"cm": als.config.mm_to_points(10.0),
	"pc": 12.0,
}
LENGTH_KEYS = (
	"page_width",
	"page_height",
	"margin_top",
	"margin_right",
	"margin_bottom",
	"margin_left",
	"label_width",
	"label_height",
	"h_gap",
	"v_gap",
	"inset",
)
INT_KEYS = ("columns", "rows", "grid_skip", "code_max_version")
BOOL_KEYS = ("include_code", "text_fit", "normalize_text")
STR_KEYS = ("code_ec_level", "code_corner", "code_payload", "fill_order", "missing_policy")
FLOAT_KEYS = ("code_size_fraction",)
SPECIAL_KEYS = ("base", "page_size", "fields")


#============================================
def parse_length(value, default_value: float | None) -> float | None:
	"""
	Parse a length into points.

	Numbers are taken as points. Strings may carry a pt, in, mm, cm
	or pc suffix.

	Args:
		value: Number or string like "10mm".
		default_value: Fallback when value is None or blank.

	Returns:
		Length in points.

	Raises:
		ValueError: when the value cannot be parsed.
	"""
	if value is None:
		return default_value
	if isinstance(value, bool):
		raise ValueError(f"not a length: {value!r}")
	if isinstance(value, (int, float)):
		return float(value)
	text = str(value).strip().lower()
	if not text:
		return default_value
	for suffix, factor in UNIT_POINTS.items():
		if text.endswith(suffix):
			return float(text[: -len(suffix)]) * factor
	return float(text)


#============================================
def parse_field_specs(entries: list) -> tuple[FieldSpec, ...]:
	"""
	Parse a field list of "key", "key:style" or {"key", "style"} entries.
	"""
	fields: list[FieldSpec] = []
	for entry in entries:
		if isinstance(entry, str):
			key, _, style = entry.partition(":")
			fields.append(FieldSpec(key.strip(), style.strip() or "normal"))
		elif isinstance(entry, dict) and "key" in entry:
			fields.append(FieldSpec(str(entry["key"]), str(entry.get("style", "normal"))))
		else:
			raise InvalidTemplate([f"invalid field entry: {entry!r}"])
	return tuple(fields)


#============================================
def template_from_mapping(data: dict, base: SheetTemplate | None = None) -> SheetTemplate:
	"""
	Build a template from a JSON-style mapping.

	Args:
		data: Template options.
		base: Template to start from. A "base" key naming a preset wins.

	Returns:
		SheetTemplate (not yet validated).
	"""
	if not isinstance(data, dict):
		raise InvalidTemplate(["template file must contain a JSON object"])
	known = set(LENGTH_KEYS + INT_KEYS + BOOL_KEYS + STR_KEYS + FLOAT_KEYS + SPECIAL_KEYS)
	unknown = sorted(set(data) - known)
	if unknown:
		raise InvalidTemplate([f"unknown template option: {key}" for key in unknown])

	if "base" in data:
		base = get_preset(str(data["base"]))
	if base is None:
		base = PRESETS[DEFAULT_PRESET]

	changes: dict = {}
	problems: list[str] = []
	if "page_size" in data:
		size = PAGE_SIZES.get(str(data["page_size"]))
		if size is None:
			problems.append(f"unknown page_size {data['page_size']!r}")
		else:
			changes["page_width"], changes["page_height"] = size
	for key in LENGTH_KEYS:
		if key not in data:
			continue
		try:
			changes[key] = parse_length(data[key], None)
		except ValueError:
			problems.append(f"{key}: invalid length {data[key]!r}")
	for key in INT_KEYS:
		if key not in data:
			continue
		value = data[key]
		if value is None and key in ("columns", "rows"):
			changes[key] = None
		elif isinstance(value, int) and not isinstance(value, bool):
			changes[key] = value
		else:
			problems.append(f"{key}: expected an integer, got {value!r}")
	for key in BOOL_KEYS:
		if key not in data:
			continue
		if isinstance(data[key], bool):
			changes[key] = data[key]
		else:
			problems.append(f"{key}: expected true or false, got {data[key]!r}")
	for key in STR_KEYS:
		if key in data:
			changes[key] = str(data[key])
	for key in FLOAT_KEYS:
		if key not in data:
			continue
		try:
			changes[key] = float(data[key])
		except (TypeError, ValueError):
			problems.append(f"{key}: expected a number, got {data[key]!r}")
	if "fields" in data:
		if not isinstance(data["fields"], list):
			problems.append("fields must be a list")
		else:
			changes["fields"] = parse_field_specs(data["fields"])
	if problems:
		raise InvalidTemplate(problems)
	return dataclasses.replace(base, **changes)


#============================================
def find_glabels_template(
	root: StdElementTree.Element,
	part: str | None,
) -> StdElementTree.Element:
	"""
	Find a <Template> element, optionally by part number.
	"""
	if root.tag.endswith("Template"):
		candidates = [root]
	else:
		candidates = root.findall(".//{*}Template")
	if part is not None:
		candidates = [element for element in candidates if element.attrib.get("part") == part]
	if not candidates:
		if part is not None:
			raise InvalidTemplate([f"no gLabels template with part {part!r}"])
		raise InvalidTemplate(["no <Template> element in gLabels file"])
	return candidates[0]


#============================================
def template_from_glabels(
	data: bytes,
	part: str | None = None,
	base: SheetTemplate | None = None,
) -> SheetTemplate:
	"""
	Read sheet geometry from a gLabels XML template.

	Only the first rectangular or round label and its first layout are
	used. Label content (fields, code options) comes from base.

	Args:
		data: XML bytes.
		part: Optional part number to select among several templates.
		base: Template providing the label content options.

	Returns:
		SheetTemplate (not yet validated).
	"""
	if base is None:
		base = PRESETS[DEFAULT_PRESET]
	try:
		root = ElementTree.fromstring(data)
	except (StdElementTree.ParseError, ValueError) as error:
		# defusedxml rejects entities and DTDs with ValueError subclasses
		raise InvalidTemplate([f"cannot parse gLabels XML: {error}"]) from error
	element = find_glabels_template(root, part)

	try:
		size_name = element.attrib.get("size", "Other")
		if size_name in PAGE_SIZES:
			page_width, page_height = PAGE_SIZES[size_name]
		else:
			page_width = parse_length(element.attrib.get("width"), 0.0)
			page_height = parse_length(element.attrib.get("height"), 0.0)

		label = element.find("{*}Label-rectangle")
		if label is not None:
			label_width = parse_length(label.attrib.get("width"), 0.0)
			label_height = parse_length(label.attrib.get("height"), 0.0)
		else:
			label = element.find("{*}Label-round")
			if label is None:
				raise InvalidTemplate(["gLabels template has no rectangular or round label"])
			radius = parse_length(label.attrib.get("radius"), 0.0)
			label_width = 2.0 * radius
			label_height = 2.0 * radius

		layout = label.find("{*}Layout")
		if layout is None:
			raise InvalidTemplate(["gLabels label has no <Layout>"])
		columns = int(layout.attrib.get("nx", "1"))
		rows = int(layout.attrib.get("ny", "1"))
		margin_left = parse_length(layout.attrib.get("x0"), 0.0)
		margin_top = parse_length(layout.attrib.get("y0"), 0.0)
		pitch_x = parse_length(layout.attrib.get("dx"), label_width)
		pitch_y = parse_length(layout.attrib.get("dy"), label_height)

		inset = base.inset
		markup = label.find("{*}Markup-margin")
		if markup is not None:
			inset = parse_length(markup.attrib.get("size"), base.inset)
	except ValueError as error:
		raise InvalidTemplate([f"invalid gLabels value: {error}"]) from error

	h_gap = pitch_x - label_width if columns > 1 else 0.0
	v_gap = pitch_y - label_height if rows > 1 else 0.0
	margin_right = page_width - margin_left - columns * label_width - (columns - 1) * h_gap
	margin_bottom = page_height - margin_top - rows * label_height - (rows - 1) * v_gap
	return dataclasses.replace(
		base,
		page_width=page_width,
		page_height=page_height,
		margin_top=margin_top,
		margin_right=clamp_rounding(margin_right),
		margin_bottom=clamp_rounding(margin_bottom),
		margin_left=margin_left,
		label_width=label_width,
		label_height=label_height,
		h_gap=clamp_rounding(h_gap),
		v_gap=clamp_rounding(v_gap),
		columns=columns,
		rows=rows,
		inset=inset,
	)


#============================================
def clamp_rounding(value: float) -> float:
	# unit conversions leave tiny negative remainders on exact-fit sheets
	if -1e-3 < value < 0.0:
		return 0.0
	return value


#============================================
def get_preset(name: str) -> SheetTemplate:
	"""
	Look up a named preset.
	"""
	template = PRESETS.get(name)
	if template is None:
		choices = ", ".join(sorted(PRESETS))
		raise InvalidTemplate([f"unknown template preset {name!r} (choose from {choices})"])
	return template


#============================================
def load_template(source: str | None, part: str | None = None) -> SheetTemplate:
	"""
	Load a template from a preset name or a .json / .xml / .template file.

	Args:
		source: Preset name or file path. None selects the default preset.
		part: gLabels part number when the XML holds several templates.

	Returns:
		SheetTemplate (not yet validated).
	"""
	if source is None:
		return get_preset(DEFAULT_PRESET)
	if source in PRESETS:
		return PRESETS[source]
	path = pathlib.Path(source)
	if not path.exists():
		return get_preset(source)
	try:
		data = path.read_bytes()
	except OSError as error:
		raise InvalidTemplate([f"cannot read template {path}: {error}"]) from error
	if path.suffix.lower() == ".json":
		try:
			mapping = json.loads(data.decode("utf-8"))
		except (UnicodeDecodeError, json.JSONDecodeError) as error:
			raise InvalidTemplate([f"cannot parse {path}: {error}"]) from error
		return template_from_mapping(mapping)
	return template_from_glabels(data, part=part)
