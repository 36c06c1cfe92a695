"""
Sheet template validation and slot geometry.
"""

# Standard Library
import dataclasses
import math

# local repo modules
import asset_label_sheets as als
import asset_label_sheets.config
import asset_label_sheets.errors


SheetTemplate = als.config.SheetTemplate
InvalidTemplate = als.errors.InvalidTemplate

GEOMETRY_EPSILON = als.config.GEOMETRY_EPSILON
FIELD_STYLES = als.config.FIELD_STYLES
CODE_CORNERS = als.config.CODE_CORNERS
CODE_EC_LEVELS = als.config.CODE_EC_LEVELS
CODE_MIN_VERSION = als.config.CODE_MIN_VERSION
CODE_MAX_VERSION = als.config.CODE_MAX_VERSION
CODE_TEXT_GAP = als.config.CODE_TEXT_GAP
FILL_ORDERS = als.config.FILL_ORDERS
MISSING_POLICIES = als.config.MISSING_POLICIES
LINE_LEADING = als.config.LINE_LEADING


@dataclasses.dataclass(frozen=True)
class LabelSlot:
	page: int
	column: int
	row: int
	x: float
	y: float


#============================================
def derive_axis(
	name: str,
	page_length: float,
	margin_start: float,
	margin_end: float,
	gap: float,
	count: int | None,
	size: float | None,
	problems: list[str],
) -> tuple[int | None, float | None]:
	"""
	Derive the missing grid count or label size for one axis.

	Args:
		name: Axis name for messages ("columns" or "rows").
		page_length: Page width or height.
		margin_start: Left or top margin.
		margin_end: Right or bottom margin.
		gap: Gap between labels along the axis.
		count: Explicit label count or None.
		size: Explicit label size or None.
		problems: Problem list, appended to on failure.

	Returns:
		Tuple of (count, size), None entries when derivation failed.
	"""
	usable = page_length - margin_start - margin_end
	if count is None and size is None:
		problems.append(f"{name}: either the label count or the label size must be given")
		return (None, None)
	if count is not None and (not isinstance(count, int) or isinstance(count, bool) or count < 1):
		problems.append(f"{name} must be an integer >= 1, got {count!r}")
		return (None, None)
	if size is None:
		size = (usable - (count - 1) * gap) / count
		if size <= 0.0:
			problems.append(f"{name}: no room for {count} labels between the margins")
			return (None, None)
		return (count, size)
	if size <= 0.0:
		problems.append(f"{name}: label size must be positive, got {size}")
		return (None, None)
	if count is None:
		count = int(math.floor((usable + gap + GEOMETRY_EPSILON) / (size + gap)))
		if count < 1:
			problems.append(f"{name}: a label of size {size:.2f} does not fit between the margins")
			return (None, None)
	return (count, size)


#============================================
def check_code_payload(payload_format: str) -> str | None:
	"""
	Check that a code payload format only uses known placeholders.

	Returns:
		Problem message or None.
	"""
	try:
		payload_format.format(asset_id="000-000", name="Sample item", location="Shelf")
	except (KeyError, IndexError, ValueError, AttributeError, TypeError) as error:
		return f"code_payload {payload_format!r} is not a valid format: {error!r}"
	return None


#============================================
def validate_template(template: SheetTemplate) -> SheetTemplate:
	"""
	Validate a sheet template and derive any missing grid values.

	All problems are collected and raised together.

	Args:
		template: Sheet template, possibly with derived values missing.

	Returns:
		A new template with columns, rows, label_width and label_height set.

	Raises:
		InvalidTemplate: when any invariant is violated.
	"""
	problems: list[str] = []
	if template.page_width <= 0.0 or template.page_height <= 0.0:
		problems.append("page width and height must be positive")
	margins = {
		"margin_top": template.margin_top,
		"margin_right": template.margin_right,
		"margin_bottom": template.margin_bottom,
		"margin_left": template.margin_left,
		"h_gap": template.h_gap,
		"v_gap": template.v_gap,
		"inset": template.inset,
	}
	for key, value in margins.items():
		if value < 0.0:
			problems.append(f"{key} must not be negative, got {value}")
	if problems:
		raise InvalidTemplate(problems)

	columns, label_width = derive_axis(
		"columns",
		template.page_width,
		template.margin_left,
		template.margin_right,
		template.h_gap,
		template.columns,
		template.label_width,
		problems,
	)
	rows, label_height = derive_axis(
		"rows",
		template.page_height,
		template.margin_top,
		template.margin_bottom,
		template.v_gap,
		template.rows,
		template.label_height,
		problems,
	)

	if columns is not None and label_width is not None:
		used = template.margin_left + columns * label_width + (columns - 1) * template.h_gap
		if used + template.margin_right > template.page_width + GEOMETRY_EPSILON:
			problems.append(
				f"{columns} columns of width {label_width:.2f} exceed the page width "
				f"{template.page_width:.2f}"
			)
		elif 2.0 * template.inset >= label_width:
			problems.append("inset leaves no room inside the label width")
	if rows is not None and label_height is not None:
		used = template.margin_top + rows * label_height + (rows - 1) * template.v_gap
		if used + template.margin_bottom > template.page_height + GEOMETRY_EPSILON:
			problems.append(
				f"{rows} rows of height {label_height:.2f} exceed the page height "
				f"{template.page_height:.2f}"
			)
		elif 2.0 * template.inset >= label_height:
			problems.append("inset leaves no room inside the label height")

	if not template.fields and not template.include_code:
		problems.append("a label needs at least one field or a code")
	for field in template.fields:
		if not field.key:
			problems.append("field keys must not be empty")
		if field.style not in FIELD_STYLES:
			problems.append(f"unknown field style {field.style!r} for {field.key!r}")

	if template.include_code:
		if template.code_ec_level not in CODE_EC_LEVELS:
			problems.append(f"code_ec_level must be one of {', '.join(CODE_EC_LEVELS)}")
		if not CODE_MIN_VERSION <= template.code_max_version <= CODE_MAX_VERSION:
			problems.append(
				f"code_max_version must be between {CODE_MIN_VERSION} and {CODE_MAX_VERSION}"
			)
		if template.code_corner not in CODE_CORNERS:
			problems.append(f"code_corner must be one of {', '.join(CODE_CORNERS)}")
		if not 0.0 < template.code_size_fraction <= 1.0:
			problems.append("code_size_fraction must be in (0, 1]")
		payload_problem = check_code_payload(template.code_payload)
		if payload_problem:
			problems.append(payload_problem)

	if template.fill_order not in FILL_ORDERS:
		problems.append(f"fill_order must be one of {', '.join(FILL_ORDERS)}")
	if template.missing_policy not in MISSING_POLICIES:
		problems.append(f"missing_policy must be one of {', '.join(MISSING_POLICIES)}")
	if template.grid_skip < 0:
		problems.append("grid_skip must not be negative")
	elif columns is not None and rows is not None and template.grid_skip >= columns * rows:
		problems.append(f"grid_skip must be smaller than the {columns * rows} slots of a sheet")
	if problems:
		raise InvalidTemplate(problems)

	derived = dataclasses.replace(
		template,
		columns=columns,
		rows=rows,
		label_width=label_width,
		label_height=label_height,
	)
	if derived.fields and derived.include_code:
		_code_size, text_box = compute_content_boxes(derived)
		if text_box[2] <= 0.0:
			raise InvalidTemplate(["the code leaves no room for text fields"])
	return derived


#============================================
def compute_slot_grid(template: SheetTemplate) -> list[tuple[float, float]]:
	"""
	Compute the top-left offset of every slot on a page, in fill order.

	Args:
		template: Validated sheet template.

	Returns:
		List of (x, y) offsets, length columns * rows.
	"""
	grid: list[tuple[float, float]] = []
	for slot in range(template.capacity):
		row, col = slot_row_column(template, slot)
		cell_x = template.margin_left + col * (template.label_width + template.h_gap)
		cell_y = template.margin_top + row * (template.label_height + template.v_gap)
		grid.append((cell_x, cell_y))
	return grid


#============================================
def slot_row_column(template: SheetTemplate, slot: int) -> tuple[int, int]:
	"""
	Map a page-local slot index to (row, column).
	"""
	if template.fill_order == "column":
		return (slot % template.rows, slot // template.rows)
	return (slot // template.columns, slot % template.columns)


#============================================
def compute_slot(
	template: SheetTemplate,
	index: int,
	grid: list[tuple[float, float]] | None = None,
) -> LabelSlot:
	"""
	Compute the slot for a global slot index.

	Args:
		template: Validated sheet template.
		index: Global slot index, counting across pages.
		grid: Optional precomputed slot grid for the template.

	Returns:
		LabelSlot.
	"""
	if grid is None:
		grid = compute_slot_grid(template)
	capacity = template.capacity
	page = index // capacity
	slot = index % capacity
	row, col = slot_row_column(template, slot)
	cell_x, cell_y = grid[slot]
	return LabelSlot(page=page, column=col, row=row, x=cell_x, y=cell_y)


#============================================
def compute_content_boxes(
	template: SheetTemplate,
) -> tuple[float, tuple[float, float, float, float]]:
	"""
	Split a label into its code square and its text column.

	Offsets are relative to the slot's top-left corner.

	Args:
		template: Validated sheet template.

	Returns:
		Tuple of (code_size, (text_x, text_y, text_width, text_height)).
		code_size is 0.0 when the template has no code.
	"""
	inner_width = template.label_width - 2.0 * template.inset
	inner_height = template.label_height - 2.0 * template.inset
	if not template.include_code:
		return (0.0, (template.inset, template.inset, inner_width, inner_height))
	code_size = template.code_size_fraction * min(inner_width, inner_height)
	text_width = inner_width - code_size - CODE_TEXT_GAP
	if template.code_corner.endswith("left"):
		text_x = template.inset + code_size + CODE_TEXT_GAP
	else:
		text_x = template.inset
	return (code_size, (text_x, template.inset, text_width, inner_height))


#============================================
def compute_code_offset(template: SheetTemplate, code_size: float) -> tuple[float, float]:
	"""
	Offset of the code square within a slot for the configured corner.
	"""
	if template.code_corner.endswith("left"):
		code_x = template.inset
	else:
		code_x = template.label_width - template.inset - code_size
	if template.code_corner.startswith("top"):
		code_y = template.inset
	else:
		code_y = template.label_height - template.inset - code_size
	return (code_x, code_y)


#============================================
def field_line_height(style: str) -> float:
	"""
	Allocated height of a field line in the given style.
	"""
	_font_name, font_size = FIELD_STYLES[style]
	return font_size * LINE_LEADING
