"""
Shared configuration, constants and sheet templates.
"""

import dataclasses


POINTS_PER_INCH = 72.0
MM_PER_INCH = 25.4
GEOMETRY_EPSILON = 1e-6

DEFAULT_INSET = 1.44
CODE_TEXT_GAP = 2.0
LINE_LEADING = 1.2
ELLIPSIS = "..."

DEFAULT_FONT_REGULAR = "Helvetica"
DEFAULT_FONT_BOLD = "Helvetica-Bold"
DEFAULT_FONT_MONO = "Courier"
DEFAULT_TEXT_SIZE = 7.5
DEFAULT_TEXT_MIN_SIZE = 5.0

# style name -> (font name, nominal font size)
FIELD_STYLES = {
	"title": (DEFAULT_FONT_BOLD, 9.0),
	"normal": (DEFAULT_FONT_REGULAR, DEFAULT_TEXT_SIZE),
	"small": (DEFAULT_FONT_REGULAR, 6.0),
	"mono": (DEFAULT_FONT_MONO, 7.0),
}
RECORD_FIELD_KEYS = ("asset_id", "name", "location")

CODE_CORNERS = ("top-left", "top-right", "bottom-left", "bottom-right")
CODE_EC_LEVELS = ("L", "M", "Q", "H")
CODE_MIN_VERSION = 1
CODE_MAX_VERSION = 40
DEFAULT_CODE_EC_LEVEL = "M"
DEFAULT_CODE_MAX_VERSION = 10
DEFAULT_CODE_SIZE_FRACTION = 0.9
DEFAULT_CODE_PAYLOAD = "{asset_id}"
HOMEBOX_CODE_PAYLOAD = "{server}/a/{{asset_id}}"

FILL_ORDERS = ("row", "column")
MISSING_SKIP = "skip"
MISSING_ABORT = "abort"
MISSING_POLICIES = (MISSING_SKIP, MISSING_ABORT)

MAX_RANGE_SIZE = 100000
DEFAULT_TIMEOUT = 30.0

PROGRESS_BAR_WIDTH = 20
PROGRESS_UPDATE_EVERY = 10
DEFAULT_PNG_DPI = 150
DEFAULT_DOCUMENT_TITLE = "Asset Labels"
DEFAULT_PRESET = "homebox-a4"


#============================================
def inches_to_points(value: float) -> float:
	"""
	Convert inches to points.

	Args:
		value: Inches value.

	Returns:
		Points value.
	"""
	return value * POINTS_PER_INCH


#============================================
def mm_to_points(value: float) -> float:
	"""
	Convert millimetres to points.

	Args:
		value: Millimetre value.

	Returns:
		Points value.
	"""
	return value * POINTS_PER_INCH / MM_PER_INCH


#============================================
def points_to_mm(value: float) -> float:
	"""
	Convert points to millimetres.
	"""
	return value * MM_PER_INCH / POINTS_PER_INCH


PAGE_SIZES = {
	"A4": (mm_to_points(210.0), mm_to_points(297.0)),
	"US-Letter": (inches_to_points(8.5), inches_to_points(11.0)),
}


@dataclasses.dataclass(frozen=True)
class FieldSpec:
	key: str
	style: str = "normal"


DEFAULT_FIELDS = (
	FieldSpec("asset_id", "title"),
	FieldSpec("name", "normal"),
	FieldSpec("location", "small"),
)


@dataclasses.dataclass(frozen=True)
class SheetTemplate:
	"""
	Geometry and content of one label sheet, in points.

	Label size and grid counts may be left as None on one axis and are
	derived by template.validate_template().
	"""
	page_width: float
	page_height: float
	margin_top: float
	margin_right: float
	margin_bottom: float
	margin_left: float
	label_width: float | None
	label_height: float | None
	h_gap: float
	v_gap: float
	columns: int | None
	rows: int | None
	fields: tuple[FieldSpec, ...] = DEFAULT_FIELDS
	include_code: bool = True
	code_ec_level: str = DEFAULT_CODE_EC_LEVEL
	code_max_version: int = DEFAULT_CODE_MAX_VERSION
	code_corner: str = "top-left"
	code_size_fraction: float = DEFAULT_CODE_SIZE_FRACTION
	code_payload: str = DEFAULT_CODE_PAYLOAD
	inset: float = DEFAULT_INSET
	fill_order: str = "row"
	grid_skip: int = 0
	text_fit: bool = True
	normalize_text: bool = True
	missing_policy: str = MISSING_SKIP

	@property
	def capacity(self) -> int:
		if self.columns is None or self.rows is None:
			return 0
		return self.columns * self.rows


# A4 sheet from the Homebox label tool: 5 x 13 labels sized by the grid.
HOMEBOX_A4 = SheetTemplate(
	page_width=PAGE_SIZES["A4"][0],
	page_height=PAGE_SIZES["A4"][1],
	margin_top=mm_to_points(10.0),
	margin_right=mm_to_points(5.0),
	margin_bottom=mm_to_points(10.0),
	margin_left=mm_to_points(5.0),
	label_width=None,
	label_height=None,
	h_gap=mm_to_points(2.5),
	v_gap=0.0,
	columns=5,
	rows=13,
)

# Avery 5167 return address labels, calibrated offsets.
AVERY_5167 = SheetTemplate(
	page_width=PAGE_SIZES["US-Letter"][0],
	page_height=PAGE_SIZES["US-Letter"][1],
	margin_top=36.1,
	margin_right=21.6,
	margin_bottom=34.0,
	margin_left=21.6,
	label_width=125.95,
	label_height=35.95,
	h_gap=21.65,
	v_gap=0.15,
	columns=4,
	rows=20,
	fields=(
		FieldSpec("asset_id", "title"),
		FieldSpec("name", "normal"),
	),
	code_corner="top-right",
)

AVERY_5163 = SheetTemplate(
	page_width=PAGE_SIZES["US-Letter"][0],
	page_height=PAGE_SIZES["US-Letter"][1],
	margin_top=inches_to_points(0.5),
	margin_right=inches_to_points(0.17),
	margin_bottom=inches_to_points(0.5),
	margin_left=inches_to_points(0.17),
	label_width=inches_to_points(4.0),
	label_height=inches_to_points(2.0),
	h_gap=inches_to_points(0.16),
	v_gap=0.0,
	columns=2,
	rows=5,
	fields=(
		FieldSpec("asset_id", "title"),
		FieldSpec("name", "normal"),
		FieldSpec("location", "normal"),
		FieldSpec("description", "small"),
	),
	code_size_fraction=0.8,
)

PRESETS = {
	"homebox-a4": HOMEBOX_A4,
	"avery5167": AVERY_5167,
	"avery5163": AVERY_5163,
}
