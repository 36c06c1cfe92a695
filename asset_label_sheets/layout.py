"""
Label layout and sheet pagination.

The engine assigns the i-th record to global slot i + grid_skip, which
is slot (i + grid_skip) mod C on page (i + grid_skip) div C for a grid of
C = columns * rows labels, and emits backend-independent draw commands
with top-left page coordinates in points.
"""

# Standard Library
import dataclasses
import typing
import unicodedata

# PIP3 modules
import reportlab.pdfbase.pdfmetrics

# local repo modules
import asset_label_sheets as als
import asset_label_sheets.config
import asset_label_sheets.errors
import asset_label_sheets.qr_encode
import asset_label_sheets.records
import asset_label_sheets.template


SheetTemplate = als.config.SheetTemplate
FieldSpec = als.config.FieldSpec
AssetRecord = als.records.AssetRecord
LabelWarning = als.errors.LabelWarning
PayloadTooLarge = als.errors.PayloadTooLarge
LayoutCancelled = als.errors.LayoutCancelled
ModuleMatrix = als.qr_encode.ModuleMatrix

FIELD_STYLES = als.config.FIELD_STYLES
DEFAULT_TEXT_MIN_SIZE = als.config.DEFAULT_TEXT_MIN_SIZE
ELLIPSIS = als.config.ELLIPSIS
GEOMETRY_EPSILON = als.config.GEOMETRY_EPSILON


@dataclasses.dataclass(frozen=True)
class TextStyle:
	name: str
	font_name: str
	font_size: float


@dataclasses.dataclass(frozen=True)
class TextRun:
	page: int
	x: float
	y: float
	width: float
	height: float
	text: str
	style: TextStyle
	asset_id: str = ""
	kind: typing.ClassVar[str] = "text"


@dataclasses.dataclass(frozen=True)
class CodeBlock:
	page: int
	x: float
	y: float
	size: float
	modules: ModuleMatrix
	asset_id: str = ""
	kind: typing.ClassVar[str] = "code"


DrawCommand = TextRun | CodeBlock


@dataclasses.dataclass
class LayoutResult:
	"""
	Draw commands for a whole run, in rendering order.

	All commands of a page come before any command of a later page.
	"""
	commands: list[DrawCommand]
	page_count: int
	template: SheetTemplate
	warnings: list[LabelWarning] = dataclasses.field(default_factory=list)
	label_count: int = 0

	def commands_for_page(self, page: int) -> list[DrawCommand]:
		return [command for command in self.commands if command.page == page]

	#============================================
	def iter_pages(self) -> typing.Iterator[tuple[int, list[DrawCommand]]]:
		"""
		Yield (page, commands) for every page, including empty ones.

		Walks the command list once, relying on page ordering.
		"""
		index = 0
		total = len(self.commands)
		for page in range(self.page_count):
			start = index
			while index < total and self.commands[index].page == page:
				index += 1
			yield (page, self.commands[start:index])


@dataclasses.dataclass(frozen=True)
class FieldLine:
	field: FieldSpec
	style: TextStyle
	x: float
	y: float
	width: float
	height: float


@dataclasses.dataclass(frozen=True)
class LabelPlan:
	"""
	Per-label positions relative to the slot origin, computed once per run.
	"""
	lines: tuple[FieldLine, ...]
	dropped_fields: tuple[FieldSpec, ...]
	code_size: float
	code_x: float
	code_y: float


# ASCII spellings applied before NFKD folding.
ASCII_FALLBACKS = str.maketrans({
	"×": "x",
	"÷": "/",
	"Ø": "O",
	"ø": "o",
	"ß": "ss",
	"½": "1/2",
	"¼": "1/4",
	"¾": "3/4",
	"°": "deg",
	"™": "TM",
	"®": "(R)",
	"©": "(C)",
	"–": "-",
	"—": "-",
	"‘": "'",
	"’": "'",
	"“": '"',
	"”": '"',
})


#============================================
def fold_to_ascii(text: str) -> str:
	"""
	Fold label text to ASCII so the built-in Latin-1 fonts can draw it.

	NFKD strips accents and expands compatibility forms like "…".
	"""
	decomposed = unicodedata.normalize("NFKD", text.translate(ASCII_FALLBACKS))
	return decomposed.encode("ascii", "ignore").decode("ascii")


#============================================
def text_width(text: str, font_name: str, font_size: float) -> float:
	return reportlab.pdfbase.pdfmetrics.stringWidth(text, font_name, font_size)


#============================================
def truncate_text(text: str, font_name: str, font_size: float, max_width: float) -> str:
	"""
	Cut text so that it plus an ellipsis fits max_width.

	Args:
		text: Text to cut.
		font_name: ReportLab font name.
		font_size: Font size in points.
		max_width: Available width.

	Returns:
		Truncated text with ellipsis, or "" when even the ellipsis is too wide.
	"""
	if text_width(ELLIPSIS, font_name, font_size) > max_width:
		return ""
	low = 0
	high = len(text)
	# longest prefix whose truncated form fits
	while low < high:
		middle = (low + high + 1) // 2
		candidate = text[:middle].rstrip() + ELLIPSIS
		if text_width(candidate, font_name, font_size) <= max_width:
			low = middle
		else:
			high = middle - 1
	return text[:low].rstrip() + ELLIPSIS


#============================================
def fit_text(
	text: str,
	style: TextStyle,
	max_width: float,
	text_fit: bool,
	min_font_size: float = DEFAULT_TEXT_MIN_SIZE,
) -> tuple[str, TextStyle]:
	"""
	Fit a single line of text into a width.

	Shrinks the font toward min_font_size when text_fit is set, then
	truncates with an ellipsis if the text is still too wide.

	Args:
		text: Field text.
		style: Nominal text style.
		max_width: Available width.
		text_fit: Whether to shrink before truncating.
		min_font_size: Smallest font size when shrinking.

	Returns:
		Tuple of (text, style) to draw.
	"""
	width = text_width(text, style.font_name, style.font_size)
	if width <= max_width + GEOMETRY_EPSILON:
		return (text, style)
	if text_fit and style.font_size > min_font_size:
		target_size = max(min_font_size, style.font_size * max_width / width)
		style = dataclasses.replace(style, font_size=target_size)
		if text_width(text, style.font_name, style.font_size) <= max_width + GEOMETRY_EPSILON:
			return (text, style)
	return (truncate_text(text, style.font_name, style.font_size, max_width), style)


#============================================
def build_label_plan(template: SheetTemplate) -> LabelPlan:
	"""
	Stack the configured fields inside the text column of a label.

	Each field is allocated font size * leading of its style; the
	vertical offset of a field is the sum of the prior allocations.
	Fields that do not fit the column height are dropped.

	Args:
		template: Validated sheet template.

	Returns:
		LabelPlan.
	"""
	code_size, text_box = als.template.compute_content_boxes(template)
	text_x, text_y, column_width, column_height = text_box
	lines: list[FieldLine] = []
	dropped: list[FieldSpec] = []
	offset = 0.0
	for field in template.fields:
		font_name, font_size = FIELD_STYLES[field.style]
		line_height = als.template.field_line_height(field.style)
		if offset + line_height > column_height + GEOMETRY_EPSILON:
			dropped.append(field)
			continue
		lines.append(
			FieldLine(
				field=field,
				style=TextStyle(field.style, font_name, font_size),
				x=text_x,
				y=text_y + offset,
				width=column_width,
				height=line_height,
			)
		)
		offset += line_height
	code_x, code_y = (0.0, 0.0)
	if template.include_code:
		code_x, code_y = als.template.compute_code_offset(template, code_size)
	return LabelPlan(
		lines=tuple(lines),
		dropped_fields=tuple(dropped),
		code_size=code_size,
		code_x=code_x,
		code_y=code_y,
	)


#============================================
def layout(
	records: typing.Sequence[AssetRecord],
	template: SheetTemplate,
	code_encoder=None,
	should_cancel: typing.Callable[[], bool] | None = None,
	progress: typing.Callable[[int, int], None] | None = None,
) -> LayoutResult:
	"""
	Lay out asset labels on sheets.

	Args:
		records: Asset records in print order.
		template: Sheet template; validated here.
		code_encoder: Object with encode(payload, level); a QrEncoder for
			the template's max version is used when None.
		should_cancel: Checked before each record; True stops the run.
		progress: Called with (done, total) after each record.

	Returns:
		LayoutResult.

	Raises:
		InvalidTemplate: before any record is processed.
		LayoutCancelled: when should_cancel returns True.
	"""
	template = als.template.validate_template(template)
	if template.include_code and code_encoder is None:
		code_encoder = als.qr_encode.QrEncoder(template.code_max_version)

	grid = als.template.compute_slot_grid(template)
	plan = build_label_plan(template)
	commands: list[DrawCommand] = []
	warnings: list[LabelWarning] = []
	total = len(records)
	if plan.dropped_fields and total > 0:
		names = ", ".join(field.key for field in plan.dropped_fields)
		warnings.append(
			LabelWarning(
				kind="field_overflow",
				asset_id="",
				message=f"fields do not fit the label height and were left out: {names}",
			)
		)

	max_page = -1
	for index, record in enumerate(records):
		if should_cancel is not None and should_cancel():
			raise LayoutCancelled(f"Layout cancelled after {index} of {total} labels")
		slot = als.template.compute_slot(template, index + template.grid_skip, grid)

		for line in plan.lines:
			text = record.field_value(line.field.key)
			if template.normalize_text:
				text = fold_to_ascii(text)
			text, style = fit_text(text, line.style, line.width, template.text_fit)
			commands.append(
				TextRun(
					page=slot.page,
					x=slot.x + line.x,
					y=slot.y + line.y,
					width=line.width,
					height=line.height,
					text=text,
					style=style,
					asset_id=record.asset_id,
				)
			)

		if template.include_code:
			try:
				payload = als.qr_encode.build_code_payload(template.code_payload, record)
				modules = code_encoder.encode(payload, template.code_ec_level)
			except PayloadTooLarge as error:
				warnings.append(
					LabelWarning(
						kind="payload_too_large",
						asset_id=record.asset_id,
						message=f"code omitted: {error}",
					)
				)
			# indexed placeholders such as {name[0]} fail on empty fields
			except IndexError as error:
				warnings.append(
					LabelWarning(
						kind="payload_too_large",
						asset_id=record.asset_id,
						message=f"code omitted: payload {template.code_payload!r} does not apply: {error}",
					)
				)
			else:
				commands.append(
					CodeBlock(
						page=slot.page,
						x=slot.x + plan.code_x,
						y=slot.y + plan.code_y,
						size=plan.code_size,
						modules=modules,
						asset_id=record.asset_id,
					)
				)

		max_page = max(max_page, slot.page)
		if progress is not None:
			progress(index + 1, total)

	return LayoutResult(
		commands=commands,
		page_count=max_page + 1,
		template=template,
		warnings=warnings,
		label_count=total,
	)
