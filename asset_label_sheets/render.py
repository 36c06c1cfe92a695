"""
Rendering backends that turn draw commands into documents.
"""

# Standard Library
import abc
import base64
import html
import inspect
import io
import json
import pathlib
import zipfile

# PIP3 modules
import PIL.Image
import PIL.ImageDraw
import PIL.ImageFont
import pypdf
import reportlab.pdfbase.pdfmetrics
import reportlab.pdfgen.canvas

# local repo modules
import asset_label_sheets as als
import asset_label_sheets.config
import asset_label_sheets.errors
import asset_label_sheets.layout
import asset_label_sheets.template


SheetTemplate = als.config.SheetTemplate
LayoutResult = als.layout.LayoutResult
TextRun = als.layout.TextRun
CodeBlock = als.layout.CodeBlock
RenderError = als.errors.RenderError

POINTS_PER_INCH = als.config.POINTS_PER_INCH
DEFAULT_FONT_REGULAR = als.config.DEFAULT_FONT_REGULAR
DEFAULT_PNG_DPI = als.config.DEFAULT_PNG_DPI
DEFAULT_DOCUMENT_TITLE = als.config.DEFAULT_DOCUMENT_TITLE
points_to_mm = als.config.points_to_mm

HTML_NOTICE = (
	"Print this page at 100% scale with page margins set to none. "
	"This notice is not printed."
)
HTML_STYLE = """
body { margin: 0; }
.page { position: relative; overflow: hidden; page-break-after: always; break-after: page; }
.text { position: absolute; white-space: nowrap; overflow: hidden; color: #000; }
.code { position: absolute; image-rendering: pixelated; }
.outline { position: absolute; box-sizing: border-box; border: 0.1mm solid #b3b3b3; }
@media print { .no-print { display: none; } }
"""
HTML_FONTS = {
	"Helvetica": "font-family: Helvetica, Arial, sans-serif;",
	"Helvetica-Bold": "font-family: Helvetica, Arial, sans-serif; font-weight: bold;",
	"Courier": "font-family: Courier, monospace;",
}


#============================================
def dark_runs(row: tuple[bool, ...]) -> list[tuple[int, int]]:
	"""
	Group dark modules of a matrix row into horizontal runs.

	Args:
		row: One row of the module matrix.

	Returns:
		List of (start_column, length).
	"""
	runs: list[tuple[int, int]] = []
	start = None
	for index, dark in enumerate(row):
		if dark and start is None:
			start = index
		elif not dark and start is not None:
			runs.append((start, index - start))
			start = None
	if start is not None:
		runs.append((start, len(row) - start))
	return runs


#============================================
def build_module_image(modules: tuple[tuple[bool, ...], ...], pixels: int) -> PIL.Image.Image:
	"""
	Rasterize a module matrix to a square grayscale image.

	Args:
		modules: Module matrix.
		pixels: Output edge length in pixels.

	Returns:
		PIL image.
	"""
	count = len(modules)
	image = PIL.Image.new("L", (count, count), 255)
	image.putdata([0 if dark else 255 for row in modules for dark in row])
	return image.resize((max(1, pixels), max(1, pixels)), PIL.Image.Resampling.NEAREST)


#============================================
def compute_text_baseline(run: TextRun, page_height: float) -> float:
	"""
	Baseline y (PDF coordinates) that centers a text run in its box.
	"""
	font_name = run.style.font_name
	font_size = run.style.font_size
	ascent = reportlab.pdfbase.pdfmetrics.getAscent(font_name) * font_size / 1000.0
	descent = reportlab.pdfbase.pdfmetrics.getDescent(font_name) * font_size / 1000.0
	bottom = page_height - run.y - run.height
	return bottom + (run.height - (ascent - descent)) / 2.0 - descent


#============================================
def draw_text_run(pdf: reportlab.pdfgen.canvas.Canvas, run: TextRun, page_height: float) -> None:
	"""
	Draw a text run onto the PDF canvas.

	Args:
		pdf: ReportLab canvas.
		run: TextRun with top-left coordinates.
		page_height: Page height for the y flip.
	"""
	if not run.text:
		return
	pdf.setFont(run.style.font_name, run.style.font_size)
	pdf.setFillColorRGB(0.0, 0.0, 0.0)
	pdf.drawString(run.x, compute_text_baseline(run, page_height), run.text)


#============================================
def draw_code_block(pdf: reportlab.pdfgen.canvas.Canvas, block: CodeBlock, page_height: float) -> None:
	"""
	Draw a code's dark modules as filled rectangles.

	Args:
		pdf: ReportLab canvas.
		block: CodeBlock with top-left coordinates.
		page_height: Page height for the y flip.
	"""
	count = len(block.modules)
	if count == 0:
		return
	module = block.size / count
	top = page_height - block.y
	pdf.setFillColorRGB(0.0, 0.0, 0.0)
	for row_index, row in enumerate(block.modules):
		row_y = top - (row_index + 1) * module
		for start, length in dark_runs(row):
			pdf.rect(block.x + start * module, row_y, length * module, module, stroke=0, fill=1)


#============================================
def draw_label_outlines(pdf: reportlab.pdfgen.canvas.Canvas, template: SheetTemplate) -> None:
	"""
	Draw label outlines on the current page.

	Args:
		pdf: ReportLab canvas.
		template: Validated sheet template.
	"""
	pdf.setLineWidth(0.3)
	pdf.setStrokeColorRGB(0.7, 0.7, 0.7)
	for cell_x, cell_y in als.template.compute_slot_grid(template):
		pdf_y = template.page_height - cell_y - template.label_height
		pdf.rect(cell_x, pdf_y, template.label_width, template.label_height, stroke=1, fill=0)


#============================================
def draw_calibration_page(pdf: reportlab.pdfgen.canvas.Canvas, template: SheetTemplate) -> None:
	"""
	Draw calibration boxes, corner crosshairs and a 1 inch ruler mark.

	Args:
		pdf: ReportLab canvas.
		template: Validated sheet template.
	"""
	draw_label_outlines(pdf, template)

	pdf.setLineWidth(0.6)
	pdf.setStrokeColorRGB(0.0, 0.0, 0.0)
	grid = als.template.compute_slot_grid(template)
	samples = {0, template.columns - 1, len(grid) - template.columns, len(grid) - 1}
	for slot in sorted(samples):
		cell_x, cell_y = grid[slot]
		center_x = cell_x + template.label_width / 2.0
		center_y = template.page_height - cell_y - template.label_height / 2.0
		size = 6.0
		pdf.line(center_x - size, center_y, center_x + size, center_y)
		pdf.line(center_x, center_y - size, center_x, center_y + size)

	ruler_x = template.margin_left
	ruler_y = template.page_height - template.margin_top / 2.0
	pdf.line(ruler_x, ruler_y, ruler_x + POINTS_PER_INCH, ruler_y)
	pdf.setFont(DEFAULT_FONT_REGULAR, 8)
	pdf.drawString(ruler_x + POINTS_PER_INCH + 4.0, ruler_y - 3.0, "1 in")


#============================================
def build_single_page(template: SheetTemplate, painter) -> pypdf.PageObject:
	"""
	Paint one page with reportlab and read it back with pypdf.

	Args:
		template: Validated sheet template.
		painter: Callable taking (canvas, template).

	Returns:
		PDF page object.
	"""
	buffer = io.BytesIO()
	pdf = reportlab.pdfgen.canvas.Canvas(buffer, pagesize=(template.page_width, template.page_height))
	painter(pdf, template)
	pdf.save()
	buffer.seek(0)
	reader = pypdf.PdfReader(buffer)
	return reader.pages[0]


class SheetRenderer(abc.ABC):
	"""
	Capability interface for document backends.
	"""
	name = ""
	extension = ""

	@abc.abstractmethod
	def render(self, result: LayoutResult) -> bytes:
		"""
		Render a layout result to document bytes.

		Raises:
			RenderError: when the backend fails.
		"""


class PdfSheetRenderer(SheetRenderer):
	"""
	PDF output: reportlab draws the label pages, pypdf merges the outline
	overlay, prepends the calibration page and sets metadata.
	"""
	name = "pdf"
	extension = ".pdf"

	def __init__(
		self,
		draw_outlines: bool = False,
		calibration: bool = False,
		title: str = DEFAULT_DOCUMENT_TITLE,
	) -> None:
		self.draw_outlines = draw_outlines
		self.calibration = calibration
		self.title = title

	#============================================
	def draw_label_pages(self, result: LayoutResult) -> bytes:
		template = result.template
		buffer = io.BytesIO()
		pdf = reportlab.pdfgen.canvas.Canvas(buffer, pagesize=(template.page_width, template.page_height))
		for _page, commands in result.iter_pages():
			for command in commands:
				if isinstance(command, TextRun):
					draw_text_run(pdf, command, template.page_height)
				else:
					draw_code_block(pdf, command, template.page_height)
			pdf.showPage()
		pdf.save()
		return buffer.getvalue()

	#============================================
	def render(self, result: LayoutResult) -> bytes:
		template = result.template
		try:
			writer = pypdf.PdfWriter()
			if self.calibration:
				writer.add_page(build_single_page(template, draw_calibration_page))
			if result.page_count > 0:
				outline_page = None
				if self.draw_outlines:
					outline_page = build_single_page(template, draw_label_outlines)
				reader = pypdf.PdfReader(io.BytesIO(self.draw_label_pages(result)))
				for page in reader.pages:
					if outline_page is not None:
						page.merge_page(outline_page)
					writer.add_page(page)
			writer.add_metadata({"/Title": self.title})
			output = io.BytesIO()
			writer.write(output)
		except Exception as error:
			raise RenderError(f"PDF rendering failed: {error}") from error
		return output.getvalue()


class PngSheetRenderer(SheetRenderer):
	"""
	One PNG per page, bundled in a zip archive as page-001.png, ...
	"""
	name = "png"
	extension = ".zip"

	def __init__(self, dpi: int = DEFAULT_PNG_DPI, draw_outlines: bool = False) -> None:
		self.dpi = dpi
		self.draw_outlines = draw_outlines
		self._fonts: dict[int, PIL.ImageFont.FreeTypeFont] = {}

	def font(self, pixels: int) -> PIL.ImageFont.FreeTypeFont:
		if pixels not in self._fonts:
			self._fonts[pixels] = PIL.ImageFont.load_default(size=pixels)
		return self._fonts[pixels]

	#============================================
	def render_page(self, template: SheetTemplate, commands: list) -> PIL.Image.Image:
		"""
		Rasterize one page of commands.

		Args:
			template: Validated sheet template.
			commands: Draw commands of the page.

		Returns:
			RGB page image.
		"""
		scale = self.dpi / POINTS_PER_INCH
		size = (round(template.page_width * scale), round(template.page_height * scale))
		image = PIL.Image.new("RGB", size, "white")
		draw = PIL.ImageDraw.Draw(image)
		if self.draw_outlines:
			for cell_x, cell_y in als.template.compute_slot_grid(template):
				box = (
					round(cell_x * scale),
					round(cell_y * scale),
					round((cell_x + template.label_width) * scale),
					round((cell_y + template.label_height) * scale),
				)
				draw.rectangle(box, outline=(179, 179, 179))
		for command in commands:
			if isinstance(command, TextRun):
				if not command.text:
					continue
				font = self.font(max(1, round(command.style.font_size * scale)))
				anchor_y = (command.y + command.height / 2.0) * scale
				draw.text((command.x * scale, anchor_y), command.text, fill="black", font=font, anchor="lm")
			elif command.modules:
				code_image = build_module_image(command.modules, round(command.size * scale))
				image.paste(code_image.convert("RGB"), (round(command.x * scale), round(command.y * scale)))
		return image

	#============================================
	def render(self, result: LayoutResult) -> bytes:
		buffer = io.BytesIO()
		try:
			with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
				for page, commands in result.iter_pages():
					image = self.render_page(result.template, commands)
					page_buffer = io.BytesIO()
					image.save(page_buffer, format="PNG", dpi=(self.dpi, self.dpi))
					archive.writestr(f"page-{page + 1:03d}.png", page_buffer.getvalue())
		except Exception as error:
			raise RenderError(f"PNG rendering failed: {error}") from error
		return buffer.getvalue()


class HtmlSheetRenderer(SheetRenderer):
	"""
	A single HTML document with absolutely positioned labels in mm and
	codes as inline PNG images.
	"""
	name = "html"
	extension = ".html"

	def __init__(
		self,
		draw_outlines: bool = False,
		title: str = DEFAULT_DOCUMENT_TITLE,
		module_pixels: int = 8,
	) -> None:
		self.draw_outlines = draw_outlines
		self.title = title
		self.module_pixels = module_pixels

	#============================================
	def code_data_uri(self, block: CodeBlock) -> str:
		image = build_module_image(block.modules, len(block.modules) * self.module_pixels)
		buffer = io.BytesIO()
		image.save(buffer, format="PNG")
		data = base64.b64encode(buffer.getvalue()).decode("ascii")
		return f"data:image/png;base64,{data}"

	#============================================
	def render_page(self, template: SheetTemplate, commands: list) -> str:
		"""
		Build the markup of one page.
		"""
		parts = [
			f'<div class="page" style="width: {points_to_mm(template.page_width):.2f}mm; '
			f'height: {points_to_mm(template.page_height):.2f}mm">'
		]
		if self.draw_outlines:
			for cell_x, cell_y in als.template.compute_slot_grid(template):
				parts.append(
					f'<div class="outline" style="{box_style(cell_x, cell_y, template.label_width, template.label_height)}"></div>'
				)
		for command in commands:
			if isinstance(command, TextRun):
				font = HTML_FONTS.get(command.style.font_name, HTML_FONTS[DEFAULT_FONT_REGULAR])
				style = box_style(command.x, command.y, command.width, command.height)
				style += f" font-size: {command.style.font_size:.2f}pt; line-height: {points_to_mm(command.height):.2f}mm; {font}"
				parts.append(
					f'<div class="text" data-asset="{html.escape(command.asset_id)}" style="{style}">'
					f"{html.escape(command.text)}</div>"
				)
			else:
				style = box_style(command.x, command.y, command.size, command.size)
				parts.append(
					f'<img class="code" alt="{html.escape(command.asset_id)}" '
					f'src="{self.code_data_uri(command)}" style="{style}">'
				)
		parts.append("</div>")
		return "\n".join(parts)

	#============================================
	def render(self, result: LayoutResult) -> bytes:
		template = result.template
		page_css = (
			f"@page {{ size: {points_to_mm(template.page_width):.2f}mm "
			f"{points_to_mm(template.page_height):.2f}mm; margin: 0; }}"
		)
		try:
			pages = [self.render_page(template, commands) for _page, commands in result.iter_pages()]
		except Exception as error:
			raise RenderError(f"HTML rendering failed: {error}") from error
		document = "\n".join(
			[
				"<!DOCTYPE html>",
				'<html><head><meta charset="utf-8">',
				f"<title>{html.escape(self.title)}</title>",
				f"<style>{page_css}{HTML_STYLE}</style>",
				"</head><body>",
				f'<p class="no-print">{html.escape(HTML_NOTICE)}</p>',
				*pages,
				"</body></html>",
			]
		)
		return document.encode("utf-8")


#============================================
def box_style(x: float, y: float, width: float, height: float) -> str:
	"""
	CSS absolute position for a box given in points.
	"""
	return (
		f"left: {points_to_mm(x):.2f}mm; top: {points_to_mm(y):.2f}mm; "
		f"width: {points_to_mm(width):.2f}mm; height: {points_to_mm(height):.2f}mm;"
	)


RENDERERS = {
	PdfSheetRenderer.name: PdfSheetRenderer,
	PngSheetRenderer.name: PngSheetRenderer,
	HtmlSheetRenderer.name: HtmlSheetRenderer,
}


#============================================
def get_renderer(name: str, **options) -> SheetRenderer:
	"""
	Build a renderer by format name.

	Args:
		name: pdf, png or html.
		options: Backend options; options a backend does not take are dropped.

	Returns:
		SheetRenderer.
	"""
	renderer_class = RENDERERS.get(name)
	if renderer_class is None:
		raise RenderError(f"Unknown output format {name!r} (choose from {', '.join(sorted(RENDERERS))})")
	accepted = inspect.signature(renderer_class).parameters
	kwargs = {key: value for key, value in options.items() if key in accepted}
	return renderer_class(**kwargs)


#============================================
def format_for_path(path: pathlib.Path) -> str:
	"""
	Guess an output format from a file suffix, defaulting to pdf.
	"""
	suffix = path.suffix.lower()
	for name, renderer_class in RENDERERS.items():
		if suffix == renderer_class.extension:
			return name
	if suffix == ".htm":
		return "html"
	return "pdf"


#============================================
def write_manifest(
	manifest_path: pathlib.Path,
	selector: str,
	output_path: pathlib.Path,
	output_format: str,
	asset_ids: list[str],
	result: LayoutResult,
) -> None:
	"""
	Write a manifest JSON file describing a run.

	Args:
		manifest_path: Output path.
		selector: Asset selector as given by the user.
		output_path: Document path.
		output_format: Renderer name.
		asset_ids: Identifiers of the printed labels, in order.
		result: Layout result.
	"""
	template = result.template
	data = {
		"selector": selector,
		"output": str(output_path),
		"format": output_format,
		"asset_ids": asset_ids,
		"labels": result.label_count,
		"pages": result.page_count,
		"labels_per_page": template.capacity,
		"warnings": [
			{"kind": warning.kind, "asset_id": warning.asset_id, "message": warning.message}
			for warning in result.warnings
		],
		"layout": {
			"page_width": template.page_width,
			"page_height": template.page_height,
			"label_width": template.label_width,
			"label_height": template.label_height,
			"columns": template.columns,
			"rows": template.rows,
			"margin_top": template.margin_top,
			"margin_right": template.margin_right,
			"margin_bottom": template.margin_bottom,
			"margin_left": template.margin_left,
			"h_gap": template.h_gap,
			"v_gap": template.v_gap,
			"inset": template.inset,
			"fill_order": template.fill_order,
			"grid_skip": template.grid_skip,
			"fields": [[field.key, field.style] for field in template.fields],
			"include_code": template.include_code,
			"code_ec_level": template.code_ec_level,
		},
	}
	with manifest_path.open("w", encoding="utf-8") as handle:
		json.dump(data, handle, indent=2, sort_keys=True)
