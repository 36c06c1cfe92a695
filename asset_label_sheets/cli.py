"""
CLI entry points for printing asset label sheets.
"""

# Standard Library
import argparse
import dataclasses
import getpass
import pathlib
import sys
import time

# local repo modules
import asset_label_sheets as als
import asset_label_sheets.config
import asset_label_sheets.errors
import asset_label_sheets.layout
import asset_label_sheets.records
import asset_label_sheets.render
import asset_label_sheets.resolver
import asset_label_sheets.template
import asset_label_sheets.template_io


SheetTemplate = als.config.SheetTemplate
LabelSheetError = als.errors.LabelSheetError
LabelWarning = als.errors.LabelWarning
ResolverUnavailable = als.errors.ResolverUnavailable
LayoutResult = als.layout.LayoutResult

mm_to_points = als.config.mm_to_points
CODE_EC_LEVELS = als.config.CODE_EC_LEVELS
FILL_ORDERS = als.config.FILL_ORDERS
MISSING_POLICIES = als.config.MISSING_POLICIES
MISSING_SKIP = als.config.MISSING_SKIP
HOMEBOX_CODE_PAYLOAD = als.config.HOMEBOX_CODE_PAYLOAD
DEFAULT_PNG_DPI = als.config.DEFAULT_PNG_DPI
DEFAULT_DOCUMENT_TITLE = als.config.DEFAULT_DOCUMENT_TITLE
PROGRESS_BAR_WIDTH = als.config.PROGRESS_BAR_WIDTH
PROGRESS_UPDATE_EVERY = als.config.PROGRESS_UPDATE_EVERY

# CLI option -> template field, values in millimetres
MM_OPTIONS = {
	"page_width_mm": "page_width",
	"page_height_mm": "page_height",
	"margin_top_mm": "margin_top",
	"margin_right_mm": "margin_right",
	"margin_bottom_mm": "margin_bottom",
	"margin_left_mm": "margin_left",
	"label_width_mm": "label_width",
	"label_height_mm": "label_height",
	"grid_col_spacing_mm": "h_gap",
	"grid_row_spacing_mm": "v_gap",
}


@dataclasses.dataclass
class LabelSheet:
	document: bytes
	layout: LayoutResult
	warnings: list[LabelWarning]
	asset_ids: list[str]


#============================================
def print_progress(prefix: str, current: int, total: int) -> None:
	"""
	Print a simple progress bar.

	Args:
		prefix: Label text.
		current: Current count.
		total: Total count.
	"""
	if total <= 0:
		return
	percent = int(round((current / total) * 100.0))
	filled = int(round(PROGRESS_BAR_WIDTH * percent / 100.0))
	bar = "#" * filled + "-" * (PROGRESS_BAR_WIDTH - filled)
	print(f"{prefix} [{bar}] {current}/{total} ({percent}%)", end="\r")
	if current == total:
		print()


#============================================
def layout_progress(current: int, total: int) -> None:
	if current % PROGRESS_UPDATE_EVERY == 0 or current == total:
		print_progress("Labels", current, total)


#============================================
def parse_fields(value: str) -> list[str]:
	return [entry.strip() for entry in value.split(",") if entry.strip()]


#============================================
def build_template(args: argparse.Namespace) -> SheetTemplate:
	"""
	Build the sheet template from a preset or file plus CLI overrides.

	Args:
		args: Parsed argparse namespace.

	Returns:
		SheetTemplate (not yet validated).
	"""
	template = als.template_io.load_template(args.template, part=args.template_part)
	changes: dict = {}
	for option, key in MM_OPTIONS.items():
		value = getattr(args, option)
		if value is not None:
			changes[key] = mm_to_points(value)
	# an explicit grid count re-derives the label size unless one was given
	if args.grid_columns is not None:
		changes["columns"] = args.grid_columns
		if args.label_width_mm is None:
			changes["label_width"] = None
	if args.grid_rows is not None:
		changes["rows"] = args.grid_rows
		if args.label_height_mm is None:
			changes["label_height"] = None
	if args.grid_skip is not None:
		changes["grid_skip"] = args.grid_skip
	if args.fill_order is not None:
		changes["fill_order"] = args.fill_order
	if args.fields is not None:
		changes["fields"] = als.template_io.parse_field_specs(parse_fields(args.fields))
	if args.no_code:
		changes["include_code"] = False
	if args.ec_level is not None:
		changes["code_ec_level"] = args.ec_level
	if args.code_payload is not None:
		changes["code_payload"] = args.code_payload
	elif args.server:
		changes["code_payload"] = HOMEBOX_CODE_PAYLOAD.format(server=args.server.rstrip("/"))
	if args.on_missing is not None:
		changes["missing_policy"] = args.on_missing
	if not args.normalize_text:
		changes["normalize_text"] = False
	return dataclasses.replace(template, **changes)


#============================================
def build_resolver(args: argparse.Namespace, missing_policy: str = MISSING_SKIP):
	"""
	Build the asset resolver from CLI args.

	Args:
		args: Parsed argparse namespace.
		missing_policy: skip or abort.

	Returns:
		AssetResolver.
	"""
	if args.records_json:
		return als.resolver.JsonFileResolver(pathlib.Path(args.records_json), missing_policy)
	if not args.server or not args.username:
		raise ResolverUnavailable("Either --records-json or --server and --username are required")
	password = args.password
	if password is None:
		password = getpass.getpass(f"Password for {args.username}: ")
	else:
		print("Warning: passwords given on the command line can be seen by other users.", file=sys.stderr)
	return als.resolver.HomeboxResolver(
		args.server,
		args.username,
		password,
		missing_policy=missing_policy,
	)


#============================================
def build_label_sheet(
	selector,
	template: SheetTemplate,
	resolver,
	renderer,
	code_encoder=None,
	progress=None,
	verbose: bool = False,
) -> LabelSheet:
	"""
	Validate, resolve, lay out and render one label sheet document.

	The template is validated before the resolver is touched, so an invalid
	template never causes a lookup.

	Args:
		selector: Asset selector string or object.
		template: Sheet template.
		resolver: AssetResolver.
		renderer: SheetRenderer.
		code_encoder: Optional code encoder for layout.
		progress: Optional layout progress callback.
		verbose: Print per-asset lookups.

	Returns:
		LabelSheet with the document bytes and all warnings.
	"""
	template = als.template.validate_template(template)
	selector = als.records.as_selector(selector)
	resolved = resolver.resolve(selector, verbose=verbose)
	result = als.layout.layout(resolved.records, template, code_encoder, progress=progress)
	warnings = list(resolved.warnings) + list(result.warnings)
	result.warnings = warnings
	document = renderer.render(result)
	asset_ids = [record.asset_id for record in resolved.records]
	return LabelSheet(document=document, layout=result, warnings=warnings, asset_ids=asset_ids)


#============================================
def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
	"""
	Parse command line arguments.

	Returns:
		Parsed argparse namespace.
	"""
	parser = argparse.ArgumentParser(description="Print Homebox asset labels onto label sheets.")
	parser.add_argument("assets", help="Asset ids and ranges, e.g. '000-000--000-010, 000-015'.")
	parser.add_argument("output", help="Output file (.pdf, .zip of PNG pages, or .html).")

	source_group = parser.add_argument_group("Asset source")
	source_group.add_argument("-s", "--server", dest="server", default=None, help="Homebox server URL.")
	source_group.add_argument("-u", "--username", dest="username", default=None, help="Homebox username.")
	source_group.add_argument("-p", "--password", dest="password", default=None, help="Homebox password (prompted when omitted).")
	source_group.add_argument("-j", "--records-json", dest="records_json", default=None, help="Read asset records from a JSON file instead.")
	source_group.add_argument("--on-missing", dest="on_missing", choices=MISSING_POLICIES, default=None, help="Skip or abort on unknown asset ids.")

	sheet_group = parser.add_argument_group("Sheet")
	sheet_group.add_argument("-t", "--template", dest="template", default=None, help="Preset name or .json / gLabels .xml template file.")
	sheet_group.add_argument("--template-part", dest="template_part", default=None, help="gLabels part number.")
	for option in MM_OPTIONS:
		flag = "--" + option.replace("_", "-")
		sheet_group.add_argument(flag, dest=option, type=float, default=None, help=f"Override {MM_OPTIONS[option]} in mm.")
	sheet_group.add_argument("--grid-columns", dest="grid_columns", type=int, default=None, help="Labels per row.")
	sheet_group.add_argument("--grid-rows", dest="grid_rows", type=int, default=None, help="Labels per column.")
	sheet_group.add_argument("-S", "--grid-skip", dest="grid_skip", type=int, default=None, help="Leading slots already used on the first sheet.")
	sheet_group.add_argument("--fill-order", dest="fill_order", choices=FILL_ORDERS, default=None, help="Fill slots by row or by column.")

	content_group = parser.add_argument_group("Label content")
	content_group.add_argument("-f", "--fields", dest="fields", default=None, help="Comma separated fields, e.g. 'asset_id:title,name,location:small'.")
	content_group.add_argument("--no-code", dest="no_code", action="store_true", help="Leave out the QR code.")
	content_group.add_argument("--ec-level", dest="ec_level", choices=CODE_EC_LEVELS, default=None, help="QR error correction level.")
	content_group.add_argument("--code-payload", dest="code_payload", default=None, help="QR payload format, e.g. '{asset_id}'.")
	content_group.add_argument("-N", "--no-normalize-text", dest="normalize_text", action="store_false", help="Preserve original text.")

	output_group = parser.add_argument_group("Output")
	output_group.add_argument("--format", dest="output_format", choices=sorted(als.render.RENDERERS), default=None, help="Output format (default from the output suffix).")
	output_group.add_argument("-m", "--manifest", dest="manifest_path", default=None, help="Output manifest JSON path.")
	output_group.add_argument("-d", "--draw-outlines", dest="draw_outlines", action="store_true", help="Draw label outlines.")
	output_group.add_argument("-c", "--calibration", dest="calibration", action="store_true", help="Add a calibration page (PDF).")
	output_group.add_argument("--dpi", dest="dpi", type=int, default=DEFAULT_PNG_DPI, help="PNG resolution.")
	output_group.add_argument("--title", dest="title", default=DEFAULT_DOCUMENT_TITLE, help="Document title.")
	output_group.add_argument("--force", dest="force", action="store_true", help="Overwrite an existing output file.")
	output_group.add_argument("-v", "--verbose", dest="verbose", action="store_true", help="Print one line per asset.")

	parser.set_defaults(
		draw_outlines=False,
		calibration=False,
		normalize_text=True,
		no_code=False,
		force=False,
		verbose=False,
	)

	args = parser.parse_args(argv)
	return args


#============================================
def run_pipeline(args: argparse.Namespace) -> LabelSheet:
	"""
	Run the full pipeline from asset list to output document.

	Args:
		args: Parsed argparse namespace.

	Returns:
		LabelSheet that was written.
	"""
	output_path = pathlib.Path(args.output)
	output_format = args.output_format or als.render.format_for_path(output_path)
	print("Asset label sheet pipeline")
	print(f"Assets: {args.assets}")
	print(f"Output: {output_path} ({output_format})")
	if args.manifest_path:
		print(f"Manifest: {args.manifest_path}")
	print(f"Template: {args.template or als.config.DEFAULT_PRESET}")
	print(f"Draw outlines: {args.draw_outlines}")
	print(f"Calibration: {args.calibration}")

	if output_path.exists() and not args.force:
		raise LabelSheetError(f"Output file {output_path} exists, use --force to overwrite")

	template = als.template.validate_template(build_template(args))
	print(f"Grid: {template.columns} x {template.rows} labels per page")
	renderer = als.render.get_renderer(
		output_format,
		draw_outlines=args.draw_outlines,
		calibration=args.calibration,
		title=args.title,
		dpi=args.dpi,
	)
	selector = als.records.parse_selector(args.assets)
	resolver = build_resolver(args, template.missing_policy)

	start_time = time.perf_counter()
	sheet = build_label_sheet(
		selector,
		template,
		resolver,
		renderer,
		progress=layout_progress,
		verbose=args.verbose,
	)
	build_end = time.perf_counter()

	try:
		output_path.write_bytes(sheet.document)
	except OSError as error:
		raise LabelSheetError(f"Cannot write {output_path}: {error}") from error
	print(f"Labels printed: {sheet.layout.label_count}")
	print(f"Pages written: {sheet.layout.page_count}")
	if sheet.warnings:
		print(f"Warnings: {len(sheet.warnings)}")
		for warning in sheet.warnings:
			print(f"  {warning}")

	if args.manifest_path:
		try:
			als.render.write_manifest(
				pathlib.Path(args.manifest_path),
				args.assets,
				output_path,
				output_format,
				sheet.asset_ids,
				sheet.layout,
			)
		except OSError as error:
			raise LabelSheetError(f"Cannot write {args.manifest_path}: {error}") from error
		print(f"Manifest written: {args.manifest_path}")

	total_time = time.perf_counter() - start_time
	print(
		"Timing: build={:.2f}s total={:.2f}s".format(
			build_end - start_time,
			total_time,
		)
	)
	return sheet


#============================================
def main(argv: list[str] | None = None) -> int:
	"""
	Main entry point.

	Returns:
		Process exit code.
	"""
	args = parse_args(argv)
	try:
		run_pipeline(args)
	except LabelSheetError as error:
		print(f"Error: {error}", file=sys.stderr)
		return 1
	return 0
