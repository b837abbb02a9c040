"""
CLI entry points for N-up sheet composition.
"""

# Standard Library
import argparse
import dataclasses
import pathlib
import sys
import time

# local repo modules
import nup_sheet_composer as nsc
import nup_sheet_composer.assemble
import nup_sheet_composer.config
import nup_sheet_composer.errors
import nup_sheet_composer.filters
import nup_sheet_composer.pages
import nup_sheet_composer.raster
import nup_sheet_composer.renderer


FilterParams = nsc.config.FilterParams
LayoutSettings = nsc.config.LayoutSettings
PageDefaults = nsc.config.PageDefaults
AssemblyError = nsc.errors.AssemblyError

DEFAULT_N_UP = nsc.config.DEFAULT_N_UP
PREVIEW_SCALE = nsc.config.PREVIEW_SCALE
PRODUCTION_SCALE = nsc.config.PRODUCTION_SCALE


#============================================
def build_layout(args: argparse.Namespace) -> LayoutSettings:
	"""
	Build layout settings from CLI args.

	Args:
		args: Parsed argparse namespace.

	Returns:
		LayoutSettings.
	"""
	return LayoutSettings(n_up=args.n_up, show_borders=args.show_borders)


#============================================
def build_page_defaults(args: argparse.Namespace) -> PageDefaults:
	"""
	Build the defaults given to every enumerated page.

	Args:
		args: Parsed argparse namespace.

	Returns:
		PageDefaults.
	"""
	if args.ink_saver_defaults:
		base = nsc.config.INK_SAVER_DEFAULTS
	else:
		base = nsc.config.PLAIN_DEFAULTS
	filters = FilterParams(
		invert=args.invert or base.filters.invert,
		grayscale=args.grayscale or base.filters.grayscale,
		whiteness=args.whiteness if args.whiteness is not None else base.filters.whiteness,
		blackness=args.blackness if args.blackness is not None else base.filters.blackness,
	)
	rotation = args.rotation if args.rotation is not None else base.rotation
	return PageDefaults(filters=nsc.filters.clamp_filters(filters), rotation=rotation)


#============================================
def parse_overlay_arg(value: str) -> tuple[int, pathlib.Path]:
	"""
	Parse a PAGE=PATH overlay argument.

	Args:
		value: Text like "3=notes.png" with a 1-based page number.

	Returns:
		Tuple of (page number, image path).
	"""
	page_text, separator, path_text = value.partition("=")
	if not separator or not path_text:
		raise argparse.ArgumentTypeError(f"Overlay must look like PAGE=PATH, got {value!r}")
	try:
		page_number = int(page_text)
	except ValueError as error:
		raise argparse.ArgumentTypeError(f"Overlay page must be a number, got {page_text!r}") from error
	return (page_number, pathlib.Path(path_text))


#============================================
def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
	"""
	Parse command line arguments.

	Args:
		argv: Argument list, sys.argv when None.

	Returns:
		Parsed argparse namespace.
	"""
	parser = argparse.ArgumentParser(description="Compose PDF pages onto N-up A4 print sheets.")
	parser.add_argument("inputs", nargs="+", help="Source PDF files, in order.")

	output_group = parser.add_argument_group("Output")
	output_group.add_argument("-o", "--output", dest="output_path", required=True, help="Output PDF path.")
	output_group.add_argument("-m", "--manifest", dest="manifest_path", default=None, help="Output manifest JSON path.")
	output_group.add_argument(
		"--preview-dir",
		dest="preview_dir",
		default=None,
		help="Write filtered low resolution previews of the selected pages here.",
	)

	layout_group = parser.add_argument_group("Layout")
	layout_group.add_argument(
		"-n", "--n-up", dest="n_up", type=int, choices=range(1, 9), default=DEFAULT_N_UP,
		help="Pages per sheet (1-8).",
	)
	layout_group.add_argument("-b", "--borders", dest="show_borders", action="store_true", help="Draw cut borders.")
	layout_group.add_argument("-B", "--no-borders", dest="show_borders", action="store_false", help="Disable cut borders.")
	layout_group.add_argument(
		"--preset",
		dest="preset",
		choices=nsc.pages.PRESET_NAMES,
		default=None,
		help="Apply a layout preset after page defaults.",
	)

	page_group = parser.add_argument_group("Pages")
	page_group.add_argument(
		"-s", "--pages", dest="pages", default="all",
		help="1-based pages across all inputs in print order, e.g. 5,1-3.",
	)
	page_group.add_argument("-i", "--invert", dest="invert", action="store_true", help="Invert colors.")
	page_group.add_argument("-g", "--grayscale", dest="grayscale", action="store_true", help="Convert to grayscale.")
	page_group.add_argument("-w", "--whiteness", dest="whiteness", type=float, default=None, help="Brightness boost 0-100.")
	page_group.add_argument("-k", "--blackness", dest="blackness", type=float, default=None, help="Contrast boost 0-100.")
	page_group.add_argument(
		"-r", "--rotate", dest="rotation", type=int, choices=nsc.config.VALID_ROTATIONS, default=None,
		help="Clockwise rotation in degrees.",
	)
	page_group.add_argument(
		"--ink-saver-defaults",
		dest="ink_saver_defaults",
		action="store_true",
		help="Start every page inverted, grayscale, high contrast and rotated 90.",
	)
	page_group.add_argument(
		"--overlay",
		dest="overlays",
		action="append",
		type=parse_overlay_arg,
		default=[],
		help="Annotation PNG drawn over a page, as PAGE=PATH (repeatable).",
	)

	render_group = parser.add_argument_group("Rendering")
	render_group.add_argument(
		"--scale", dest="scale", type=float, default=PRODUCTION_SCALE,
		help="Render scale relative to 72 DPI.",
	)
	render_group.add_argument("-j", "--workers", dest="workers", type=int, default=1, help="Parallel page renders per sheet.")
	render_group.add_argument("-q", "--quiet", dest="verbose", action="store_false", help="Hide progress output.")

	parser.set_defaults(
		show_borders=nsc.config.DEFAULT_SHOW_BORDERS,
		verbose=True,
	)

	args = parser.parse_args(argv)
	if args.scale <= 0:
		parser.error("--scale must be positive")
	return args


#============================================
def load_pages(
	args: argparse.Namespace,
) -> tuple[dict, list, LayoutSettings]:
	"""
	Load inputs and build the ordered page list.

	Args:
		args: Parsed argparse namespace.

	Returns:
		Tuple of (documents by id, ordered pages, layout).
	"""
	defaults = build_page_defaults(args)
	documents = {}
	all_pages = []
	for input_path in args.inputs:
		document = nsc.renderer.load_source_document(pathlib.Path(input_path))
		documents[document.id] = document
		all_pages.extend(nsc.pages.enumerate_pages(document, defaults))

	indices = nsc.pages.parse_page_ranges(args.pages, len(all_pages))
	chosen = set(indices)
	ordered = [all_pages[index] for index in indices]
	# unlisted pages stay in the session, deselected, after the listed ones
	ordered.extend(
		dataclasses.replace(page, is_selected=False)
		for index, page in enumerate(all_pages)
		if index not in chosen
	)

	for page_number, overlay_path in args.overlays:
		if page_number < 1 or page_number > len(all_pages):
			raise ValueError(f"Overlay page {page_number} out of range (1..{len(all_pages)})")
		try:
			overlay_bytes = overlay_path.read_bytes()
		except OSError as error:
			raise ValueError(f"Cannot read overlay {overlay_path}: {error}") from error
		overlay = nsc.raster.decode_overlay(overlay_bytes)
		ordered = nsc.pages.set_overlay(ordered, all_pages[page_number - 1].id, overlay)

	layout = build_layout(args)
	if args.preset is not None:
		layout, ordered = nsc.pages.apply_preset(args.preset, layout, ordered)
	return (documents, ordered, layout)


#============================================
def write_previews(preview_dir: pathlib.Path, documents: dict, pages: list) -> int:
	"""
	Write filtered preview JPEGs of the selected pages.

	Args:
		preview_dir: Output directory.
		documents: Loaded documents keyed by id.
		pages: Ordered pages.

	Returns:
		Number of previews written.
	"""
	preview_dir.mkdir(parents=True, exist_ok=True)
	cache = nsc.renderer.build_raster_cache()
	count = 0
	for position, page in enumerate(nsc.pages.selected_pages(pages), start=1):
		document = documents[page.source_document_id]
		raster = nsc.renderer.cached_rasterize(cache, document, page.original_page_index, PREVIEW_SCALE)
		filtered = nsc.filters.apply_filters(raster, page.filters)
		composed = nsc.raster.compose_preview(filtered, page.overlay_raster)
		image = nsc.raster.raster_to_image(composed).convert("RGB")
		if page.rotation:
			# Pillow rotates counter-clockwise
			image = image.rotate(-page.rotation, expand=True)
		image.save(preview_dir / f"preview_{position:03d}.jpg", format="JPEG", quality=80)
		count += 1
	return count


#============================================
def run_pipeline(args: argparse.Namespace) -> None:
	"""
	Run the full pipeline from source PDFs to the N-up output.

	Args:
		args: Parsed argparse namespace.
	"""
	print("N-up sheet composer")
	print(f"Output PDF: {args.output_path}")
	if args.manifest_path:
		print(f"Manifest: {args.manifest_path}")

	start_time = time.perf_counter()
	documents, pages, layout = load_pages(args)
	load_end = time.perf_counter()
	selected = nsc.pages.selected_pages(pages)
	print(f"Source documents: {len(documents)}")
	print(f"Pages selected: {len(selected)} of {len(pages)}")
	print(f"Pages per sheet: {layout.n_up}")
	print(f"Borders: {layout.show_borders}")
	print(f"Render scale: {args.scale} ({nsc.config.scale_to_dpi(args.scale):.0f} DPI)")

	if args.preview_dir:
		preview_count = write_previews(pathlib.Path(args.preview_dir), documents, pages)
		print(f"Previews written: {preview_count}")

	assemble_start = time.perf_counter()
	result = nsc.assemble.assemble_document(
		selected,
		documents,
		layout,
		scale=args.scale,
		workers=args.workers,
		verbose=args.verbose,
	)
	assemble_end = time.perf_counter()

	output_path = pathlib.Path(args.output_path)
	output_path.write_bytes(result.pdf_bytes)
	print(f"Sheets written: {result.sheets}")
	print(f"Pages placed: {result.pages_placed}")

	manifest_path = args.manifest_path
	if manifest_path is None:
		manifest_path = f"{output_path}.json"
	nsc.assemble.write_manifest(
		pathlib.Path(manifest_path),
		[pathlib.Path(path) for path in args.inputs],
		documents,
		selected,
		result,
		layout,
		args.scale,
	)

	total_time = time.perf_counter() - start_time
	print(
		"Timing: load={:.2f}s assemble={:.2f}s total={:.2f}s".format(
			load_end - start_time,
			assemble_end - assemble_start,
			total_time,
		)
	)
	print(f"Manifest written: {manifest_path}")


#============================================
def main(argv: list[str] | None = None) -> int:
	"""
	Main entry point.

	Returns:
		Process exit status.
	"""
	args = parse_args(argv)
	try:
		run_pipeline(args)
	except AssemblyError as error:
		print(f"Assembly failed: {error}", file=sys.stderr)
		return 1
	except ValueError as error:
		print(f"Invalid input: {error}", file=sys.stderr)
		return 2
	return 0
