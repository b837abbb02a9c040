"""
Document assembly: render, filter and place every selected page.
"""

# Standard Library
import concurrent.futures
import enum
import json
import pathlib

# local repo modules
import nup_sheet_composer as nsc
import nup_sheet_composer.config
import nup_sheet_composer.errors
import nup_sheet_composer.filters
import nup_sheet_composer.layout
import nup_sheet_composer.raster
import nup_sheet_composer.renderer
import nup_sheet_composer.writer


AssemblyResult = nsc.config.AssemblyResult
LayoutSettings = nsc.config.LayoutSettings
Raster = nsc.raster.Raster
SourceDocument = nsc.renderer.SourceDocument
AssemblyError = nsc.errors.AssemblyError
EmptySelection = nsc.errors.EmptySelection
RenderFailure = nsc.errors.RenderFailure
WriterFailure = nsc.errors.WriterFailure

PAGE_WIDTH = nsc.config.PAGE_WIDTH
PAGE_HEIGHT = nsc.config.PAGE_HEIGHT
CELL_INNER_PAD = nsc.config.CELL_INNER_PAD
PRODUCTION_SCALE = nsc.config.PRODUCTION_SCALE
BORDER_GRAY = nsc.config.BORDER_GRAY
BORDER_LINE_WIDTH = nsc.config.BORDER_LINE_WIDTH
PROGRESS_BAR_WIDTH = nsc.config.PROGRESS_BAR_WIDTH
MAX_WORKERS = nsc.config.MAX_WORKERS


class AssemblyState(enum.Enum):
	IDLE = "idle"
	RENDERING = "rendering"
	ASSEMBLED = "assembled"
	FINALIZED = "finalized"
	FAILED = "failed"


ALLOWED_TRANSITIONS = {
	AssemblyState.IDLE: {AssemblyState.RENDERING, AssemblyState.FAILED},
	AssemblyState.RENDERING: {
		AssemblyState.RENDERING,
		AssemblyState.ASSEMBLED,
		AssemblyState.FAILED,
	},
	AssemblyState.ASSEMBLED: {AssemblyState.FINALIZED, AssemblyState.FAILED},
	AssemblyState.FINALIZED: set(),
	AssemblyState.FAILED: set(),
}


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


#============================================
def render_cell(page, source_documents: dict[str, SourceDocument], scale: float) -> Raster:
	"""
	Render and filter the base raster of one cell.

	Args:
		page: PageDescriptor.
		source_documents: Loaded documents keyed by id.
		scale: Render scale.

	Returns:
		Filtered raster.
	"""
	raster = nsc.renderer.rasterize_page(page, source_documents, scale)
	return nsc.filters.apply_filters(raster, page.filters)


class DocumentAssembler:
	"""
	One assembly run over a snapshot of pages.

	States move IDLE -> RENDERING -> ASSEMBLED -> FINALIZED, or to FAILED.
	"""

	def __init__(
		self,
		source_documents: dict[str, SourceDocument],
		layout: LayoutSettings,
		scale: float = PRODUCTION_SCALE,
		workers: int = 1,
		writer_factory=None,
		verbose: bool = False,
	):
		if scale <= 0:
			raise ValueError(f"Render scale must be positive, got {scale}")
		self.source_documents = dict(source_documents)
		self.layout = layout
		self.scale = scale
		self.workers = max(1, min(int(workers), MAX_WORKERS))
		self.writer_factory = writer_factory or nsc.writer.PdfSheetWriter
		self.verbose = verbose
		self.state = AssemblyState.IDLE
		self.position: tuple[int, int] | None = None
		self.history: list[AssemblyState] = [AssemblyState.IDLE]
		self.error: AssemblyError | None = None

	def transition(self, state: AssemblyState) -> None:
		if state not in ALLOWED_TRANSITIONS[self.state]:
			raise RuntimeError(f"Illegal assembly transition {self.state.name} -> {state.name}")
		self.state = state
		if self.history[-1] != state:
			self.history.append(state)

	def fail(self, error: AssemblyError, page=None) -> None:
		if page is not None and error.page_id is None:
			error.page_id = page.id
		self.error = error
		self.transition(AssemblyState.FAILED)

	def render_sheet_cells(self, sheet) -> list[Raster]:
		"""
		Render every occupied cell of a sheet, in cell order.

		Args:
			sheet: SheetPlan.

		Returns:
			Filtered rasters aligned with sheet.cells.
		"""
		pages = [cell_plan.page for cell_plan in sheet.cells]
		if self.workers == 1 or len(pages) == 1:
			rasters: list[Raster] = []
			for slot, page in enumerate(pages):
				self.position = (sheet.index, slot)
				self.transition(AssemblyState.RENDERING)
				try:
					rasters.append(render_cell(page, self.source_documents, self.scale))
				except AssemblyError as error:
					self.fail(error, page)
					raise
			return rasters

		self.position = (sheet.index, 0)
		self.transition(AssemblyState.RENDERING)
		with concurrent.futures.ThreadPoolExecutor(max_workers=min(self.workers, len(pages))) as executor:
			futures = [
				executor.submit(render_cell, page, self.source_documents, self.scale)
				for page in pages
			]
			rasters = []
			# consume in cell order so the first failing cell is reported
			for slot, (page, future) in enumerate(zip(pages, futures)):
				self.position = (sheet.index, slot)
				try:
					rasters.append(future.result())
				except AssemblyError as error:
					for pending in futures[slot + 1:]:
						pending.cancel()
					self.fail(error, page)
					raise
		return rasters

	def draw_sheet(self, writer, sheet, rasters: list[Raster]) -> None:
		writer.create_page(PAGE_WIDTH, PAGE_HEIGHT)
		for cell_plan, raster in zip(sheet.cells, rasters):
			page = cell_plan.page
			cell = cell_plan.cell
			try:
				placement = nsc.layout.fit_image(
					cell,
					raster.width,
					raster.height,
					page.rotation,
					CELL_INNER_PAD,
				)
			except ValueError as error:
				raise RenderFailure(f"Cannot place page: {error}", page_id=page.id) from error
			image = writer.embed_raster(raster)
			writer.draw_image(
				image,
				placement.x,
				placement.y,
				placement.width,
				placement.height,
				placement.rotation,
			)
			if page.overlay_raster is not None:
				overlay = writer.embed_raster(page.overlay_raster, transparent=True)
				writer.draw_image(
					overlay,
					placement.x,
					placement.y,
					placement.width,
					placement.height,
					placement.rotation,
				)
			if self.layout.show_borders:
				writer.draw_rectangle(
					cell.x,
					cell.y,
					cell.width,
					cell.height,
					BORDER_GRAY,
					BORDER_LINE_WIDTH,
				)

	def run(self, pages: list) -> AssemblyResult:
		"""
		Assemble the output PDF.

		Args:
			pages: Pages in their current order; unselected ones are ignored.

		Returns:
			AssemblyResult with the PDF bytes.
		"""
		if self.state != AssemblyState.IDLE:
			raise RuntimeError("An assembler instance runs only once")
		active_pages = [page for page in pages if page.is_selected]
		if not active_pages:
			error = EmptySelection("No pages selected")
			self.fail(error)
			raise error
		page_ids = [page.id for page in active_pages]
		if len(set(page_ids)) != len(page_ids):
			raise ValueError("A page descriptor appears more than once")

		sheets = nsc.layout.plan_sheets(active_pages, self.layout)
		writer = self.writer_factory()
		if self.verbose:
			print_progress("Sheets", 0, len(sheets))
		for sheet in sheets:
			rasters = self.render_sheet_cells(sheet)
			try:
				self.draw_sheet(writer, sheet, rasters)
			except AssemblyError as error:
				self.fail(error)
				raise
			if self.verbose:
				print_progress("Sheets", sheet.index + 1, len(sheets))
		if self.verbose:
			print()
		self.transition(AssemblyState.ASSEMBLED)

		try:
			pdf_bytes = writer.finalize()
		except WriterFailure as error:
			self.fail(error)
			raise
		self.transition(AssemblyState.FINALIZED)
		return AssemblyResult(
			pdf_bytes=pdf_bytes,
			sheets=len(sheets),
			pages_placed=len(active_pages),
			cells_per_sheet=[len(sheet.cells) for sheet in sheets],
			n_up=self.layout.n_up,
		)


#============================================
def assemble_document(
	ordered_selected_pages: list,
	source_documents: dict[str, SourceDocument],
	layout: LayoutSettings,
	scale: float = PRODUCTION_SCALE,
	workers: int = 1,
	writer_factory=None,
	verbose: bool = False,
) -> AssemblyResult:
	"""
	Assemble selected pages into an N-up PDF and report counts.

	Args:
		ordered_selected_pages: Pages in print order.
		source_documents: Loaded documents keyed by id.
		layout: Layout settings.
		scale: Production render scale.
		workers: Parallel renders per sheet.
		writer_factory: Callable returning a writer, PdfSheetWriter by default.
		verbose: Print sheet progress.

	Returns:
		AssemblyResult.
	"""
	assembler = DocumentAssembler(
		source_documents,
		layout,
		scale=scale,
		workers=workers,
		writer_factory=writer_factory,
		verbose=verbose,
	)
	return assembler.run(ordered_selected_pages)


#============================================
def assemble(
	ordered_selected_pages: list,
	source_documents: dict[str, SourceDocument],
	layout: LayoutSettings,
) -> bytes:
	"""
	Assemble selected pages into an N-up PDF.

	Args:
		ordered_selected_pages: Pages in print order.
		source_documents: Loaded documents keyed by id.
		layout: Layout settings.

	Returns:
		PDF bytes.
	"""
	result = assemble_document(ordered_selected_pages, source_documents, layout)
	return result.pdf_bytes


#============================================
def write_manifest(
	manifest_path: pathlib.Path,
	inputs: list[pathlib.Path],
	source_documents: dict[str, SourceDocument],
	pages: list,
	result: AssemblyResult,
	layout: LayoutSettings,
	scale: float,
) -> None:
	"""
	Write a manifest JSON file.

	Args:
		manifest_path: Output path.
		inputs: Input PDF paths.
		source_documents: Loaded documents keyed by id.
		pages: Pages in print order.
		result: Assembly result.
		layout: Layout settings.
		scale: Production render scale.
	"""
	page_entries = []
	for page in pages:
		document = source_documents[page.source_document_id]
		page_entries.append(
			{
				"source": document.name,
				"page": page.original_page_index + 1,
				"rotation": page.rotation,
				"invert": page.filters.invert,
				"grayscale": page.filters.grayscale,
				"whiteness": page.filters.whiteness,
				"blackness": page.filters.blackness,
				"overlay": page.overlay_raster is not None,
			}
		)
	data = {
		"inputs": [str(path) for path in inputs],
		"page_counts": {
			document.name: document.page_count for document in source_documents.values()
		},
		"pages": page_entries,
		"sheets": result.sheets,
		"pages_placed": result.pages_placed,
		"cells_per_sheet": result.cells_per_sheet,
		"layout": {
			"n_up": layout.n_up,
			"show_borders": layout.show_borders,
			"page_width": PAGE_WIDTH,
			"page_height": PAGE_HEIGHT,
			"margin": nsc.config.PAGE_MARGIN,
			"inner_pad": CELL_INNER_PAD,
			"render_scale": scale,
		},
	}
	with manifest_path.open("w", encoding="utf-8") as handle:
		json.dump(data, handle, indent=2, sort_keys=True)
