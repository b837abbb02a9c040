"""
N-up grid layout: chunking, cell geometry and image fit.

Coordinates are PDF points with the origin at the bottom-left corner of
the sheet and y increasing upward. Row 0 is the top row.
"""

# Standard Library
import dataclasses

# local repo modules
import nup_sheet_composer as nsc
import nup_sheet_composer.config


LayoutSettings = nsc.config.LayoutSettings

PAGE_WIDTH = nsc.config.PAGE_WIDTH
PAGE_HEIGHT = nsc.config.PAGE_HEIGHT
PAGE_MARGIN = nsc.config.PAGE_MARGIN
CELL_INNER_PAD = nsc.config.CELL_INNER_PAD
GRID_SHAPES = nsc.config.GRID_SHAPES
VALID_ROTATIONS = nsc.config.VALID_ROTATIONS


@dataclasses.dataclass(frozen=True)
class CellBox:
	slot: int
	column: int
	row: int
	x: float
	y: float
	width: float
	height: float

	@property
	def center(self) -> tuple[float, float]:
		return (self.x + self.width / 2.0, self.y + self.height / 2.0)


@dataclasses.dataclass(frozen=True)
class ImagePlacement:
	x: float
	y: float
	width: float
	height: float
	scale: float
	rotation: int


@dataclasses.dataclass
class CellPlan:
	page: object
	cell: CellBox


@dataclasses.dataclass
class SheetPlan:
	index: int
	columns: int
	rows: int
	cells: list[CellPlan]


#============================================
def grid_shape(n_up: int) -> tuple[int, int]:
	"""
	Look up the grid for a pages-per-sheet count.

	Args:
		n_up: Pages per sheet, 1-8.

	Returns:
		Tuple of (columns, rows).
	"""
	if n_up not in GRID_SHAPES:
		raise ValueError(f"Pages per sheet must be 1-8, got {n_up}")
	return GRID_SHAPES[n_up]


#============================================
def chunk_pages(pages: list, n_up: int) -> list[list]:
	"""
	Split an ordered page list into consecutive sheet-sized groups.

	Args:
		pages: Ordered pages.
		n_up: Pages per sheet.

	Returns:
		List of groups; the last group may be shorter.
	"""
	if n_up < 1:
		raise ValueError(f"Pages per sheet must be positive, got {n_up}")
	return [pages[start:start + n_up] for start in range(0, len(pages), n_up)]


#============================================
def sheet_count(page_total: int, n_up: int) -> int:
	"""
	Number of sheets needed for page_total pages.
	"""
	return (page_total + n_up - 1) // n_up


#============================================
def compute_cell_box(
	slot: int,
	columns: int,
	rows: int,
	page_width: float = PAGE_WIDTH,
	page_height: float = PAGE_HEIGHT,
	margin: float = PAGE_MARGIN,
) -> CellBox:
	"""
	Compute the bounds of one grid cell.

	Args:
		slot: Cell index within the sheet, filled left to right, top to bottom.
		columns: Grid columns.
		rows: Grid rows.
		page_width: Sheet width in points.
		page_height: Sheet height in points.
		margin: Outer margin in points.

	Returns:
		CellBox with its bottom-left corner and size.
	"""
	if slot < 0 or slot >= columns * rows:
		raise ValueError(f"Slot {slot} outside a {columns}x{rows} grid")
	cell_width = (page_width - 2.0 * margin) / columns
	cell_height = (page_height - 2.0 * margin) / rows
	column = slot % columns
	row = slot // columns
	cell_x = margin + column * cell_width
	cell_y = page_height - margin - (row + 1) * cell_height
	return CellBox(
		slot=slot,
		column=column,
		row=row,
		x=cell_x,
		y=cell_y,
		width=cell_width,
		height=cell_height,
	)


#============================================
def effective_size(width: float, height: float, rotation: int) -> tuple[float, float]:
	"""
	Size of an image's bounding box after rotation.

	Args:
		width: Unrotated width.
		height: Unrotated height.
		rotation: 0, 90, 180 or 270.

	Returns:
		Tuple of (width, height) as seen on the sheet.
	"""
	if rotation not in VALID_ROTATIONS:
		raise ValueError(f"Rotation must be one of {VALID_ROTATIONS}, got {rotation}")
	if rotation in (90, 270):
		return (height, width)
	return (width, height)


#============================================
def fit_image(
	cell: CellBox,
	width: float,
	height: float,
	rotation: int = 0,
	inner_pad: float = CELL_INNER_PAD,
) -> ImagePlacement:
	"""
	Scale an image to fit inside a cell and center it.

	Args:
		cell: Target cell.
		width: Image width before rotation.
		height: Image height before rotation.
		rotation: Rotation applied at draw time.
		inner_pad: Total padding kept free on each axis.

	Returns:
		ImagePlacement of the rotated bounding box.
	"""
	if width <= 0 or height <= 0:
		raise ValueError(f"Image size must be positive, got {width}x{height}")
	box_width, box_height = effective_size(width, height, rotation)
	scale_x = (cell.width - inner_pad) / box_width
	scale_y = (cell.height - inner_pad) / box_height
	scale = min(scale_x, scale_y)
	draw_width = box_width * scale
	draw_height = box_height * scale
	draw_x = cell.x + (cell.width - draw_width) / 2.0
	draw_y = cell.y + (cell.height - draw_height) / 2.0
	return ImagePlacement(
		x=draw_x,
		y=draw_y,
		width=draw_width,
		height=draw_height,
		scale=scale,
		rotation=rotation,
	)


#============================================
def plan_sheets(
	pages: list,
	layout: LayoutSettings,
	page_width: float = PAGE_WIDTH,
	page_height: float = PAGE_HEIGHT,
	margin: float = PAGE_MARGIN,
) -> list[SheetPlan]:
	"""
	Assign ordered pages to sheets and cells.

	Only occupied cells are planned; the tail of a short last sheet
	stays empty.

	Args:
		pages: Ordered selected pages.
		layout: Layout settings.
		page_width: Sheet width in points.
		page_height: Sheet height in points.
		margin: Outer margin in points.

	Returns:
		List of SheetPlan entries, one per physical sheet.
	"""
	columns, rows = grid_shape(layout.n_up)
	sheets: list[SheetPlan] = []
	for sheet_index, chunk in enumerate(chunk_pages(pages, layout.n_up)):
		cells: list[CellPlan] = []
		for slot, page in enumerate(chunk):
			cell = compute_cell_box(slot, columns, rows, page_width, page_height, margin)
			cells.append(CellPlan(page=page, cell=cell))
		sheets.append(SheetPlan(index=sheet_index, columns=columns, rows=rows, cells=cells))
	return sheets
