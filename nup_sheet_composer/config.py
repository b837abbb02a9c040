"""
Shared configuration and constants.
"""

import dataclasses


POINTS_PER_INCH = 72.0

# ISO A4 in points
PAGE_WIDTH = 595.28
PAGE_HEIGHT = 841.89
PAGE_MARGIN = 20.0
CELL_INNER_PAD = 10.0

PREVIEW_SCALE = 0.5
PRODUCTION_SCALE = 1.5
JPEG_QUALITY = 85

BORDER_GRAY = (0.8, 0.8, 0.8)
BORDER_LINE_WIDTH = 1.0

FILTER_MIN = 0
FILTER_MAX = 100

PROGRESS_BAR_WIDTH = 20
MAX_WORKERS = 8

VALID_ROTATIONS = (0, 90, 180, 270)

# (columns, rows) per pages-per-sheet
GRID_SHAPES = {
	1: (1, 1),
	2: (1, 2),
	3: (1, 3),
	4: (2, 2),
	5: (2, 3),
	6: (2, 3),
	7: (2, 4),
	8: (2, 4),
}

DEFAULT_N_UP = 4
DEFAULT_SHOW_BORDERS = True


@dataclasses.dataclass(frozen=True)
class FilterParams:
	invert: bool = False
	grayscale: bool = False
	whiteness: float = 0
	blackness: float = 0


@dataclasses.dataclass(frozen=True)
class LayoutSettings:
	n_up: int = DEFAULT_N_UP
	show_borders: bool = DEFAULT_SHOW_BORDERS


@dataclasses.dataclass(frozen=True)
class PageDefaults:
	"""
	Settings given to every page descriptor when a document is enumerated.
	"""
	filters: FilterParams = FilterParams()
	rotation: int = 0
	is_selected: bool = True


@dataclasses.dataclass
class AssemblyResult:
	pdf_bytes: bytes
	sheets: int
	pages_placed: int
	cells_per_sheet: list[int]
	n_up: int


PLAIN_DEFAULTS = PageDefaults()

# Landscape slides rotated onto the portrait grid, printed with little ink.
INK_SAVER_DEFAULTS = PageDefaults(
	filters=FilterParams(invert=True, grayscale=True, whiteness=12, blackness=50),
	rotation=90,
)

NEUTRAL_FILTERS = FilterParams()


#============================================
def scale_to_dpi(scale: float) -> float:
	"""
	Convert a render scale factor to dots per inch.

	Args:
		scale: Render scale relative to 72 DPI.

	Returns:
		DPI value.
	"""
	return scale * POINTS_PER_INCH
