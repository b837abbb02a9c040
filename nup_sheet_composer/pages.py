"""
Page descriptors and the session edits applied to them.

Descriptors are frozen; every edit returns a new list so an assembly run
can hold a snapshot while the session keeps changing.
"""

# Standard Library
import dataclasses
import uuid

# local repo modules
import nup_sheet_composer as nsc
import nup_sheet_composer.config
import nup_sheet_composer.filters
import nup_sheet_composer.raster
import nup_sheet_composer.renderer


FilterParams = nsc.config.FilterParams
LayoutSettings = nsc.config.LayoutSettings
PageDefaults = nsc.config.PageDefaults
Raster = nsc.raster.Raster
SourceDocument = nsc.renderer.SourceDocument

VALID_ROTATIONS = nsc.config.VALID_ROTATIONS
NEUTRAL_FILTERS = nsc.config.NEUTRAL_FILTERS
FILTER_FIELDS = ("invert", "grayscale", "whiteness", "blackness")
PRESET_NAMES = ("standard", "smart_grid", "ink_saver")


@dataclasses.dataclass(frozen=True)
class PageDescriptor:
	id: str
	source_document_id: str
	original_page_index: int
	is_selected: bool = True
	filters: FilterParams = NEUTRAL_FILTERS
	rotation: int = 0
	overlay_raster: Raster | None = dataclasses.field(default=None, repr=False)


#============================================
def normalize_rotation(rotation: int) -> int:
	"""
	Reduce a rotation to one of 0, 90, 180, 270.

	Args:
		rotation: Rotation in degrees, a multiple of 90.

	Returns:
		Normalized rotation.
	"""
	normalized = int(rotation) % 360
	if normalized not in VALID_ROTATIONS:
		raise ValueError(f"Rotation must be a multiple of 90 degrees, got {rotation}")
	return normalized


#============================================
def enumerate_pages(
	document: SourceDocument,
	defaults: PageDefaults,
) -> list[PageDescriptor]:
	"""
	Create one descriptor per page of a source document.

	Args:
		document: Loaded source document.
		defaults: Filters, rotation and selection for new pages.

	Returns:
		Descriptors in page order.
	"""
	rotation = normalize_rotation(defaults.rotation)
	filters = nsc.filters.clamp_filters(defaults.filters)
	pages: list[PageDescriptor] = []
	for index in range(document.page_count):
		pages.append(
			PageDescriptor(
				id=str(uuid.uuid4()),
				source_document_id=document.id,
				original_page_index=index,
				is_selected=defaults.is_selected,
				filters=filters,
				rotation=rotation,
			)
		)
	return pages


#============================================
def find_page_index(pages: list[PageDescriptor], page_id: str) -> int:
	"""
	Find the position of a descriptor by id.
	"""
	for index, page in enumerate(pages):
		if page.id == page_id:
			return index
	raise KeyError(f"Unknown page id: {page_id}")


#============================================
def replace_page(pages: list[PageDescriptor], page_id: str, **changes) -> list[PageDescriptor]:
	"""
	Return a new list with one descriptor changed.

	Args:
		pages: Current descriptors.
		page_id: Descriptor to change.
		changes: Fields to replace.

	Returns:
		New descriptor list.
	"""
	index = find_page_index(pages, page_id)
	updated = list(pages)
	updated[index] = dataclasses.replace(pages[index], **changes)
	return updated


#============================================
def selected_pages(pages: list[PageDescriptor]) -> list[PageDescriptor]:
	"""
	Selected descriptors in their current order.
	"""
	return [page for page in pages if page.is_selected]


#============================================
def toggle_selection(pages: list[PageDescriptor], page_id: str) -> list[PageDescriptor]:
	index = find_page_index(pages, page_id)
	return replace_page(pages, page_id, is_selected=not pages[index].is_selected)


#============================================
def toggle_select_all(pages: list[PageDescriptor]) -> list[PageDescriptor]:
	"""
	Deselect everything when all pages are selected, else select all.
	"""
	all_selected = all(page.is_selected for page in pages)
	return [dataclasses.replace(page, is_selected=not all_selected) for page in pages]


#============================================
def update_filters(pages: list[PageDescriptor], field: str, value) -> list[PageDescriptor]:
	"""
	Set one filter field on every selected page.

	Args:
		pages: Current descriptors.
		field: One of invert, grayscale, whiteness, blackness.
		value: New value; slider values are clamped to 0-100.

	Returns:
		New descriptor list.
	"""
	if field not in FILTER_FIELDS:
		raise ValueError(f"Unknown filter field: {field}")
	if field in ("whiteness", "blackness"):
		value = nsc.filters.clamp_filter_value(value)
	else:
		value = bool(value)
	updated: list[PageDescriptor] = []
	for page in pages:
		if not page.is_selected:
			updated.append(page)
			continue
		filters = dataclasses.replace(page.filters, **{field: value})
		updated.append(dataclasses.replace(page, filters=filters))
	return updated


#============================================
def reset_filters(pages: list[PageDescriptor]) -> list[PageDescriptor]:
	"""
	Restore neutral filters on every selected page.
	"""
	return [
		dataclasses.replace(page, filters=NEUTRAL_FILTERS) if page.is_selected else page
		for page in pages
	]


#============================================
def rotate_page(pages: list[PageDescriptor], page_id: str) -> list[PageDescriptor]:
	"""
	Turn one page a quarter clockwise.
	"""
	index = find_page_index(pages, page_id)
	rotation = (pages[index].rotation + 90) % 360
	return replace_page(pages, page_id, rotation=rotation)


#============================================
def set_overlay(
	pages: list[PageDescriptor],
	page_id: str,
	overlay: Raster | None,
) -> list[PageDescriptor]:
	"""
	Replace (or clear) the annotation overlay of one page.
	"""
	return replace_page(pages, page_id, overlay_raster=overlay)


#============================================
def move_page(pages: list[PageDescriptor], page_id: str, new_index: int) -> list[PageDescriptor]:
	"""
	Move one descriptor to a new position, shifting the others.

	Args:
		pages: Current descriptors.
		page_id: Descriptor to move.
		new_index: Target position, clamped to the list bounds.

	Returns:
		Reordered descriptor list.
	"""
	old_index = find_page_index(pages, page_id)
	new_index = max(0, min(new_index, len(pages) - 1))
	updated = list(pages)
	page = updated.pop(old_index)
	updated.insert(new_index, page)
	return updated


#============================================
def apply_preset(
	name: str,
	layout: LayoutSettings,
	pages: list[PageDescriptor],
) -> tuple[LayoutSettings, list[PageDescriptor]]:
	"""
	Apply one of the one-click layout presets.

	Args:
		name: standard, smart_grid or ink_saver.
		layout: Current layout settings.
		pages: Current descriptors.

	Returns:
		Tuple of (layout, pages).
	"""
	if name == "standard":
		# manual rotation and filter edits are kept
		return (LayoutSettings(n_up=1, show_borders=False), list(pages))
	if name == "smart_grid":
		rotated = [dataclasses.replace(page, rotation=90) for page in pages]
		return (LayoutSettings(n_up=4, show_borders=True), rotated)
	if name == "ink_saver":
		filters = FilterParams(invert=True, grayscale=True, whiteness=10, blackness=50)
		adjusted = [dataclasses.replace(page, rotation=90, filters=filters) for page in pages]
		return (LayoutSettings(n_up=4, show_borders=True), adjusted)
	raise ValueError(f"Unknown preset: {name} (expected one of {', '.join(PRESET_NAMES)})")


#============================================
def parse_page_ranges(text: str, total: int) -> list[int]:
	"""
	Parse a 1-based page list such as "5,1-3" into 0-based indices.

	The order of the text is kept, so the list both selects and orders.

	Args:
		text: Comma separated pages and ranges; "all" selects everything.
		total: Number of pages available.

	Returns:
		List of 0-based indices.
	"""
	text = text.strip()
	if not text or text.lower() == "all":
		return list(range(total))
	indices: list[int] = []
	for token in text.split(","):
		token = token.strip()
		if not token:
			continue
		if "-" in token:
			start_text, _, end_text = token.partition("-")
			start = int(start_text)
			end = int(end_text)
			step = 1 if end >= start else -1
			numbers = list(range(start, end + step, step))
		else:
			numbers = [int(token)]
		for number in numbers:
			if number < 1 or number > total:
				raise ValueError(f"Page {number} out of range (1..{total})")
			if number - 1 in indices:
				raise ValueError(f"Page {number} listed more than once")
			indices.append(number - 1)
	return indices
