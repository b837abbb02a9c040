"""
Source document loading and page rasterization with PyMuPDF.
"""

# Standard Library
import dataclasses
import pathlib
import uuid

# PIP3 modules
import fitz

# local repo modules
import nup_sheet_composer as nsc
import nup_sheet_composer.config
import nup_sheet_composer.errors
import nup_sheet_composer.raster


Raster = nsc.raster.Raster
SourceUnavailable = nsc.errors.SourceUnavailable
PageIndexOutOfRange = nsc.errors.PageIndexOutOfRange
RenderFailure = nsc.errors.RenderFailure


@dataclasses.dataclass(frozen=True)
class SourceDocument:
	id: str
	name: str
	raw_bytes: bytes = dataclasses.field(repr=False)
	page_count: int


#============================================
def open_document(raw_bytes: bytes) -> fitz.Document:
	"""
	Open PDF bytes with PyMuPDF.

	Args:
		raw_bytes: Document bytes.

	Returns:
		Open fitz document; the caller closes it.
	"""
	# PyMuPDF reports open and repair failures with several exception types
	try:
		return fitz.open(stream=raw_bytes, filetype="pdf")
	except Exception as error:
		raise RenderFailure(f"Cannot open document: {error}") from error


#============================================
def source_document_from_bytes(raw_bytes: bytes, name: str = "document.pdf") -> SourceDocument:
	"""
	Build a source document and count its pages.

	Args:
		raw_bytes: PDF bytes.
		name: Display name.

	Returns:
		SourceDocument with a fresh id.
	"""
	document = open_document(raw_bytes)
	try:
		page_count = document.page_count
	finally:
		document.close()
	if page_count < 1:
		raise RenderFailure(f"{name} has no pages")
	return SourceDocument(
		id=str(uuid.uuid4()),
		name=name,
		raw_bytes=bytes(raw_bytes),
		page_count=page_count,
	)


#============================================
def load_source_document(path: pathlib.Path) -> SourceDocument:
	"""
	Load a source document from disk.

	Args:
		path: PDF path.

	Returns:
		SourceDocument.
	"""
	path = pathlib.Path(path)
	try:
		raw_bytes = path.read_bytes()
	except OSError as error:
		raise SourceUnavailable(f"Cannot read {path}: {error}") from error
	return source_document_from_bytes(raw_bytes, path.name)


#============================================
def rasterize(document: SourceDocument | None, page_index: int, scale: float) -> Raster:
	"""
	Render one page of a source document.

	Args:
		document: Source document, None when the id did not resolve.
		page_index: 0-based page index.
		scale: Render scale relative to 72 DPI, greater than zero.

	Returns:
		RGB raster of the page.
	"""
	if document is None:
		raise SourceUnavailable("Source document is not loaded")
	if scale <= 0:
		raise ValueError(f"Render scale must be positive, got {scale}")
	if page_index < 0 or page_index >= document.page_count:
		raise PageIndexOutOfRange(
			f"Page index {page_index} outside {document.name} ({document.page_count} pages)"
		)

	pdf = open_document(document.raw_bytes)
	try:
		page = pdf.load_page(page_index)
		matrix = fitz.Matrix(scale, scale)
		pixmap = page.get_pixmap(matrix=matrix, colorspace=fitz.csRGB, alpha=False)
		width = pixmap.width
		height = pixmap.height
		samples = bytes(pixmap.samples)
	except Exception as error:
		raise RenderFailure(
			f"Rendering page {page_index} of {document.name} failed: {error}"
		) from error
	finally:
		pdf.close()

	# pixmaps may pad rows; keep the tight RGB buffer
	row_bytes = width * 3
	if len(samples) != row_bytes * height:
		stride = len(samples) // height
		samples = b"".join(
			samples[row * stride:row * stride + row_bytes] for row in range(height)
		)
	return Raster(width=width, height=height, mode="RGB", pixels=samples)


#============================================
def rasterize_page(page, source_documents: dict[str, SourceDocument], scale: float) -> Raster:
	"""
	Render the source page a descriptor points at.

	Args:
		page: PageDescriptor.
		source_documents: Loaded documents keyed by id.
		scale: Render scale.

	Returns:
		RGB raster.
	"""
	document = source_documents.get(page.source_document_id)
	if document is None:
		raise SourceUnavailable(
			f"Unknown source document {page.source_document_id}",
			page_id=page.id,
		)
	return rasterize(document, page.original_page_index, scale)


#============================================
def build_raster_cache() -> dict[tuple[str, int, float], Raster]:
	"""
	Build an empty raster cache keyed by (document id, page index, scale).
	"""
	return {}


#============================================
def cached_rasterize(
	cache: dict[tuple[str, int, float], Raster],
	document: SourceDocument,
	page_index: int,
	scale: float,
) -> Raster:
	"""
	Render a page, reusing an earlier render at the same scale.

	Preview and print renders use different scales, so both stay cached
	side by side.

	Args:
		cache: Cache from build_raster_cache.
		document: Source document.
		page_index: 0-based page index.
		scale: Render scale.

	Returns:
		RGB raster.
	"""
	key = (document.id, page_index, float(scale))
	if key not in cache:
		cache[key] = rasterize(document, page_index, scale)
	return cache[key]
