"""
Pytest configuration for local imports and shared fixtures.
"""

# Standard Library
import io
import os
import sys

# PIP3 modules
import pytest
import reportlab.pdfgen.canvas

#============================================


def _ensure_repo_on_path() -> None:
	"""
	Ensure the repository root is on sys.path.
	"""
	repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
	if repo_root not in sys.path:
		sys.path.insert(0, repo_root)


_ensure_repo_on_path()
import nup_sheet_composer.renderer


WHITE = (1.0, 1.0, 1.0)
BLACK = (0.0, 0.0, 0.0)


#============================================
def build_pdf_bytes(page_specs: list[tuple[float, float, tuple[float, float, float]]]) -> bytes:
	"""
	Build a PDF whose pages are solid color fills.

	Args:
		page_specs: (width, height, rgb fill) per page, in points.

	Returns:
		PDF bytes.
	"""
	buffer = io.BytesIO()
	pdf = reportlab.pdfgen.canvas.Canvas(buffer)
	for width, height, color in page_specs:
		pdf.setPageSize((width, height))
		pdf.setFillColorRGB(color[0], color[1], color[2])
		pdf.rect(0, 0, width, height, stroke=0, fill=1)
		pdf.showPage()
	pdf.save()
	return buffer.getvalue()


class RecordingWriter:
	"""
	Writer double that records every call in order.
	"""

	def __init__(self):
		self.calls = []
		self.embedded = []

	def create_page(self, width, height):
		self.calls.append(("create_page", width, height))

	def embed_raster(self, raster, transparent=False):
		handle = len(self.embedded)
		self.embedded.append((raster, transparent))
		self.calls.append(("embed_raster", handle, transparent))
		return handle

	def draw_image(self, image, x, y, width, height, rotation=0):
		self.calls.append(("draw_image", image, x, y, width, height, rotation))

	def draw_rectangle(self, x, y, width, height, stroke_color, line_width):
		self.calls.append(("draw_rectangle", x, y, width, height, stroke_color, line_width))

	def finalize(self):
		self.calls.append(("finalize",))
		return b"%PDF-recorded"

	def calls_named(self, name: str) -> list[tuple]:
		return [call for call in self.calls if call[0] == name]


#============================================
@pytest.fixture
def make_document():
	"""
	Factory for in-memory source documents of solid color pages.
	"""
	def factory(page_specs, name="source.pdf"):
		data = build_pdf_bytes(page_specs)
		return nup_sheet_composer.renderer.source_document_from_bytes(data, name)
	return factory


#============================================
@pytest.fixture
def recording_writers():
	"""
	Writer factory plus the list of writers it has created.
	"""
	writers: list[RecordingWriter] = []

	def factory():
		writer = RecordingWriter()
		writers.append(writer)
		return writer
	return (factory, writers)
