"""
Output PDF writer built on a ReportLab canvas.
"""

# Standard Library
import dataclasses
import io

# PIP3 modules
import reportlab.lib.utils
import reportlab.pdfgen.canvas

# local repo modules
import nup_sheet_composer as nsc
import nup_sheet_composer.config
import nup_sheet_composer.errors
import nup_sheet_composer.raster


Raster = nsc.raster.Raster
WriterFailure = nsc.errors.WriterFailure

PAGE_WIDTH = nsc.config.PAGE_WIDTH
PAGE_HEIGHT = nsc.config.PAGE_HEIGHT
JPEG_QUALITY = nsc.config.JPEG_QUALITY
BORDER_GRAY = nsc.config.BORDER_GRAY
BORDER_LINE_WIDTH = nsc.config.BORDER_LINE_WIDTH


@dataclasses.dataclass(frozen=True)
class EmbeddedImage:
	reader: reportlab.lib.utils.ImageReader
	mask: str | None
	width: int
	height: int


class PdfSheetWriter:
	"""
	Collects sheets on a ReportLab canvas and returns the PDF bytes.

	Not safe to share between threads; one writer per assembly run.
	"""

	def __init__(self, jpeg_quality: int = JPEG_QUALITY):
		self.jpeg_quality = jpeg_quality
		self.buffer = io.BytesIO()
		self.pdf = reportlab.pdfgen.canvas.Canvas(
			self.buffer,
			pagesize=(PAGE_WIDTH, PAGE_HEIGHT),
			pageCompression=1,
		)
		self.page_count = 0
		self.finalized = False

	def create_page(self, width: float, height: float) -> None:
		if self.finalized:
			raise WriterFailure("Writer already finalized")
		if self.page_count > 0:
			self.pdf.showPage()
		self.pdf.setPageSize((width, height))
		self.page_count += 1

	def embed_raster(self, raster: Raster, transparent: bool = False) -> EmbeddedImage:
		"""
		Prepare a raster for drawing.

		Opaque rasters are stored as JPEG; transparent ones keep their
		alpha channel as a soft mask.

		Args:
			raster: Raster to embed.
			transparent: Keep the alpha channel.

		Returns:
			EmbeddedImage handle for draw_image.
		"""
		try:
			if transparent or raster.has_alpha:
				image = nsc.raster.raster_to_image(raster).convert("RGBA")
				reader = reportlab.lib.utils.ImageReader(image)
				mask = "auto"
			else:
				jpeg_bytes = nsc.raster.encode_jpeg(raster, self.jpeg_quality)
				reader = reportlab.lib.utils.ImageReader(io.BytesIO(jpeg_bytes))
				mask = None
		except (OSError, ValueError) as error:
			raise WriterFailure(f"Cannot embed raster: {error}") from error
		return EmbeddedImage(reader=reader, mask=mask, width=raster.width, height=raster.height)

	def draw_image(
		self,
		image: EmbeddedImage,
		x: float,
		y: float,
		width: float,
		height: float,
		rotation: int = 0,
	) -> None:
		"""
		Draw an image so its rotated bounding box fills the rectangle.

		Rotation turns clockwise about the rectangle center, like the
		page preview.

		Args:
			image: Handle from embed_raster.
			x: Left edge of the rotated box.
			y: Bottom edge of the rotated box.
			width: Box width on the sheet.
			height: Box height on the sheet.
			rotation: 0, 90, 180 or 270.
		"""
		if self.page_count == 0:
			raise WriterFailure("draw_image called before create_page")
		if rotation in (90, 270):
			image_width, image_height = height, width
		else:
			image_width, image_height = width, height
		try:
			self.pdf.saveState()
			self.pdf.translate(x + width / 2.0, y + height / 2.0)
			if rotation:
				self.pdf.rotate(-rotation)
			self.pdf.drawImage(
				image.reader,
				-image_width / 2.0,
				-image_height / 2.0,
				width=image_width,
				height=image_height,
				mask=image.mask,
				preserveAspectRatio=False,
				anchor="sw",
			)
			self.pdf.restoreState()
		except (OSError, ValueError, TypeError) as error:
			raise WriterFailure(f"Cannot draw image: {error}") from error

	def draw_rectangle(
		self,
		x: float,
		y: float,
		width: float,
		height: float,
		stroke_color: tuple[float, float, float] = BORDER_GRAY,
		line_width: float = BORDER_LINE_WIDTH,
	) -> None:
		if self.page_count == 0:
			raise WriterFailure("draw_rectangle called before create_page")
		try:
			self.pdf.saveState()
			self.pdf.setLineWidth(line_width)
			self.pdf.setStrokeColorRGB(stroke_color[0], stroke_color[1], stroke_color[2])
			self.pdf.rect(x, y, width, height, stroke=1, fill=0)
			self.pdf.restoreState()
		except (OSError, ValueError, TypeError) as error:
			raise WriterFailure(f"Cannot draw rectangle: {error}") from error

	def finalize(self) -> bytes:
		if self.finalized:
			raise WriterFailure("Writer already finalized")
		if self.page_count == 0:
			raise WriterFailure("No pages to write")
		try:
			self.pdf.showPage()
			self.pdf.save()
		except (OSError, ValueError, TypeError) as error:
			raise WriterFailure(f"Cannot finish PDF: {error}") from error
		self.finalized = True
		return self.buffer.getvalue()
