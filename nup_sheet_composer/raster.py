"""
Raster type and conversions between Pillow, numpy and encoded images.
"""

# Standard Library
import base64
import binascii
import dataclasses
import io

# PIP3 modules
import numpy
import PIL.Image

# local repo modules
import nup_sheet_composer as nsc
import nup_sheet_composer.config


JPEG_QUALITY = nsc.config.JPEG_QUALITY

CHANNELS_BY_MODE = {
	"RGB": 3,
	"RGBA": 4,
}


@dataclasses.dataclass(frozen=True)
class Raster:
	width: int
	height: int
	mode: str
	pixels: bytes

	def __post_init__(self):
		if self.mode not in CHANNELS_BY_MODE:
			raise ValueError(f"Unsupported raster mode: {self.mode}")
		if self.width <= 0 or self.height <= 0:
			raise ValueError(f"Raster size must be positive: {self.width}x{self.height}")
		expected = self.width * self.height * CHANNELS_BY_MODE[self.mode]
		if len(self.pixels) != expected:
			raise ValueError(
				f"Raster buffer holds {len(self.pixels)} bytes, expected {expected}"
			)

	@property
	def channels(self) -> int:
		return CHANNELS_BY_MODE[self.mode]

	@property
	def has_alpha(self) -> bool:
		return self.mode == "RGBA"


#============================================
def raster_from_image(image: PIL.Image.Image) -> Raster:
	"""
	Build a raster from a Pillow image.

	Args:
		image: Pillow image in any mode.

	Returns:
		RGB raster, or RGBA when the image carries transparency.
	"""
	if image.mode in ("RGBA", "LA", "PA") or "transparency" in image.info:
		converted = image.convert("RGBA")
	else:
		converted = image.convert("RGB")
	return Raster(
		width=converted.width,
		height=converted.height,
		mode=converted.mode,
		pixels=converted.tobytes(),
	)


#============================================
def raster_to_image(raster: Raster) -> PIL.Image.Image:
	"""
	Build a Pillow image from a raster.

	Args:
		raster: Raster to convert.

	Returns:
		Pillow image of the same mode.
	"""
	return PIL.Image.frombytes(raster.mode, (raster.width, raster.height), raster.pixels)


#============================================
def raster_to_array(raster: Raster) -> numpy.ndarray:
	"""
	View raster pixels as a read-only array.

	Args:
		raster: Raster to view.

	Returns:
		uint8 array shaped (height, width, channels).
	"""
	array = numpy.frombuffer(raster.pixels, dtype=numpy.uint8)
	return array.reshape((raster.height, raster.width, raster.channels))


#============================================
def raster_from_array(array: numpy.ndarray) -> Raster:
	"""
	Build a raster from a (height, width, channels) uint8 array.

	Args:
		array: Pixel array with 3 or 4 channels.

	Returns:
		Raster owning a copy of the pixels.
	"""
	if array.ndim != 3 or array.shape[2] not in (3, 4):
		raise ValueError(f"Expected an RGB or RGBA array, got shape {array.shape}")
	mode = "RGBA" if array.shape[2] == 4 else "RGB"
	data = numpy.ascontiguousarray(array, dtype=numpy.uint8).tobytes()
	return Raster(width=array.shape[1], height=array.shape[0], mode=mode, pixels=data)


#============================================
def solid_raster(width: int, height: int, color: tuple[int, ...]) -> Raster:
	"""
	Build a raster filled with one color.

	Args:
		width: Width in pixels.
		height: Height in pixels.
		color: RGB or RGBA tuple.

	Returns:
		Raster of the given size.
	"""
	mode = "RGBA" if len(color) == 4 else "RGB"
	return Raster(width=width, height=height, mode=mode, pixels=bytes(color) * (width * height))


#============================================
def decode_overlay(data: bytes | str) -> Raster:
	"""
	Decode an annotation overlay image.

	The annotation tool hands over either PNG bytes or a base64 data URL.

	Args:
		data: Encoded image bytes or a "data:image/png;base64,..." string.

	Returns:
		RGBA raster.
	"""
	if isinstance(data, str):
		if not data.startswith("data:") or "," not in data:
			raise ValueError("Overlay string is not a data URL")
		payload = data.split(",", 1)[1]
		try:
			data = base64.b64decode(payload, validate=True)
		except binascii.Error as error:
			raise ValueError("Overlay data URL is not valid base64") from error
	try:
		image = PIL.Image.open(io.BytesIO(data))
		image.load()
	except OSError as error:
		raise ValueError("Overlay bytes are not a readable image") from error
	return raster_from_image(image.convert("RGBA"))


#============================================
def encode_jpeg(raster: Raster, quality: int = JPEG_QUALITY) -> bytes:
	"""
	Encode an opaque raster as JPEG.

	Args:
		raster: Raster to encode; alpha is dropped.
		quality: JPEG quality 1-95.

	Returns:
		JPEG bytes.
	"""
	image = raster_to_image(raster).convert("RGB")
	buffer = io.BytesIO()
	image.save(buffer, format="JPEG", quality=quality)
	return buffer.getvalue()


#============================================
def compose_preview(base: Raster, overlay: Raster | None) -> Raster:
	"""
	Composite an annotation overlay onto a preview raster.

	The overlay is stretched to the base size, matching how the
	annotation layer sits on top of the page thumbnail.

	Args:
		base: Filtered page raster.
		overlay: Optional RGBA overlay.

	Returns:
		New raster in the base raster's mode.
	"""
	if overlay is None:
		return base
	base_image = raster_to_image(base).convert("RGBA")
	overlay_image = raster_to_image(overlay).convert("RGBA")
	if overlay_image.size != base_image.size:
		overlay_image = overlay_image.resize(base_image.size, PIL.Image.Resampling.LANCZOS)
	composed = PIL.Image.alpha_composite(base_image, overlay_image)
	return raster_from_image(composed.convert(base.mode))
