"""
Per-pixel tone and color filters.

The order matches the display filters of the interactive preview:
grayscale, invert, brightness, contrast, then clamp. Alpha is untouched.
"""

# PIP3 modules
import numpy

# local repo modules
import nup_sheet_composer as nsc
import nup_sheet_composer.config
import nup_sheet_composer.raster


FilterParams = nsc.config.FilterParams
Raster = nsc.raster.Raster

FILTER_MIN = nsc.config.FILTER_MIN
FILTER_MAX = nsc.config.FILTER_MAX

LUMA_WEIGHTS = numpy.array([0.299, 0.587, 0.114], dtype=numpy.float64)
CONTRAST_PIVOT = 128.0


#============================================
def clamp_filter_value(value: float) -> float:
	"""
	Clamp a slider value into the 0-100 range.

	Args:
		value: Slider value.

	Returns:
		Clamped value.
	"""
	return min(float(FILTER_MAX), max(float(FILTER_MIN), float(value)))


#============================================
def clamp_filters(filters: FilterParams) -> FilterParams:
	"""
	Return filters with whiteness and blackness inside 0-100.

	Args:
		filters: Filter parameters.

	Returns:
		FilterParams, the same object when already in range.
	"""
	whiteness = clamp_filter_value(filters.whiteness)
	blackness = clamp_filter_value(filters.blackness)
	if whiteness == filters.whiteness and blackness == filters.blackness:
		return filters
	return FilterParams(
		invert=filters.invert,
		grayscale=filters.grayscale,
		whiteness=whiteness,
		blackness=blackness,
	)


#============================================
def is_identity(filters: FilterParams) -> bool:
	"""
	Check whether the filters leave every pixel unchanged.
	"""
	filters = clamp_filters(filters)
	return (
		not filters.invert
		and not filters.grayscale
		and filters.whiteness == 0
		and filters.blackness == 0
	)


#============================================
def filter_channels(color: numpy.ndarray, filters: FilterParams) -> numpy.ndarray:
	"""
	Apply the tone pipeline to float color channels.

	Args:
		color: Float array shaped (..., 3).
		filters: Clamped filter parameters.

	Returns:
		New float array clamped to 0-255.
	"""
	if filters.grayscale:
		luma = color @ LUMA_WEIGHTS
		color = numpy.repeat(luma[..., numpy.newaxis], 3, axis=-1)
	if filters.invert:
		color = 255.0 - color

	brightness_mult = 1.0 + filters.whiteness / 100.0
	contrast_mult = 1.0 + filters.blackness / 100.0
	intercept = CONTRAST_PIVOT * (1.0 - contrast_mult)

	color = color * brightness_mult
	color = color * contrast_mult + intercept
	return numpy.clip(color, 0.0, 255.0)


#============================================
def apply_filters(raster: Raster, filters: FilterParams) -> Raster:
	"""
	Apply grayscale, invert, brightness and contrast to a raster.

	Args:
		raster: Source raster, left unchanged.
		filters: Filter parameters; numeric fields are clamped to 0-100.

	Returns:
		New raster with the same size and mode.
	"""
	filters = clamp_filters(filters)
	if is_identity(filters):
		return Raster(
			width=raster.width,
			height=raster.height,
			mode=raster.mode,
			pixels=raster.pixels,
		)

	source = nsc.raster.raster_to_array(raster)
	color = source[:, :, :3].astype(numpy.float64)
	color = filter_channels(color, filters)

	output = numpy.empty_like(source)
	# rint rounds half to even, like a clamped byte canvas store
	output[:, :, :3] = numpy.rint(color).astype(numpy.uint8)
	if raster.has_alpha:
		output[:, :, 3] = source[:, :, 3]
	return nsc.raster.raster_from_array(output)


#============================================
def apply_filters_to_pixel(pixel: tuple[int, ...], filters: FilterParams) -> tuple[int, ...]:
	"""
	Apply the pipeline to a single RGB or RGBA pixel.

	Args:
		pixel: Channel tuple.
		filters: Filter parameters.

	Returns:
		Filtered channel tuple.
	"""
	raster = nsc.raster.solid_raster(1, 1, pixel)
	filtered = apply_filters(raster, filters)
	return tuple(filtered.pixels)
