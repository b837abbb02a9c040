"""
Error kinds raised while rendering and assembling sheets.
"""


class AssemblyError(Exception):
	"""
	Base class for every failure of an assembly request.

	The failing page descriptor id is attached as page_id when known.
	"""

	def __init__(self, message: str, page_id: str | None = None):
		super().__init__(message)
		self.message = message
		self.page_id = page_id

	def __str__(self) -> str:
		if self.page_id is None:
			return self.message
		return f"{self.message} (page {self.page_id})"


class SourceUnavailable(AssemblyError):
	pass


class PageIndexOutOfRange(AssemblyError):
	pass


class RenderFailure(AssemblyError):
	pass


class EmptySelection(AssemblyError):
	pass


class WriterFailure(AssemblyError):
	pass
