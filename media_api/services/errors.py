from __future__ import annotations


class RegistrationError(Exception):
	"""Base class for failures while registering a size variant."""

	code = "image_error"

	def __init__(self, message: str) -> None:
		super().__init__(message)
		self.message = message


class DuplicateSizeDefinition(RegistrationError):
	code = "image_size_exists"


class SizeAlreadyExists(RegistrationError):
	code = "image_exists"


class EditorAcquisitionError(RegistrationError):
	code = "invalid_image"


class ResizeOrSaveError(RegistrationError):
	code = "image_resize_error"


class SaveError(ResizeOrSaveError):
	code = "image_save_error"
