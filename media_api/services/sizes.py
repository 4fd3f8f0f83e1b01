from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Optional

from media_api.services.editor import acquire_editor
from media_api.services.errors import DuplicateSizeDefinition, EditorAcquisitionError, SizeAlreadyExists
from media_api.services.models import AttachmentRef, MetadataRecord, SizeDescriptor

logger = logging.getLogger(__name__)


class SizeRegistrar:
	"""
	Creates named size variants for one attachment and records them in its
	metadata. The editor and the metadata record are loaded on first use and
	kept for the lifetime of the instance.

	An attachment that does not resolve to an existing image file gives an
	inert registrar: editor acquisition fails and nothing is persisted.
	"""

	def __init__(
		self,
		attachment_id: str,
		store: Any,
		registry: Any,
		editor_factory: Callable[[Optional[Path]], Any] = acquire_editor,
		path_filter: Optional[Callable[[Path, str], Path]] = None,
	) -> None:
		self.store = store
		self.registry = registry
		self.editor_factory = editor_factory
		self.attachment: Optional[AttachmentRef] = None

		self._editor: Any = None
		self._editor_error: Optional[EditorAcquisitionError] = None
		self._metadata: Optional[MetadataRecord] = None

		if store.is_image(attachment_id):
			file_path = store.resolve_attachment(attachment_id)
			if file_path is not None and Path(file_path).exists():
				if path_filter is not None:
					file_path = path_filter(Path(file_path), attachment_id)
				self.attachment = AttachmentRef(attachment_id, Path(file_path))
		if self.attachment is None:
			logger.debug("Attachment %s is not an image on disk; registrar is inert", attachment_id)

	@property
	def attachment_id(self) -> Optional[str]:
		return self.attachment.attachment_id if self.attachment else None

	@property
	def file_path(self) -> Optional[Path]:
		return self.attachment.file_path if self.attachment else None

	@property
	def is_inert(self) -> bool:
		return self.attachment is None

	def get_editor(self) -> Any:
		if self._editor is None and self._editor_error is None:
			try:
				self._editor = self.editor_factory(self.file_path)
			except EditorAcquisitionError as e:
				self._editor_error = e
		if self._editor_error is not None:
			raise self._editor_error
		return self._editor

	def get_metadata(self) -> MetadataRecord:
		if self._metadata is None:
			if self.is_inert:
				self._metadata = MetadataRecord()
			else:
				self._metadata = self.store.load_metadata(self.attachment_id) or MetadataRecord()
		return self._metadata

	def add_size(
		self, name: str, max_w: int, max_h: int, crop: bool = False, force: bool = False
	) -> Optional[SizeDescriptor]:
		"""
		Resize the attachment and store the result as size `name`.

		Returns the stored descriptor, or None when the metadata could not be
		persisted. Raises DuplicateSizeDefinition, SizeAlreadyExists, and any
		error from the editor unchanged.
		"""
		if self.registry.has(name):
			raise DuplicateSizeDefinition(f"Image size {name!r} has been registered")

		metadata = self.get_metadata()
		if not force and name in metadata.sizes:
			raise SizeAlreadyExists(f"Image size {name!r} already exists")

		editor = self.get_editor()
		editor.resize(max_w, max_h, crop)
		resized = editor.save()

		if not self.store_image(name, resized):
			return None
		return self._metadata.sizes[name]

	def store_image(self, name: str, resized: Optional[SizeDescriptor]) -> bool:
		if resized is None or not isinstance(resized, SizeDescriptor) or not resized.file:
			return False
		self.get_metadata().sizes[name] = resized.stripped()
		ok = self.update_metadata()
		if ok:
			logger.info("Stored size %s for attachment %s (%dx%d)", name, self.attachment_id, resized.width, resized.height)
		return ok

	def update_metadata(self) -> bool:
		if self._metadata is None or self.is_inert:
			return False
		ok = bool(self.store.save_metadata(self.attachment_id, self._metadata))
		if not ok:
			logger.warning("Metadata for attachment %s was not saved", self.attachment_id)
		return ok
