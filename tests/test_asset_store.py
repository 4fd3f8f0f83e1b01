import tempfile
import unittest
from pathlib import Path

from media_api.services.asset_store import AssetStore, SizeRegistry
from media_api.services.models import MetadataRecord, SizeDescriptor


class AssetStoreTests(unittest.TestCase):
	def setUp(self):
		self._tmp = tempfile.TemporaryDirectory()
		root = Path(self._tmp.name)
		self.store = AssetStore(metadata_dir=root / "meta", storage_root=root / "files")

	def tearDown(self):
		self._tmp.cleanup()

	def test_add_and_resolve(self):
		aid = self.store.add_attachment("My Photo.JPG", b"data", "image/jpeg")
		path = self.store.resolve_attachment(aid)
		self.assertTrue(aid.startswith("my-photo_"))
		self.assertEqual(path.read_bytes(), b"data")
		self.assertEqual(path.name, "my-photo.jpg")
		self.assertTrue(self.store.is_image(aid))
		self.assertEqual(self.store.attachment_ids(), [aid])

	def test_non_image_mime(self):
		aid = self.store.add_attachment("notes.txt", b"hello")
		self.assertFalse(self.store.is_image(aid))

	def test_unknown_attachment(self):
		self.assertIsNone(self.store.resolve_attachment("nope"))
		self.assertIsNone(self.store.resolve_attachment("../etc/passwd"))
		self.assertFalse(self.store.is_image("nope"))
		self.assertEqual(self.store.load_metadata("nope"), MetadataRecord())
		self.assertFalse(self.store.save_metadata("nope", MetadataRecord()))

	def test_metadata_round_trip_keeps_unknown_keys(self):
		aid = self.store.add_attachment("a.png", b"x", "image/png")
		record = MetadataRecord(width=10, height=5, file="a.png", extra={"hwstring_small": "height='5'"})
		record.sizes["thumb"] = SizeDescriptor("a-4x2.png", 4, 2, "image/png", path="/abs/a-4x2.png")
		self.assertTrue(self.store.save_metadata(aid, record))
		loaded = self.store.load_metadata(aid)
		self.assertEqual(loaded.sizes["thumb"], SizeDescriptor("a-4x2.png", 4, 2, "image/png"))
		self.assertEqual(loaded.extra, {"hwstring_small": "height='5'"})
		self.assertEqual(
			loaded.to_dict()["sizes"]["thumb"],
			{"file": "a-4x2.png", "width": 4, "height": 2, "mime-type": "image/png"},
		)


class SizeRegistryTests(unittest.TestCase):
	def test_register_and_lookup(self):
		registry = SizeRegistry({"thumbnail": [150, 150, True], "medium": [300, 300]})
		self.assertEqual(registry.names(), {"thumbnail", "medium"})
		self.assertEqual(registry.get("medium"), (300, 300, False))
		self.assertTrue(registry.has("thumbnail"))
		self.assertTrue(registry.unregister("thumbnail"))
		self.assertFalse(registry.unregister("thumbnail"))
		self.assertFalse(registry.has("thumbnail"))


class DamagedDocumentTests(unittest.TestCase):
	def setUp(self):
		self._tmp = tempfile.TemporaryDirectory()
		root = Path(self._tmp.name)
		self.store = AssetStore(metadata_dir=root / "meta", storage_root=root / "files")
		self.aid = self.store.add_attachment("a.png", b"x", "image/png")
		(root / "meta" / f"{self.aid}.json").write_text("{not json", encoding="utf-8")

	def tearDown(self):
		self._tmp.cleanup()

	def test_corrupt_document_reads_as_missing(self):
		self.assertIsNone(self.store.resolve_attachment(self.aid))
		self.assertFalse(self.store.is_image(self.aid))
		self.assertEqual(self.store.load_metadata(self.aid), MetadataRecord())
		self.assertFalse(self.store.save_metadata(self.aid, MetadataRecord()))
