import io
import struct
import tempfile
import unittest
from pathlib import Path

import piexif
import piexif.helper
from PIL import Image

from media_api.services import readers
from media_api.services.metadata import MetadataExtractor
from media_api.services.readers import ImageType


def _iptc_block(datasets):
	out = b""
	for dataset, value in datasets:
		out += b"\x1c\x02" + bytes([dataset]) + struct.pack(">H", len(value)) + value
	return out


def _app13(datasets):
	iptc = _iptc_block(datasets)
	resource = b"8BIM" + struct.pack(">H", 0x0404) + b"\x00\x00" + struct.pack(">I", len(iptc)) + iptc
	if len(iptc) % 2:
		resource += b"\x00"
	payload = b"Photoshop 3.0\x00" + resource
	return b"\xff\xed" + struct.pack(">H", len(payload) + 2) + payload


def _jpeg_bytes(exif=None):
	buf = io.BytesIO()
	params = {"exif": exif} if exif else {}
	Image.new("RGB", (64, 48), "white").save(buf, "JPEG", **params)
	return buf.getvalue()


class ReaderTests(unittest.TestCase):
	def setUp(self):
		self._tmp = tempfile.TemporaryDirectory()
		self.dir = Path(self._tmp.name)
		exif = piexif.dump({
			"0th": {
				piexif.ImageIFD.Model: b"Canon EOS",
				piexif.ImageIFD.Artist: b"John",
				piexif.ImageIFD.XPTitle: tuple("Harbour".encode("utf-16-le") + b"\x00\x00"),
			},
			"Exif": {
				piexif.ExifIFD.FNumber: (28, 10),
				piexif.ExifIFD.ISOSpeedRatings: 200,
				piexif.ExifIFD.DateTimeDigitized: b"2024:01:15 10:30:00",
				piexif.ExifIFD.UserComment: piexif.helper.UserComment.dump("Boats at rest"),
			},
		})
		self.jpeg = self.dir / "exif.jpg"
		self.jpeg.write_bytes(_jpeg_bytes(exif))

	def tearDown(self):
		self._tmp.cleanup()

	def test_read_exif_maps_tag_names(self):
		exif = readers.read_exif(self.jpeg)
		self.assertEqual(exif["Model"], b"Canon EOS")
		self.assertEqual(exif["FNumber"], (28, 10))
		self.assertEqual(exif["Title"], "Harbour")
		self.assertEqual(exif["UserComment"], "Boats at rest")

	def test_detect_image_type(self):
		self.assertEqual(readers.detect_image_type(self.jpeg), ImageType.JPEG)
		png = self.dir / "a.png"
		Image.new("RGB", (8, 8)).save(png, "PNG")
		self.assertEqual(readers.detect_image_type(png), ImageType.PNG)
		tif = self.dir / "a.tif"
		Image.new("RGB", (8, 8)).save(tif, "TIFF")
		self.assertIn(readers.detect_image_type(tif), (ImageType.TIFF_II, ImageType.TIFF_MM))

	def test_non_image_reads_as_absent(self):
		txt = self.dir / "notes.txt"
		txt.write_text("not an image")
		self.assertIsNone(readers.detect_image_type(txt))
		self.assertIsNone(readers.read_iptc(txt))
		self.assertIsNone(readers.read_exif(txt))
		self.assertIsNone(readers.read_exif(self.dir / "missing.jpg"))

	def test_jpeg_without_iptc(self):
		self.assertIsNone(readers.read_iptc(self.jpeg))

	def test_read_iptc_from_app13(self):
		data = _jpeg_bytes()
		path = self.dir / "iptc.jpg"
		path.write_bytes(data[:2] + _app13([(105, b"Headline"), (110, b"Jane Doe")]) + data[2:])
		iptc = readers.read_iptc(path)
		self.assertEqual(iptc["2#105"], [b"Headline"])
		self.assertEqual(iptc["2#110"], [b"Jane Doe"])

	def test_extract_from_real_file(self):
		data = self.jpeg.read_bytes()
		path = self.dir / "both.jpg"
		path.write_bytes(data[:2] + _app13([(110, b"Jane Doe"), (116, b"IPTC notice")]) + data[2:])
		meta = MetadataExtractor().extract(path)
		self.assertEqual(meta.camera, "Canon EOS")
		self.assertEqual(meta.credit, "John")
		self.assertEqual(meta.copyright, "IPTC notice")
		self.assertEqual(meta.title, "Harbour")
		self.assertEqual(meta.aperture, 2.8)
		self.assertEqual(meta.iso, "200")
		self.assertEqual(meta.created_timestamp, 1705314600)

	def test_extract_from_non_image_is_empty(self):
		txt = self.dir / "notes.txt"
		txt.write_text("not an image")
		meta = MetadataExtractor().extract(txt)
		self.assertEqual(meta.title, "")
		self.assertEqual(meta.aperture, 0)
		self.assertEqual(meta.created_timestamp, 0)
