import os
import shutil
import tempfile
import unittest
from datetime import datetime, timezone
from unittest.mock import patch

from graphblog.storage import (
    CosImageStorage,
    InMemoryImageStorage,
    LocalImageStorage,
    discard_image,
    generate_filename,
    is_allowed_image,
)


class ImageHelpersTests(unittest.TestCase):
    def test_allowed_types(self):
        for content_type in ("image/png", "image/jpg", "image/jpeg", "IMAGE/PNG"):
            self.assertTrue(is_allowed_image(content_type))
        for content_type in ("image/gif", "text/plain", "", None):
            self.assertFalse(is_allowed_image(content_type))

    def test_generate_filename(self):
        now = datetime(2024, 5, 1, 12, 30, 45, 123456, tzinfo=timezone.utc)
        self.assertEqual(
            generate_filename("cat.png", now=now),
            "2024-05-01T12-30-45.123456Z-cat.png",
        )
        self.assertTrue(generate_filename("../../etc/passwd", now=now).endswith("-passwd"))
        self.assertTrue(generate_filename("C:\\pics\\dog.jpg", now=now).endswith("-dog.jpg"))
        self.assertTrue(generate_filename("", now=now).endswith("-upload"))

    def test_discard_image_logs_failures(self):
        storage = InMemoryImageStorage()
        with self.assertLogs("graphblog.storage", level="WARNING") as logs:
            discard_image(storage, "images/missing.png")
        self.assertIn("images/missing.png", logs.output[0])
        # Nothing to do for an empty path.
        discard_image(storage, None)


class LocalImageStorageTests(unittest.TestCase):
    def setUp(self):
        self.root = tempfile.mkdtemp()
        self.directory = os.path.join(self.root, "images")
        self.storage = LocalImageStorage(self.directory)

    def tearDown(self):
        shutil.rmtree(self.root, ignore_errors=True)

    def test_store_and_delete(self):
        path = self.storage.store(b"png-bytes", "cat.png")
        self.assertTrue(path.startswith("images/"))
        self.assertTrue(path.endswith("-cat.png"))
        on_disk = os.path.join(self.directory, os.path.basename(path))
        with open(on_disk, "rb") as f:
            self.assertEqual(f.read(), b"png-bytes")

        self.storage.delete(path)
        self.assertFalse(os.path.exists(on_disk))
        with self.assertRaises(FileNotFoundError):
            self.storage.delete(path)

    def test_delete_stays_inside_directory(self):
        outside = os.path.join(self.root, "secret.txt")
        with open(outside, "w") as f:
            f.write("keep me")
        with self.assertRaises(FileNotFoundError):
            self.storage.delete("images/../secret.txt")
        self.assertTrue(os.path.exists(outside))


class CosImageStorageTests(unittest.TestCase):
    @patch("graphblog.storage.boto3.client")
    def test_store_and_delete_use_bucket(self, mock_client_factory):
        client = mock_client_factory.return_value
        storage = CosImageStorage(
            bucket="bucket",
            region="ap-guangzhou",
            endpoint="https://cos.example.test",
            access_key_id="key",
            secret_access_key="secret",
        )
        key = storage.store(b"jpeg-bytes", "dog.jpg")
        self.assertTrue(key.startswith("images/"))
        client.put_object.assert_called_once()
        kwargs = client.put_object.call_args.kwargs
        self.assertEqual(kwargs["Bucket"], "bucket")
        self.assertEqual(kwargs["Key"], key)
        self.assertEqual(kwargs["ContentType"], "image/jpeg")

        storage.delete(key)
        client.delete_object.assert_called_once_with(Bucket="bucket", Key=key)


if __name__ == "__main__":
    unittest.main()
