import tempfile
import unittest
from pathlib import Path

from resume_recon.scratch import ScratchStorage, make_run_id


class TestScratchStorage(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = Path(self.tmp.name) / "scratch"
        self.scratch = ScratchStorage(self.root)

    def tearDown(self):
        self.tmp.cleanup()

    def test_root_created_if_absent(self):
        self.assertFalse(self.root.exists())
        self.scratch.ensure()
        self.assertTrue(self.root.is_dir())
        self.scratch.ensure()

    def test_area_removed_after_use(self):
        with self.scratch.run_area() as area:
            area.page_path(1).write_bytes(b"png")
            area.page_path(2).write_bytes(b"png")
            self.assertEqual(len(area.files()), 2)
        self.assertFalse(area.path.exists())
        self.assertEqual(list(self.root.iterdir()), [])

    def test_area_removed_on_error(self):
        with self.assertRaises(RuntimeError):
            with self.scratch.run_area() as area:
                area.page_path(1).write_bytes(b"png")
                raise RuntimeError("ocr failed")
        self.assertEqual(list(self.root.iterdir()), [])

    def test_concurrent_areas_do_not_collide(self):
        with self.scratch.run_area() as first, self.scratch.run_area() as second:
            self.assertNotEqual(first.path, second.path)
            first.page_path(1).write_bytes(b"a")
            second.page_path(1).write_bytes(b"b")
            self.assertEqual(first.page_path(1).read_bytes(), b"a")
        self.assertEqual(list(self.root.iterdir()), [])

    def test_reused_run_id_rejected(self):
        with self.scratch.run_area("fixed-run"):
            with self.assertRaises(FileExistsError):
                with self.scratch.run_area("fixed-run"):
                    pass

    def test_delete_single_file(self):
        with self.scratch.run_area() as area:
            path = area.page_path(3)
            path.write_bytes(b"png")
            area.delete(path)
            self.assertFalse(path.exists())
            area.delete(path)

    def test_run_ids_unique(self):
        self.assertEqual(len({make_run_id() for _ in range(50)}), 50)


if __name__ == "__main__":
    unittest.main()
