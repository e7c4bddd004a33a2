"""
Unit tests for the OCR stage.
"""

import subprocess
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from resume_recon.errors import OcrEngineError, RecognitionError, StageTimeoutError
from resume_recon.models import Page, PageText
from resume_recon.tests.fixtures import FakeOcrEngine
from resume_recon.text_extractor import (
    TesseractCliEngine,
    extract_text,
    join_page_texts,
    ocr_session,
)


def make_pages(count):
    return [Page(page_num=n, image_file=Path(f"/scratch/page_{n:03d}.png"), width_px=10, height_px=10) for n in range(1, count + 1)]


class TestExtractText(unittest.TestCase):

    def test_one_text_per_page_in_order(self):
        engine = FakeOcrEngine({1: "first", 2: "second", 3: "third"})
        results = extract_text(make_pages(3), engine)
        self.assertEqual([r.page_num for r in results], [1, 2, 3])
        self.assertEqual([r.text for r in results], ["first", "second", "third"])
        self.assertTrue(all(r.ok for r in results))

    def test_failed_page_is_blank_and_processing_continues(self):
        engine = FakeOcrEngine({1: "first", 2: "second", 3: "third"}, fail_pages={2})
        results = extract_text(make_pages(3), engine)
        self.assertEqual(len(results), 3)
        self.assertEqual(results[1].text, "")
        self.assertFalse(results[1].ok)
        self.assertIn("page 2", results[1].error)
        self.assertEqual(engine.recognized, [1, 3])

    def test_consumes_lazy_iterator(self):
        engine = FakeOcrEngine({1: "a", 2: "b"})
        results = extract_text(iter(make_pages(2)), engine)
        self.assertEqual(len(results), 2)

    def test_engine_errors_are_not_absorbed(self):
        class BrokenEngine(FakeOcrEngine):
            def recognize(self, image_file, page_num):
                raise OcrEngineError("binary vanished")

        with self.assertRaises(OcrEngineError):
            extract_text(make_pages(2), BrokenEngine())


class TestOcrSession(unittest.TestCase):

    def test_lifecycle_paired_once(self):
        engine = FakeOcrEngine({1: "a"}, fail_pages={2})
        with ocr_session(lambda: engine) as active:
            extract_text(make_pages(3), active)
        self.assertEqual(engine.start_calls, 1)
        self.assertEqual(engine.terminate_calls, 1)

    def test_terminated_when_body_raises(self):
        engine = FakeOcrEngine()
        with self.assertRaises(RuntimeError):
            with ocr_session(lambda: engine):
                raise RuntimeError("downstream failure")
        self.assertEqual(engine.terminate_calls, 1)

    def test_terminated_when_start_fails(self):
        engine = FakeOcrEngine(fail_start=True)
        with self.assertRaises(RuntimeError):
            with ocr_session(lambda: engine):
                self.fail("body must not run")
        self.assertEqual(engine.start_calls, 1)
        self.assertEqual(engine.terminate_calls, 1)


class TestJoinPageTexts(unittest.TestCase):

    def test_joins_in_page_order_skipping_blank(self):
        texts = [PageText(2, "Skills: SQL\n"), PageText(1, "Jane Doe"), PageText(3, "", error="bad page")]
        self.assertEqual(join_page_texts(texts), "Jane Doe\nSkills: SQL")


class TestTesseractCliEngine(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.image = Path(self.tmp.name) / "page_001.png"
        self.image.write_bytes(b"not really a png")
        self.engine = TesseractCliEngine(timeout_s=5)

    def tearDown(self):
        self.tmp.cleanup()

    def completed(self, returncode=0, stdout="", stderr=""):
        return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)

    @mock.patch("resume_recon.text_extractor.subprocess.run")
    def test_start_and_recognize(self, run):
        run.side_effect = [
            self.completed(stdout="tesseract 5.3.0\n leptonica-1.82.0"),
            self.completed(stdout="Skills: Python, SQL\n"),
        ]
        self.engine.start()
        self.assertEqual(self.engine.version, "tesseract 5.3.0")
        self.assertEqual(self.engine.recognize(self.image, 1), "Skills: Python, SQL\n")

        cmd = run.call_args_list[1].args[0]
        self.assertEqual(cmd[:3], ["tesseract", str(self.image), "stdout"])
        self.assertIn("eng", cmd)
        self.assertEqual(run.call_args_list[1].kwargs["timeout"], 5)

    @mock.patch("resume_recon.text_extractor.subprocess.run")
    def test_missing_binary(self, run):
        run.side_effect = FileNotFoundError("tesseract")
        with self.assertRaises(OcrEngineError):
            self.engine.start()

    @mock.patch("resume_recon.text_extractor.subprocess.run")
    def test_nonzero_exit_is_page_failure(self, run):
        run.side_effect = [self.completed(stdout="tesseract 5"), self.completed(returncode=1, stderr="Error in pixReadStream")]
        self.engine.start()
        with self.assertRaises(RecognitionError) as ctx:
            self.engine.recognize(self.image, 4)
        self.assertEqual(ctx.exception.page, 4)

    @mock.patch("resume_recon.text_extractor.subprocess.run")
    def test_timeout(self, run):
        run.side_effect = [self.completed(stdout="tesseract 5"), subprocess.TimeoutExpired(cmd="tesseract", timeout=5)]
        self.engine.start()
        with self.assertRaises(StageTimeoutError) as ctx:
            self.engine.recognize(self.image, 2)
        self.assertEqual(ctx.exception.page, 2)

    @mock.patch("resume_recon.text_extractor.subprocess.run")
    def test_missing_image_is_page_failure(self, run):
        run.return_value = self.completed(stdout="tesseract 5")
        self.engine.start()
        with self.assertRaises(RecognitionError):
            self.engine.recognize(Path(self.tmp.name) / "page_009.png", 9)

    def test_recognize_requires_start(self):
        with self.assertRaises(OcrEngineError):
            self.engine.recognize(self.image, 1)

    @mock.patch("resume_recon.text_extractor.subprocess.run")
    def test_not_usable_after_terminate(self, run):
        run.return_value = self.completed(stdout="tesseract 5")
        self.engine.start()
        self.engine.terminate()
        with self.assertRaises(OcrEngineError):
            self.engine.recognize(self.image, 1)


if __name__ == "__main__":
    unittest.main()
