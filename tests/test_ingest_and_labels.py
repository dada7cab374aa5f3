import tempfile
import unittest
from pathlib import Path

import cv2
import numpy as np

from detect_kit import FrameConverter, FrameConverterConfig
from detect_kit.metadata import COCO_CLASS_NAMES, label_for, load_class_names
from Live_Preview.ingest import frame_from_bgr, get_capture_info, open_capture


class TestFrameFromBgr(unittest.TestCase):
    def test_planes_round_trip_through_converter(self) -> None:
        bgr = np.zeros((24, 32, 3), dtype=np.uint8)
        bgr[:, :16] = (0, 0, 255)  # left half red
        bgr[:, 16:] = (255, 0, 0)  # right half blue
        frame = frame_from_bgr(bgr)
        self.assertEqual((frame.width, frame.height), (32, 24))
        self.assertEqual(len(frame.planes), 3)

        rgb = FrameConverter(FrameConverterConfig(jpeg_quality=None)).convert(frame)
        self.assertGreater(int(rgb[12, 4, 0]), 200)
        self.assertGreater(int(rgb[12, 28, 2]), 200)

    def test_odd_edges_cropped(self) -> None:
        frame = frame_from_bgr(np.zeros((25, 33, 3), dtype=np.uint8))
        self.assertEqual((frame.width, frame.height), (32, 24))


class FakeCapture:
    def __init__(self, props) -> None:
        self.props = props

    def get(self, prop: int) -> float:
        return self.props.get(prop, 0.0)


class TestCaptureInfo(unittest.TestCase):
    def test_reported_properties(self) -> None:
        cap = FakeCapture(
            {
                cv2.CAP_PROP_FRAME_WIDTH: 640.0,
                cv2.CAP_PROP_FRAME_HEIGHT: 480.0,
                cv2.CAP_PROP_FPS: 29.97,
                cv2.CAP_PROP_FRAME_COUNT: 300.0,
            }
        )
        info = get_capture_info(cap, source="clip.mp4")
        self.assertEqual((info.source, info.width, info.height, info.frame_count), ("clip.mp4", 640, 480, 300))
        self.assertAlmostEqual(info.fps, 29.97)

    def test_unknown_properties_are_none(self) -> None:
        info = get_capture_info(FakeCapture({cv2.CAP_PROP_FRAME_COUNT: -1.0}))
        self.assertIsNone(info.fps)
        self.assertIsNone(info.width)
        self.assertIsNone(info.frame_count)

    def test_exactly_one_source(self) -> None:
        with self.assertRaises(ValueError):
            open_capture()
        with self.assertRaises(ValueError):
            open_capture(video="a.mp4", webcam=0)


class TestLabels(unittest.TestCase):
    def test_coco_table(self) -> None:
        self.assertEqual(len(COCO_CLASS_NAMES), 80)
        self.assertEqual(COCO_CLASS_NAMES[0], "person")
        self.assertEqual(COCO_CLASS_NAMES[79], "toothbrush")

    def test_label_for_out_of_range(self) -> None:
        self.assertEqual(label_for(0, COCO_CLASS_NAMES), "person")
        self.assertEqual(label_for(80, COCO_CLASS_NAMES), "Unknown")
        self.assertEqual(label_for(-1, COCO_CLASS_NAMES), "Unknown")
        self.assertEqual(label_for(None, COCO_CLASS_NAMES), "Unknown")

    def test_load_class_names(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "metadata.yaml"
        path.write_text("task: detect\nnames:\n  # comment\n  1: dog\n  0: \"cat\"\n", encoding="utf-8")
        self.assertEqual(load_class_names(str(path)), ["cat", "dog"])

    def test_gaps_rejected(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "metadata.yaml"
        path.write_text("names:\n  0: cat\n  2: dog\n", encoding="utf-8")
        with self.assertRaises(ValueError):
            load_class_names(str(path))


if __name__ == "__main__":
    unittest.main()
