import unittest

import cv2
import numpy as np

from detect_kit.errors import ConversionError
from detect_kit.frames import FrameConverter, FrameConverterConfig, Plane, RawFrame, limit_size, to_nv21


def _i420_planes(bgr: np.ndarray):
    h, w = bgr.shape[:2]
    flat = cv2.cvtColor(bgr, cv2.COLOR_BGR2YUV_I420).reshape(-1)
    y_size, c_size = w * h, (w * h) // 4
    return flat[:y_size], flat[y_size : y_size + c_size], flat[y_size + c_size : y_size + 2 * c_size]


def _solid_frame(bgr_color, w=16, h=8, **kwargs) -> RawFrame:
    bgr = np.full((h, w, 3), bgr_color, dtype=np.uint8)
    y, u, v = _i420_planes(bgr)
    planes = (Plane(y, row_stride=w), Plane(u, row_stride=w // 2), Plane(v, row_stride=w // 2))
    return RawFrame(width=w, height=h, planes=planes, **kwargs)


class TestFrameConverter(unittest.TestCase):
    def test_output_shape(self) -> None:
        rgb = FrameConverter(FrameConverterConfig(jpeg_quality=None)).convert(_solid_frame((0, 255, 0)))
        self.assertEqual(rgb.shape, (8, 16, 3))
        self.assertEqual(rgb.dtype, np.uint8)

    def test_chroma_order_keeps_red_red(self) -> None:
        # Swapping U and V would turn this red frame blue.
        rgb = FrameConverter(FrameConverterConfig(jpeg_quality=None)).convert(_solid_frame((0, 0, 255)))
        r, g, b = (int(v) for v in rgb[4, 8])
        self.assertGreater(r, 200)
        self.assertLess(b, 60)
        self.assertLess(g, 60)

    def test_chroma_order_keeps_blue_blue(self) -> None:
        rgb = FrameConverter(FrameConverterConfig(jpeg_quality=None)).convert(_solid_frame((255, 0, 0)))
        r, _, b = (int(v) for v in rgb[4, 8])
        self.assertGreater(b, 200)
        self.assertLess(r, 60)

    def test_jpeg_reencode_is_lossy_but_close(self) -> None:
        rgb = FrameConverter(FrameConverterConfig(jpeg_quality=70)).convert(_solid_frame((0, 0, 255), w=32, h=32))
        r, _, b = (int(v) for v in rgb[16, 16])
        self.assertGreater(r, 180)
        self.assertLess(b, 80)

    def test_padded_row_strides(self) -> None:
        w, h = 16, 8
        bgr = np.full((h, w, 3), (0, 0, 255), dtype=np.uint8)
        y, u, v = _i420_planes(bgr)

        def pad(plane: np.ndarray, cols: int, rows: int, stride: int) -> np.ndarray:
            out = np.full((rows, stride), 7, dtype=np.uint8)
            out[:, :cols] = plane.reshape(rows, cols)
            return out.reshape(-1)

        planes = (
            Plane(pad(y, w, h, w + 8), row_stride=w + 8),
            Plane(pad(u, w // 2, h // 2, w // 2 + 4), row_stride=w // 2 + 4),
            Plane(pad(v, w // 2, h // 2, w // 2 + 4), row_stride=w // 2 + 4),
        )
        frame = RawFrame(width=w, height=h, planes=planes)
        expected = to_nv21(_solid_frame((0, 0, 255)))
        self.assertTrue(np.array_equal(to_nv21(frame), expected))

    def test_semi_planar_pixel_stride(self) -> None:
        w, h = 8, 4
        y = np.arange(w * h, dtype=np.uint8)
        # Interleaved chroma buffer U0 V0 U1 V1 ...; U and V are views with pixel_stride 2.
        uv = np.empty(w * h // 2, dtype=np.uint8)
        uv[0::2] = 100
        uv[1::2] = 200
        planes = (
            Plane(y, row_stride=w),
            Plane(uv, row_stride=w, pixel_stride=2),
            Plane(uv[1:], row_stride=w, pixel_stride=2),
        )
        nv21 = to_nv21(RawFrame(width=w, height=h, planes=planes))
        self.assertEqual(nv21.shape, (h + h // 2, w))
        self.assertTrue(np.array_equal(nv21[:h].reshape(-1), y))
        self.assertTrue(np.all(nv21[h:, 0::2] == 200))  # V first
        self.assertTrue(np.all(nv21[h:, 1::2] == 100))

    def test_undersized_plane_raises(self) -> None:
        frame = _solid_frame((0, 0, 255))
        y, u, v = frame.planes
        short = RawFrame(width=16, height=8, planes=(Plane(np.asarray(y.data)[:50], 16), u, v))
        with self.assertRaises(ConversionError):
            FrameConverter().convert(short)

    def test_missing_plane_raises(self) -> None:
        frame = _solid_frame((0, 0, 255))
        with self.assertRaises(ConversionError):
            FrameConverter().convert(RawFrame(width=16, height=8, planes=frame.planes[:2]))

    def test_non_buffer_plane_data_raises_conversion_error(self) -> None:
        frame = _solid_frame((0, 0, 255))
        _, u, v = frame.planes
        broken = RawFrame(width=16, height=8, planes=(Plane(None, 16), u, v))
        with self.assertRaises(ConversionError):
            FrameConverter().convert(broken)

    def test_odd_dimensions_raise(self) -> None:
        frame = _solid_frame((0, 0, 255))
        with self.assertRaises(ConversionError):
            FrameConverter().convert(RawFrame(width=15, height=8, planes=frame.planes))


class TestRawFrameRelease(unittest.TestCase):
    def test_release_called_exactly_once(self) -> None:
        calls = []
        frame = _solid_frame((0, 0, 255), release=lambda: calls.append(1))
        with frame:
            pass
        frame.close()
        self.assertEqual(calls, [1])
        self.assertTrue(frame.closed)

    def test_release_on_error_path(self) -> None:
        calls = []
        frame = RawFrame(width=15, height=8, planes=(), release=lambda: calls.append(1))
        with self.assertRaises(ConversionError):
            with frame:
                FrameConverter().convert(frame)
        self.assertEqual(calls, [1])


class TestLimitSize(unittest.TestCase):
    def test_small_raster_untouched(self) -> None:
        raster = np.zeros((480, 640, 3), dtype=np.uint8)
        self.assertIs(limit_size(raster, 1024), raster)

    def test_large_raster_shrunk_keeping_aspect(self) -> None:
        raster = np.zeros((1080, 1920, 3), dtype=np.uint8)
        out = limit_size(raster, 1024)
        self.assertEqual(out.shape, (576, 1024, 3))


if __name__ == "__main__":
    unittest.main()
