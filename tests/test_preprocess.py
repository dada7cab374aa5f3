import unittest

import numpy as np

from detect_kit.preprocess import InputTensor, TensorPreprocessor


class TestTensorPreprocessor(unittest.TestCase):
    def test_buffer_length(self) -> None:
        n = 32
        tensor = TensorPreprocessor(n)(np.zeros((48, 64, 3), dtype=np.uint8))
        self.assertEqual(tensor.data.shape, (n, n, 3))
        self.assertEqual(tensor.data.dtype, np.float32)
        self.assertEqual(tensor.nbytes, 4 * n * n * 3)
        self.assertEqual(len(tensor.to_bytes()), 4 * n * n * 3)

    def test_pixel_index_to_tensor_index(self) -> None:
        n = 8
        rng = np.random.default_rng(3)
        image = rng.integers(0, 256, size=(n, n, 3), dtype=np.uint8)
        tensor = TensorPreprocessor(n)(image)
        flat = np.frombuffer(tensor.to_bytes(), dtype=np.float32)
        for y in range(n):
            for x in range(n):
                for c in range(3):
                    self.assertAlmostEqual(flat[(y * n + x) * 3 + c], image[y, x, c] / 255.0, places=6)

    def test_row_order_not_transposed(self) -> None:
        n = 4
        image = np.zeros((n, n, 3), dtype=np.uint8)
        image[0, n - 1] = (255, 0, 0)  # top-right pixel, red
        flat = np.frombuffer(TensorPreprocessor(n)(image).to_bytes(), dtype=np.float32)
        self.assertEqual(flat[(0 * n + (n - 1)) * 3 + 0], 1.0)
        self.assertEqual(flat[((n - 1) * n + 0) * 3 + 0], 0.0)

    def test_channel_order_rgb(self) -> None:
        image = np.full((2, 2, 3), (255, 128, 0), dtype=np.uint8)
        data = TensorPreprocessor(2)(image).data
        self.assertTrue(np.allclose(data[0, 0], [1.0, 128 / 255.0, 0.0]))

    def test_values_normalized(self) -> None:
        image = np.full((10, 20, 3), 255, dtype=np.uint8)
        data = TensorPreprocessor(16)(image).data
        self.assertEqual(float(data.min()), 1.0)
        self.assertEqual(float(data.max()), 1.0)

    def test_stretch_without_letterbox(self) -> None:
        # Left half black, right half white on a wide frame: after stretching,
        # the split stays at the middle column and no padding appears.
        image = np.zeros((10, 40, 3), dtype=np.uint8)
        image[:, 20:] = 255
        data = TensorPreprocessor(8)(image).data
        self.assertTrue(np.all(data[:, :4] == 0.0))
        self.assertTrue(np.all(data[:, 4:] == 1.0))

    def test_non_positive_size_rejected(self) -> None:
        with self.assertRaises(ValueError):
            TensorPreprocessor(0)
        with self.assertRaises(ValueError):
            TensorPreprocessor(-5)

    def test_rejects_non_rgb_input(self) -> None:
        with self.assertRaises(ValueError):
            TensorPreprocessor(8)(np.zeros((8, 8), dtype=np.uint8))


class TestInputTensor(unittest.TestCase):
    def test_as_batch_layouts(self) -> None:
        data = np.arange(2 * 2 * 3, dtype=np.float32).reshape(2, 2, 3)
        t = InputTensor(data)
        nhwc = t.as_batch()
        nchw = t.as_batch(channels_first=True)
        self.assertEqual(nhwc.shape, (1, 2, 2, 3))
        self.assertEqual(nchw.shape, (1, 3, 2, 2))
        self.assertEqual(nchw[0, 1, 1, 0], data[1, 0, 1])


if __name__ == "__main__":
    unittest.main()
