"""Tests for tensor preprocessing."""

from __future__ import annotations

import numpy as np
import pytest
from PIL import Image

from conftest import make_image
from rmbg_service.preprocessing import INPUT_SIZE, preprocess


@pytest.mark.parametrize("size", [(1, 1), (300, 200), (64, 1500)])
def test_shape_and_range_independent_of_input_size(size) -> None:
    tensor = preprocess(make_image(*size))

    assert tensor.shape == (1, 3, INPUT_SIZE, INPUT_SIZE)
    assert tensor.dtype == np.float32
    assert tensor.min() >= 0.0
    assert tensor.max() <= 1.0


def test_channels_are_planar_rgb() -> None:
    image = Image.new("RGB", (40, 10), (255, 0, 51))

    tensor = preprocess(image)

    assert np.all(tensor[0, 0] == 1.0)
    assert np.all(tensor[0, 1] == 0.0)
    assert np.allclose(tensor[0, 2], 51 / 255.0)


def test_alpha_channel_is_ignored() -> None:
    opaque = Image.new("RGBA", (16, 16), (10, 20, 30, 255))
    transparent = Image.new("RGBA", (16, 16), (10, 20, 30, 0))

    assert np.array_equal(preprocess(opaque), preprocess(transparent))


def test_deterministic() -> None:
    image = make_image(50, 70, seed=3)

    assert np.array_equal(preprocess(image), preprocess(image))
