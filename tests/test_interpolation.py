import numpy as np
import pytest

from src.engine.interpolation import akima_sample, nearest_frame


def test_akima_hits_knots_exactly():
    values = np.array([0.0, 1.0, 4.0, 9.0, 16.0])
    result = akima_sample(values, np.array([0.0, 2.0, 4.0]))
    np.testing.assert_allclose(result, [0.0, 4.0, 16.0])


def test_akima_is_linear_on_linear_data():
    values = np.arange(10, dtype=float) * 2.0
    result = akima_sample(values, np.array([0.5, 3.25, 8.75]))
    np.testing.assert_allclose(result, [1.0, 6.5, 17.5])


def test_akima_interpolates_columns_independently():
    values = np.stack([np.arange(6.0), np.arange(6.0) * -1.0], axis=1)
    result = akima_sample(values, np.array([2.5]))
    assert result.shape == (1, 2)
    np.testing.assert_allclose(result[0], [2.5, -2.5])


def test_akima_clamps_out_of_range_positions():
    values = np.array([1.0, 2.0, 3.0, 4.0])
    np.testing.assert_allclose(akima_sample(values, np.array([-3.0, 10.0])), [1.0, 4.0])


@pytest.mark.parametrize("length", [0, 1, 2])
def test_akima_short_streams(length):
    values = np.arange(length, dtype=float) + 1.0
    result = akima_sample(values, np.array([0.0, 0.5]))
    assert result.shape == (2,)
    if length == 0:
        np.testing.assert_allclose(result, [0.0, 0.0])
    elif length == 1:
        np.testing.assert_allclose(result, [1.0, 1.0])
    else:
        np.testing.assert_allclose(result, [1.0, 1.5])


def test_nearest_frame_truncates():
    values = np.array([True, False, True])
    result = nearest_frame(values, np.array([0.9, 1.0, 1.99, 5.0]))
    assert result.tolist() == [True, False, False, True]
