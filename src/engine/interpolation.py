"""Akima resampling of frame-indexed feature streams at fractional positions."""

from __future__ import annotations

import numpy as np
from scipy.interpolate import Akima1DInterpolator


def _clip_positions(positions: np.ndarray, length: int) -> np.ndarray:
    return np.clip(np.asarray(positions, dtype=np.float64), 0.0, float(length - 1))


def akima_sample(values: np.ndarray, positions: np.ndarray) -> np.ndarray:
    """
    Sample a stream indexed by frame number at fractional frame positions.

    ``values`` may be 1-D (one value per frame) or frame-major 2-D, in which
    case every column is interpolated independently. Positions outside
    ``[0, len(values) - 1]`` are clamped to the end frames.
    """
    data = np.asarray(values, dtype=np.float64)
    pos = np.asarray(positions, dtype=np.float64)
    length = data.shape[0]
    out_shape = (pos.shape[0],) + data.shape[1:]
    if length == 0:
        return np.zeros(out_shape, dtype=np.float64)
    if length == 1:
        return np.broadcast_to(data[0], out_shape).copy()

    pos = _clip_positions(pos, length)
    frames = np.arange(length, dtype=np.float64)
    if length == 2:
        # Akima needs more than two knots; two knots are linear anyway.
        weight = pos - frames[0]
        if data.ndim == 1:
            return data[0] + (data[1] - data[0]) * weight
        return data[0] + (data[1] - data[0]) * weight[:, None]

    interpolator = Akima1DInterpolator(frames, data, axis=0)
    return interpolator(pos)


def nearest_frame(values: np.ndarray, positions: np.ndarray) -> np.ndarray:
    """Pick the frame at ``floor(position)`` for each position, no blending."""
    data = np.asarray(values)
    indices = np.clip(np.asarray(positions, dtype=np.float64).astype(np.int64), 0, len(data) - 1)
    return data[indices]
