"""Gain functions mapping accumulated input to an S->I probability."""

from __future__ import annotations

import math
from collections.abc import Callable
from enum import StrEnum


class GainKind(StrEnum):
    LINEAR = "linear"
    SIGMOID = "sigmoid"


GainFn = Callable[[float, float, float, float], float]


def linear_gain(h: float, beta: float, theta: float, slope: float) -> float:
    _ = theta, slope
    return _clip01(beta * h)


def sigmoid_gain(h: float, beta: float, theta: float, slope: float) -> float:
    x = -slope * (h - theta)
    if x > 700.0:
        return 0.0
    return _clip01(beta / (1.0 + math.exp(x)))


GAIN_FUNCTIONS: dict[GainKind, GainFn] = {
    GainKind.LINEAR: linear_gain,
    GainKind.SIGMOID: sigmoid_gain,
}


def _clip01(value: float) -> float:
    return min(1.0, max(0.0, value))


__all__ = ["GAIN_FUNCTIONS", "GainFn", "GainKind", "linear_gain", "sigmoid_gain"]
