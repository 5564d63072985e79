#!/usr/bin/env python3
"""
Tests for the least squares circle fit.
"""

import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import numpy as np
import pytest

from image_warping.circle_fit import FittedCircle, build_fit_system, fit_circle
from image_warping.errors import DegenerateFitError


def circle_points(cx, cy, radius, count=12, phase=0.0):
  angles = phase + np.linspace(0.0, 2.0 * np.pi, count, endpoint=False)
  return [(cx + radius * np.cos(a), cy + radius * np.sin(a)) for a in angles]


def test_fit_reproduces_exact_circle():
  circle = fit_circle(circle_points(50, 60, 40))
  assert circle.center_x == pytest.approx(50, abs=1e-9)
  assert circle.center_y == pytest.approx(60, abs=1e-9)
  assert circle.radius == pytest.approx(40, abs=1e-9)


def test_fit_uneven_arc():
  # Points on one half of the circle only
  angles = np.linspace(0.1, 3.0, 12)
  points = [(300 + 250 * np.cos(a), 200 + 250 * np.sin(a)) for a in angles]
  circle = fit_circle(points)
  assert circle.center == pytest.approx((300, 200), abs=1e-6)
  assert circle.radius == pytest.approx(250, abs=1e-6)


def test_fit_integer_clicks():
  points = [(int(round(x)), int(round(y))) for x, y in circle_points(960, 540, 530, phase=0.2)]
  circle = fit_circle(points)
  assert circle.center_x == pytest.approx(960, abs=1.0)
  assert circle.center_y == pytest.approx(540, abs=1.0)
  assert circle.radius == pytest.approx(530, abs=1.0)


def test_fit_three_points():
  circle = fit_circle([(10, 0), (0, 10), (-10, 0)])
  assert circle.center == pytest.approx((0, 0), abs=1e-9)
  assert circle.radius == pytest.approx(10, abs=1e-9)


def test_fit_is_deterministic():
  points = [(int(x), int(y)) for x, y in circle_points(150, 150, 100)]
  assert fit_circle(points) == fit_circle(points)


def test_fit_ignores_point_order():
  points = circle_points(80, 90, 33)
  shuffled = points[5:] + points[:5]
  a = fit_circle(points)
  b = fit_circle(shuffled)
  assert a.center_x == pytest.approx(b.center_x)
  assert a.center_y == pytest.approx(b.center_y)
  assert a.radius == pytest.approx(b.radius)


@pytest.mark.parametrize("points", [
  [(i, i) for i in range(12)],
  [(i, 2 * i + 3) for i in range(12)],
  [(i * 7, 40) for i in range(12)],
  [(25, i * 3) for i in range(12)],
])
def test_collinear_points_raise(points):
  with pytest.raises(DegenerateFitError):
    fit_circle(points)


@pytest.mark.parametrize("points", [
  [],
  [(1, 1)],
  [(1, 1), (5, 5)],
  [(0, 0), (0, 0), (3, 4), (3, 4)],
])
def test_too_few_distinct_points_raise(points):
  with pytest.raises(DegenerateFitError):
    fit_circle(points)


def test_malformed_points_raise():
  with pytest.raises(DegenerateFitError):
    fit_circle([(1, 2, 3), (4, 5, 6), (7, 8, 9)])
  with pytest.raises(DegenerateFitError):
    fit_circle([(0, 0), (1, np.nan), (2, 5)])


def test_degenerate_fit_is_a_value_error():
  with pytest.raises(ValueError):
    fit_circle([(i, i) for i in range(12)])


def test_fit_system_of_centred_circle():
  points = np.array(circle_points(0, 0, 10, count=4))
  D, E = build_fit_system(points)
  assert D.shape == (3, 3)
  assert E.shape == (3,)
  # Sums of first moments vanish for points centred on the origin
  assert D[0, 0] == pytest.approx(0, abs=1e-9)
  assert D[0, 2] == 4
  assert E[0] == pytest.approx(4 * 100)


def test_fitted_circle_is_immutable():
  circle = FittedCircle(1.0, 2.0, 3.0)
  with pytest.raises(AttributeError):
    circle.radius = 4.0
  cx, cy, r = circle
  assert (cx, cy, r) == (1.0, 2.0, 3.0)
