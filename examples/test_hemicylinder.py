#!/usr/bin/env python3
"""
Tests for the hemicylinder map generator.
"""

import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import numpy as np
import pytest

from image_warping.hemicylinder import HemicylinderProjection, hemicylinder_pixel
from image_warping.map_cache import MapCache
from image_warping.warp_params import DistortionModel, ImageDimensions


@pytest.mark.parametrize("use_vectorized", [True, False])
def test_no_distortion_is_identity(use_vectorized):
  projection = HemicylinderProjection(ImageDimensions(41, 30), DistortionModel.NONE,
                                      use_vectorized=use_vectorized)
  map_x, map_y = projection.get_projection_maps()
  u, v = np.meshgrid(np.arange(41), np.arange(30))
  assert map_x.dtype == np.float32 and map_y.dtype == np.float32
  assert np.array_equal(map_x, u.astype(np.float32))
  assert np.array_equal(map_y, v.astype(np.float32))


def test_right_edge_pixel_maps_to_itself():
  # alpha = 0 puts the ray at theta = pi/2, exactly F*pi/2 = width/2 off centre
  x, y = hemicylinder_pixel(200, 50, 200, 100, DistortionModel.EQUIDISTANT)
  assert x == pytest.approx(200, abs=1e-6)
  assert y == pytest.approx(50, abs=1e-6)


def test_left_edge_pixel_maps_to_left_border():
  x, y = hemicylinder_pixel(0, 50, 200, 100, DistortionModel.EQUIDISTANT)
  assert x == pytest.approx(0, abs=1e-6)
  assert y == pytest.approx(50, abs=1e-6)


@pytest.mark.parametrize("model", [DistortionModel.EQUIDISTANT, DistortionModel.EQUISOLID])
def test_on_axis_pixel_uses_identity_fallback(model):
  x, y = hemicylinder_pixel(100, 50, 200, 100, model)
  assert (x, y) == pytest.approx((100, 50), abs=1e-6)
  assert np.isfinite(x) and np.isfinite(y)


@pytest.mark.parametrize("model", [DistortionModel.EQUIDISTANT, DistortionModel.EQUISOLID])
def test_maps_are_finite(model):
  projection = HemicylinderProjection(ImageDimensions(200, 100), model)
  map_x, map_y = projection.get_projection_maps()
  assert map_x.shape == (100, 200)
  assert np.all(np.isfinite(map_x)) and np.all(np.isfinite(map_y))


def test_centre_row_keeps_its_height():
  projection = HemicylinderProjection(ImageDimensions(200, 100), DistortionModel.EQUIDISTANT)
  _, map_y = projection.get_projection_maps()
  assert np.allclose(map_y[50], 50.0, atol=1e-4)


def test_equisolid_pulls_less_than_equidistant():
  # 2F*sin(theta/2) < F*theta for 0 < theta
  width, height = 200, 100
  x_eqd, y_eqd = hemicylinder_pixel(20, 10, width, height, DistortionModel.EQUIDISTANT)
  x_eqs, y_eqs = hemicylinder_pixel(20, 10, width, height, DistortionModel.EQUISOLID)
  assert abs(x_eqs - 100) < abs(x_eqd - 100)
  assert abs(y_eqs - 50) < abs(y_eqd - 50)


@pytest.mark.parametrize("model", [DistortionModel.EQUIDISTANT, DistortionModel.EQUISOLID])
@pytest.mark.parametrize("width, height", [(64, 48), (160, 130)])
def test_vectorized_matches_reference(model, width, height):
  dims = ImageDimensions(width, height)
  fast_x, fast_y = HemicylinderProjection(dims, model, use_vectorized=True).get_projection_maps()
  ref_x, ref_y = HemicylinderProjection(dims, model, use_vectorized=False).get_projection_maps()
  assert np.allclose(fast_x, ref_x, atol=1e-3)
  assert np.allclose(fast_y, ref_y, atol=1e-3)


def test_generation_is_deterministic():
  dims = ImageDimensions(150, 140)
  first = HemicylinderProjection(dims).get_projection_maps()
  second = HemicylinderProjection(dims).get_projection_maps()
  assert np.array_equal(first[0], second[0])
  assert np.array_equal(first[1], second[1])


def test_maps_are_cached():
  cache = MapCache()
  projection = HemicylinderProjection(ImageDimensions(64, 48), cache=cache)
  first = projection.get_projection_maps()
  second = projection.get_projection_maps()
  assert np.array_equal(first[0], second[0])
  assert len(cache) == 1
  assert projection.get_cache_info()['hits'] == 1
  assert cache.keys(prefix='hemicylinder_') == ['hemicylinder_64x48_equidistant']


def test_cached_maps_survive_caller_edits():
  projection = HemicylinderProjection(ImageDimensions(64, 48))
  first_x, first_y = projection.get_projection_maps()
  expected_x, expected_y = first_x.copy(), first_y.copy()
  hit_x, hit_y = projection.get_projection_maps()
  hit_x[:] = -1
  hit_y[:] = -1
  again_x, again_y = projection.get_projection_maps()
  assert np.array_equal(again_x, expected_x)
  assert np.array_equal(again_y, expected_y)


def test_model_accepts_names_and_codes():
  assert HemicylinderProjection(ImageDimensions(8, 8), 'equisolid').distortion_model is DistortionModel.EQUISOLID
  assert HemicylinderProjection(ImageDimensions(8, 8), -1).distortion_model is DistortionModel.NONE


def test_project_returns_same_size_image():
  img = np.full((48, 64, 3), 200, dtype=np.uint8)
  out = HemicylinderProjection(ImageDimensions(64, 48)).project(img)
  assert out.shape == img.shape
  assert out.dtype == img.dtype


def test_project_rejects_wrong_size():
  img = np.zeros((40, 64, 3), dtype=np.uint8)
  with pytest.raises(ValueError):
    HemicylinderProjection(ImageDimensions(64, 48)).project(img)
