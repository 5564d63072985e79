#!/usr/bin/env python3
"""
End to end tests for the warping entry points and the command line tool.
"""

import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import matplotlib
matplotlib.use("Agg")

import cv2
import numpy as np
import pytest

from image_warping import cli
from image_warping.cli import main
from image_warping.errors import DegenerateFitError, InsufficientCalibrationPointsError
from image_warping.hemicylinder import HemicylinderProjection
from image_warping.midpoint_circle import MidpointCircleProjection
from image_warping.warp_params import ImageDimensions, Method, WarpParams
from image_warping.warping import create_projection, warp_image


def make_fisheye_image(width=120, height=100):
  img = np.zeros((height, width, 3), dtype=np.uint8)
  cv2.circle(img, (width // 2, height // 2), min(width, height) // 2 - 5, (200, 180, 40), -1)
  cv2.line(img, (0, height // 2), (width, height // 2), (255, 255, 255), 2)
  return img


def circle_point_list(cx, cy, radius, count=12):
  angles = np.linspace(0.0, 2.0 * np.pi, count, endpoint=False)
  return [(int(round(cx + radius * np.cos(a))), int(round(cy + radius * np.sin(a)))) for a in angles]


def write_points(path, points):
  path.write_text("points:\n" + "".join(f"  - [{x}, {y}]\n" for x, y in points))
  return str(path)


def test_create_projection_hemicylinder():
  projection = create_projection(WarpParams(), ImageDimensions(64, 48))
  assert isinstance(projection, HemicylinderProjection)


def test_create_projection_midpoint_circle():
  params = WarpParams(method=Method.MIDPOINT_CIRCLE)
  projection = create_projection(params, ImageDimensions(120, 100), circle_point_list(60, 50, 45))
  assert isinstance(projection, MidpointCircleProjection)
  assert projection.circle.center_x == pytest.approx(60, abs=1.0)


def test_midpoint_circle_requires_points():
  params = WarpParams(method=Method.MIDPOINT_CIRCLE)
  with pytest.raises(InsufficientCalibrationPointsError):
    create_projection(params, ImageDimensions(120, 100))
  with pytest.raises(InsufficientCalibrationPointsError):
    create_projection(params, ImageDimensions(120, 100), circle_point_list(60, 50, 45)[:11])


def test_midpoint_circle_collinear_points():
  params = WarpParams(method='midpoint_circle')
  with pytest.raises(DegenerateFitError):
    create_projection(params, ImageDimensions(120, 100), [(i * 5, 50) for i in range(12)])


def test_warp_image_both_methods():
  img = make_fisheye_image()
  out = warp_image(img, WarpParams(distortion_model='equisolid'))
  assert out.shape == img.shape
  out = warp_image(img, WarpParams(method=1), circle_point_list(60, 50, 45))
  assert out.shape == img.shape


def test_cli_hemicylinder(tmp_path):
  input_path = tmp_path / "fisheye.png"
  output_path = tmp_path / "out" / "warped.png"
  cv2.imwrite(str(input_path), make_fisheye_image())
  assert main([str(input_path), str(output_path)]) == 0
  warped = cv2.imread(str(output_path))
  assert warped.shape == (100, 120, 3)


def test_cli_midpoint_circle_with_points_file(tmp_path):
  input_path = tmp_path / "fisheye.png"
  output_path = tmp_path / "warped.png"
  intermediate_path = tmp_path / "temp.png"
  cv2.imwrite(str(input_path), make_fisheye_image())
  points_path = write_points(tmp_path / "points.yaml", circle_point_list(60, 50, 45))
  
  status = main([str(input_path), str(output_path), "1", "--points", points_path,
                 "--intermediate", str(intermediate_path),
                 "--save-maps", str(tmp_path / "debug_"),
                 "--compare", str(tmp_path / "comparison.png")])
  assert status == 0
  assert output_path.exists()
  assert intermediate_path.exists()
  assert (tmp_path / "debug_MapX.bmp").exists()
  assert (tmp_path / "debug_MapY.bmp").exists()
  assert (tmp_path / "comparison.png").exists()


def test_cli_config_file_and_reference(tmp_path):
  input_path = tmp_path / "fisheye.png"
  output_path = tmp_path / "warped.png"
  config_path = tmp_path / "params.yaml"
  cv2.imwrite(str(input_path), make_fisheye_image(40, 30))
  config_path.write_text("method: hemicylinder\ndistortion_model: none\n")
  assert main([str(input_path), str(output_path), "--config", str(config_path), "--reference"]) == 0
  # No distortion model maps every pixel onto itself
  diff = cv2.absdiff(cv2.imread(str(output_path)), cv2.imread(str(input_path)))
  assert diff.max() <= 1


def test_cli_too_few_points(tmp_path):
  input_path = tmp_path / "fisheye.png"
  cv2.imwrite(str(input_path), make_fisheye_image())
  points_path = write_points(tmp_path / "points.yaml", circle_point_list(60, 50, 45, count=8))
  output_path = tmp_path / "warped.png"
  assert main([str(input_path), str(output_path), "midpoint_circle", "--points", points_path]) == 1
  assert not output_path.exists()


def test_cli_closes_windows_when_point_picking_stops_early(tmp_path, monkeypatch):
  input_path = tmp_path / "fisheye.png"
  cv2.imwrite(str(input_path), make_fisheye_image())
  
  def stop_early(img, num_points, **kwargs):
    raise InsufficientCalibrationPointsError(4, num_points)
  
  closed = []
  monkeypatch.setattr(cli, "collect_calibration_points", stop_early)
  monkeypatch.setattr(cv2, "destroyAllWindows", lambda: closed.append(True))
  assert main([str(input_path), str(tmp_path / "warped.png"), "midpoint_circle"]) == 1
  assert closed == [True]


@pytest.mark.parametrize("extra", [["7"], ["0", "--model", "fisheye"], ["1", "--num-points", "2"]])
def test_cli_rejects_bad_selectors(tmp_path, extra):
  input_path = tmp_path / "fisheye.png"
  cv2.imwrite(str(input_path), make_fisheye_image())
  assert main([str(input_path), str(tmp_path / "warped.png")] + extra) == 1


def test_cli_missing_input(tmp_path):
  assert main([str(tmp_path / "missing.png"), str(tmp_path / "warped.png")]) == 1
