"""
MIT License

Copyright (c) 2025 Pan Yu

Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software"), to deal
in the Software without restriction, including without limitation the rights
to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
copies of the Software, and to permit persons to whom the Software is
furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included in all
copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
SOFTWARE.

Author: Pan Yu
"""

from typing import List, Sequence, Tuple

import cv2
import numpy as np
import yaml

from .circle_fit import CalibrationPoint, FittedCircle
from .errors import InsufficientCalibrationPointsError

ESC_KEY = 27

MARKER_COLOR = (0, 0, 255)  # red in BGR
CIRCLE_COLOR = (0, 255, 0)  # green in BGR


class PointCollector:
  """
  Accumulates boundary points clicked on the input image.
  
  The instance is bound to the HighGUI mouse callback; the loop that drives
  the window polls is_complete() to know when enough points are marked.
  """
  
  def __init__(self, required: int = 12):
    self.required = required
    self.points: List[CalibrationPoint] = []
  
  def add(self, x: int, y: int) -> None:
    self.points.append((int(x), int(y)))
    print(f"Point No. {len(self.points)} - position ({x}, {y})")
  
  def is_complete(self) -> bool:
    return len(self.points) >= self.required
  
  def on_mouse(self, event, x, y, flags, param) -> None:
    if event == cv2.EVENT_LBUTTONDOWN:
      self.add(x, y)


def draw_cross(img: np.ndarray, point: CalibrationPoint, size: int = 5) -> None:
  """Draw an X centred on a point, in place."""
  x, y = point
  cv2.line(img, (x - size, y - size), (x + size, y + size), MARKER_COLOR)
  cv2.line(img, (x - size, y + size), (x + size, y - size), MARKER_COLOR)


def draw_fitted_circle(img: np.ndarray, circle: FittedCircle) -> np.ndarray:
  """Draw the fitted circle, in place, and return the image."""
  center = (int(round(circle.center_x)), int(round(circle.center_y)))
  cv2.circle(img, center, int(round(circle.radius)), CIRCLE_COLOR)
  return img


def require_calibration_points(points: Sequence[CalibrationPoint], required: int) -> List[CalibrationPoint]:
  """
  Check that enough points were collected before fitting.
  
  Raises:
  InsufficientCalibrationPointsError if fewer than required points are given.
  """
  if len(points) < required:
    raise InsufficientCalibrationPointsError(len(points), required)
  return list(points)


def collect_calibration_points(img: np.ndarray, num_points: int = 12,
                               window_name: str = "Input Frame", marker_size: int = 5,
                               poll_ms: int = 250) -> Tuple[List[CalibrationPoint], np.ndarray]:
  """
  Let the user click points on the fisheye circle boundary.
  
  A copy of the image is shown and every left click is marked with a red
  cross. The loop ends once num_points points are marked. Pressing Esc or
  closing the window ends it early.
  
  Parameters:
  - img: image to display
  - num_points: number of points to collect
  - window_name: HighGUI window title
  - marker_size: half length in pixels of each cross
  - poll_ms: wait between redraws
  
  Returns:
  - (points, annotated copy of the image)
  
  Raises:
  InsufficientCalibrationPointsError if the window was dismissed early.
  """
  print(f"\nPlease mark {num_points} points on the boundary of the circle\n")
  
  frame = img.copy()
  collector = PointCollector(num_points)
  drawn = 0
  
  cv2.imshow(window_name, frame)
  cv2.setMouseCallback(window_name, collector.on_mouse)
  
  try:
    while not collector.is_complete():
      key = cv2.waitKey(poll_ms) & 0xFF
      
      for point in collector.points[drawn:]:
        draw_cross(frame, point, marker_size)
      drawn = len(collector.points)
      
      if key == ESC_KEY or cv2.getWindowProperty(window_name, cv2.WND_PROP_VISIBLE) < 1:
        break
      cv2.imshow(window_name, frame)
  finally:
    cv2.setMouseCallback(window_name, lambda *args: None)
  
  points = require_calibration_points(collector.points, num_points)
  for point in points[drawn:]:
    draw_cross(frame, point, marker_size)
  
  return points[:num_points], frame


def load_calibration_points(filename: str) -> List[CalibrationPoint]:
  """
  Load boundary points from a YAML file, for runs without a display.
  
  Expected format:
  
    points:
      - [412, 37]
      - [620, 118]
  
  Raises:
  FileNotFoundError if the file doesn't exist.
  ValueError if the format is invalid.
  """
  try:
    with open(filename, 'r') as f:
      data = yaml.safe_load(f)
  except FileNotFoundError:
    raise FileNotFoundError(f"Calibration points file not found: {filename}")
  except yaml.YAMLError as e:
    raise ValueError(f"Invalid YAML format in file '{filename}': {e}")
  
  try:
    raw_points = data['points']
    points = []
    for entry in raw_points:
      if len(entry) != 2:
        raise ValueError(f"Point must have 2 coordinates: {entry}")
      points.append((int(entry[0]), int(entry[1])))
  except (KeyError, TypeError) as e:
    raise ValueError(f"Missing or malformed 'points' list in YAML file '{filename}': {e}")
  
  print(f"Loaded {len(points)} calibration points from {filename}")
  return points
