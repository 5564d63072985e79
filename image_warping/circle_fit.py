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

import time
from typing import NamedTuple, Sequence, Tuple

import numpy as np

from .errors import DegenerateFitError

# Condition number above which the 3x3 system is treated as singular
MAX_CONDITION_NUMBER = 1e12

CalibrationPoint = Tuple[int, int]


class FittedCircle(NamedTuple):
  """Circle estimated from boundary points of a fisheye image."""
  center_x: float
  center_y: float
  radius: float
  
  @property
  def center(self) -> Tuple[float, float]:
    return (self.center_x, self.center_y)
  
  def __str__(self):
    return f"FittedCircle(Cx={self.center_x:.2f}, Cy={self.center_y:.2f}, R={self.radius:.2f})"


def point_mean(points: np.ndarray) -> np.ndarray:
  """Centroid of an (N, 2) array of points."""
  return points.mean(axis=0)


def build_fit_system(centered: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
  """
  Build the Kasa least squares system D*Q = E from centred points.
  
  The circle x^2 + y^2 = 2*A*x + 2*B*y + C is fitted in the least squares
  sense; the rows below are its normal equations written with power sums.
  
  Parameters:
  - centered: (N, 2) float64 array of points with their centroid removed
  
  Returns:
  - D: 3x3 system matrix
  - E: right hand side of length 3
  """
  xi = centered[:, 0]
  yi = centered[:, 1]
  n = float(len(centered))
  
  sum_xi = xi.sum()
  sum_yi = yi.sum()
  sum_xi_2 = (xi * xi).sum()
  sum_yi_2 = (yi * yi).sum()
  sum_xi_3 = (xi * xi * xi).sum()
  sum_yi_3 = (yi * yi * yi).sum()
  sum_xi_yi = (xi * yi).sum()
  sum_xi_yi_2 = (xi * yi * yi).sum()
  sum_xi_2_yi = (xi * xi * yi).sum()
  
  D = np.array([
    [2 * sum_xi, 2 * sum_yi, n],
    [2 * sum_xi_2, 2 * sum_xi_yi, sum_xi],
    [2 * sum_xi_yi, 2 * sum_yi_2, sum_yi]
  ], dtype=np.float64)
  
  E = np.array([
    sum_xi_2 + sum_yi_2,
    sum_xi_3 + sum_xi_yi_2,
    sum_xi_2_yi + sum_yi_3
  ], dtype=np.float64)
  
  return D, E


def fit_circle(points: Sequence[CalibrationPoint]) -> FittedCircle:
  """
  Fit a circle to boundary points with an algebraic least squares fit.
  
  Points are translated to their centroid before the power sums are
  accumulated, then the 3x3 system is solved by LU decomposition.
  
  Parameters:
  - points: sequence of (x, y) pixel coordinates on the circle boundary
  
  Returns:
  - FittedCircle with centre and radius in pixels
  
  Raises:
  DegenerateFitError if fewer than 3 distinct points are given, if the points
  are collinear, or if the solution has no real radius.
  """
  start_time = time.time()
  
  pts = np.asarray(points, dtype=np.float64)
  if pts.ndim != 2 or pts.shape[1] != 2:
    raise DegenerateFitError(f"Calibration points must be (x, y) pairs, got shape {pts.shape}")
  if not np.all(np.isfinite(pts)):
    raise DegenerateFitError("Calibration points contain non-finite coordinates")
  
  distinct = len(np.unique(pts, axis=0))
  if distinct < 3:
    raise DegenerateFitError(f"At least 3 distinct points are needed for a circle fit, got {distinct}")
  
  mean = point_mean(pts)
  D, E = build_fit_system(pts - mean)
  
  # Collinear points make the last two rows proportional
  if np.linalg.cond(D) > MAX_CONDITION_NUMBER:
    raise DegenerateFitError("Calibration points are collinear; circle fit system is singular")
  
  try:
    A, B, C = np.linalg.solve(D, E)
  except np.linalg.LinAlgError as e:
    raise DegenerateFitError(f"Circle fit system is singular: {e}")
  
  radicand = C + A * A + B * B
  if not np.isfinite(radicand) or radicand < 0:
    raise DegenerateFitError(f"Circle fit produced no real radius (R^2 = {radicand})")
  
  circle = FittedCircle(float(A + mean[0]), float(B + mean[1]), float(np.sqrt(radicand)))
  
  fit_time = time.time() - start_time
  print(f"Fitted circle to {len(pts)} points: {circle}")
  print(f"\033[33mCircle fit processing time: {fit_time:.4f} seconds\033[0m")
  
  return circle
