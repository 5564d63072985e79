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

from typing import Optional, Sequence, Union

import numpy as np

from .calibration import require_calibration_points
from .circle_fit import CalibrationPoint, fit_circle
from .errors import InvalidMethodError
from .hemicylinder import HemicylinderProjection
from .map_cache import MapCache
from .midpoint_circle import MidpointCircleProjection
from .warp_params import ImageDimensions, Method, WarpParams

Projection = Union[HemicylinderProjection, MidpointCircleProjection]


def create_projection(params: WarpParams, dimensions: ImageDimensions,
                      points: Optional[Sequence[CalibrationPoint]] = None,
                      cache: Optional[MapCache] = None) -> Projection:
  """
  Build the projection object for the configured method.
  
  For the midpoint circle method the calibration points are checked against
  params.num_calibration_points and fitted before anything else happens.
  
  Parameters:
  - params: run configuration
  - dimensions: input image dimensions
  - points: boundary points, required by the midpoint circle method
  - cache: optional shared map cache
  
  Raises:
  InvalidMethodError, InsufficientCalibrationPointsError, DegenerateFitError
  """
  if cache is None:
    cache = MapCache(params.max_cache_mb)
  
  if params.method is Method.HEMICYLINDER:
    return HemicylinderProjection(dimensions, params.distortion_model,
                                  use_vectorized=params.use_vectorized, cache=cache)
  
  if params.method is Method.MIDPOINT_CIRCLE:
    points = require_calibration_points(points if points is not None else [], params.num_calibration_points)
    circle = fit_circle(points)
    return MidpointCircleProjection(dimensions, circle,
                                    use_vectorized=params.use_vectorized, cache=cache)
  
  raise InvalidMethodError(params.method)


def warp_image(img: np.ndarray, params: WarpParams,
               points: Optional[Sequence[CalibrationPoint]] = None,
               intermediate_path: Optional[str] = None) -> np.ndarray:
  """
  Correct a fisheye image end to end with the configured method.
  
  Returns:
  - corrected image of the same size as img
  """
  dimensions = ImageDimensions.from_image(img)
  projection = create_projection(params, dimensions, points)
  
  if isinstance(projection, MidpointCircleProjection):
    return projection.project(img, params.border_value, intermediate_path)
  return projection.project(img, params.border_value)
