"""
Fisheye Image Warping Core Modules

This package contains the geometric correction engine for ultra wide angle images:
- Warp parameter handling and validation
- Hemicylinder projection (calibration free)
- Circle fitting and midpoint circle projection with vertical range normalization
"""

from .errors import (WarpingError, InvalidMethodError, InvalidModelError,
                     InsufficientCalibrationPointsError, DegenerateFitError)
from .warp_params import (Method, DistortionModel, ImageDimensions, WarpParams,
                          parse_method, parse_distortion_model, parse_warp_params)
from .circle_fit import FittedCircle, fit_circle
from .hemicylinder import HemicylinderProjection, hemicylinder_pixel
from .midpoint_circle import MidpointCircleProjection, midpoint_circle_pixel, normalize_vertical_range
from .map_cache import MapCache
from .remap import apply_warp_maps
from .warping import create_projection, warp_image

__all__ = [
  'WarpingError',
  'InvalidMethodError',
  'InvalidModelError',
  'InsufficientCalibrationPointsError',
  'DegenerateFitError',
  'Method',
  'DistortionModel',
  'ImageDimensions',
  'WarpParams',
  'parse_method',
  'parse_distortion_model',
  'parse_warp_params',
  'FittedCircle',
  'fit_circle',
  'HemicylinderProjection',
  'hemicylinder_pixel',
  'MidpointCircleProjection',
  'midpoint_circle_pixel',
  'normalize_vertical_range',
  'MapCache',
  'apply_warp_maps',
  'create_projection',
  'warp_image'
]
