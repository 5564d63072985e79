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

from enum import Enum
from numbers import Integral
from typing import Tuple, Union

import yaml

from .errors import InvalidMethodError, InvalidModelError


class Method(Enum):
  """Correction algorithm. Values are the command line codes."""
  HEMICYLINDER = 0
  MIDPOINT_CIRCLE = 1


class DistortionModel(Enum):
  """Lens projection model used by the hemicylinder method."""
  NONE = -1
  EQUIDISTANT = 0
  EQUISOLID = 1


def _parse_enum(enum_cls, value, error_cls):
  if isinstance(value, enum_cls):
    return value
  # bool is an int subclass but never a valid selector
  if isinstance(value, bool):
    raise error_cls(value)
  if isinstance(value, Integral):
    try:
      return enum_cls(int(value))
    except ValueError:
      raise error_cls(value)
  if isinstance(value, str):
    text = value.strip()
    try:
      return enum_cls(int(text))
    except ValueError:
      pass
    key = text.upper().replace('-', '_')
    if key in enum_cls.__members__:
      return enum_cls[key]
  raise error_cls(value)


def parse_method(value: Union[int, str, Method]) -> Method:
  """
  Convert an integer code or name into a Method.
  
  Accepts 0/1, 'hemicylinder', 'midpoint_circle' and 'midpoint-circle'.
  
  Raises:
  InvalidMethodError for anything else.
  """
  return _parse_enum(Method, value, InvalidMethodError)


def parse_distortion_model(value: Union[int, str, DistortionModel]) -> DistortionModel:
  """
  Convert an integer code or name into a DistortionModel.
  
  Raises:
  InvalidModelError for anything else.
  """
  return _parse_enum(DistortionModel, value, InvalidModelError)


class ImageDimensions:
  """
  Width and height of the input image and of every generated map.
  
  Instances are immutable; attributes cannot be reassigned after creation.
  """
  
  __slots__ = ('width', 'height')
  
  def __init__(self, width: int, height: int):
    object.__setattr__(self, 'width', width)
    object.__setattr__(self, 'height', height)
    self.validate()
  
  def __setattr__(self, name, value):
    raise AttributeError("ImageDimensions is immutable")
  
  @classmethod
  def from_image(cls, img) -> 'ImageDimensions':
    """Build dimensions from a decoded image array (rows, cols[, channels])."""
    if img is None:
      raise ValueError("Input image is None")
    height, width = img.shape[:2]
    return cls(int(width), int(height))
  
  def validate(self):
    """
    Raises:
    ValueError if width or height is not a positive integer.
    """
    for name, value in (('width', self.width), ('height', self.height)):
      if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Image {name} must be an integer, got {value!r}")
    if self.width <= 0 or self.height <= 0:
      raise ValueError(f"Invalid image dimensions: {self.width}x{self.height}")
  
  def get_image_size(self) -> Tuple[int, int]:
    """Tuple (width, height), the order OpenCV expects for sizes."""
    return (self.width, self.height)
  
  def __eq__(self, other):
    if not isinstance(other, ImageDimensions):
      return NotImplemented
    return self.width == other.width and self.height == other.height
  
  def __hash__(self):
    return hash((self.width, self.height))
  
  def __repr__(self):
    return f"ImageDimensions({self.width}x{self.height})"


class WarpParams:
  """
  Run configuration for the warping tool.
  
  Holds the correction method, the lens model for the hemicylinder method,
  the number of boundary points the midpoint circle method asks for, and a
  few processing options. Loaded from YAML by parse_warp_params().
  """
  
  def __init__(self, method=Method.HEMICYLINDER, distortion_model=DistortionModel.EQUIDISTANT,
               num_calibration_points=12, use_vectorized=True, max_cache_mb=None,
               border_value=0, marker_size=5):
    """
    Initialize warp parameters.
    
    Parameters:
    - method: Method, integer code or name
    - distortion_model: DistortionModel, integer code or name
    - num_calibration_points: boundary points to collect for the midpoint circle method
    - use_vectorized: if True, use threaded NumPy map generation; if False, use the per-pixel loops
    - max_cache_mb: memory limit for the map cache, None for unlimited
    - border_value: fill value for pixels that sample outside the input image
    - marker_size: half length in pixels of the cross drawn at each clicked point
    """
    self.method = parse_method(method)
    self.distortion_model = parse_distortion_model(distortion_model)
    self.num_calibration_points = num_calibration_points
    self.use_vectorized = use_vectorized
    self.max_cache_mb = max_cache_mb
    self.border_value = border_value
    self.marker_size = marker_size
  
  def to_dict(self):
    """
    Convert warp parameters to a plain dictionary (enums as names).
    """
    return {
      'method': self.method.name.lower(),
      'distortion_model': self.distortion_model.name.lower(),
      'num_calibration_points': self.num_calibration_points,
      'use_vectorized': self.use_vectorized,
      'max_cache_mb': self.max_cache_mb,
      'border_value': self.border_value,
      'marker_size': self.marker_size
    }
  
  def validate(self):
    """
    Validate warp parameters.
    
    Raises:
    ValueError if any parameter is invalid or out of range.
    """
    if isinstance(self.num_calibration_points, bool) or not isinstance(self.num_calibration_points, int):
      raise ValueError(f"num_calibration_points must be an integer: {self.num_calibration_points!r}")
    
    # Three points define a circle; fewer can never be fitted
    if self.num_calibration_points < 3:
      raise ValueError(f"num_calibration_points must be at least 3: {self.num_calibration_points}")
    
    if not isinstance(self.use_vectorized, bool):
      raise ValueError(f"use_vectorized must be true or false: {self.use_vectorized!r}")
    
    if self.max_cache_mb is not None and self.max_cache_mb <= 0:
      raise ValueError(f"max_cache_mb must be positive: {self.max_cache_mb}")
    
    if not (0 <= self.border_value <= 255):
      raise ValueError(f"border_value must be within 0..255: {self.border_value}")
    
    if self.marker_size < 1:
      raise ValueError(f"marker_size must be at least 1: {self.marker_size}")
  
  def __str__(self):
    return (f"WarpParams(method={self.method.name.lower()}, "
            f"model={self.distortion_model.name.lower()}, "
            f"points={self.num_calibration_points}, vectorized={self.use_vectorized}, "
            f"max_cache_mb={self.max_cache_mb}, border={self.border_value})")
  
  def __repr__(self):
    return self.__str__()


def parse_warp_params(filename):
  """
  Parse warp parameters from a YAML file and return a WarpParams object.
  
  Every key is optional; missing keys keep their defaults. Example:
  
    method: midpoint_circle
    distortion_model: equidistant
    num_calibration_points: 12
  
  Parameters:
  - filename: path to YAML parameters file
  
  Returns:
  WarpParams object with loaded parameters.
  
  Raises:
  FileNotFoundError if the file doesn't exist.
  InvalidMethodError / InvalidModelError for unknown selectors.
  ValueError if the file format or any value is invalid.
  """
  try:
    with open(filename, 'r') as f:
      data = yaml.safe_load(f)
  except FileNotFoundError:
    raise FileNotFoundError(f"Warp parameters file not found: {filename}")
  except yaml.YAMLError as e:
    raise ValueError(f"Invalid YAML format in file '{filename}': {e}")
  
  if data is None:
    data = {}
  if not isinstance(data, dict):
    raise ValueError(f"Warp parameters file '{filename}' must contain a mapping")
  
  known = set(WarpParams().to_dict())
  unknown = set(data) - known
  if unknown:
    raise ValueError(f"Unknown parameters in YAML file: {sorted(unknown)}")
  
  try:
    warp_params = WarpParams(**data)
    warp_params.validate()
  except TypeError as e:
    raise ValueError(f"Invalid parameter format in YAML file: {e}")
  
  return warp_params
