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


class WarpingError(ValueError):
  """Base class for errors raised while building warp maps."""


class InvalidMethodError(WarpingError):
  """Raised when the correction method selector is not recognized."""

  def __init__(self, value):
    self.value = value
    super().__init__(f"Invalid correction method: {value!r} "
                     f"(expected 0/'hemicylinder' or 1/'midpoint_circle')")


class InvalidModelError(WarpingError):
  """Raised when the lens distortion model selector is not recognized."""

  def __init__(self, value):
    self.value = value
    super().__init__(f"Invalid distortion model: {value!r} "
                     f"(expected -1/'none', 0/'equidistant' or 1/'equisolid')")


class InsufficientCalibrationPointsError(WarpingError):
  """Raised when fewer boundary points were marked than the method requires."""

  def __init__(self, received: int, required: int):
    self.received = received
    self.required = required
    super().__init__(f"Insufficient calibration points: got {received}, need {required}")


class DegenerateFitError(WarpingError):
  """
  Raised when calibration points do not define a circle.
  
  Collinear points, coincident points and near-singular least squares
  systems all end up here; no circle and no map is produced.
  """
