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

import math
import multiprocessing
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Optional, Tuple

import numpy as np

from .map_cache import MapCache
from .remap import apply_warp_maps
from .warp_params import DistortionModel, ImageDimensions, parse_distortion_model

# Off-axis distance below which a pixel is treated as lying on the optical axis
SINGULARITY_EPS = 1e-9


def hemicylinder_pixel(u: float, v: float, width: int, height: int,
                       model: DistortionModel) -> Tuple[float, float]:
  """
  Source coordinate of one output pixel under the hemicylinder model.
  
  The output column u is read as an angle around a virtual hemicylinder of
  radius width/pi, which is then imaged through the selected fisheye model.
  Works for any (u, v), including points outside the image.
  
  Parameters:
  - u, v: output pixel coordinates
  - width, height: image dimensions
  - model: lens projection model
  
  Returns:
  - (x, y) source pixel coordinates
  """
  cx = width / 2.0
  cy = height / 2.0
  r = width / math.pi
  F = r
  
  if model is DistortionModel.NONE:
    return float(u), float(v)
  
  alpha = (width - u) / r
  xp = r * math.cos(alpha)
  yp = v - cy
  zp = r * abs(math.sin(alpha))
  
  rp = math.hypot(xp, yp)
  if rp < SINGULARITY_EPS:
    # On the optical axis: the direction is undefined, the offset is zero
    return float(u), float(v)
  
  theta = math.atan2(rp, zp)
  
  if model is DistortionModel.EQUIDISTANT:
    radial = F * theta
  elif model is DistortionModel.EQUISOLID:
    radial = 2.0 * F * math.sin(theta / 2.0)
  else:
    raise ValueError(f"Unhandled distortion model: {model}")
  
  x1 = radial * xp / rp
  y1 = radial * yp / rp
  return x1 + cx, y1 + cy


class HemicylinderProjection:
  """
  Calibration-free fisheye correction for full circular fisheye images.
  
  The fisheye circle is assumed to be centred in the frame and to span the
  full image width. Generated maps are cached, so warping many frames of
  the same size costs one map generation.
  """
  
  def __init__(self, dimensions: ImageDimensions,
               distortion_model: DistortionModel = DistortionModel.EQUIDISTANT,
               use_vectorized: bool = True, cache: Optional[MapCache] = None):
    """
    Parameters:
    - dimensions: size of the input image and of the generated maps
    - distortion_model: lens model (DistortionModel, integer code or name)
    - use_vectorized: if True, use threaded NumPy generation; if False, use the per-pixel loop
    - cache: optional shared map cache. If None, creates a new one.
    """
    self.dimensions = dimensions
    self.distortion_model = parse_distortion_model(distortion_model)
    self.use_vectorized = use_vectorized
    self.cache = cache if cache is not None else MapCache()
    
    self.width = dimensions.width
    self.height = dimensions.height
    self.cx = self.width / 2.0
    self.cy = self.height / 2.0
    self.radius = self.width / np.pi
    self.focal = self.width / np.pi
  
  def _generate_cache_key(self) -> str:
    return f"hemicylinder_{self.width}x{self.height}_{self.distortion_model.name.lower()}"
  
  def _generate_maps(self) -> Tuple[np.ndarray, np.ndarray]:
    if self.use_vectorized:
      print("Using vectorized (fast) map generation")
      return self._generate_maps_vectorized()
    else:
      print("Using reference (per-pixel) map generation")
      return self._generate_maps_reference()
  
  def _generate_maps_reference(self) -> Tuple[np.ndarray, np.ndarray]:
    """Per-pixel loop over hemicylinder_pixel(); slow, kept for checking the vectorized path."""
    start_time = time.time()
    
    map_x = np.empty((self.height, self.width), dtype=np.float32)
    map_y = np.empty((self.height, self.width), dtype=np.float32)
    
    print(f"Generating hemicylinder maps: {self.width}x{self.height}, "
          f"model={self.distortion_model.name.lower()}")
    
    for v in range(self.height):
      for u in range(self.width):
        map_x[v, u], map_y[v, u] = hemicylinder_pixel(u, v, self.width, self.height,
                                                      self.distortion_model)
    
    map_generation_time = time.time() - start_time
    print(f"\033[33mReference map generation processing time: {map_generation_time:.4f} seconds\033[0m")
    
    return map_x, map_y
  
  def _process_row_chunk(self, row_start: int, row_end: int) -> Tuple[np.ndarray, np.ndarray, int]:
    """
    Compute maps for rows [row_start, row_end).
    
    Returns:
    - (map_x_chunk, map_y_chunk, number of on-axis pixels that took the identity fallback)
    """
    u, v = np.meshgrid(
      np.arange(self.width, dtype=np.float64),
      np.arange(row_start, row_end, dtype=np.float64)
    )
    
    if self.distortion_model is DistortionModel.NONE:
      return u.astype(np.float32), v.astype(np.float32), 0
    
    alpha = (self.width - u) / self.radius
    xp = self.radius * np.cos(alpha)
    yp = v - self.cy
    zp = self.radius * np.abs(np.sin(alpha))
    
    rp = np.hypot(xp, yp)
    on_axis = rp < SINGULARITY_EPS
    safe_rp = np.where(on_axis, 1.0, rp)
    
    # atan2 keeps zp == 0 (the image edges) finite at theta = pi/2
    theta = np.arctan2(rp, zp)
    
    if self.distortion_model is DistortionModel.EQUIDISTANT:
      radial = self.focal * theta
    else:
      radial = 2.0 * self.focal * np.sin(theta / 2.0)
    
    x1 = radial * xp / safe_rp + self.cx
    y1 = radial * yp / safe_rp + self.cy
    
    map_x_chunk = np.where(on_axis, u, x1).astype(np.float32)
    map_y_chunk = np.where(on_axis, v, y1).astype(np.float32)
    
    return map_x_chunk, map_y_chunk, int(on_axis.sum())
  
  def _generate_maps_vectorized(self) -> Tuple[np.ndarray, np.ndarray]:
    """Vectorized generation over row chunks, run on a thread pool for large images."""
    start_time = time.time()
    
    num_cores = min(multiprocessing.cpu_count(), 8)
    min_chunk_size = 32
    chunk_size = max(min_chunk_size, self.height // (num_cores * 2))
    
    print(f"Generating hemicylinder maps: {self.width}x{self.height}, "
          f"model={self.distortion_model.name.lower()}")
    
    map_x = np.empty((self.height, self.width), dtype=np.float32)
    map_y = np.empty((self.height, self.width), dtype=np.float32)
    guarded = 0
    
    if self.height < 128 or self.width < 128:
      print("Using single-threaded processing for small image")
      map_x[:], map_y[:], guarded = self._process_row_chunk(0, self.height)
    else:
      print(f"Using {num_cores} threads with chunk size {chunk_size} rows")
      with ThreadPoolExecutor(max_workers=num_cores) as executor:
        futures = []
        for row_start in range(0, self.height, chunk_size):
          row_end = min(row_start + chunk_size, self.height)
          futures.append((row_start, row_end,
                          executor.submit(self._process_row_chunk, row_start, row_end)))
        
        for row_start, row_end, future in futures:
          map_x_chunk, map_y_chunk, chunk_guarded = future.result()
          map_x[row_start:row_end] = map_x_chunk
          map_y[row_start:row_end] = map_y_chunk
          guarded += chunk_guarded
    
    if guarded:
      print(f"On-axis guard applied to {guarded} pixel(s)")
    
    map_generation_time = time.time() - start_time
    print(f"\033[33mParallel vectorized map generation processing time: {map_generation_time:.4f} seconds\033[0m")
    
    return map_x, map_y
  
  def get_projection_maps(self) -> Tuple[np.ndarray, np.ndarray]:
    """
    Get the warp maps, generating and caching them on first use.
    
    Returns:
    - map_x, map_y: float32 arrays of shape (height, width)
    """
    cache_key = self._generate_cache_key()
    
    cached_maps = self.cache.get(cache_key)
    if cached_maps is not None:
      print(f"Using cached warp maps: {cache_key}")
      return cached_maps
    
    map_x, map_y = self._generate_maps()
    
    if self.cache.put(cache_key, map_x, map_y):
      print(f"Cached warp maps: {cache_key}")
    
    return map_x, map_y
  
  def project(self, input_img: np.ndarray, border_value: int = 0) -> np.ndarray:
    """
    Correct a fisheye image.
    
    Parameters:
    - input_img: fisheye image with the configured dimensions
    - border_value: fill for pixels that sample outside the image
    
    Returns:
    - corrected image of the same size
    """
    img_dimensions = ImageDimensions.from_image(input_img)
    if img_dimensions != self.dimensions:
      raise ValueError(f"Input image size {img_dimensions.width}x{img_dimensions.height} does not match "
                       f"configured size {self.width}x{self.height}")
    
    map_x, map_y = self.get_projection_maps()
    return apply_warp_maps(input_img, map_x, map_y, border_value)
  
  def clear_cache(self):
    """Clear all cached maps."""
    self.cache.clear()
    print("Warp map cache cleared")
  
  def get_cache_info(self) -> Dict[str, object]:
    return self.cache.get_info()
