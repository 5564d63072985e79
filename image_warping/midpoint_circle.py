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

from .circle_fit import FittedCircle
from .map_cache import MapCache
from .remap import apply_warp_maps, save_image
from .warp_params import ImageDimensions

# Distances below this count as zero for the xt and PE guards
SINGULARITY_EPS = 1e-9

# Exponent applied to column scale factors above 1; 1.0 leaves them unchanged
NORMALIZATION_EXPONENT = 1.0


def midpoint_circle_pixel(u: float, v: float, circle: FittedCircle) -> Tuple[float, float]:
  """
  Source coordinate of one output pixel under the midpoint circle construction.
  
  For a column at horizontal offset xt from the centre, the arc through the
  top and bottom of the fitted circle and through (xt, 0) is found; AO1 is
  its signed radius. The row offset picks an angle along that arc, blended
  by the ratio of the distances to the centre line and to the circle edge.
  
  Parameters:
  - u, v: output pixel coordinates
  - circle: fitted fisheye circle
  
  Returns:
  - (x, y) source pixel coordinates
  """
  cx, cy, R = circle
  xt = u - cx
  yt = v - cy
  
  # Centre column: the arc degenerates into a straight line
  if abs(xt) < SINGULARITY_EPS:
    return float(u), float(v)
  
  AO1 = (xt * xt + R * R) / (2.0 * xt)
  AB = math.sqrt(xt * xt + R * R)
  AP = yt
  PE = R - yt
  
  b = 2.0 * math.asin(max(-1.0, min(1.0, AB / (2.0 * AO1))))
  
  if abs(PE) < SINGULARITY_EPS:
    # Row on the circle edge: a/(a + 1) tends to 1
    alpha = b
  else:
    a = AP / PE
    if abs(a + 1.0) < SINGULARITY_EPS:
      return float(u), float(v)
    alpha = a * b / (a + 1.0)
  
  x1 = xt - AO1 + AO1 * math.cos(alpha)
  y1 = AO1 * math.sin(alpha)
  return x1 + cx, y1 + cy


def column_scale_factor(min_y1: float, max_y1: float, height: int) -> float:
  """
  Factor by which a column's vertical span exceeds the frame height.
  
  An empty span gives 1.0 so the column is left as the identity.
  """
  factor = (max_y1 - min_y1) / float(height)
  if factor <= 0.0:
    return 1.0
  if factor > 1.0:
    factor = math.pow(factor, NORMALIZATION_EXPONENT)
  return factor


def _normalize_reference(map_x: np.ndarray, map_y: np.ndarray, height: int, width: int,
                         center_y: float) -> np.ndarray:
  factors = np.empty(width, dtype=np.float64)
  for u in range(width):
    # min starts at height and max at 0
    min_y1 = float(height)
    max_y1 = 0.0
    for v in range(height):
      y1 = float(map_y[v, u])
      if y1 < min_y1:
        min_y1 = y1
      if y1 > max_y1:
        max_y1 = y1
    
    factor = column_scale_factor(min_y1, max_y1, height)
    factors[u] = factor
    for v in range(height):
      map_x[v, u] = u
      map_y[v, u] = (v - center_y) / factor + center_y
  return factors


def _normalize_column_chunk(map_x: np.ndarray, map_y: np.ndarray, col_start: int, col_end: int,
                            height: int, center_y: float) -> np.ndarray:
  """Normalize columns [col_start, col_end) in place; returns their scale factors."""
  columns = map_y[:, col_start:col_end].astype(np.float64)
  
  # Reduction over each column first, then the rewrite
  min_y1 = np.minimum(columns.min(axis=0), float(height))
  max_y1 = np.maximum(columns.max(axis=0), 0.0)
  
  factors = (max_y1 - min_y1) / float(height)
  factors = np.where(factors > 1.0, np.power(factors, NORMALIZATION_EXPONENT), factors)
  factors = np.where(factors <= 0.0, 1.0, factors)
  
  rows = np.arange(height, dtype=np.float64)[:, np.newaxis]
  map_x[:, col_start:col_end] = np.arange(col_start, col_end, dtype=np.float32)[np.newaxis, :]
  map_y[:, col_start:col_end] = ((rows - center_y) / factors[np.newaxis, :] + center_y).astype(np.float32)
  
  return factors


def normalize_vertical_range(map_x: np.ndarray, map_y: np.ndarray, dimensions: ImageDimensions,
                             center_y: float, use_vectorized: bool = True) -> np.ndarray:
  """
  Rewrite midpoint circle maps in place so each column's span fits the frame.
  
  Each column u is reduced to the min and max of its map_y values, then the
  column is rewritten as map_x = u, map_y = (v - Cy) / factor + Cy with
  factor = span / height. The result is meant to resample the image that was
  already warped with the unnormalized maps.
  
  Parameters:
  - map_x, map_y: float32 maps of shape (height, width), modified in place
  - dimensions: image dimensions
  - center_y: vertical centre of the fitted circle
  - use_vectorized: if True, process column chunks on a thread pool
  
  Returns:
  - per-column scale factors, shape (width,)
  """
  height, width = dimensions.height, dimensions.width
  if map_x.shape != (height, width) or map_y.shape != (height, width):
    raise ValueError(f"Map shape {map_x.shape} does not match {width}x{height}")
  
  start_time = time.time()
  print(f"Normalizing vertical range of {width} columns")
  
  if not use_vectorized:
    factors = _normalize_reference(map_x, map_y, height, width, center_y)
  elif height < 128 or width < 128:
    factors = _normalize_column_chunk(map_x, map_y, 0, width, height, center_y)
  else:
    num_cores = min(multiprocessing.cpu_count(), 8)
    chunk_size = max(32, width // (num_cores * 2))
    factors = np.empty(width, dtype=np.float64)
    
    # Workers own disjoint column ranges of the shared maps
    with ThreadPoolExecutor(max_workers=num_cores) as executor:
      futures = []
      for col_start in range(0, width, chunk_size):
        col_end = min(col_start + chunk_size, width)
        futures.append((col_start, col_end,
                        executor.submit(_normalize_column_chunk, map_x, map_y,
                                        col_start, col_end, height, center_y)))
      for col_start, col_end, future in futures:
        factors[col_start:col_end] = future.result()
  
  print(f"Column scale factors: min={factors.min():.3f}, max={factors.max():.3f}")
  normalize_time = time.time() - start_time
  print(f"\033[33mVertical range normalization processing time: {normalize_time:.4f} seconds\033[0m")
  
  return factors


class MidpointCircleProjection:
  """
  Fisheye correction driven by a circle fitted to marked boundary points.
  
  Unlike the hemicylinder method the fisheye circle may sit anywhere in the
  frame with any radius. Correction is done in two resampling passes: the
  midpoint circle maps, then the vertical range normalization maps.
  """
  
  def __init__(self, dimensions: ImageDimensions, circle: FittedCircle,
               use_vectorized: bool = True, cache: Optional[MapCache] = None):
    """
    Parameters:
    - dimensions: size of the input image and of the generated maps
    - circle: circle fitted to the fisheye boundary
    - use_vectorized: if True, use threaded NumPy generation; if False, use the per-pixel loops
    - cache: optional shared map cache. If None, creates a new one.
    """
    self.dimensions = dimensions
    self.circle = circle
    self.use_vectorized = use_vectorized
    self.cache = cache if cache is not None else MapCache()
    
    self.width = dimensions.width
    self.height = dimensions.height
    self.cx, self.cy, self.radius = (float(value) for value in circle)
  
  def _generate_cache_key(self, normalized: bool = False) -> str:
    stage = "normalized" if normalized else "warp"
    return (f"midpoint_{stage}_{self.width}x{self.height}"
            f"_cx{self.cx!r}_cy{self.cy!r}_r{self.radius!r}")
  
  def _generate_maps_reference(self) -> Tuple[np.ndarray, np.ndarray]:
    start_time = time.time()
    
    map_x = np.empty((self.height, self.width), dtype=np.float32)
    map_y = np.empty((self.height, self.width), dtype=np.float32)
    
    print(f"Generating midpoint circle maps: {self.width}x{self.height}, {self.circle}")
    
    for u in range(self.width):
      for v in range(self.height):
        map_x[v, u], map_y[v, u] = midpoint_circle_pixel(u, v, self.circle)
    
    map_generation_time = time.time() - start_time
    print(f"\033[33mReference map generation processing time: {map_generation_time:.4f} seconds\033[0m")
    
    return map_x, map_y
  
  def _process_row_chunk(self, row_start: int, row_end: int) -> Tuple[np.ndarray, np.ndarray, int]:
    """
    Compute maps for rows [row_start, row_end).
    
    Returns:
    - (map_x_chunk, map_y_chunk, number of pixels handled by a guard)
    """
    u, v = np.meshgrid(
      np.arange(self.width, dtype=np.float64),
      np.arange(row_start, row_end, dtype=np.float64)
    )
    R = self.radius
    xt = u - self.cx
    yt = v - self.cy
    
    centre_column = np.abs(xt) < SINGULARITY_EPS
    safe_xt = np.where(centre_column, 1.0, xt)
    
    AO1 = (safe_xt * safe_xt + R * R) / (2.0 * safe_xt)
    AB = np.sqrt(safe_xt * safe_xt + R * R)
    AP = yt
    PE = R - yt
    
    b = 2.0 * np.arcsin(np.clip(AB / (2.0 * AO1), -1.0, 1.0))
    
    on_edge = np.abs(PE) < SINGULARITY_EPS
    a = AP / np.where(on_edge, 1.0, PE)
    degenerate = ~on_edge & (np.abs(a + 1.0) < SINGULARITY_EPS)
    blend = np.where(on_edge | degenerate, 1.0, a / np.where(degenerate, 1.0, a + 1.0))
    alpha = blend * b
    
    x1 = xt - AO1 + AO1 * np.cos(alpha) + self.cx
    y1 = AO1 * np.sin(alpha) + self.cy
    
    identity = centre_column | degenerate
    map_x_chunk = np.where(identity, u, x1).astype(np.float32)
    map_y_chunk = np.where(identity, v, y1).astype(np.float32)
    
    guarded = int((centre_column | on_edge | degenerate).sum())
    return map_x_chunk, map_y_chunk, guarded
  
  def _generate_maps_vectorized(self) -> Tuple[np.ndarray, np.ndarray]:
    start_time = time.time()
    
    num_cores = min(multiprocessing.cpu_count(), 8)
    chunk_size = max(32, self.height // (num_cores * 2))
    
    print(f"Generating midpoint circle maps: {self.width}x{self.height}, {self.circle}")
    
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
      print(f"Singularity guards applied to {guarded} pixel(s)")
    
    map_generation_time = time.time() - start_time
    print(f"\033[33mParallel vectorized map generation processing time: {map_generation_time:.4f} seconds\033[0m")
    
    return map_x, map_y
  
  def get_projection_maps(self) -> Tuple[np.ndarray, np.ndarray]:
    """
    First pass maps from the midpoint circle construction (cached).
    
    Returns:
    - map_x, map_y: float32 arrays of shape (height, width)
    """
    cache_key = self._generate_cache_key()
    
    cached_maps = self.cache.get(cache_key)
    if cached_maps is not None:
      print(f"Using cached warp maps: {cache_key}")
      return cached_maps
    
    if self.use_vectorized:
      map_x, map_y = self._generate_maps_vectorized()
    else:
      map_x, map_y = self._generate_maps_reference()
    
    if self.cache.put(cache_key, map_x, map_y):
      print(f"Cached warp maps: {cache_key}")
    
    return map_x, map_y
  
  def get_normalization_maps(self) -> Tuple[np.ndarray, np.ndarray]:
    """
    Second pass maps: the first pass maps after vertical range normalization (cached).
    
    Returns:
    - map_x, map_y: float32 arrays of shape (height, width)
    """
    cache_key = self._generate_cache_key(normalized=True)
    
    cached_maps = self.cache.get(cache_key)
    if cached_maps is not None:
      print(f"Using cached normalization maps: {cache_key}")
      return cached_maps
    
    map_x, map_y = self.get_projection_maps()
    normalize_vertical_range(map_x, map_y, self.dimensions, self.cy, self.use_vectorized)
    
    if self.cache.put(cache_key, map_x, map_y):
      print(f"Cached normalization maps: {cache_key}")
    
    return map_x, map_y
  
  def project(self, input_img: np.ndarray, border_value: int = 0,
              intermediate_path: Optional[str] = None) -> np.ndarray:
    """
    Correct a fisheye image with both resampling passes.
    
    Parameters:
    - input_img: fisheye image with the configured dimensions
    - border_value: fill for pixels that sample outside the image
    - intermediate_path: if given, the image after the first pass is written there
    
    Returns:
    - corrected image of the same size
    """
    img_dimensions = ImageDimensions.from_image(input_img)
    if img_dimensions != self.dimensions:
      raise ValueError(f"Input image size {img_dimensions.width}x{img_dimensions.height} does not match "
                       f"configured size {self.width}x{self.height}")
    
    warp_x, warp_y = self.get_projection_maps()
    norm_x, norm_y = self.get_normalization_maps()
    
    intermediate = apply_warp_maps(input_img, warp_x, warp_y, border_value)
    if intermediate_path:
      save_image(intermediate_path, intermediate)
    
    return apply_warp_maps(intermediate, norm_x, norm_y, border_value)
  
  def clear_cache(self):
    """Clear all cached maps."""
    self.cache.clear()
    print("Warp map cache cleared")
  
  def get_cache_info(self) -> Dict[str, object]:
    return self.cache.get_info()
