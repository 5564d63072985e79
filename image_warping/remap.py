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

import os
import time
from typing import Tuple

import cv2
import numpy as np


def load_image(path: str) -> np.ndarray:
  """
  Load an image with OpenCV.
  
  Raises:
  ValueError if the file is missing or cannot be decoded.
  """
  img = cv2.imread(path)
  if img is None:
    raise ValueError(f"Could not load image: {path}")
  print(f"Loaded image {path}: {img.shape[1]}x{img.shape[0]}")
  return img


def save_image(path: str, img: np.ndarray) -> str:
  """Write an image, creating the parent directory if needed."""
  parent = os.path.dirname(path)
  if parent:
    os.makedirs(parent, exist_ok=True)
  if not cv2.imwrite(path, img):
    raise ValueError(f"Could not write image: {path}")
  print(f"Saved: {path}")
  return path


def apply_warp_maps(img: np.ndarray, map_x: np.ndarray, map_y: np.ndarray, border_value: int = 0) -> np.ndarray:
  """
  Resample an image through a pair of warp maps.
  
  Parameters:
  - img: source image as numpy array
  - map_x: source x coordinate for each output pixel (float32)
  - map_y: source y coordinate for each output pixel (float32)
  - border_value: fill for output pixels that sample outside the source
  
  Returns:
  - warped image with the maps' extent
  """
  if img is None:
    raise ValueError("Input image is None")
  if map_x.shape != map_y.shape:
    raise ValueError(f"Map shapes differ: {map_x.shape} vs {map_y.shape}")
  
  output_height, output_width = map_x.shape
  print(f"Applying warp maps using OpenCV remap to create {output_width}x{output_height} image")
  
  start_time = time.time()
  
  # Bicubic sampling with a constant border
  result = cv2.remap(img, map_x.astype(np.float32, copy=False), map_y.astype(np.float32, copy=False),
                     cv2.INTER_CUBIC, borderMode=cv2.BORDER_CONSTANT, borderValue=border_value)
  
  remap_time = time.time() - start_time
  print(f"\033[33mOpenCV remap processing time: {remap_time:.4f} seconds\033[0m")
  
  return result


def map_to_image(map_values: np.ndarray) -> np.ndarray:
  """Scale a float map to an 8-bit image for inspection (constant maps become black)."""
  return cv2.normalize(map_values, None, 0, 255, cv2.NORM_MINMAX, dtype=cv2.CV_8U)


def save_map_images(map_x: np.ndarray, map_y: np.ndarray, prefix: str = "") -> Tuple[str, str]:
  """
  Dump both maps as grayscale bitmaps, <prefix>MapX.bmp and <prefix>MapY.bmp.
  
  Returns:
  - paths of the two written files
  """
  path_x = save_image(f"{prefix}MapX.bmp", map_to_image(map_x))
  path_y = save_image(f"{prefix}MapY.bmp", map_to_image(map_y))
  return path_x, path_y
