"""
Benchmark script comparing reference and threaded vectorized map generation.

Map generation time is measured for several image sizes for both correction
methods, including the vertical range normalization pass.
"""

import sys
import os
import time

# Add the parent directory to the path so we can import our modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from image_warping.circle_fit import FittedCircle
from image_warping.hemicylinder import HemicylinderProjection
from image_warping.midpoint_circle import MidpointCircleProjection
from image_warping.warp_params import DistortionModel, ImageDimensions

def time_maps(create_maps, width, height):
  start_time = time.time()
  map_x, map_y = create_maps()
  total_time = time.time() - start_time
  
  total_pixels = width * height
  pixels_per_second = total_pixels / total_time if total_time > 0 else 0
  
  print(f"✓ Total processing time: {total_time:.4f} seconds")
  print(f"✓ Performance: {pixels_per_second:,.0f} pixels/second")
  print(f"✓ Memory usage: {(map_x.nbytes + map_y.nbytes) / 1024 / 1024:.1f} MB")
  return total_time

def benchmark_map_generation(include_reference=True):
  """Benchmark both correction methods over increasing image sizes."""
  
  print("=" * 60)
  print("FISHEYE WARP MAP GENERATION BENCHMARK")
  print("=" * 60)
  
  test_sizes = [
    (320, 240, "Small"),
    (1280, 720, "Medium"),
    (1920, 1080, "Large"),
    (3840, 2160, "Very Large")
  ]
  
  for width, height, size_name in test_sizes:
    dimensions = ImageDimensions(width, height)
    circle = FittedCircle(width / 2.0, height / 2.0, min(width, height) / 2.0)
    
    print(f"\n{size_name} image size: {width}x{height}")
    print("-" * 40)
    
    print("Hemicylinder (vectorized):")
    vectorized_time = time_maps(
      HemicylinderProjection(dimensions, DistortionModel.EQUIDISTANT).get_projection_maps, width, height)
    
    print("Midpoint circle + normalization (vectorized):")
    time_maps(MidpointCircleProjection(dimensions, circle).get_normalization_maps, width, height)
    
    # The per-pixel loops are too slow beyond the small size
    if include_reference and size_name == "Small":
      print("Hemicylinder (reference):")
      reference_time = time_maps(
        HemicylinderProjection(dimensions, DistortionModel.EQUIDISTANT,
                               use_vectorized=False).get_projection_maps, width, height)
      print(f"✓ Speedup: {reference_time / max(vectorized_time, 1e-9):.1f}x")
  
  print("\n" + "=" * 60)
  print("BENCHMARK COMPLETED")
  print("=" * 60)

if __name__ == "__main__":
  benchmark_map_generation()
