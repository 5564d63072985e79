import cv2
import numpy as np
import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from image_warping.calibration import load_calibration_points
from image_warping.circle_fit import fit_circle
from image_warping.hemicylinder import HemicylinderProjection
from image_warping.map_cache import MapCache
from image_warping.midpoint_circle import MidpointCircleProjection
from image_warping.warp_params import DistortionModel, ImageDimensions, parse_warp_params

def create_corrected_views():
  """
  Correct one fisheye image with every lens model and with the midpoint circle method.
  """
  warp_params = parse_warp_params("config/warp_params.yaml")
  
  # Load the fisheye image once
  fisheye_img = cv2.imread("data/fisheye_img.jpg")
  if fisheye_img is None:
    raise ValueError("Could not load data/fisheye_img.jpg")
  
  dimensions = ImageDimensions.from_image(fisheye_img)
  
  # One cache shared by every projection below
  cache = MapCache(warp_params.max_cache_mb)
  os.makedirs("output/warping", exist_ok=True)
  
  print("Creating hemicylinder corrections for each lens model...")
  for model in DistortionModel:
    projector = HemicylinderProjection(dimensions, model, cache=cache)
    corrected = projector.project(fisheye_img, warp_params.border_value)
    output_path = f"output/warping/fisheye_img_hemicylinder_{model.name.lower()}.jpg"
    cv2.imwrite(output_path, corrected)
    print(f"Saved: {output_path}")
  
  print("\nCreating midpoint circle correction from marked boundary points...")
  points = load_calibration_points("config/calibration_points.yaml")
  circle = fit_circle(points)
  projector = MidpointCircleProjection(dimensions, circle, cache=cache)
  corrected = projector.project(fisheye_img, warp_params.border_value,
                                intermediate_path="output/warping/fisheye_img_midpoint_first_pass.jpg")
  cv2.imwrite("output/warping/fisheye_img_midpoint_circle.jpg", corrected)
  print("Saved: output/warping/fisheye_img_midpoint_circle.jpg")
  
  print("\nRepeating the equidistant correction (served from the cache)...")
  HemicylinderProjection(dimensions, DistortionModel.EQUIDISTANT, cache=cache).project(fisheye_img)
  
  cache.print_status()
  info = cache.get_info()
  print(f"Cache hits: {info['hits']}, misses: {info['misses']}")

def compare_lens_models():
  """
  Print where a few output pixels sample the source under each lens model.
  """
  fisheye_img = cv2.imread("data/fisheye_img.jpg")
  if fisheye_img is None:
    raise ValueError("Could not load data/fisheye_img.jpg")
  
  dimensions = ImageDimensions.from_image(fisheye_img)
  samples = [(0, dimensions.height // 2), (dimensions.width // 4, dimensions.height // 4),
             (dimensions.width // 2, 0), (dimensions.width - 1, dimensions.height - 1)]
  
  for model in DistortionModel:
    map_x, map_y = HemicylinderProjection(dimensions, model).get_projection_maps()
    print(f"\n{model.name.lower()}:")
    for u, v in samples:
      print(f"  output ({u}, {v}) <- source ({map_x[v, u]:.1f}, {map_y[v, u]:.1f})")
    print(f"  map_x range: {np.min(map_x):.1f} .. {np.max(map_x):.1f}")

if __name__ == "__main__":
  try:
    create_corrected_views()
    compare_lens_models()
    print("\nAll corrections completed successfully!")
  except Exception as e:
    print(f"Error: {e}")
