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

import argparse
import os
import sys

import cv2

from .calibration import collect_calibration_points, draw_fitted_circle, load_calibration_points
from .compare import display_comparison
from .errors import WarpingError
from .midpoint_circle import MidpointCircleProjection
from .remap import load_image, save_image, save_map_images
from .warp_params import (ImageDimensions, Method, WarpParams, parse_distortion_model,
                          parse_method, parse_warp_params)
from .warping import create_projection

METHOD_HELP = """correction algorithm:
  0 / hemicylinder    (default) requires no manual input, works only for full circular hemi images
  1 / midpoint_circle requires marking points on the circular boundary"""


def build_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(
    prog="image-warping",
    description="Image warping for ultra wide angle lens images.",
    formatter_class=argparse.RawTextHelpFormatter)
  parser.add_argument("input", help="input image file (*.bmp, *.png, *.jpg)")
  parser.add_argument("output", help="output image file")
  parser.add_argument("method", nargs="?", default=None, help=METHOD_HELP)
  parser.add_argument("--model", default=None,
                      help="lens model for the hemicylinder method: equidistant (default), equisolid, none")
  parser.add_argument("--config", default=None, help="YAML warp parameters file")
  parser.add_argument("--points", default=None,
                      help="YAML file with boundary points; skips interactive marking")
  parser.add_argument("--num-points", type=int, default=None,
                      help="number of boundary points to mark (default 12)")
  parser.add_argument("--save-maps", metavar="PREFIX", default=None,
                      help="write the warp maps as PREFIXMapX.bmp / PREFIXMapY.bmp")
  parser.add_argument("--intermediate", default=None,
                      help="write the first pass image of the midpoint circle method here")
  parser.add_argument("--compare", default=None, help="write a side-by-side comparison PNG here")
  parser.add_argument("--reference", action="store_true",
                      help="use the per-pixel reference map generation")
  parser.add_argument("--show", action="store_true", help="display the output image")
  return parser


def load_params(args) -> WarpParams:
  """Read the optional config file and apply command line overrides."""
  params = parse_warp_params(args.config) if args.config else WarpParams()
  
  if args.method is not None:
    params.method = parse_method(args.method)
  if args.model is not None:
    params.distortion_model = parse_distortion_model(args.model)
  if args.num_points is not None:
    params.num_calibration_points = args.num_points
  if args.reference:
    params.use_vectorized = False
  
  params.validate()
  return params


def run(args) -> str:
  params = load_params(args)
  print(f"Warp parameters: {params}")
  
  img = load_image(args.input)
  picks_points = params.method is Method.MIDPOINT_CIRCLE and not args.points
  try:
    return _warp(args, params, img)
  finally:
    if args.show or picks_points:
      cv2.destroyAllWindows()


def _warp(args, params: WarpParams, img) -> str:
  dimensions = ImageDimensions.from_image(img)
  
  points = None
  marked_frame = None
  if params.method is Method.MIDPOINT_CIRCLE:
    if args.points:
      points = load_calibration_points(args.points)
    else:
      points, marked_frame = collect_calibration_points(img, params.num_calibration_points,
                                                        marker_size=params.marker_size)
  
  projection = create_projection(params, dimensions, points)
  
  if marked_frame is not None:
    cv2.imshow("Input Frame", draw_fitted_circle(marked_frame, projection.circle))
    cv2.waitKey(1)
  
  if isinstance(projection, MidpointCircleProjection):
    output = projection.project(img, params.border_value, args.intermediate)
    map_x, map_y = projection.get_normalization_maps()
  else:
    output = projection.project(img, params.border_value)
    map_x, map_y = projection.get_projection_maps()
  
  save_image(args.output, output)
  
  if args.save_maps is not None:
    save_map_images(map_x, map_y, args.save_maps)
  if args.compare:
    display_comparison(img, output, args.compare, map_x, map_y)
  
  if args.show:
    cv2.imshow("Output Frame", output)
    cv2.waitKey(0)
  
  return args.output


def main(argv=None) -> int:
  parser = build_parser()
  args = parser.parse_args(argv)
  
  try:
    output_path = run(args)
  except (WarpingError, ValueError, FileNotFoundError) as e:
    print(f"Error: {e}")
    parser.print_help()
    return 1
  
  print(f"\nImage warping completed: {os.path.abspath(output_path)}")
  return 0


if __name__ == "__main__":
  sys.exit(main())
