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

from typing import Optional

import cv2
import matplotlib.pyplot as plt
import numpy as np


def display_comparison(original: np.ndarray, warped: np.ndarray, output_path: str = 'comparison.png',
                       map_x: Optional[np.ndarray] = None, map_y: Optional[np.ndarray] = None,
                       show: bool = False) -> str:
  """
  Save the fisheye image and its corrected version side by side.
  
  When maps are given they are added as two extra panels.
  
  Parameters:
  - original, warped: BGR images
  - output_path: PNG file to write
  - map_x, map_y: optional warp maps to display
  - show: if True, also open the figure window
  
  Returns:
  - output_path
  """
  panels = [
    ('Original Fisheye Image', cv2.cvtColor(original, cv2.COLOR_BGR2RGB), None),
    ('Corrected Image', cv2.cvtColor(warped, cv2.COLOR_BGR2RGB), None)
  ]
  if map_x is not None and map_y is not None:
    panels.append(('Map X', map_x, 'viridis'))
    panels.append(('Map Y', map_y, 'viridis'))
  
  fig, axes = plt.subplots(1, len(panels), figsize=(7.5 * len(panels), 7))
  for ax, (title, data, cmap) in zip(axes, panels):
    ax.imshow(data, cmap=cmap)
    ax.set_title(title, fontsize=14)
    ax.axis('off')
  
  plt.tight_layout()
  fig.savefig(output_path, dpi=150, bbox_inches='tight')
  if show:
    plt.show()
  plt.close(fig)
  
  print(f"Comparison saved as '{output_path}'")
  return output_path
