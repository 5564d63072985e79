"""
Fisheye Image Warping Examples

This package contains example scripts and tests for the warping algorithms:
- Hemicylinder and midpoint circle correction examples
- Map generation benchmarks
- Tests for the correction engine
"""
