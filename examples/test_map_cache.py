#!/usr/bin/env python3
"""
Tests for the LRU warp map cache.
"""

import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import threading

import numpy as np

from image_warping.circle_fit import FittedCircle
from image_warping.hemicylinder import HemicylinderProjection
from image_warping.map_cache import MapCache
from image_warping.midpoint_circle import MidpointCircleProjection
from image_warping.warp_params import DistortionModel, ImageDimensions


def make_maps(size_mb):
  # float32 pair totalling size_mb megabytes
  count = int(size_mb * 1024 * 1024 / 8)
  return np.zeros(count, dtype=np.float32), np.zeros(count, dtype=np.float32)


def test_get_and_put():
  cache = MapCache()
  assert cache.get('hemicylinder_a') is None
  map_x, map_y = make_maps(1)
  assert cache.put('hemicylinder_a', map_x, map_y)
  cached = cache.get('hemicylinder_a')
  assert cached is not None
  assert 'hemicylinder_a' in cache
  info = cache.get_info()
  assert info['hits'] == 1 and info['misses'] == 1
  assert info['hit_rate'] == 0.5


def test_put_stores_a_copy():
  cache = MapCache()
  map_x, map_y = make_maps(0.01)
  cache.put('midpoint_a', map_x, map_y)
  map_x[:] = 5
  cached_x, _ = cache.get('midpoint_a')
  assert not np.any(cached_x)


def test_get_returns_a_copy():
  cache = MapCache()
  map_x, map_y = make_maps(0.01)
  cache.put('hemicylinder_a', map_x, map_y)
  cached_x, cached_y = cache.get('hemicylinder_a')
  cached_x[:] = -1
  cached_y[:] = -1
  again_x, again_y = cache.get('hemicylinder_a')
  assert not np.any(again_x)
  assert not np.any(again_y)


def test_lru_eviction():
  cache = MapCache(max_memory_mb=2.5)
  cache.put('hemicylinder_a', *make_maps(1))
  cache.put('hemicylinder_b', *make_maps(1))
  # Touch a so that b becomes least recently used
  cache.get('hemicylinder_a')
  cache.put('midpoint_c', *make_maps(1))
  assert cache.keys() == ['hemicylinder_a', 'midpoint_c']
  assert cache.get_info()['evictions'] == 1
  assert cache.memory_usage_mb() <= 2.5


def test_oversized_entry_is_not_cached():
  cache = MapCache(max_memory_mb=1)
  cache.put('hemicylinder_small', *make_maps(0.5))
  assert not cache.put('hemicylinder_big', *make_maps(2))
  assert cache.keys() == ['hemicylinder_small']


def test_replacing_a_key_keeps_one_entry():
  cache = MapCache()
  cache.put('midpoint_a', *make_maps(0.1))
  cache.put('midpoint_a', np.ones(4, dtype=np.float32), np.ones(4, dtype=np.float32))
  assert len(cache) == 1
  assert cache.get('midpoint_a')[0].shape == (4,)


def test_remove_and_clear():
  cache = MapCache()
  cache.put('hemicylinder_a', *make_maps(0.1))
  cache.put('midpoint_b', *make_maps(0.1))
  assert cache.remove('hemicylinder_a')
  assert not cache.remove('hemicylinder_a')
  cache.clear()
  assert len(cache) == 0


def test_shared_cache_counts_by_method():
  cache = MapCache()
  dims = ImageDimensions(64, 48)
  HemicylinderProjection(dims, DistortionModel.EQUIDISTANT, cache=cache).get_projection_maps()
  HemicylinderProjection(dims, DistortionModel.EQUISOLID, cache=cache).get_projection_maps()
  MidpointCircleProjection(dims, FittedCircle(32.0, 24.0, 20.0), cache=cache).get_normalization_maps()
  info = cache.get_info()
  assert info['cached_maps'] == 4
  assert info['maps_by_method'] == {'hemicylinder': 2, 'midpoint': 2}
  cache.print_status()


def test_concurrent_access():
  cache = MapCache(max_memory_mb=1)
  errors = []
  
  def worker(index):
    try:
      for i in range(50):
        key = f"hemicylinder_{index}_{i % 5}"
        if cache.get(key) is None:
          cache.put(key, *make_maps(0.05))
    except Exception as e:
      errors.append(e)
  
  threads = [threading.Thread(target=worker, args=(i,)) for i in range(4)]
  for thread in threads:
    thread.start()
  for thread in threads:
    thread.join()
  
  assert not errors
  assert cache.memory_usage_mb() <= 1
