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

import threading
import time
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

# Key prefixes used by the two map generators
MAP_KEY_PREFIXES = ('hemicylinder_', 'midpoint_')


class MapCache:
  """
  Thread-safe LRU store for generated warp maps.
  
  Both generators can share one instance. Entries are (map_x, map_y) pairs
  keyed by a string that starts with the generator's prefix, so statistics
  can be broken down per method. Maps are copied on the way in and on the
  way out, so callers own every array they hand over or get back.
  """
  
  def __init__(self, max_memory_mb: Optional[float] = None):
    """
    Parameters:
    - max_memory_mb: optional memory limit in MB; None disables eviction
    """
    self._entries: OrderedDict[str, Tuple[np.ndarray, np.ndarray, float]] = OrderedDict()
    self._max_memory_mb = max_memory_mb
    self._lock = threading.RLock()
    self._hits = 0
    self._misses = 0
    self._evictions = 0
  
  @staticmethod
  def _entry_mb(map_x: np.ndarray, map_y: np.ndarray) -> float:
    return (map_x.nbytes + map_y.nbytes) / (1024 * 1024)
  
  def get(self, key: str) -> Optional[Tuple[np.ndarray, np.ndarray]]:
    """
    Look up maps and mark them most recently used.
    
    Returns:
    - copies of (map_x, map_y) if present, None otherwise
    """
    with self._lock:
      entry = self._entries.get(key)
      if entry is None:
        self._misses += 1
        return None
      
      self._hits += 1
      map_x, map_y, _ = entry
      self._entries[key] = (map_x, map_y, time.time())
      self._entries.move_to_end(key)
      return (map_x.copy(), map_y.copy())
  
  def put(self, key: str, map_x: np.ndarray, map_y: np.ndarray) -> bool:
    """
    Store a copy of the maps, evicting least recently used entries if needed.
    
    Returns:
    - True if the maps were stored, False if they alone exceed the memory limit
    """
    with self._lock:
      new_mb = self._entry_mb(map_x, map_y)
      
      if key in self._entries:
        del self._entries[key]
      
      if self._max_memory_mb is not None:
        if new_mb > self._max_memory_mb:
          print(f"Warning: maps for {key} ({new_mb:.1f} MB) exceed the cache limit "
                f"of {self._max_memory_mb:.1f} MB, not cached")
          return False
        
        used_mb = self.memory_usage_mb()
        while self._entries and used_mb + new_mb > self._max_memory_mb:
          old_key, (old_x, old_y, _) = self._entries.popitem(last=False)
          freed_mb = self._entry_mb(old_x, old_y)
          used_mb -= freed_mb
          self._evictions += 1
          print(f"LRU evicted: {old_key} (freed {freed_mb:.1f} MB)")
      
      self._entries[key] = (map_x.copy(), map_y.copy(), time.time())
      return True
  
  def remove(self, key: str) -> bool:
    """Remove one entry; returns True if it existed."""
    with self._lock:
      if key in self._entries:
        del self._entries[key]
        return True
      return False
  
  def clear(self) -> None:
    with self._lock:
      self._entries.clear()
  
  def __contains__(self, key: str) -> bool:
    with self._lock:
      return key in self._entries
  
  def __len__(self) -> int:
    with self._lock:
      return len(self._entries)
  
  def memory_usage_mb(self) -> float:
    with self._lock:
      return sum(self._entry_mb(map_x, map_y) for map_x, map_y, _ in self._entries.values())
  
  def keys(self, prefix: Optional[str] = None) -> List[str]:
    """Keys in LRU order (least recently used first), optionally filtered by prefix."""
    with self._lock:
      return [key for key in self._entries if prefix is None or key.startswith(prefix)]
  
  def get_info(self) -> Dict[str, Any]:
    """
    Cache statistics.
    
    Returns:
    - Dictionary with entry counts per method, memory usage and hit/miss/eviction counters
    """
    with self._lock:
      per_method = {prefix.rstrip('_'): 0 for prefix in MAP_KEY_PREFIXES}
      for key in self._entries:
        for prefix in MAP_KEY_PREFIXES:
          if key.startswith(prefix):
            per_method[prefix.rstrip('_')] += 1
      
      lookups = self._hits + self._misses
      return {
        'cached_maps': len(self._entries),
        'maps_by_method': per_method,
        'memory_usage_mb': self.memory_usage_mb(),
        'max_memory_mb': self._max_memory_mb,
        'hits': self._hits,
        'misses': self._misses,
        'hit_rate': self._hits / lookups if lookups else 0.0,
        'evictions': self._evictions
      }
  
  def print_status(self) -> None:
    info = self.get_info()
    by_method = ', '.join(f"{count} {name}" for name, count in info['maps_by_method'].items())
    print(f"Map cache: {info['cached_maps']} entries ({by_method}), "
          f"{info['memory_usage_mb']:.1f} MB, hit rate {info['hit_rate']:.0%}")
    if info['max_memory_mb'] is not None:
      usage_percent = info['memory_usage_mb'] / info['max_memory_mb'] * 100
      print(f"Map cache memory usage: {usage_percent:.1f}% of {info['max_memory_mb']:.1f} MB limit")
