"""Caching of GitHub API responses."""

import os
import json
import hashlib
import logging
from datetime import datetime
from typing import Any, Dict, Optional

DEFAULT_CACHE_FILE = '.repo_pulse_cache.json'


class CacheManager:
    """JSON file cache for remote responses, keyed by repository and endpoint."""

    def __init__(self, cache_file: str = DEFAULT_CACHE_FILE, use_cache: bool = True):
        """Initialize the cache manager.

        Args:
            cache_file: Path to the cache file
            use_cache: Whether caching is enabled
        """
        self.cache_file = cache_file
        self.use_cache = use_cache
        self.cache = self._load_cache()

    def _load_cache(self) -> Dict:
        """Load cache from file."""
        if not self.use_cache or not os.path.exists(self.cache_file):
            return {}

        try:
            with open(self.cache_file, 'r') as f:
                cache = json.load(f)
                logging.info(f"Loaded cache from {self.cache_file} with {len(cache)} entries")
                return cache
        except (OSError, json.JSONDecodeError) as e:
            logging.warning(f"Failed to load cache: {e}")
            return {}

    def save_cache(self):
        """Save cache to file."""
        if not self.use_cache:
            return

        try:
            with open(self.cache_file, 'w') as f:
                json.dump(self.cache, f, indent=2)
                logging.info(f"Saved cache to {self.cache_file} with {len(self.cache)} entries")
        except (OSError, TypeError) as e:
            logging.warning(f"Failed to save cache: {e}")

    def get_cache_key(self, repo: str, endpoint: str, params: Dict = None) -> str:
        """Generate an MD5 cache key for a repository endpoint and its parameters."""
        key_data = f"{repo}:{endpoint}:{json.dumps(params, sort_keys=True) if params else ''}"
        return hashlib.md5(key_data.encode()).hexdigest()

    def get(self, cache_key: str, max_age_hours: Optional[float] = None) -> Optional[Any]:
        """Get data from cache if it exists and is fresh enough.

        Args:
            cache_key: The cache key to lookup
            max_age_hours: Entries older than this are treated as missing (None = never expire)

        Returns:
            Cached data if available, None otherwise
        """
        if not self.use_cache or cache_key not in self.cache:
            return None

        cached_entry = self.cache[cache_key]
        try:
            cached_time = datetime.fromisoformat(cached_entry['timestamp'])
        except (KeyError, TypeError, ValueError):
            logging.debug(f"Ignoring malformed cache entry {cache_key}")
            return None
        age_hours = (datetime.now() - cached_time).total_seconds() / 3600

        if max_age_hours is not None and age_hours > max_age_hours:
            logging.debug(f"Cache entry expired (age: {age_hours:.1f} hours)")
            return None

        logging.debug(f"Using cached data (age: {age_hours:.1f} hours)")
        return cached_entry['data']

    def put(self, cache_key: str, data: Any):
        """Store data in cache."""
        if not self.use_cache:
            return

        self.cache[cache_key] = {
            'timestamp': datetime.now().isoformat(),
            'data': data
        }

    def __contains__(self, key: str) -> bool:
        return key in self.cache
