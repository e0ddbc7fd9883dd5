from functools import lru_cache

from ..features.extractor import FeatureExtractor, create_extractor


@lru_cache
def get_extractor() -> FeatureExtractor:
    # One extractor per process; its response cache is bounded by
    # settings.response_cache_max_entries.
    return create_extractor()
