"""
Backend-neutral vector configuration constants shared by all translators.
"""

from enum import Enum


class DistanceFunction(str, Enum):
    COSINE = "cosine"
    DOT_PRODUCT = "dot_product"
    EUCLIDEAN = "euclidean"
    MANHATTAN = "manhattan"


class IndexKind(str, Enum):
    HNSW = "hnsw"
    FLAT = "flat"


class RedisStorageType(str, Enum):
    JSON = "json"
    HASH_SET = "hash_set"


DEFAULT_DISTANCE_FUNCTION = DistanceFunction.COSINE
DEFAULT_INDEX_KIND = IndexKind.HNSW
DEFAULT_MAX_DEGREE_OF_GET_PARALLELISM = 50
