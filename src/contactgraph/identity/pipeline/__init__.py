"""Resolution pipeline: match -> cluster -> merge -> enrich -> respond."""

from .clusters import ClusterResolution, confirm_matches, implicated_primary_ids, resolve_primary
from .enrichment import enrich_cluster
from .matcher import find_matches
from .merge import MergeOutcome, elect_survivor, merge_clusters
from .normalizer import normalize_email, normalize_phone, normalize_request
from .response import build_consolidated

__all__ = [
    "ClusterResolution",
    "MergeOutcome",
    "build_consolidated",
    "confirm_matches",
    "elect_survivor",
    "enrich_cluster",
    "find_matches",
    "implicated_primary_ids",
    "merge_clusters",
    "normalize_email",
    "normalize_phone",
    "normalize_request",
    "resolve_primary",
]
