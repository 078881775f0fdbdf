"""
installkeeper.cache - Artifact Cache
======================================

Components:
    - ArtifactCacheExporter:  records resolved artifacts inside an installation
    - CachedArtifact:         one entry of the cache index
"""

from installkeeper.cache.exporter import ArtifactCacheExporter, CachedArtifact

__all__ = ["ArtifactCacheExporter", "CachedArtifact"]
