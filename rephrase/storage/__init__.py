"""Opaque key/blob persistence used for the vocabulary bank and user stats."""
from .blob_store import BlobStore, InMemoryBlobStore, RedisBlobStore, build_blob_store

__all__ = ['BlobStore', 'InMemoryBlobStore', 'RedisBlobStore', 'build_blob_store']
