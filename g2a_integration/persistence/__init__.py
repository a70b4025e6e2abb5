from .resource_store import ResourceStore, InMemoryResourceStore, Record

__all__ = [
    'ResourceStore',
    'InMemoryResourceStore',
    'Record',
]
