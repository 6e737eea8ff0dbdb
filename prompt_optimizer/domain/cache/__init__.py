"""
Cache Domain Module

Domain model for the tiered client cache.
Contains entities, value objects, repository interfaces, tag index and domain services.
"""
