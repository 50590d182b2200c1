"""
object-spine - generic persistence and query engine for entity objects.

Entity types are defined at runtime (YAML or code). Objects of those types
are stored one primary table per type, with join tables or reverse foreign
keys for relations, and queried through a filter object.

Packages:
- objectspine.core: errors, logging, settings, dialects, connections
- objectspine.model: field descriptors, entity types, schema loading
- objectspine.objects: attribute model, query builder, repository, manager
- objectspine.cli: ``objectspine`` command line
"""

__version__ = "0.1.0"
