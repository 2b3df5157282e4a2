"""
refpin core library.

This package contains the core functionality:
- actions: GitHub Actions checksum resolver and parser
- image: container image digest resolver and parser
- replacer: line-rewrite driver and entity lister
- registry, rest: lookup clients
"""

__all__: list[str] = []
