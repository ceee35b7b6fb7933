"""
doc_archive: a filesystem document archive with range-aware streaming.

Subpackages:
- domain: document models, metadata codec, query matcher, exceptions
- repositories: the document store protocol and its implementations
- delivery: HTTP byte-range file delivery
- use_cases: the archive service composing storage and delivery
- api: FastAPI application
- cli: command line interface
"""

__version__ = "0.1.0"
