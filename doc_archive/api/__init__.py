"""
HTTP API of the document archive.
"""
