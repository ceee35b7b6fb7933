"""
Command line programs for the document archive.
"""
