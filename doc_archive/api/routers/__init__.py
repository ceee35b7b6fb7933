"""
API routers, mounted by doc_archive.api.app.
"""
