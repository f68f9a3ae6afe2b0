"""
File-backed document storage.

- **json_document_store.py**: JsonDocumentStore, atomic whole-document JSON
  reads and writes used by the custom command catalog.
"""
