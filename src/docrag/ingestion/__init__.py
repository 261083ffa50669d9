"""
Ingestion — upload validation, text extraction, chunking, embedding and indexing.

This package is responsible for the ETL-like path that turns an uploaded
file into embedded chunks stored in the vector index, tracking the
document's status along the way.
"""
