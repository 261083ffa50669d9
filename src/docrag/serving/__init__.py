"""
Serving — FastAPI application and KServe runtime.

This package exposes the document lifecycle, search and chat over HTTP so
it can be deployed as a standalone container or a KServe InferenceService.
"""
