"""
Policy QA HTTP surface

FastAPI app exposing POST /ask and GET /health.
"""
