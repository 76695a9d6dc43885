"""HTTP API: FastAPI app, request/response models, background job runner."""
