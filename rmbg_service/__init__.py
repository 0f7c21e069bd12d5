"""
RMBG background removal package.

Exposes reusable primitives for caching and fetching the ONNX model,
preprocessing images, compositing masks, orchestrating the pipeline and
serving the FastAPI application.
"""
