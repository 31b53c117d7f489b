"""api/ -- HTTP surface: FastAPI app, middleware, routes, and transport models."""
