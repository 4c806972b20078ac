"""HTTP transport: Starlette app, action endpoints and CORS policy."""
