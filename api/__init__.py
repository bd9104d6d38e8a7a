"""api/ -- HTTP layer: app assembly, middleware, error boundary and route groups."""
