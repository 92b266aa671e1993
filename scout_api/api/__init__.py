"""HTTP layer: request schemas and route modules."""
