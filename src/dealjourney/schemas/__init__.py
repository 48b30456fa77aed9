"""Request/response schemas and record normalization."""
