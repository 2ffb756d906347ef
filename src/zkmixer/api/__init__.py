"""REST API surface."""
