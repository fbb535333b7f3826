"""HTTP middleware for the reference backend."""
