"""Service layer: session façades used by the web routes."""
