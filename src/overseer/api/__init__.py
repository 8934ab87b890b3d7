"""HTTP API for the decision engine."""
