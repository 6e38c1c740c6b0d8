"""In-process feature flag evaluation engine."""
