"""HTTP service exposing sync and graph checks."""
