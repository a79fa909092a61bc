"""Infrastructure concerns: env-driven settings and PHI-safe logging helpers."""
