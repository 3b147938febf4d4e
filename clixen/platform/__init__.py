"""Cross-cutting platform concerns: errors and readiness."""
