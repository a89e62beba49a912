"""Cross-resource orchestration."""
