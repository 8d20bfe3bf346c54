"""GUI-agnostic core: archive access, package parsing and content normalization."""
