"""Storage backends: raw bytes and file metadata."""
