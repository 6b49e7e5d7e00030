"""Network helpers — downloads with checksum verification."""
