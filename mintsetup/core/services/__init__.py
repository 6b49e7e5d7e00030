"""Services — host fact detection."""
