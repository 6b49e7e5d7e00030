"""Core — models, planning, execution, and reporting. No direct tool access."""
