"""Configuration — loading the declarative workstation document."""
