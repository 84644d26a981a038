"""Test configuration package: marker registration and collection rules."""
