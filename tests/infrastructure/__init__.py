"""Test infrastructure - fakes and data generators, not tests."""
