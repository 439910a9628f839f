"""Unit modules used by the loader and CLI tests."""
