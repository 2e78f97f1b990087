"""Tests for fairquote."""
