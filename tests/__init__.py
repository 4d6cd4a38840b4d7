"""Tests for the alumni directory."""
