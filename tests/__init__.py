"""Tests for pyroomlock."""
