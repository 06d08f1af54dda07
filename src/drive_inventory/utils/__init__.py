"""Utility helpers for Drive Inventory."""
