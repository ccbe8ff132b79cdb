"""Nutrilabel configuration package."""
