"""Shared helpers for the onboarding service."""
