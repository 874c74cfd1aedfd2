"""Pydantic models shared by logic and routes."""
