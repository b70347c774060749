"""
CLI layer - Typer commands over the booking service.
"""
