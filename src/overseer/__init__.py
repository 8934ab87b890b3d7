"""Overseer - adjudication and supervision decision engine."""
