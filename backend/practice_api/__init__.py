"""Application package for the language practice sessions backend.

This package exposes the service, repository and model modules used by
the FastAPI application for quiz, reading and vocabulary practice. It
is intentionally lightweight; individual modules contain the concrete
implementations and documentation.
"""
