"""Scaffold a new git branch by conversing with a language model."""

__version__ = "0.1.0"
