"""Presentation of merged change reports."""

from .html import render_html

__all__ = ["render_html"]
