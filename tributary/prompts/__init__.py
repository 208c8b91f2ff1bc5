"""Prompt templates."""

from .templates import TemplateStore, placeholders, render_template

__all__ = ["TemplateStore", "placeholders", "render_template"]
