"""Presentation layer: frame viewers fed by the pipeline sink."""
