"""Notebook fan tools: embedded controller access, fan register search, configuration updates and service control."""

__version__ = "0.3.18"