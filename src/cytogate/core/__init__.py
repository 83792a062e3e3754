# src/cytogate/core/__init__.py
"""Core subsystems: argument parsing, template validation, DAG, config, logging."""
