"""
cytogate: hierarchical gating pipelines for flow cytometry data.

A gating template declares every cell population, its parent, the method
that derives it and how samples are grouped before that method runs. The
template is compiled into a population DAG and dispatched in dependency order.
"""

__version__ = "0.1.0"
