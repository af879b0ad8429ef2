"""
Spanline: in-process tracing and metrics with a batching span-export pipeline.

Spans are created by tracers, carry explicit parent contexts, and are
handed on end to span processors that ship them to exporters without
ever blocking or failing the instrumented application.
"""

__version__ = "0.1.0"
