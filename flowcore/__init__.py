"""Flowcore - embedded workflow orchestration runtime.

Runs directed graphs of typed nodes (trigger, model call, conditional branch,
output) through pluggable executors that share one variable context per run.
"""

__version__ = "0.1.0"
