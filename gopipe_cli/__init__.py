"""
gopipe CLI

Command-line interface for the gopipe CI pipeline.

Usage:
    python -m gopipe_cli worker
    python -m gopipe_cli pipeline --input pipeline.yaml
    python -m gopipe_cli run --input pipeline.yaml
    python -m gopipe_cli validate pipeline.yaml
"""

__version__ = "0.1.0"
