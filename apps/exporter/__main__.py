"""
Exporter Module Entry Point

Allows execution via: python -m apps.exporter

Delegates to the runner for argument parsing and execution.
"""

from apps.exporter.runner import run

if __name__ == "__main__":
    run()
