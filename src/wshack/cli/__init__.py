"""CLI layer: argument parsing, prompts, rendering and the error boundary.

Only this package talks to the terminal.  It wires the ``infra``
adapters into the ``core`` planner; nothing below it imports from
``cli``.
"""
