"""
Invoice numbering modes accepted by /generate-invoice.
"""

MODE_SYSTEM = "system"  # number computed by the server, must match exactly
MODE_MANUAL = "manual"  # number supplied by the caller, series catches up

