"""vhicli - command line orchestrator for the VHI compute API."""

__version__ = "0.4.0"
