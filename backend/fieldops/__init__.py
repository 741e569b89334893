"""Field operations backend: checklist configuration, call sessions and live call coaching."""
__version__ = "0.1.0"
