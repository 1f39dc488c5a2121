"""Patient, clinical history and nursing observation records."""

__version__ = "0.1.0"
