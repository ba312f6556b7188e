"""nutwatch - shut a host down when its UPS runs on battery for too long."""

__version__ = "0.3.0"
