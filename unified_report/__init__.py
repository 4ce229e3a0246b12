"""Unified performance report: JMeter, Playwright and Azure Load Testing results."""

__version__ = "1.0.0"
