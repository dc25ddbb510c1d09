"""GBFS bike-share statistics collection, retention and range queries."""

__version__ = "0.1.0"
