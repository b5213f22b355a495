"""Clip aggregation pipeline: retrieve, prepare, stage and publish short clips."""

__version__ = "0.1.0"
