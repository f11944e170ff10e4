"""Where finished analyses go: the question backend over HTTP, or a local JSON file."""

from .http_sink import HttpAnalysisSink
from .json_sink import JsonFileAnalysisSink

__all__ = ["HttpAnalysisSink", "JsonFileAnalysisSink"]
