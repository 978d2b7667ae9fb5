"""Built-in blocks. Everything else comes from the external block catalog."""

from canvasflow.blocks.builtin.http_request import http_request
from canvasflow.blocks.builtin.response import response
from canvasflow.blocks.builtin.starter import starter

__all__ = ["starter", "http_request", "response"]
