# domains/tracking/normalizers/__init__.py
from . import purolator, ups

__all__ = ["purolator", "ups"]
