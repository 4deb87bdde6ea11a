# -*- coding: utf-8 -*-
"""protoknow: knowledge and signature analysis for message-exchange protocols."""

from .errors import LexError, ParseError, ProtocolSyntaxError
from .parser import parse

__version__ = "0.1.0"

__all__ = ["LexError", "ParseError", "ProtocolSyntaxError", "parse", "__version__"]
