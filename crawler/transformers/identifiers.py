"""
Count qualified identifiers mentioned in post bodies.
"""

import re
from collections import Counter
from typing import Dict, Protocol


class IdentifierExtractor(Protocol):
    """Anything that maps a post body to identifier occurrence counts."""

    def extract(self, text: str) -> Dict[str, int]:
        ...


class JavaApiExtractor:
    """
    Find dotted names under a package prefix, e.g. ``java.io.File``.

    The body is scanned as-is, markup included. A name only counts when the
    prefix starts a token, so ``myjava.io`` and ``x.java.io`` are ignored.
    Trailing dots (end of a sentence) are not part of the name.

    Example:
        >>> JavaApiExtractor().extract("Use java.io.File or java.io.File.")
        {'java.io.File': 2}
    """

    def __init__(self, prefix: str = "java"):
        self.prefix = prefix
        self._pattern = re.compile(
            rf"(?<![\w.$]){re.escape(prefix)}\.[A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*)*"
        )

    def extract(self, text: str) -> Dict[str, int]:
        if not text:
            return {}
        return dict(Counter(self._pattern.findall(text)))
