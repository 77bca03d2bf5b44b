"""recall: spaced-repetition study engine."""

from recall.consts import VERSION

__version__ = VERSION
