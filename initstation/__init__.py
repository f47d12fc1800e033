"""Clear orphaned ILS station locks."""

from initstation.settings import VERSION

__version__ = VERSION
