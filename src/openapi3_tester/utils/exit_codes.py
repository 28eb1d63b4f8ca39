"""Exit-code contract for the CLI.

Code  Meaning
----  -------
  0   Success - definition is valid
  1   Usage - no definition file given
  2   Error - invalid definition, unreadable file, runtime failure
"""

from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    USAGE = 1
    ERROR = 2
