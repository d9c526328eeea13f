# repository/namespaces.py
from typing import Final

ROOT: Final[str] = "shortform"

JOBS: Final[str] = f"{ROOT}:jobs"
JOB_INDEX: Final[str] = f"{ROOT}:jobidx"  # per owner + normalized url, newest last
