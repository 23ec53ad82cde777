"""
Removal of DEFINER clauses from MySQL dumps

Views, triggers and routines carry the account that created them. That
account rarely exists on the local server, so the clauses are stripped
both while dumping (sed on the remote host) and while importing.
"""

import re

from sw_db_sync.utils.process import Command

# sed expressions applied to the dump on the remote host:
# bracketed form inside version comments, then bare form
SED_EXPRESSIONS = (
    r"s/DEFINER[ ]*=[ ]*[^*]*\*/\*/g",
    r"s/DEFINER=[^ ]* / /g",
)

# /*!50013 DEFINER=`user`@`host` SQL SECURITY DEFINER */
DEFINER_COMMENT = re.compile(rb"/\*![0-9]*\s*DEFINER=[^*]*\*/")


def definer_filter() -> Command:
    """
    sed stage stripping DEFINER clauses, byte-oriented whatever the locale
    """
    argv = ["sed"]
    for expression in SED_EXPRESSIONS:
        argv.extend(["-e", expression])
    return Command(argv, env={"LANG": "C", "LC_CTYPE": "C", "LC_ALL": "C"})


def strip_definer_comments(line: bytes) -> bytes:
    """
    Removes versioned DEFINER comments from one line of a dump
    """
    if b"DEFINER" not in line:
        return line
    return DEFINER_COMMENT.sub(b"", line)
