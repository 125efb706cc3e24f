"""
pass-age - how old are the passwords in your pass store?

Reports when each secret in a git-backed password store was last changed,
using `git blame` on the first line (the password) of every .gpg file.

Features:
- sort: Order by pass-name or by last modification
- filter: Only show unmodified (or modified) passwords since a duration
- ignore-rev: Skip bulk re-encryption commits when assigning blame

Requires: git, and a store initialised with `pass git init`
"""

__version__ = "0.1.0"
