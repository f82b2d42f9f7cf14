"""
Build edition switch.

PREMIUM_BUILD is fixed when the distribution is built. Free builds are
produced by scripts/build_free_edition.py, which sets it to False and leaves
the license codec, verification and activation modules out of the tree.
"""

PREMIUM_BUILD = True

EDITION_NAME = "premium" if PREMIUM_BUILD else "free"
