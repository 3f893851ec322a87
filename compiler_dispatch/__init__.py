"""Compiler dispatch service package.

Routes compile requests to configured compiler back-ends, either running them
locally or forwarding to the peer that hosts them.
"""

__version__ = "1.0.0"
