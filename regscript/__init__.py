"""
regscript: scenario scripts for a Bitcoin Core regtest node.
"""

__version__ = "0.1.0"
