"""packsync - converge developer tool configuration toward selected packs."""

__version__ = "0.1.0"
