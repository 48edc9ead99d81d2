# (c) Copyright Datacraft, 2026
__version__ = "0.3.0"
