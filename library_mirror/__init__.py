"""
Vimeo to Panda Video library mirror.

Walks the Vimeo folder tree, recreates it on Panda Video and records which
Panda video corresponds to each Vimeo video.
"""

__version__ = "0.1.0"
