"""tab-suspender: suspend idle browser tabs and restore them on demand"""

__version__ = "0.1.0"
