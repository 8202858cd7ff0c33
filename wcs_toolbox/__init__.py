"""
WCS Toolbox - file batch utilities behind a bounded in-process task queue.
"""
__version__ = "1.0.0"
