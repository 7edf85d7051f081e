"""
EPUB translator: translates the text of EPUB documents through a
chat-completion service while keeping markup and archive structure intact.
"""

__version__ = "1.0.0"
