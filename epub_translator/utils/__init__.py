"""
Utility modules for the EPUB translator
"""
