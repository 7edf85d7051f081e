"""
Core translation engine: unit selection, the translation client and its
retry policy, and per-document orchestration.
"""
