"""Hybrid search, ranking and scoring.

Contents
- ``similarity``: cosine similarity on the shared [0, 1] scale
- ``lexical``: literal phrase and term matching
- ``hybrid``: weighted blend of lexical and vector relevance
- ``ranking``: opportunity, repository and peer-user rankers
- ``health``: derived repository health and activity scores
- ``auxiliary``: trending, health report and preference matching
- ``engine``: ``SearchEngine`` facade with config defaults and metrics
"""
