"""
Candidate Ranker

Generates candidate profiles and CVs with an LLM and ranks the candidate
pool against a position.
"""
__version__ = "1.0.0"
