"""
Core: configuration, database, responses, errors, logging and request guards
"""
