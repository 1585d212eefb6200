"""
Processing pipeline for query analytics.
"""
