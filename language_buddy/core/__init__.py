"""
Core domain types for the Language Buddy service.
"""
