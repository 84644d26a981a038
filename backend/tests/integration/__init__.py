"""
Integration tests package.

Contains tests that run the booking services and repositories together
against a real SQLite database, including concurrent booking scenarios.
"""
