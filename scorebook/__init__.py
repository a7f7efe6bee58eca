"""
Ball-by-ball Cricket Scoring Engine

Records deliveries for a two-innings limited-overs match, keeps the
innings aggregates consistent under operator corrections, and derives
scorecards, chase targets and results for spectators.
"""

__version__ = "0.1.0"
