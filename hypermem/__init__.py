"""
hypermem - hypergraph memory engine for a persistent conversational bot.
"""

__version__ = "0.1.0"
__logo__ = "🕸️"
