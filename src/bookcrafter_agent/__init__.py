"""Book Crafter agent orchestration core.

Talks to local and hosted LLM backends through a uniform adapter contract,
normalizes their streaming formats into one event model, and drives an
agentic tool-calling loop gated by human approval for mutating actions.
"""

__version__ = "0.1.0"
