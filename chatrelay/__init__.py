"""
chatrelay - chat backend that relays prompts to a generative model.
"""

__version__ = "0.1.0"
