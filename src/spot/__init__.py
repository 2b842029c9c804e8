"""
spot - Local, offline conversational coding agent.

Drives a local Ollama model through a tool-augmented conversation loop and
keeps per-project transcripts alive across arbitrarily long sessions.
"""

__version__ = "0.3.0"
