"""
domain - Core types, ports, and exceptions.

Pure Python: no LangChain, no Ollama, no filesystem access.
"""
