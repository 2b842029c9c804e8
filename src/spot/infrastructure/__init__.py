"""
infrastructure - Concrete implementations of domain ports.

Contains all vendor-specific code: Ollama, LangChain, JSON files on disk.
Depends on domain/ only (implements ports). Never imported by application/.
"""
