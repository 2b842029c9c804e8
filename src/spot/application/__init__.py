"""
application - Session ownership, context compaction, and turn orchestration.

Depends on domain/ only. Concrete gateways and repositories are injected
by the factory.
"""
