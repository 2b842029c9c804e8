"""
agent - Conversational agent orchestration layer.

Contains tools, prompts, the tool-call extractor and the executor that
runs the model + tool loop. Depends on domain/ and application/. Never
imports from infrastructure/.
"""
