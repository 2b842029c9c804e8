"""
Run the Spot CLI without installing the package.

Usage:
    python run_cli.py [COMMAND] [OPTIONS]

Commands:
    (none)     Interactive chat session in the current directory's project
    ask        One-shot question, tools enabled
    sessions   List archived sessions for this project
    models     List models installed on the local Ollama server

Environment variables (all optional, also read from .env):
    SPOT_PRIMARY_MODEL   Chat model (default: qwen2.5-coder:32b-instruct)
    SPOT_FAST_MODEL      Summarizer model (default: llama3:8b-instruct-q4_K_M)
    SPOT_CONTEXT_LENGTH  Context window sent as num_ctx (default: 32768)
    SPOT_SESSIONS_DIR    Session storage (default: ~/.spot/sessions)
    SPOT_LOG_LEVEL       Log level (default: WARNING)
    OLLAMA_BASE_URL      Ollama server URL (default: http://localhost:11434)
"""

import sys
from pathlib import Path

# Ensure src/ is importable
sys.path.insert(0, str(Path(__file__).parent / "src"))

from spot.adapters.cli.main import app

if __name__ == "__main__":
    app()
