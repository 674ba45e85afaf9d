"""
ChatGPT desktop bridge.

Drives the ChatGPT desktop app through its accessibility tree: pastes a
prompt, polls the rendered conversation until it stops changing, and returns
the newly generated answer to a tool-calling client.
"""

__version__ = "1.0.0"
