"""NiceGUI interface - thin render layer for the chat widget.

Responsibilities:
    - Chat message display with in-place streaming updates
    - Typing indicator and streaming cursor from the controller's flags
    - Profile prompt when a send needs an identity
    - Clear-history confirmation

Contains no chat logic. Reads controller views and submits drafts.
"""
