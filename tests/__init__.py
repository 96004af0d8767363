"""
HLMaker Test Suite

Tests for the HLMaker quoting core covering:
- Configuration loading and defaults
- Utility functions and numeric parsing
- Rolling book/trade history
- Signal computation and the signal engine
- Quote construction and the inventory risk gate
- Event router pipeline and run loop
- Feed message mapping (with a stubbed websocket)
- Logging and error capture
"""
