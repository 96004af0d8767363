#!/usr/bin/env python3
"""
HLMaker - Hyperliquid signal-driven market maker core

Usage:
    pip install -e .
    python run_hlmaker.py config.json
"""
import asyncio

from hlmaker.main import _amain

if __name__ == "__main__":
    asyncio.run(_amain())
