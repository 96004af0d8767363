"""
HLMaker - signal engine and quote generation core for a Hyperliquid market maker.
"""
