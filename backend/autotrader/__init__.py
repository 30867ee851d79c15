"""Alpaca signal trader: RSI signal generation and an automated trading loop."""
