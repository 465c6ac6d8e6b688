#!/usr/bin/env python3
"""
DealerStructure Runner Script.

Usage:
    python run.py structure SPY                          # Structure for the next weekly expiration
    python run.py structure SPY --expiration 2026-03-20  # Specific expiration
    python run.py structure SPY --json                   # Raw payload
    python run.py status                                 # Show configuration
"""

from dealerstructure.cli import main

if __name__ == "__main__":
    main()
