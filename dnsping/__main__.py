"""
Entry point for running dnsping as a module.

Usage: python -m dnsping [OPTIONS]
"""

from .cli import main

if __name__ == "__main__":
    main()
