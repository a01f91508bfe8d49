"""Allow running as: python -m rate_engine"""

from rate_engine.main import cli

if __name__ == "__main__":
    cli()
