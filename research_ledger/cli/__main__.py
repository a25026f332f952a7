"""Run the ledger CLI with ``python -m research_ledger.cli``."""

from research_ledger.cli import app

if __name__ == "__main__":
    app(prog_name="research-ledger")
