import sys

from juggernaut.mcp.lifecycle import run

if __name__ == "__main__":
    sys.exit(run())
