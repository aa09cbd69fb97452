"""Allow running the daemon with ``python -m window_state_daemon``."""

from .daemon import main

if __name__ == "__main__":
    main()
