"""Window State Daemon

Event-driven window geometry persistence for i3/Sway.

This package provides a long-running daemon that:
- Maintains a persistent IPC connection to the window manager
- Matches new windows against user-defined per-application rules
- Restores saved size, position, workspace and window flags on first map
- Debounces live geometry changes into per-class saved state

Author: NixOS Configuration
License: MIT
Version: 1.0.0
"""

__version__ = "1.0.0"
